"""Tests for smart_diary.core: models, errors and Result."""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from smart_diary.core.errors import (
    DiaryAIError,
    MissingApiKeyError,
    NetworkError,
    OfflineError,
    Result,
)
from smart_diary.core.models import (
    GenerationRequest,
    GenerationResult,
    Language,
    PhotoInput,
    RetryAttempt,
    TimeSegment,
)


class TestLanguage:
    """Tests for Language.from_tag."""

    @pytest.mark.parametrize("tag", ["ja", "ja_JP", "ja-JP", "JA", " ja "])
    def test_japanese_tags(self, tag):
        assert Language.from_tag(tag) is Language.JAPANESE

    @pytest.mark.parametrize("tag", ["en", "en_US", "fr", "", None])
    def test_everything_else_is_english(self, tag):
        assert Language.from_tag(tag) is Language.ENGLISH


class TestModels:
    """Tests for request and result models."""

    def test_request_keeps_photo_order(self, two_photos):
        request = GenerationRequest(photos=list(reversed(two_photos)))
        assert request.photo_times == [p.timestamp for p in reversed(two_photos)]
        assert request.primary_timestamp == two_photos[1].timestamp

    def test_empty_request_allowed(self):
        request = GenerationRequest()
        assert request.photos == ()
        assert request.primary_timestamp is None

    def test_request_frozen(self, single_request):
        with pytest.raises(ValidationError):
            single_request.location = "Osaka"

    def test_photo_repr_hides_bytes(self):
        photo = PhotoInput(image_bytes=b"\xff\xd8secret", timestamp=datetime(2025, 3, 15))
        assert "secret" not in repr(photo)

    def test_result_defaults(self):
        assert GenerationResult() == GenerationResult(title="", content="")

    def test_retry_attempt_bounds(self):
        with pytest.raises(ValidationError):
            RetryAttempt(attempt_number=0)

    def test_segment_order(self):
        ordered = sorted(TimeSegment, key=lambda s: s.order)
        assert ordered == [TimeSegment.MORNING, TimeSegment.AFTERNOON, TimeSegment.EVENING, TimeSegment.NIGHT]


class TestErrors:
    """Tests for the error taxonomy."""

    def test_str_is_message(self):
        assert str(OfflineError("offline now")) == "offline now"

    def test_network_error_details(self):
        cause = ConnectionError("reset")
        error = NetworkError("failed", status_code=503, attempts=4, original_error=cause)
        assert error.details == {"status_code": 503, "attempts": 4}
        assert error.original_error is cause
        assert isinstance(error, DiaryAIError)

    def test_missing_key_default_message(self):
        assert "GEMINI_API_KEY" in MissingApiKeyError().message


class TestResult:
    """Tests for Result."""

    def test_ok(self):
        result = Result.ok([1, 2])
        assert result.is_success and not result.is_failure
        assert result.unwrap() == [1, 2]

    def test_fail(self):
        error = OfflineError("offline")
        result = Result.fail(error)
        assert result.is_failure
        assert result.value_or("fallback") == "fallback"
        with pytest.raises(OfflineError):
            result.unwrap()
