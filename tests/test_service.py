"""Tests for smart_diary.ai.service.DiaryAIService."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from smart_diary.ai.service import DiaryAIService
from smart_diary.config import AppConfig, DiaryConfig
from smart_diary.core.errors import EmptyInputError, OfflineError
from smart_diary.core.models import DiaryLength, GenerationRequest, Language


@pytest.fixture
def service(app_config, api_client, mock_logger) -> DiaryAIService:
    return DiaryAIService(app_config, api_client=api_client, logger=mock_logger)


# =============================================================================
# Requests and Routing
# =============================================================================


class TestBuildRequest:
    """Tests for request defaults."""

    def test_defaults_from_config(self, api_client, two_photos):
        """Language and length default to the configured values."""
        config = AppConfig(diary=DiaryConfig(language=Language.ENGLISH, diary_length=DiaryLength.SHORT))
        service = DiaryAIService(config, api_client=api_client)

        request = service.build_request(two_photos, location="Kyoto")

        assert request.language is Language.ENGLISH
        assert request.diary_length is DiaryLength.SHORT
        assert request.location == "Kyoto"
        assert len(request.photos) == 2

    def test_explicit_values_win(self, service, two_photos):
        request = service.build_request(two_photos, language=Language.ENGLISH)
        assert request.language is Language.ENGLISH


class TestGenerateDiary:
    """Tests for flow selection."""

    async def test_single_photo_uses_single_flow(self, service, gemini, single_request):
        """One photo means one vision request."""
        outcome = await service.generate_diary(single_request, is_online=True)

        assert outcome.is_success
        assert gemini.call_count == 1

    async def test_multiple_photos_use_multi_flow(self, service, gemini, multi_request):
        progress = []

        outcome = await service.generate_diary(
            multi_request, is_online=True, on_progress=lambda c, t: progress.append((c, t))
        )

        assert outcome.is_success
        assert gemini.call_count == 3
        assert progress == [(1, 2), (2, 2)]

    async def test_empty_request(self, service, gemini):
        outcome = await service.generate_diary(GenerationRequest(photos=[]), is_online=True)

        assert isinstance(outcome.error, EmptyInputError)
        assert gemini.call_count == 0

    async def test_offline_without_template(self, service, gemini, single_request):
        """Offline never silently falls back to the template."""
        outcome = await service.generate_diary(single_request, is_online=False)

        assert isinstance(outcome.error, OfflineError)
        assert gemini.call_count == 0

    async def test_offline_template_opt_in(self, service, gemini, multi_request):
        """The template diary is returned only when asked for."""
        outcome = await service.generate_diary(
            multi_request, is_online=False, allow_offline_template=True
        )

        assert outcome.is_success
        assert outcome.value.title == "Today's Memories"
        assert "Kyoto" in outcome.value.content
        assert gemini.call_count == 0

    async def test_offline_template_labels_from_context(self, service, gemini, two_photos):
        """Keywords in the caller's context become template labels."""
        request = GenerationRequest(
            photos=two_photos,
            language=Language.ENGLISH,
            context_text="Lunch then a walk by the river",
        )

        outcome = await service.generate_diary(request, is_online=False, allow_offline_template=True)

        assert outcome.value.title == "Notes on Meal"
        assert "2 photos of Meal and Outside and more" in outcome.value.content
        assert gemini.call_count == 0

    async def test_offline_template_empty(self, service):
        outcome = await service.generate_diary(
            GenerationRequest(photos=[]), is_online=False, allow_offline_template=True
        )

        assert isinstance(outcome.error, EmptyInputError)


# =============================================================================
# Tags and Key
# =============================================================================


class TestServiceTags:
    """Tests for tag generation through the service."""

    async def test_offline_tags_default_language(self, service, morning):
        """Tag language defaults to the configured Japanese."""
        outcome = await service.generate_tags("朝食", "パン", morning, 1, is_online=False)
        assert outcome.value[:2] == ["朝", "食事"]

    async def test_online_tags(self, service, gemini, morning):
        gemini.reply("Lunch, Park")

        outcome = await service.generate_tags(
            "Picnic", "Lunch in the park", morning, 1, is_online=True, language=Language.ENGLISH
        )

        assert outcome.value == ["Morning", "Meal", "Park"]


class TestServiceLifecycle:
    """Tests for availability and cleanup."""

    def test_is_available(self, service):
        assert service.is_available() is True

    def test_unavailable_without_key(self, app_config):
        """With no environment key and no keyring entry, the service reports no key."""
        assert DiaryAIService(app_config).is_available() is False

    async def test_test_api_key(self, service, gemini):
        gemini.reply("Hello")
        assert await service.test_api_key() is True

    async def test_context_manager_closes_client(self, app_config):
        async with DiaryAIService(app_config) as service:
            service.api_client.aclose = AsyncMock()
        service.api_client.aclose.assert_awaited_once()
