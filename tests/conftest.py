"""Central Pytest Fixtures for Smart Photo Diary.

Fixtures included:
- Config: ai_config (no backoff delay), app_config
- Remote endpoint: gemini (scripted MockTransport), api_client, sleep
- Data: jpeg_bytes, morning/evening timestamps, sample photos and requests
- Helpers: gemini_payload() builds a generateContent response body
"""

from __future__ import annotations

import io
import json
import logging
import os
from datetime import datetime
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import keyring
import pytest
from PIL import Image

from smart_diary.ai.client import GeminiApiClient
from smart_diary.config import AIConfig, AppConfig, DiaryConfig, reset_config
from smart_diary.core.models import (
    DiaryLength,
    GenerationRequest,
    Language,
    PhotoInput,
)

TEST_API_KEY = "AIza" + "x" * 35


# =============================================================================
# Helper Functions
# =============================================================================


def gemini_payload(text: str) -> dict[str, Any]:
    """Build a minimal successful generateContent response."""
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


def create_jpeg(width: int = 32, height: int = 32, color: str = "orange") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=color).save(buffer, format="JPEG")
    return buffer.getvalue()


class ScriptedGemini:
    """MockTransport handler that replays scripted replies in order.

    Each reply is a status code, a text (200 with a generateContent body),
    an ``httpx.Response``, or an exception to raise. When the script runs
    out, the last reply is repeated.
    """

    def __init__(self) -> None:
        self.replies: list[Any] = []
        self.requests: list[httpx.Request] = []

    def reply(self, *replies: Any) -> "ScriptedGemini":
        self.replies.extend(replies)
        return self

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def prompts(self) -> list[str]:
        return [body["contents"][0]["parts"][0]["text"] for body in self.bodies()]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.replies:
            return httpx.Response(200, json=gemini_payload("【タイトル】\nテスト\n\n【本文】\n本文です"))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        if isinstance(reply, int):
            return httpx.Response(reply, json={"error": {"code": reply}})
        return httpx.Response(200, json=gemini_payload(reply))


# =============================================================================
# Autouse
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests independent of the host environment and cached config."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    for name in list(os.environ):
        if name.upper().startswith("SMART_DIARY_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(keyring, "get_password", lambda service, username: None)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def restore_package_logger():
    """setup_logging() detaches the package logger; undo that between tests."""
    package_logger = logging.getLogger("smart_diary")
    yield
    package_logger.handlers = []
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


# =============================================================================
# Config
# =============================================================================


@pytest.fixture
def ai_config() -> AIConfig:
    """AI settings with no backoff delay."""
    return AIConfig(retry_base_delay=0.0, timeout_seconds=5)


@pytest.fixture
def app_config(ai_config: AIConfig) -> AppConfig:
    return AppConfig(ai=ai_config, diary=DiaryConfig())


# =============================================================================
# Remote Endpoint
# =============================================================================


@pytest.fixture
def gemini() -> ScriptedGemini:
    return ScriptedGemini()


@pytest.fixture
def sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that records delays without waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def mock_logger() -> MagicMock:
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def api_key() -> str:
    return TEST_API_KEY


@pytest.fixture
def api_client(ai_config, gemini, sleep, mock_logger) -> GeminiApiClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(gemini))
    return GeminiApiClient(
        ai_config,
        api_key=TEST_API_KEY,
        http_client=http_client,
        sleep=sleep,
        logger=mock_logger,
    )


@pytest.fixture
def payload_factory() -> Callable[[str], dict[str, Any]]:
    return gemini_payload


# =============================================================================
# Data
# =============================================================================


@pytest.fixture
def jpeg_bytes() -> bytes:
    return create_jpeg()


@pytest.fixture
def morning() -> datetime:
    return datetime(2025, 3, 15, 8, 30)


@pytest.fixture
def evening() -> datetime:
    return datetime(2025, 3, 15, 19, 15)


@pytest.fixture
def two_photos(jpeg_bytes, morning, evening) -> list[PhotoInput]:
    return [
        PhotoInput(image_bytes=jpeg_bytes, timestamp=morning),
        PhotoInput(image_bytes=create_jpeg(color="blue"), timestamp=evening),
    ]


@pytest.fixture
def single_request(jpeg_bytes, morning) -> GenerationRequest:
    return GenerationRequest(
        photos=[PhotoInput(image_bytes=jpeg_bytes, timestamp=morning)],
        language=Language.JAPANESE,
        diary_length=DiaryLength.STANDARD,
        location="京都",
    )


@pytest.fixture
def multi_request(two_photos) -> GenerationRequest:
    return GenerationRequest(
        photos=two_photos,
        language=Language.ENGLISH,
        diary_length=DiaryLength.STANDARD,
        location="Kyoto",
    )
