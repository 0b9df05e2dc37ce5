"""Entry point that wires the diary engine together.

``DiaryAIService`` owns one ``GeminiApiClient`` (and so one connection pool)
and hands it to the generation orchestrator and the tag generator. It picks
the single- or multi-photo flow from the photo count and fills request
defaults from configuration.

Example:
    >>> async with DiaryAIService() as service:
    ...     request = service.build_request(photos, location="Kyoto")
    ...     diary = await service.generate_diary(request, is_online=True)
    ...     if diary.is_success:
    ...         tags = await service.generate_tags(
    ...             diary.value.title, diary.value.content,
    ...             photos[0].timestamp, len(photos), is_online=True,
    ...         )
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Sequence

from smart_diary.ai import locale_utils
from smart_diary.ai.client import GeminiApiClient
from smart_diary.ai.fallback import OfflineDiaryComposer
from smart_diary.ai.generator import DiaryGenerator, ProgressCallback
from smart_diary.ai.tags import TagGenerator
from smart_diary.config import AppConfig, get_config
from smart_diary.core.errors import EmptyInputError, Result
from smart_diary.core.models import (
    DiaryLength,
    GenerationRequest,
    GenerationResult,
    Language,
    PhotoInput,
)
from smart_diary.utils.logging import log_failure

logger = logging.getLogger(__name__)


class DiaryAIService:
    """Facade over generation, tagging and the offline template.

    Attributes:
        config: Application configuration.
        api_client: Shared Gemini client.
        generator: Diary generation orchestrator.
        tag_generator: Tag generator.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        api_client: GeminiApiClient | None = None,
        generator: DiaryGenerator | None = None,
        tag_generator: TagGenerator | None = None,
        offline_composer: OfflineDiaryComposer | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or get_config()
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self.api_client = api_client or GeminiApiClient(self.config.ai, logger=self._logger)
        self.generator = generator or DiaryGenerator(self.api_client, logger=self._logger)
        self.tag_generator = tag_generator or TagGenerator(self.api_client, logger=self._logger)
        self.offline_composer = offline_composer or OfflineDiaryComposer()

    async def __aenter__(self) -> "DiaryAIService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.api_client.aclose()

    def is_available(self) -> bool:
        """True when an API key is configured."""
        return self.api_client.has_api_key()

    async def test_api_key(self) -> bool:
        return await self.api_client.test_api_key()

    def build_request(
        self,
        photos: Sequence[PhotoInput],
        *,
        language: Language | None = None,
        diary_length: DiaryLength | None = None,
        custom_prompt: str | None = None,
        context_text: str | None = None,
        location: str | None = None,
    ) -> GenerationRequest:
        """Build a request, taking language and length defaults from settings."""
        return GenerationRequest(
            photos=tuple(photos),
            language=language or self.config.diary.language,
            diary_length=diary_length or self.config.diary.diary_length,
            custom_prompt=custom_prompt,
            context_text=context_text,
            location=location,
        )

    async def generate_diary(
        self,
        request: GenerationRequest,
        is_online: bool,
        on_progress: ProgressCallback | None = None,
        allow_offline_template: bool = False,
    ) -> Result[GenerationResult]:
        """Generate a diary with the flow that fits the photo count.

        Args:
            request: The generation request.
            is_online: Caller's connectivity flag; trusted as-is.
            on_progress: Called once per photo in the multi-photo flow.
            allow_offline_template: When offline, return a template diary
                instead of an ``OfflineError``.
        """
        if not is_online and allow_offline_template:
            return self._offline_template(request)
        if len(request.photos) == 1:
            return await self.generator.generate_from_image(request, is_online)
        return await self.generator.generate_from_multiple_images(request, is_online, on_progress)

    async def generate_tags(
        self,
        title: str,
        content: str,
        timestamp: datetime,
        photo_count: int,
        is_online: bool,
        language: Language | None = None,
    ) -> Result[list[str]]:
        return await self.tag_generator.generate_tags(
            title,
            content,
            timestamp,
            photo_count,
            is_online,
            language or self.config.diary.language,
        )

    def _offline_template(self, request: GenerationRequest) -> Result[GenerationResult]:
        if not request.photos:
            error = EmptyInputError(locale_utils.no_images_message(request.language))
            log_failure(self._logger, error.message, "DiaryAIService.generate_diary")
            return Result.fail(error)
        # Keyword tags from the caller's own text, without the time tag
        timestamp = request.photos[0].timestamp
        own_text = " ".join(filter(None, (request.context_text, request.custom_prompt)))
        labels = self.tag_generator.generate_offline_tags("", own_text, timestamp, request.language)[1:]
        result = self.offline_composer.compose(
            labels=labels,
            date=timestamp,
            location=request.location,
            photo_times=request.photo_times,
            photo_count=len(request.photos),
            language=request.language,
        )
        return Result.ok(result)
