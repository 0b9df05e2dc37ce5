"""Diary generation orchestrator.

Drives the two generation flows end to end:

- Single photo: one vision request with the full diary prompt.
- Multiple photos: one short scene-analysis vision request per photo, strictly
  sequential and in input order, then one text request that synthesizes the
  diary from every analysis.

Both flows return ``Result[GenerationResult]``. Offline and empty-input
conditions fail before any network call.

Example:
    >>> generator = DiaryGenerator(api_client)
    >>> outcome = await generator.generate_from_multiple_images(
    ...     request, is_online=True, on_progress=lambda i, n: print(f"{i}/{n}")
    ... )
    >>> if outcome.is_success:
    ...     print(outcome.value.title)
"""

from __future__ import annotations

import inspect
import logging
import re
from typing import Any, Awaitable, Callable, Union

from smart_diary.ai import locale_utils
from smart_diary.ai.client import GeminiApiClient
from smart_diary.ai.prompts import (
    BODY_MARKERS,
    TITLE_MARKERS,
    PromptParams,
    analyze_prompt_type,
    build_multi_image_prompt,
    build_scene_analysis_prompt,
    build_single_image_prompt,
    optimization_params,
)
from smart_diary.ai.time_segment import label_for, segment_for
from smart_diary.config import AIConfig
from smart_diary.core.errors import (
    EmptyInputError,
    GenerationParseError,
    OfflineError,
    Result,
    UnexpectedError,
)
from smart_diary.core.models import GenerationRequest, GenerationResult, Language, PhotoInput
from smart_diary.utils.logging import log_failure

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]


# =============================================================================
# Parsing
# =============================================================================

_TITLE_MARKER = "|".join(re.escape(m) for m in TITLE_MARKERS.values())
_BODY_MARKER = "|".join(re.escape(m) for m in BODY_MARKERS.values())
# Markers may carry markdown emphasis the model wraps around them
_TITLE_RE = re.compile(rf"[*#]*(?:{_TITLE_MARKER})\**", re.IGNORECASE)
_BODY_RE = re.compile(rf"[*#]*(?:{_BODY_MARKER})\**", re.IGNORECASE)
# Emphasis around a title
_DECORATION_RE = re.compile(r"^[\s*#_]+|[\s*#_]+$")


def _clean(text: str) -> str:
    return _DECORATION_RE.sub("", text.strip())


def _split_lines(text: str) -> GenerationResult:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return GenerationResult(title="", content="")
    if len(lines) == 1:
        # Content must never be dropped
        return GenerationResult(title=_clean(lines[0]), content=lines[0])
    return GenerationResult(title=_clean(lines[0]), content="\n".join(lines[1:]))


def parse_generated_diary(text: str) -> GenerationResult:
    """Split raw model output into title and body.

    Recognizes ``【タイトル】``/``【本文】`` and ``[Title]``/``[Body]`` markers in
    any response language and in either order. Without markers, the first
    line is the title and the remaining lines are the content.
    """
    title_match = _TITLE_RE.search(text)
    body_match = _BODY_RE.search(text)

    if title_match and body_match and title_match.start() < body_match.start():
        title = _clean(text[title_match.end() : body_match.start()])
        content = text[body_match.end() :].strip()
        if content:
            return GenerationResult(title=title, content=content)
        return _split_lines(title)

    if title_match and body_match:
        # Body before title: the title is the first line after its marker
        content = text[body_match.end() : title_match.start()].strip()
        trailing = text[title_match.end() :]
        if not content:
            return _split_lines(trailing)
        lines = [line.strip() for line in trailing.splitlines() if line.strip()]
        if not lines:
            return _split_lines(content)
        return GenerationResult(title=_clean(lines[0]), content="\n".join([content, *lines[1:]]))

    if body_match:
        preface = _split_lines(text[: body_match.start()])
        content = text[body_match.end() :].strip()
        return GenerationResult(title=preface.title, content=content or preface.content)

    if title_match:
        return _split_lines(text[title_match.end() :])

    return _split_lines(text)


# =============================================================================
# Orchestrator
# =============================================================================


class DiaryGenerator:
    """Builds prompts, calls Gemini and parses the diary.

    Holds no per-request state, so one instance can serve concurrent
    requests.

    Attributes:
        api_client: Client used for every remote call.
    """

    def __init__(
        self,
        api_client: GeminiApiClient,
        config: AIConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.api_client = api_client
        self._config = config or api_client.config
        self._logger = logger if logger is not None else logging.getLogger(__name__)

    async def generate_from_image(
        self,
        request: GenerationRequest,
        is_online: bool,
    ) -> Result[GenerationResult]:
        """Generate a diary from the request's first photo."""
        context = "DiaryGenerator.generate_from_image"
        language = request.language

        if not is_online:
            return self._fail(OfflineError(locale_utils.offline_message(language)), context)
        if not request.photos:
            return self._fail(EmptyInputError(locale_utils.no_images_message(language)), context)

        try:
            photo = request.photos[0]
            params = self._prompt_params(request)
            budget = self._budget(request)
            prompt = build_single_image_prompt(params)

            outcome = await self.api_client.send_vision_request(
                prompt,
                photo.image_bytes,
                max_output_tokens=budget,
                request_context=context,
            )
            if not outcome.is_success:
                return Result.fail(outcome.error)  # type: ignore[arg-type]
            return self._parse_response(outcome.value, language, context)
        except Exception as e:
            return self._unexpected(e, language, context)

    async def generate_from_multiple_images(
        self,
        request: GenerationRequest,
        is_online: bool,
        on_progress: ProgressCallback | None = None,
    ) -> Result[GenerationResult]:
        """Analyze each photo in order, then synthesize one diary.

        ``on_progress(current, total)`` is called once per photo after its
        analysis completes, before the next photo's request is sent.
        """
        context = "DiaryGenerator.generate_from_multiple_images"
        language = request.language

        if not request.photos:
            return self._fail(EmptyInputError(locale_utils.no_images_message(language)), context)
        if not is_online:
            return self._fail(OfflineError(locale_utils.offline_message(language)), context)

        try:
            total = len(request.photos)
            analyses: list[str] = []
            for index, photo in enumerate(request.photos, start=1):
                self._logger.debug(f"Analyzing photo {index}/{total}")
                scene = await self.analyze_scene(photo, request.location, language)
                if not scene.is_success:
                    return Result.fail(scene.error)  # type: ignore[arg-type]
                analyses.append(scene.value)  # type: ignore[arg-type]
                if on_progress is not None:
                    reported = on_progress(index, total)
                    if inspect.isawaitable(reported):
                        await reported

            params = self._prompt_params(request, analyses=tuple(analyses))
            prompt = build_multi_image_prompt(params)
            outcome = await self.api_client.send_text_request(
                prompt,
                max_output_tokens=self._budget(request),
                request_context=context,
            )
            if not outcome.is_success:
                return Result.fail(outcome.error)  # type: ignore[arg-type]
            return self._parse_response(outcome.value, language, context)
        except Exception as e:
            return self._unexpected(e, language, context)

    async def analyze_scene(
        self,
        photo: PhotoInput,
        location: str | None,
        language: Language,
    ) -> Result[str]:
        """Describe one photo, prefixed with its time and segment.

        A successful call that returns no text yields the language's
        "analysis failed" placeholder rather than a failure.
        """
        context = "DiaryGenerator.analyze_scene"
        prompt = build_scene_analysis_prompt(photo.timestamp, location, language)
        outcome = await self.api_client.send_vision_request(
            prompt,
            photo.image_bytes,
            max_output_tokens=self._config.scene_max_output_tokens,
            request_context=context,
        )
        if not outcome.is_success:
            return Result.fail(outcome.error)  # type: ignore[arg-type]

        time_label = locale_utils.format_time(photo.timestamp, language)
        segment = label_for(segment_for(photo.timestamp.hour), language)
        if locale_utils.is_japanese(language):
            prefix = f"{time_label}({segment})"
        else:
            prefix = f"{time_label} ({segment})"
        text = self.api_client.extract_text_from_response(outcome.value)
        if text is None:
            self._logger.warning(f"{context}: empty scene analysis, using placeholder")
            text = locale_utils.analysis_failure_message(language)
        return Result.ok(f"{prefix}: {text}")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _prompt_params(
        self,
        request: GenerationRequest,
        analyses: tuple[str, ...] = (),
    ) -> PromptParams:
        category = analyze_prompt_type(request.custom_prompt)
        params = optimization_params(category, request.language, request.diary_length)
        return PromptParams(
            language=request.language,
            diary_length=request.diary_length,
            emphasis=params.emphasis,
            photo_times=tuple(request.photo_times),
            location=request.location,
            context_text=request.context_text,
            custom_prompt=request.custom_prompt,
            analyses=analyses,
        )

    def _budget(self, request: GenerationRequest) -> int:
        category = analyze_prompt_type(request.custom_prompt)
        return optimization_params(category, request.language, request.diary_length).max_output_tokens

    def _parse_response(
        self,
        payload: Any,
        language: Language,
        context: str,
    ) -> Result[GenerationResult]:
        text = self.api_client.extract_text_from_response(payload)
        if text is None:
            return self._fail(
                GenerationParseError(locale_utils.EMPTY_RESPONSE_MESSAGES[language]), context
            )
        result = parse_generated_diary(text)
        if not result.title and not result.content:
            return self._fail(
                GenerationParseError(locale_utils.EMPTY_RESPONSE_MESSAGES[language]), context
            )
        return Result.ok(result)

    def _fail(self, error: Exception, context: str) -> Result[GenerationResult]:
        log_failure(self._logger, str(error), context, error)
        return Result.fail(error)  # type: ignore[arg-type]

    def _unexpected(self, error: Exception, language: Language, context: str) -> Result[GenerationResult]:
        wrapped = UnexpectedError(
            locale_utils.GENERATION_FAILED_MESSAGES[language], original_error=error
        )
        log_failure(self._logger, f"{wrapped.message}: {type(error).__name__}", context, error)
        return Result.fail(wrapped)
