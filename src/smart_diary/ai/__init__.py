"""AI diary engine: transport, prompts, orchestration and tagging.

Example:
    >>> from smart_diary.ai import DiaryAIService
    >>> async with DiaryAIService() as service:
    ...     outcome = await service.generate_diary(request, is_online=True)
"""

from smart_diary.ai.client import (
    GeminiApiClient,
    ResilientTransport,
    RetryState,
    extract_text_from_response,
    should_retry,
)
from smart_diary.ai.fallback import OfflineDiaryComposer
from smart_diary.ai.generator import DiaryGenerator, parse_generated_diary
from smart_diary.ai.service import DiaryAIService
from smart_diary.ai.tags import TagGenerator

__all__ = [
    "DiaryAIService",
    "DiaryGenerator",
    "GeminiApiClient",
    "OfflineDiaryComposer",
    "ResilientTransport",
    "RetryState",
    "TagGenerator",
    "extract_text_from_response",
    "parse_generated_diary",
    "should_retry",
]
