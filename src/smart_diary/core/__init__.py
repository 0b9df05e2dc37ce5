"""Core models and error taxonomy for the diary engine."""

from smart_diary.core.errors import (
    DiaryAIError,
    EmptyInputError,
    GenerationParseError,
    MissingApiKeyError,
    NetworkError,
    OfflineError,
    Result,
    UnexpectedError,
)
from smart_diary.core.models import (
    DiaryLength,
    GenerationRequest,
    GenerationResult,
    Language,
    OptimizationParams,
    PhotoInput,
    PromptCategory,
    RetryAttempt,
    TimeSegment,
)

__all__ = [
    "DiaryAIError",
    "DiaryLength",
    "EmptyInputError",
    "GenerationParseError",
    "GenerationRequest",
    "GenerationResult",
    "Language",
    "MissingApiKeyError",
    "NetworkError",
    "OfflineError",
    "OptimizationParams",
    "PhotoInput",
    "PromptCategory",
    "Result",
    "RetryAttempt",
    "TimeSegment",
    "UnexpectedError",
]
