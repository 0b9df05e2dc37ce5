"""Smart Photo Diary: AI-assisted diary generation from photos.

Example:
    >>> from smart_diary import DiaryAIService, GenerationRequest, PhotoInput
    >>> async with DiaryAIService() as service:
    ...     result = await service.generate_diary(request, is_online=True)
"""

__version__ = "0.1.0"

from smart_diary.ai.service import DiaryAIService
from smart_diary.core.errors import Result
from smart_diary.core.models import (
    DiaryLength,
    GenerationRequest,
    GenerationResult,
    Language,
    PhotoInput,
)

__all__ = [
    "DiaryAIService",
    "DiaryLength",
    "GenerationRequest",
    "GenerationResult",
    "Language",
    "PhotoInput",
    "Result",
    "__version__",
]
