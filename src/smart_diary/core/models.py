"""Core data models for the photo diary engine.

These models are the common language between the photo source, the prompt
builder, the generation orchestrator and the tag generator. Requests are
immutable once built; nothing here is persisted by the engine.

Example:
    >>> from datetime import datetime
    >>> request = GenerationRequest(
    ...     photos=[PhotoInput(image_bytes=b"...", timestamp=datetime(2025, 3, 15, 8, 30))],
    ...     language=Language.JAPANESE,
    ...     diary_length=DiaryLength.STANDARD,
    ...     location="Kyoto",
    ... )
    >>> request.photo_times
    [datetime.datetime(2025, 3, 15, 8, 30)]
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

# =============================================================================
# Enums
# =============================================================================


class Language(str, Enum):
    """Supported diary languages.

    Any locale tag starting with ``ja`` is Japanese; everything else is
    treated as English.
    """

    JAPANESE = "ja"
    ENGLISH = "en"

    @classmethod
    def from_tag(cls, tag: str | None) -> "Language":
        if tag and tag.strip().lower().replace("-", "_").startswith("ja"):
            return cls.JAPANESE
        return cls.ENGLISH


class DiaryLength(str, Enum):
    """Target size of the generated diary."""

    SHORT = "short"
    STANDARD = "standard"


class PromptCategory(str, Enum):
    """Coarse emotional theme inferred from a custom writing prompt."""

    EMOTION = "emotion"
    GROWTH = "growth"
    CONNECTION = "connection"
    HEALING = "healing"


class TimeSegment(str, Enum):
    """Coarse time-of-day bucket with a fixed total order."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"

    @property
    def order(self) -> int:
        return _SEGMENT_ORDER[self]


_SEGMENT_ORDER = {
    TimeSegment.MORNING: 0,
    TimeSegment.AFTERNOON: 1,
    TimeSegment.EVENING: 2,
    TimeSegment.NIGHT: 3,
}


# =============================================================================
# Request / Result Models
# =============================================================================


class PhotoInput(BaseModel):
    """Raw image bytes paired with the moment the photo was taken."""

    image_bytes: bytes = Field(..., repr=False, description="Encoded image data (JPEG)")
    timestamp: datetime = Field(..., description="When the photo was taken")

    model_config = {"frozen": True}


class GenerationRequest(BaseModel):
    """Everything needed to generate one diary entry.

    The photo list may be empty at construction time; the multi-photo flow
    rejects empty requests with ``EmptyInputError`` before any network call.

    Attributes:
        photos: Photos in the order the caller wants them narrated.
        language: Output language.
        diary_length: Short or standard output size.
        custom_prompt: Optional writing prompt to weave into the diary.
        context_text: Optional situational background from the writer.
        location: Optional free-text location.
    """

    photos: tuple[PhotoInput, ...] = Field(default=())
    language: Language = Field(default=Language.JAPANESE)
    diary_length: DiaryLength = Field(default=DiaryLength.STANDARD)
    custom_prompt: str | None = Field(default=None)
    context_text: str | None = Field(default=None)
    location: str | None = Field(default=None)

    model_config = {"frozen": True}

    @field_validator("photos", mode="before")
    @classmethod
    def _coerce_photos(cls, v: object) -> object:
        if isinstance(v, list):
            return tuple(v)
        return v

    @property
    def photo_times(self) -> list[datetime]:
        return [photo.timestamp for photo in self.photos]

    @property
    def primary_timestamp(self) -> datetime | None:
        return self.photos[0].timestamp if self.photos else None


class GenerationResult(BaseModel):
    """Parsed diary output. ``title`` may be empty; ``content`` carries the body."""

    title: str = ""
    content: str = ""

    model_config = {"frozen": True}


class OptimizationParams(BaseModel):
    """Token budget and tone emphasis for a prompt category."""

    max_output_tokens: int
    emphasis: str

    model_config = {"frozen": True}


class RetryAttempt(BaseModel):
    """One pass through the transport retry loop."""

    attempt_number: int = Field(..., ge=1)
    delay_before_attempt: float = Field(default=0.0, ge=0.0)

    model_config = {"frozen": True}
