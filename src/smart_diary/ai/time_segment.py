"""Map photo timestamps to coarse time-of-day phrases.

Example:
    >>> segment_for(8)
    <TimeSegment.MORNING: 'morning'>
    >>> combine({TimeSegment.EVENING, TimeSegment.MORNING}, Language.ENGLISH)
    'Morning to Evening'
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from smart_diary.core.models import Language, TimeSegment

MORNING_START_HOUR = 5
AFTERNOON_START_HOUR = 12
EVENING_START_HOUR = 18
NIGHT_START_HOUR = 22

SEGMENT_LABELS: dict[Language, dict[TimeSegment, str]] = {
    Language.JAPANESE: {
        TimeSegment.MORNING: "朝",
        TimeSegment.AFTERNOON: "昼",
        TimeSegment.EVENING: "夕方",
        TimeSegment.NIGHT: "夜",
    },
    Language.ENGLISH: {
        TimeSegment.MORNING: "Morning",
        TimeSegment.AFTERNOON: "Afternoon",
        TimeSegment.EVENING: "Evening",
        TimeSegment.NIGHT: "Night",
    },
}

THROUGHOUT_DAY = {
    Language.JAPANESE: "一日を通して",
    Language.ENGLISH: "Throughout the day",
}

SPAN_TEMPLATES = {
    Language.JAPANESE: "{start}から{end}にかけて",
    Language.ENGLISH: "{start} to {end}",
}


def segment_for(hour: int) -> TimeSegment:
    """Bucket an hour of day (0-23)."""
    if MORNING_START_HOUR <= hour < AFTERNOON_START_HOUR:
        return TimeSegment.MORNING
    if AFTERNOON_START_HOUR <= hour < EVENING_START_HOUR:
        return TimeSegment.AFTERNOON
    if EVENING_START_HOUR <= hour < NIGHT_START_HOUR:
        return TimeSegment.EVENING
    return TimeSegment.NIGHT


def label_for(segment: TimeSegment, language: Language) -> str:
    return SEGMENT_LABELS[language][segment]


def combine(segments: Iterable[TimeSegment], language: Language) -> str:
    """Describe a set of segments as one phrase.

    None or three-plus distinct segments read as "throughout the day"; two
    segments are joined in their fixed order regardless of input order.
    """
    distinct = sorted(set(segments), key=lambda s: s.order)
    if len(distinct) == 1:
        return label_for(distinct[0], language)
    if len(distinct) == 2:
        start, end = (label_for(s, language) for s in distinct)
        return SPAN_TEMPLATES[language].format(start=start, end=end)
    return THROUGHOUT_DAY[language]


def time_of_day_for_photos(
    primary: datetime,
    photo_times: Sequence[datetime] | None,
    language: Language,
) -> str:
    """Segment phrase for a whole request.

    Falls back to ``primary`` when no photo times are given.
    """
    if not photo_times:
        return label_for(segment_for(primary.hour), language)
    return combine((segment_for(t.hour) for t in photo_times), language)
