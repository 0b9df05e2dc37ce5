"""Template diary for offline use.

Used only when a caller explicitly opts in while offline. Online failures
never fall back here silently.

Example:
    >>> composer = OfflineDiaryComposer()
    >>> result = composer.compose([], when, "Kyoto", [when], 1, Language.JAPANESE)
    >>> result.title
    '今日の一枚'
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from smart_diary.ai.locale_utils import format_date, is_japanese
from smart_diary.ai.time_segment import time_of_day_for_photos
from smart_diary.core.models import GenerationResult, Language


class OfflineDiaryComposer:
    """Builds a short diary from the date, time span, location and labels."""

    def compose(
        self,
        labels: Sequence[str],
        date: datetime,
        location: str | None,
        photo_times: Sequence[datetime] | None,
        photo_count: int,
        language: Language = Language.JAPANESE,
    ) -> GenerationResult:
        time_of_day = time_of_day_for_photos(date, photo_times, language)
        date_label = format_date(date, language)
        has_location = location is not None and bool(location.strip())
        place = location.strip() if has_location else ""  # type: ignore[union-attr]

        if is_japanese(language):
            return self._compose_ja(labels, date_label, time_of_day, place, photo_count)
        return self._compose_en(labels, date_label, time_of_day, place, photo_count)

    def _compose_ja(
        self,
        labels: Sequence[str],
        date_label: str,
        time_of_day: str,
        place: str,
        photo_count: int,
    ) -> GenerationResult:
        at = f"{place}で" if place else ""
        first = labels[0] if labels else None

        if photo_count <= 1:
            title = f"{first}の瞬間" if first else "今日の一枚"
        elif photo_count <= 3:
            title = f"{first}の記録" if first else "今日の思い出"
        else:
            title = f"{first}な一日" if first else "充実した一日"

        if not labels:
            if photo_count <= 1:
                content = f"{date_label}、{time_of_day}に{at}撮った一枚の写真。この瞬間を記録に残しました。"
            else:
                content = (
                    f"{date_label}、{time_of_day}に{at}{photo_count}枚の写真を撮影。"
                    "様々な瞬間を記録に残した一日でした。"
                )
        else:
            keywords = labels[0] if len(labels) == 1 else f"{'や'.join(labels[:2])}など"
            if photo_count <= 1:
                content = f"{date_label}、{time_of_day}に{at}{keywords}の瞬間を写真に収めました。"
            else:
                content = (
                    f"{date_label}、{time_of_day}に{at}{keywords}について{photo_count}枚の写真を撮影。"
                    "充実した時間を過ごすことができました。"
                )
        return GenerationResult(title=title, content=content)

    def _compose_en(
        self,
        labels: Sequence[str],
        date_label: str,
        time_of_day: str,
        place: str,
        photo_count: int,
    ) -> GenerationResult:
        at = f" in {place}" if place else ""
        first = labels[0] if labels else None
        when = time_of_day.lower()

        if photo_count <= 1:
            title = f"A Moment of {first}" if first else "Today's Snapshot"
        elif photo_count <= 3:
            title = f"Notes on {first}" if first else "Today's Memories"
        else:
            title = f"A Day of {first}" if first else "A Full Day"

        if not labels:
            if photo_count <= 1:
                content = f"{date_label}, {when}{at}: a single photo to keep this moment."
            else:
                content = (
                    f"{date_label}, {when}{at}: {photo_count} photos capturing "
                    "the many moments of the day."
                )
        else:
            keywords = labels[0] if len(labels) == 1 else f"{' and '.join(labels[:2])} and more"
            if photo_count <= 1:
                content = f"{date_label}, {when}{at}: captured a moment of {keywords}."
            else:
                content = (
                    f"{date_label}, {when}{at}: {photo_count} photos of {keywords}. "
                    "It was a fulfilling time."
                )
        return GenerationResult(title=title, content=content)
