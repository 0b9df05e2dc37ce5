"""Language helpers shared by the prompt builder, orchestrator and tagger.

Formatting here is locale-independent (it does not consult the process
locale), so the same request always yields the same prompt text.
"""

from __future__ import annotations

from datetime import datetime

from smart_diary.core.models import Language

_MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

# User-facing failure messages, keyed by language
OFFLINE_MESSAGES = {
    Language.JAPANESE: "オフラインのため日記を生成できません。ネットワーク接続を確認してください。",
    Language.ENGLISH: "Cannot generate a diary while offline. Please check your network connection.",
}
NO_IMAGES_MESSAGES = {
    Language.JAPANESE: "画像が提供されていません",
    Language.ENGLISH: "No images were provided",
}
GENERATION_FAILED_MESSAGES = {
    Language.JAPANESE: "日記の生成に失敗しました",
    Language.ENGLISH: "Failed to generate the diary",
}
TAG_FAILED_MESSAGES = {
    Language.JAPANESE: "タグの生成に失敗しました",
    Language.ENGLISH: "Failed to generate tags",
}
EMPTY_RESPONSE_MESSAGES = {
    Language.JAPANESE: "AIから有効な応答が得られませんでした",
    Language.ENGLISH: "The AI returned no usable text",
}


def is_japanese(language: Language) -> bool:
    return language is Language.JAPANESE


def to_locale_tag(language: Language) -> str:
    return "ja_JP" if is_japanese(language) else "en_US"


def format_date(dt: datetime, language: Language) -> str:
    """``2025年3月15日`` or ``March 15, 2025``."""
    if is_japanese(language):
        return f"{dt.year}年{dt.month}月{dt.day}日"
    return f"{_MONTH_NAMES[dt.month - 1]} {dt.day}, {dt.year}"


def format_time(dt: datetime, language: Language) -> str:
    """``14:30`` or ``2:30 PM``."""
    if is_japanese(language):
        return f"{dt.hour:02d}:{dt.minute:02d}"
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {suffix}"


def location_line(location: str | None, language: Language) -> str:
    if location is None or not location.strip():
        return ""
    label = "場所" if is_japanese(language) else "Location"
    return f"{label}: {location.strip()}\n"


def analysis_failure_message(language: Language) -> str:
    return "画像分析に失敗しました" if is_japanese(language) else "Image analysis failed"


def offline_message(language: Language) -> str:
    return OFFLINE_MESSAGES[language]


def no_images_message(language: Language) -> str:
    return NO_IMAGES_MESSAGES[language]
