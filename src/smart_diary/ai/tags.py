"""Diary tag generation.

Two modes produce at most ``MAX_TAGS`` unique, canonical tags:

- Online: Gemini returns a comma-separated list. Candidates are trimmed,
  canonicalized through the synonym map, deduplicated and capped. The
  time-of-day base tag comes first.
- Offline: a base tag for the time of day, then one tag per matching
  keyword category, scanned in ``CATEGORY_RULES`` priority order.

Online failures are returned as failures; there is no silent fallback to
offline mode.

Example:
    >>> tagger = TagGenerator(api_client)
    >>> outcome = await tagger.generate_tags(
    ...     "Sunday brunch", "Pancakes with friends", when, 2,
    ...     is_online=False, language=Language.ENGLISH,
    ... )
    >>> outcome.value
    ['Morning', 'Meal', 'Friends']
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from smart_diary.ai import locale_utils
from smart_diary.ai.client import GeminiApiClient
from smart_diary.ai.prompts import build_tag_prompt
from smart_diary.ai.time_segment import segment_for
from smart_diary.core.errors import GenerationParseError, OfflineError, Result, UnexpectedError
from smart_diary.core.models import Language, TimeSegment
from smart_diary.utils.logging import log_failure

logger = logging.getLogger(__name__)

MAX_TAGS = 5

# Tag vocabulary differs from time_segment labels: English uses "Noon"
BASE_TIME_TAGS: dict[Language, dict[TimeSegment, str]] = {
    Language.JAPANESE: {
        TimeSegment.MORNING: "朝",
        TimeSegment.AFTERNOON: "昼",
        TimeSegment.EVENING: "夕方",
        TimeSegment.NIGHT: "夜",
    },
    Language.ENGLISH: {
        TimeSegment.MORNING: "Morning",
        TimeSegment.AFTERNOON: "Noon",
        TimeSegment.EVENING: "Evening",
        TimeSegment.NIGHT: "Night",
    },
}


# =============================================================================
# Category Table
# =============================================================================


@dataclass(frozen=True)
class CategoryRule:
    """One offline keyword category.

    Keyword lists are per-language configuration and need not cover the
    same concepts.
    """

    category: str
    tags: dict[Language, str]
    keywords: dict[Language, tuple[str, ...]]

    def matches(self, text: str, language: Language) -> bool:
        return any(keyword.lower() in text for keyword in self.keywords.get(language, ()))


# Priority order: earlier rows win when more categories match than fit
CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        "meal",
        {Language.JAPANESE: "食事", Language.ENGLISH: "Meal"},
        {
            Language.JAPANESE: ("食事", "朝食", "昼食", "夕食"),
            Language.ENGLISH: ("meal", "breakfast", "lunch", "dinner", "food"),
        },
    ),
    CategoryRule(
        "outing",
        {Language.JAPANESE: "外出", Language.ENGLISH: "Outside"},
        {
            Language.JAPANESE: ("散歩", "歩", "外出", "出かけ"),
            Language.ENGLISH: ("walk", "outside", "outdoor"),
        },
    ),
    CategoryRule(
        "work",
        {Language.JAPANESE: "仕事", Language.ENGLISH: "Work"},
        {
            Language.JAPANESE: ("仕事", "work", "職場"),
            Language.ENGLISH: ("work", "office", "job"),
        },
    ),
    CategoryRule(
        "home",
        {Language.JAPANESE: "自宅", Language.ENGLISH: "Home"},
        {
            Language.JAPANESE: ("家", "自宅", "部屋"),
            Language.ENGLISH: ("home", "house", "room"),
        },
    ),
    CategoryRule(
        "shopping",
        {Language.JAPANESE: "買い物", Language.ENGLISH: "Shopping"},
        {
            Language.JAPANESE: ("買い物", "ショッピング", "購入"),
            Language.ENGLISH: ("shopping", "shop", "buy", "purchase"),
        },
    ),
    CategoryRule(
        "friends",
        {Language.JAPANESE: "友達", Language.ENGLISH: "Friends"},
        {
            Language.JAPANESE: ("友達", "友人", "仲間"),
            Language.ENGLISH: ("friend", "buddy"),
        },
    ),
    CategoryRule(
        "exercise",
        {Language.JAPANESE: "運動", Language.ENGLISH: "Exercise"},
        {
            Language.JAPANESE: ("運動", "スポーツ", "トレーニング"),
            Language.ENGLISH: ("exercise", "sport", "fitness", "workout"),
        },
    ),
    CategoryRule(
        "reading",
        {Language.JAPANESE: "読書", Language.ENGLISH: "Reading"},
        {
            Language.JAPANESE: ("読書", "本", "読む"),
            Language.ENGLISH: ("reading", "book", "read"),
        },
    ),
    CategoryRule(
        "happy",
        {Language.JAPANESE: "楽しい", Language.ENGLISH: "Happy"},
        {
            Language.JAPANESE: ("楽しい", "嬉しい", "喜び"),
            Language.ENGLISH: ("fun", "happy", "joy", "enjoy"),
        },
    ),
    CategoryRule(
        "relax",
        {Language.JAPANESE: "リラックス", Language.ENGLISH: "Relax"},
        {
            Language.JAPANESE: ("リラックス", "癒し", "のんびり", "休憩"),
            Language.ENGLISH: ("relax", "calm", "peaceful", "rest"),
        },
    ),
)


# =============================================================================
# Synonym Canonicalization
# =============================================================================

SYNONYM_GROUPS: dict[Language, dict[str, tuple[str, ...]]] = {
    Language.ENGLISH: {
        "Meal": ("Breakfast", "Lunch", "Dinner", "Food", "Cooking", "Gourmet"),
        "Outside": ("Walk", "Outdoor", "Outing", "Walking"),
        "Home": ("House", "Room", "Indoor"),
        "Work": ("Office", "Job", "Task"),
        "Exercise": ("Sport", "Training", "Fitness", "Workout"),
        "Reading": ("Book", "Read", "Library"),
        "Shopping": ("Purchase", "Buy", "Store"),
        "Relax": ("Rest", "Calm", "Peaceful", "Break"),
        "Happy": ("Joy", "Fun", "Enjoy", "Positive"),
        "Friends": ("Friend", "Buddy", "Pal"),
        "Study": ("Learning", "Lesson", "Class"),
        "Cooking": ("Cook", "Recipe", "Kitchen"),
        "Cleaning": ("Tidy", "Organize", "Clean"),
        "Movie": ("Video", "Film", "Watch"),
        "Music": ("Song", "Instrument", "Concert"),
    },
    Language.JAPANESE: {
        "食事": ("朝食", "昼食", "夕食", "ご飯", "食べ物", "料理", "グルメ"),
        "外出": ("散歩", "お出かけ", "外", "屋外", "ウォーキング"),
        "自宅": ("家", "部屋", "室内", "おうち"),
        "仕事": ("作業", "お仕事", "ワーク"),
        "運動": ("スポーツ", "トレーニング", "エクササイズ", "筋トレ"),
        "読書": ("本", "読み物", "図書"),
        "買い物": ("ショッピング", "購入", "お買い物"),
        "リラックス": ("癒し", "のんびり", "ゆっくり", "休憩"),
        "楽しい": ("嬉しい", "ハッピー", "喜び", "ポジティブ"),
        "友達": ("友人", "友だち", "仲間"),
        "勉強": ("学習", "学び", "勉強会"),
        "料理": ("調理", "クッキング", "手料理"),
        "掃除": ("片付け", "整理", "清掃"),
        "映画": ("動画", "ムービー", "視聴"),
        "音楽": ("歌", "楽器", "ライブ"),
    },
}


def _build_synonym_index(groups: dict[str, tuple[str, ...]]) -> dict[str, str]:
    index: dict[str, str] = {}
    for canonical, synonyms in groups.items():
        for word in (canonical, *synonyms):
            index.setdefault(word.casefold(), canonical)
    return index


SYNONYM_INDEX: dict[Language, dict[str, str]] = {
    language: _build_synonym_index(groups) for language, groups in SYNONYM_GROUPS.items()
}


def canonicalize(tag: str, language: Language) -> str:
    """Map a tag to its canonical group name, or return it trimmed."""
    tag = tag.strip().lstrip("#").strip()
    return SYNONYM_INDEX[language].get(tag.casefold(), tag)


def normalize_tags(candidates: Iterable[str], language: Language, limit: int = MAX_TAGS) -> list[str]:
    """Canonicalize, drop empties and duplicates (first seen wins), then cap."""
    seen: set[str] = set()
    tags: list[str] = []
    for candidate in candidates:
        tag = canonicalize(candidate, language)
        if not tag or tag.casefold() in seen:
            continue
        seen.add(tag.casefold())
        tags.append(tag)
        if len(tags) >= limit:
            break
    return tags


def base_time_tag(timestamp: datetime, language: Language) -> str:
    return BASE_TIME_TAGS[language][segment_for(timestamp.hour)]


# =============================================================================
# Generator
# =============================================================================


class TagGenerator:
    """Produces tags for a finished diary entry.

    Attributes:
        api_client: Client used in online mode.
    """

    def __init__(
        self,
        api_client: GeminiApiClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.api_client = api_client
        self._logger = logger if logger is not None else logging.getLogger(__name__)

    async def generate_tags(
        self,
        title: str,
        content: str,
        timestamp: datetime,
        photo_count: int,
        is_online: bool,
        language: Language = Language.JAPANESE,
    ) -> Result[list[str]]:
        if not is_online:
            return Result.ok(self.generate_offline_tags(title, content, timestamp, language))
        return await self.generate_online_tags(title, content, timestamp, photo_count, language)

    async def generate_online_tags(
        self,
        title: str,
        content: str,
        timestamp: datetime,
        photo_count: int,
        language: Language,
    ) -> Result[list[str]]:
        context = "TagGenerator.generate_online_tags"
        if self.api_client is None:
            error = OfflineError(locale_utils.offline_message(language))
            log_failure(self._logger, "No API client configured for online tags", context)
            return Result.fail(error)

        try:
            time_label = base_time_tag(timestamp, language)
            prompt = build_tag_prompt(title, content, timestamp, photo_count, time_label, language)
            config = self.api_client.config
            outcome = await self.api_client.send_text_request(
                prompt,
                temperature=config.tag_temperature,
                max_output_tokens=config.tag_max_output_tokens,
                request_context=context,
            )
            if not outcome.is_success:
                return Result.fail(outcome.error)  # type: ignore[arg-type]

            text = self.api_client.extract_text_from_response(outcome.value)
            candidates = [part.strip() for part in (text or "").split(",") if part.strip()]
            if not candidates:
                error = GenerationParseError(locale_utils.TAG_FAILED_MESSAGES[language])
                log_failure(self._logger, error.message, context)
                return Result.fail(error)

            tags = normalize_tags([base_time_tag(timestamp, language), *candidates], language)
            return Result.ok(tags)
        except Exception as e:
            error = UnexpectedError(locale_utils.TAG_FAILED_MESSAGES[language], original_error=e)
            log_failure(self._logger, f"{error.message}: {type(e).__name__}", context, e)
            return Result.fail(error)

    def generate_offline_tags(
        self,
        title: str,
        content: str,
        timestamp: datetime,
        language: Language,
    ) -> list[str]:
        """Deterministic rule-based tags; always starts with the time tag."""
        text = f"{title} {content}".lower()
        matched = (rule.tags[language] for rule in CATEGORY_RULES if rule.matches(text, language))
        return normalize_tags([base_time_tag(timestamp, language), *matched], language)
