"""Tests for smart_diary.ai.tags.

Tests cover:
- Synonym canonicalization and normalization
- Offline rule-based tags, priority order and the five-tag cap
- Online tags: request shape, canonicalization, dedup and failures
"""

from __future__ import annotations

from datetime import datetime

import pytest

from smart_diary.ai.tags import (
    CATEGORY_RULES,
    MAX_TAGS,
    TagGenerator,
    base_time_tag,
    canonicalize,
    normalize_tags,
)
from smart_diary.core.errors import GenerationParseError, NetworkError, OfflineError
from smart_diary.core.models import Language

JA = Language.JAPANESE
EN = Language.ENGLISH


# =============================================================================
# Canonicalization
# =============================================================================


class TestCanonicalize:
    """Tests for the synonym map."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("breakfast", "Meal"),
            ("BREAKFAST", "Meal"),
            ("#Walk", "Outside"),
            ("  Buddy ", "Friends"),
            ("Recipe", "Cooking"),
            ("Sunset", "Sunset"),
        ],
    )
    def test_english(self, raw, expected):
        """Synonyms map to their group name; unknown tags pass through trimmed."""
        assert canonicalize(raw, EN) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [("朝食", "食事"), ("散歩", "外出"), ("友人", "友達"), ("クッキング", "料理"), ("桜", "桜")],
    )
    def test_japanese(self, raw, expected):
        assert canonicalize(raw, JA) == expected

    def test_overlapping_synonym_resolves_to_first_group(self):
        """A word listed in two groups resolves to the earlier group."""
        assert canonicalize("Cooking", EN) == "Meal"
        assert canonicalize("料理", JA) == "食事"


class TestNormalizeTags:
    """Tests for normalize_tags."""

    def test_dedup_first_seen_wins(self):
        """Duplicates after canonicalization keep the first position."""
        assert normalize_tags(["Walk", "Lunch", "walking", "dinner"], EN) == ["Outside", "Meal"]

    def test_drops_empty(self):
        assert normalize_tags(["", "  ", "#", "Music"], EN) == ["Music"]

    def test_cap(self):
        """At most five tags are kept."""
        tags = normalize_tags(["A", "B", "C", "D", "E", "F", "G"], EN)
        assert tags == ["A", "B", "C", "D", "E"]
        assert len(tags) == MAX_TAGS

    def test_base_time_tag(self):
        """English uses Noon for the afternoon tag."""
        assert base_time_tag(datetime(2025, 3, 15, 13), EN) == "Noon"
        assert base_time_tag(datetime(2025, 3, 15, 8), JA) == "朝"


# =============================================================================
# Offline Tags
# =============================================================================


class TestOfflineTags:
    """Tests for rule-based tags."""

    def test_morning_meal_japanese(self, morning):
        """A breakfast diary at 08:30 is tagged 朝 and 食事."""
        tags = TagGenerator().generate_offline_tags("朝食", "パンを食べた", morning, JA)
        assert tags[0] == "朝"
        assert "食事" in tags

    def test_morning_meal_english(self, morning):
        tags = TagGenerator().generate_offline_tags("Breakfast", "Pancakes and coffee", morning, EN)
        assert tags[:2] == ["Morning", "Meal"]

    def test_no_matches_gives_time_tag_only(self, evening):
        """Text with no keywords still gets the time tag."""
        assert TagGenerator().generate_offline_tags("Sky", "Clouds drifting", evening, EN) == ["Evening"]

    def test_priority_order_and_cap(self, morning):
        """With six matching categories, the highest-priority four follow the time tag."""
        tags = TagGenerator().generate_offline_tags(
            "Busy day",
            "Breakfast, a walk to work, back home, then shopping with a friend",
            morning,
            EN,
        )
        assert tags == ["Morning", "Meal", "Outside", "Work", "Home"]

    def test_deterministic(self, morning):
        """The same input always yields the same tags."""
        tagger = TagGenerator()
        first = tagger.generate_offline_tags("友達と散歩", "楽しい一日", morning, JA)
        second = tagger.generate_offline_tags("友達と散歩", "楽しい一日", morning, JA)
        assert first == second == ["朝", "外出", "友達", "楽しい"]

    def test_every_rule_has_both_languages(self):
        for rule in CATEGORY_RULES:
            assert set(rule.tags) == set(Language)
            assert set(rule.keywords) == set(Language)

    async def test_generate_tags_offline_makes_no_call(self, api_client, gemini, morning):
        """Offline mode never touches the network."""
        outcome = await TagGenerator(api_client).generate_tags(
            "Walk", "In the park", morning, 1, is_online=False, language=EN
        )
        assert outcome.is_success
        assert outcome.value == ["Morning", "Outside"]
        assert gemini.call_count == 0


# =============================================================================
# Online Tags
# =============================================================================


class TestOnlineTags:
    """Tests for model-generated tags."""

    async def test_canonicalized_and_capped(self, api_client, gemini, morning):
        """Model output is canonicalized, deduplicated and capped after the time tag."""
        gemini.reply("breakfast, #Walk, walking,  , Morning, Reading, Music")

        outcome = await TagGenerator(api_client).generate_tags(
            "Sunday", "Pancakes then a stroll", morning, 2, is_online=True, language=EN
        )

        assert outcome.value == ["Morning", "Meal", "Outside", "Reading", "Music"]
        assert gemini.call_count == 1

    async def test_japanese(self, api_client, gemini, morning):
        gemini.reply("朝食,散歩,リラックス")

        outcome = await TagGenerator(api_client).generate_tags(
            "朝の散歩", "公園を歩いた", morning, 1, is_online=True, language=JA
        )

        assert outcome.value == ["朝", "食事", "外出", "リラックス"]

    async def test_request_uses_tag_settings(self, api_client, gemini, morning):
        """Tag requests use the low temperature and small token cap."""
        gemini.reply("Walk")

        await TagGenerator(api_client).generate_tags("t", "c", morning, 3, is_online=True, language=JA)

        config = gemini.bodies()[0]["generationConfig"]
        assert config["temperature"] == 0.3
        assert config["maxOutputTokens"] == 100
        assert "写真枚数: 3枚" in gemini.prompts()[0]

    async def test_prompt_time_matches_base_tag(self, api_client, gemini):
        """The prompt names the time of day with the same word as the base tag."""
        gemini.reply("Lunch")

        outcome = await TagGenerator(api_client).generate_tags(
            "Lunch", "Noodles", datetime(2025, 3, 15, 13, 0), 1, is_online=True, language=EN
        )

        assert outcome.value == ["Noon", "Meal"]
        assert "Time of day: Noon\n" in gemini.prompts()[0]

    async def test_remote_failure_is_returned(self, api_client, gemini, morning):
        """A network failure is not replaced by offline tags."""
        gemini.reply(500)

        outcome = await TagGenerator(api_client).generate_tags(
            "t", "c", morning, 1, is_online=True, language=EN
        )

        assert isinstance(outcome.error, NetworkError)

    async def test_no_candidates_is_parse_error(self, api_client, gemini, morning):
        """A reply with only separators yields a parse failure."""
        gemini.reply(" , , ")

        outcome = await TagGenerator(api_client).generate_tags(
            "t", "c", morning, 1, is_online=True, language=EN
        )

        assert isinstance(outcome.error, GenerationParseError)

    async def test_without_client(self, morning, mock_logger):
        """Online mode without a client reports the offline error."""
        outcome = await TagGenerator(logger=mock_logger).generate_tags(
            "t", "c", morning, 1, is_online=True, language=EN
        )

        assert isinstance(outcome.error, OfflineError)
        mock_logger.error.assert_called_once()
