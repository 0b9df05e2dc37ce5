"""Tests for the smart-diary command line interface."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from PIL import Image

from smart_diary import __version__
from smart_diary.ai.service import DiaryAIService
from smart_diary.cli import main as cli_main
from smart_diary.cli.main import cli

EXIF_DATETIME = 306


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def photo_path(tmp_path):
    path = tmp_path / "breakfast.jpg"
    exif = Image.Exif()
    exif[EXIF_DATETIME] = "2025:03:15 08:30:00"
    Image.new("RGB", (16, 16), color="yellow").save(path, format="JPEG", exif=exif)
    return path


@pytest.fixture
def scripted_service(monkeypatch, api_client):
    """Route the CLI's service through the scripted Gemini endpoint."""
    monkeypatch.setattr(
        cli_main,
        "DiaryAIService",
        lambda config: DiaryAIService(config, api_client=api_client),
    )


# =============================================================================
# Group
# =============================================================================


class TestCLIGroup:
    """Tests for the top-level group."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("generate", "tags", "check-key", "store-key"):
            assert command in result.output

    def test_custom_config(self, runner, tmp_path, photo_path):
        """--config supplies diary defaults."""
        config = tmp_path / "custom.yaml"
        config.write_text("diary:\n  language: en\n", encoding="utf-8")

        result = runner.invoke(
            cli,
            ["--config", str(config), "generate", str(photo_path), "--offline", "--offline-template", "--json"],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["title"] == "Today's Snapshot"


# =============================================================================
# Generate
# =============================================================================


class TestGenerateCommand:
    """Tests for `smart-diary generate`."""

    def test_offline_template_json(self, runner, photo_path):
        """The offline template and rule-based tags need no network."""
        result = runner.invoke(
            cli,
            ["generate", str(photo_path), "--offline", "--offline-template", "--lang", "en", "--json"],
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["title"] == "Today's Snapshot"
        assert payload["content"].startswith("March 15, 2025, morning")
        assert payload["tags"] == ["Morning"]

    def test_offline_without_template_fails(self, runner, photo_path):
        result = runner.invoke(cli, ["generate", str(photo_path), "--offline", "--lang", "en"])

        assert result.exit_code == 1
        assert "offline" in result.output

    def test_online_single_photo(self, runner, photo_path, gemini, scripted_service):
        gemini.reply("[Title]\nMorning Toast\n[Body]\nWarm bread and coffee.", "Breakfast, Coffee")

        result = runner.invoke(cli, ["generate", str(photo_path), "--lang", "en", "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload == {
            "title": "Morning Toast",
            "content": "Warm bread and coffee.",
            "tags": ["Morning", "Meal", "Coffee"],
        }
        assert gemini.call_count == 2

    def test_directory_argument(self, runner, tmp_path, photo_path, gemini, scripted_service):
        """A directory expands to its photos."""
        result = runner.invoke(cli, ["generate", str(tmp_path), "--no-tags", "--json"])

        assert result.exit_code == 0, result.output
        assert gemini.call_count == 1

    def test_remote_failure_exit_code(self, runner, photo_path, gemini, scripted_service):
        gemini.reply(401)

        result = runner.invoke(cli, ["generate", str(photo_path)])

        assert result.exit_code == 1
        assert "401" in result.output

    def test_unreadable_photo(self, runner, tmp_path):
        path = tmp_path / "broken.jpg"
        path.write_text("nope")

        result = runner.invoke(cli, ["generate", str(path)])

        assert result.exit_code == 1
        assert "Not a readable image" in result.output


# =============================================================================
# Tags and Keys
# =============================================================================


class TestTagsCommand:
    """Tests for `smart-diary tags`."""

    def test_offline_tags(self, runner):
        result = runner.invoke(
            cli,
            ["tags", "--title", "Breakfast", "--content", "Toast", "--at", "2025-03-15T08:00", "--lang", "en", "--offline"],
        )

        assert result.exit_code == 0, result.output
        assert result.stdout.strip() == "Morning, Meal"

    def test_online_failure(self, runner, gemini, scripted_service):
        gemini.reply(500)

        result = runner.invoke(
            cli, ["tags", "--title", "t", "--content", "c", "--at", "2025-03-15T08:00"]
        )

        assert result.exit_code == 1


class TestKeyCommands:
    """Tests for key management commands."""

    def test_check_key_missing(self, runner):
        result = runner.invoke(cli, ["check-key"])
        assert result.exit_code == 1
        assert "No API key configured" in result.output

    def test_check_key_working(self, runner, gemini, scripted_service):
        result = runner.invoke(cli, ["check-key"])
        assert result.exit_code == 0
        assert "working" in result.output

    def test_store_key(self, runner):
        with patch.object(cli_main.APIKeyManager, "store_key", return_value=True) as store:
            result = runner.invoke(cli, ["store-key", "--key", "AIza" + "s" * 35])

        assert result.exit_code == 0
        store.assert_called_once_with("AIza" + "s" * 35)

    def test_store_key_failure(self, runner):
        with patch.object(cli_main.APIKeyManager, "store_key", return_value=False):
            result = runner.invoke(cli, ["store-key", "--key", "bad"])

        assert result.exit_code == 1
