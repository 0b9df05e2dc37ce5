"""
Command Line Interface for Smart Photo Diary.

A thin developer surface over ``DiaryAIService``: generate a diary from photo
files, generate tags for a diary text, and manage the Gemini API key.

Example:
    smart-diary generate ~/Pictures/trip/*.jpg --lang en --location Kyoto
    smart-diary tags --title "朝の散歩" --content "公園を歩いた" --at 2025-03-15T08:00
    smart-diary check-key
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from smart_diary import __version__
from smart_diary.ai.service import DiaryAIService
from smart_diary.config import APIKeyManager, AppConfig, get_config, load_config
from smart_diary.core.errors import Result
from smart_diary.core.models import DiaryLength, GenerationResult, Language
from smart_diary.photos import LocalPhotoSource, find_photos
from smart_diary.utils.logging import setup_logging

logger = logging.getLogger(__name__)

console = Console()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def print_header(text: str) -> None:
    console.print(f"\n[bold cyan]{text}[/bold cyan]\n")


def print_success(text: str) -> None:
    console.print(f"[bold green]✓[/bold green] {text}")


def print_warning(text: str) -> None:
    console.print(f"[bold yellow]⚠[/bold yellow] {text}")


def print_error(text: str) -> None:
    console.print(f"[bold red]✗[/bold red] {text}")


def create_progress(disable: bool = False) -> Progress:
    """Create standard progress bar setup."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        disable=disable,
    )


def print_diary(result: GenerationResult) -> None:
    console.print(Panel(result.content, title=result.title or "(untitled)", border_style="cyan"))


def _language_option(value: str | None) -> Language | None:
    return Language.from_tag(value) if value else None


def _expand_photo_paths(paths: tuple[str, ...]) -> list[str]:
    expanded: list[str] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            expanded.extend(str(p) for p in find_photos(path))
        else:
            expanded.append(raw)
    return expanded


# =============================================================================
# MAIN CLI GROUP
# =============================================================================


@click.group()
@click.version_option(__version__, prog_name="Smart Photo Diary")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Custom config file")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, config_path: str | None) -> None:
    """Smart Photo Diary - turn the day's photos into a diary entry."""
    setup_logging(level="DEBUG" if debug else "INFO" if verbose else "WARNING")

    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(Path(config_path)) if config_path else get_config()


def _config(ctx: click.Context) -> AppConfig:
    return ctx.obj["config"]


# =============================================================================
# GENERATE COMMAND
# =============================================================================


@cli.command()
@click.argument("photos", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--lang", "lang", help="Diary language (ja or en); defaults to config")
@click.option(
    "--length",
    "length",
    type=click.Choice([d.value for d in DiaryLength]),
    help="Diary length; defaults to config",
)
@click.option("--location", help="Where the photos were taken")
@click.option("--context", "context_text", help="Background for the day")
@click.option("--prompt", "custom_prompt", help="Writing prompt to weave into the diary")
@click.option("--offline", is_flag=True, help="Treat the network as unavailable")
@click.option("--offline-template", is_flag=True, help="Use a template diary when offline")
@click.option("--tags/--no-tags", default=True, help="Also generate tags")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def generate(
    ctx: click.Context,
    photos: tuple[str, ...],
    lang: str | None,
    length: str | None,
    location: str | None,
    context_text: str | None,
    custom_prompt: str | None,
    offline: bool,
    offline_template: bool,
    tags: bool,
    output_json: bool,
) -> None:
    """
    Generate a diary entry from one or more photos.

    Photos are narrated in the order given. A directory contributes its
    image files in name order.

    Example:
        smart-diary generate morning.jpg lunch.jpg --lang en
    """
    try:
        inputs = LocalPhotoSource().load_many(_expand_photo_paths(photos))
    except (FileNotFoundError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    async def run() -> tuple[Result[GenerationResult], Result[list[str]] | None]:
        async with DiaryAIService(_config(ctx)) as service:
            request = service.build_request(
                inputs,
                language=_language_option(lang),
                diary_length=DiaryLength(length) if length else None,
                custom_prompt=custom_prompt,
                context_text=context_text,
                location=location,
            )
            with create_progress(disable=output_json) as progress:
                task = progress.add_task("Analyzing photos...", total=len(inputs))
                diary = await service.generate_diary(
                    request,
                    is_online=not offline,
                    on_progress=lambda current, total: progress.update(task, completed=current),
                    allow_offline_template=offline_template,
                )
            tag_outcome = None
            if diary.is_success and tags:
                tag_outcome = await service.generate_tags(
                    diary.value.title,  # type: ignore[union-attr]
                    diary.value.content,  # type: ignore[union-attr]
                    inputs[0].timestamp,
                    len(inputs),
                    is_online=not offline,
                    language=request.language,
                )
            return diary, tag_outcome

    diary, tag_outcome = asyncio.run(run())

    if not diary.is_success:
        print_error(str(diary.error))
        sys.exit(1)

    tag_list = tag_outcome.value if tag_outcome and tag_outcome.is_success else []
    if output_json:
        payload = {**diary.value.model_dump(), "tags": tag_list}  # type: ignore[union-attr]
        click.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    print_diary(diary.value)  # type: ignore[arg-type]
    if tag_outcome is not None and not tag_outcome.is_success:
        print_warning(f"Tags unavailable: {tag_outcome.error}")
    elif tag_list:
        console.print("Tags: " + ", ".join(f"[cyan]{t}[/cyan]" for t in tag_list))


# =============================================================================
# TAGS COMMAND
# =============================================================================


@cli.command(name="tags")
@click.option("--title", required=True)
@click.option("--content", required=True)
@click.option(
    "--at",
    "at",
    type=click.DateTime(formats=["%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S"]),
    default=None,
    help="When the photos were taken (defaults to now)",
)
@click.option("--photos", "photo_count", type=int, default=1, show_default=True)
@click.option("--lang", "lang", help="Tag language (ja or en); defaults to config")
@click.option("--offline", is_flag=True, help="Use rule-based tags only")
@click.pass_context
def tags_command(
    ctx: click.Context,
    title: str,
    content: str,
    at: datetime | None,
    photo_count: int,
    lang: str | None,
    offline: bool,
) -> None:
    """Generate up to five tags for a diary text."""

    async def run() -> Result[list[str]]:
        async with DiaryAIService(_config(ctx)) as service:
            return await service.generate_tags(
                title,
                content,
                at or datetime.now(),
                photo_count,
                is_online=not offline,
                language=_language_option(lang),
            )

    outcome = asyncio.run(run())
    if not outcome.is_success:
        print_error(str(outcome.error))
        sys.exit(1)
    click.echo(", ".join(outcome.value or []))


# =============================================================================
# KEY COMMANDS
# =============================================================================


@cli.command(name="check-key")
@click.pass_context
def check_key(ctx: click.Context) -> None:
    """Check that a Gemini API key is configured and accepted."""

    async def run() -> tuple[bool, bool]:
        async with DiaryAIService(_config(ctx)) as service:
            if not service.is_available():
                return False, False
            return True, await service.test_api_key()

    configured, accepted = asyncio.run(run())
    if not configured:
        print_error("No API key configured. Set GEMINI_API_KEY or run 'smart-diary store-key'.")
        sys.exit(1)
    if not accepted:
        print_error("API key was rejected or the API is unreachable.")
        sys.exit(1)
    print_success("API key is configured and working.")


@cli.command(name="store-key")
@click.option("--key", prompt="Gemini API key", hide_input=True)
def store_key(key: str) -> None:
    """Store the Gemini API key in the system keyring."""
    if APIKeyManager().store_key(key):
        print_success("API key stored in system keyring.")
    else:
        print_error("Could not store the key (malformed key or no keyring backend).")
        sys.exit(1)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
