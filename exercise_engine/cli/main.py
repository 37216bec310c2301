"""
Exercise Engine CLI

Usage:
    exercise-engine lint lessons/intro.json        # Authoring problems per block
    exercise-engine inspect lessons/intro.json     # Blocks and their checkable units
    exercise-engine play lessons/intro.json        # Play the lesson offline
    exercise-engine play intro --online            # Fetch and grade against the LMS
"""

from __future__ import annotations

import asyncio
import random
import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import Settings, get_settings
from exercise_engine import __version__
from exercise_engine.errors import LessonLoadError
from exercise_engine.integrations import (
    InMemoryGradingService,
    JsonLessonLoader,
    LmsClient,
    RecordingInteractionReporter,
    StaticTutorService,
)
from exercise_engine.lesson import Lesson, load_lesson_file
from exercise_engine.parser import is_scored_kind, lint as lint_block, parse_block, present
from exercise_engine.session import LessonSession

from .player import play_block, show_summary

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="exercise-engine",
    help="Interactive exercise engine: lint, inspect and play lesson blocks",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


async def _load(source: str, settings: Settings) -> Lesson:
    """Load a lesson from a file path, or by id from the lessons directory."""
    path = Path(source)
    if path.suffix == ".json" or path.exists():
        return await asyncio.to_thread(load_lesson_file, path)
    return await JsonLessonLoader(settings.lessons_dir).load(source)


def _exit_on_load_error(e: LessonLoadError) -> None:
    console.print(f"[red]Could not load lesson:[/red] {e}")
    raise typer.Exit(2)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    settings = get_settings()
    _configure_logging("DEBUG" if verbose else settings.log_level)


@app.command()
def version() -> None:
    """Show the engine version."""
    console.print(f"exercise-engine {__version__}")


# =============================================================================
# Authoring Commands
# =============================================================================


@app.command()
def lint(
    lesson_file: Annotated[str, typer.Argument(help="Lesson JSON file or lesson id")],
) -> None:
    """
    Report authoring problems per block.

    Exits with code 1 when any block has problems.
    """
    try:
        lesson = asyncio.run(_load(lesson_file, get_settings()))
    except LessonLoadError as e:
        _exit_on_load_error(e)

    table = Table(title=f"Lint: {lesson.title or lesson.id}", box=box.ROUNDED)
    table.add_column("Block", style="cyan")
    table.add_column("Kind")
    table.add_column("Problems")

    problem_count = 0
    for definition in lesson.blocks:
        problems = lint_block(definition)
        problem_count += len(problems)
        table.add_row(
            definition.id,
            definition.kind.value,
            "\n".join(f"[yellow]{p}[/yellow]" for p in problems) or "[green]ok[/green]",
        )

    if not lesson.blocks:
        console.print("[yellow]Lesson has no playable blocks[/yellow]")
        problem_count += 1
    else:
        console.print(table)

    if problem_count:
        console.print(f"[red]{problem_count} problem(s) found[/red]")
        raise typer.Exit(1)
    console.print("[green]No problems found[/green]")


@app.command()
def inspect(
    lesson_file: Annotated[str, typer.Argument(help="Lesson JSON file or lesson id")],
    seed: Annotated[int | None, typer.Option("--seed", help="Shuffle seed for the display order")] = None,
) -> None:
    """Show the blocks of a lesson and the checkable units derived from each."""
    settings = get_settings()
    try:
        lesson = asyncio.run(_load(lesson_file, settings))
    except LessonLoadError as e:
        _exit_on_load_error(e)

    attempts = lesson.max_attempts or "unlimited"
    console.print(
        Panel(
            f"[bold]{lesson.title or lesson.id}[/bold]\n"
            f"Graded: {'yes' if lesson.is_graded else 'no'} | "
            f"Max attempts: {attempts} | "
            f"Retry: {'yes' if lesson.allow_retry else 'no'}",
            border_style="cyan",
        )
    )

    rng = random.Random(seed if seed is not None else settings.shuffle_seed)
    for definition in lesson.blocks:
        units = parse_block(definition)
        scored = is_scored_kind(definition.kind) and bool(units)
        table = Table(
            title=f"{definition.id} [dim]({definition.kind.value}{', scored' if scored else ''})[/dim]",
            box=box.SIMPLE,
        )
        table.add_column("#", justify="right", style="dim")
        table.add_column("Label")
        table.add_column("Expected", style="green")
        for unit in units:
            table.add_row(str(unit.index), unit.label or "", repr(unit.expected))
        if not units:
            table.add_row("-", "[dim]no checkable units[/dim]", "")
        console.print(table)
        logger.debug(f"{definition.id} display model: {present(definition, rng)!r}")


# =============================================================================
# Play
# =============================================================================


@app.command()
def play(
    lesson_file: Annotated[str, typer.Argument(help="Lesson JSON file or lesson id")],
    seed: Annotated[int | None, typer.Option("--seed", help="Shuffle seed for the display order")] = None,
    max_attempts: Annotated[
        int | None, typer.Option("--max-attempts", help="Override the lesson's attempt limit")
    ] = None,
    no_retry: Annotated[bool, typer.Option("--no-retry", help="Disallow retries")] = False,
    online: Annotated[bool, typer.Option("--online", help="Load and grade against the LMS")] = False,
) -> None:
    """
    Play a lesson in the terminal.

    Offline play keeps attempts in memory. With --online the lesson is
    fetched from the LMS (unless a file is given) and attempts are recorded
    there.
    """
    settings = get_settings()
    if online and not settings.has_lms_configured():
        console.print("[red]LMS_API_URL is not set; cannot play online[/red]")
        raise typer.Exit(2)

    try:
        asyncio.run(_play(lesson_file, settings, seed, max_attempts, no_retry, online))
    except LessonLoadError as e:
        _exit_on_load_error(e)


async def _play(
    source: str,
    settings: Settings,
    seed: int | None,
    max_attempts: int | None,
    no_retry: bool,
    online: bool,
) -> None:
    rng = random.Random(seed if seed is not None else settings.shuffle_seed)

    if online:
        async with LmsClient(**settings.get_lms_config()) as client:
            path = Path(source)
            lesson = load_lesson_file(path) if path.exists() else await client.load(source)
            lesson = _override(lesson, max_attempts, no_retry)
            session = LessonSession(
                lesson,
                grading=client,
                tutor=client,
                reporter=client,
                rng=rng,
                settings=settings,
            )
            await _run(session)
        return

    lesson = await _load(source, settings)
    lesson = _override(lesson, max_attempts, no_retry)
    session = LessonSession(
        lesson,
        grading=InMemoryGradingService(max_attempts=lesson.max_attempts),
        tutor=StaticTutorService(),
        reporter=RecordingInteractionReporter(),
        rng=rng,
        settings=settings,
    )
    await _run(session)


def _override(lesson: Lesson, max_attempts: int | None, no_retry: bool) -> Lesson:
    changes = {}
    if max_attempts is not None:
        changes["max_attempts"] = max_attempts or None
    if no_retry:
        changes["allow_retry"] = False
    return lesson.model_copy(update=changes) if changes else lesson


async def _run(session: LessonSession) -> None:
    lesson = session.lesson
    console.print(
        Panel(
            f"[bold cyan]{lesson.title or lesson.id}[/bold cyan]\n"
            f"{len(session.blocks)} block(s) | "
            f"Max attempts: {lesson.max_attempts or 'unlimited'}",
            border_style="cyan",
        )
    )
    try:
        for block in session.blocks.values():
            await play_block(block, session, console)
    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]Leaving lesson[/yellow]")
        session.cancel()

    feedback = await session.feedback()
    show_summary(session, feedback, console)


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
