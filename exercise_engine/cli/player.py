"""
Terminal player: renders each block kind and collects learner input.

One function per kind fills in the block session's response. Grading,
attempt recording and locking stay in the session; this module only draws
and asks.
"""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from exercise_engine.blocks import BlockKind
from exercise_engine.blocks.audio_response import evaluate_transcript
from exercise_engine.blocks.base import GradeResult
from exercise_engine.blocks.memory_match import FlipOutcome
from exercise_engine.errors import ResponseShapeError
from exercise_engine.session import BlockSession, BlockState, LessonSession, RecordingStatus

STATE_STYLES = {
    BlockState.UNLOCKED: "green",
    BlockState.ANSWERING: "cyan",
    BlockState.SUBMITTED: "yellow",
    BlockState.RETRYABLE: "yellow",
    BlockState.LOCKED: "red",
}

RECORDING_LABELS = {
    RecordingStatus.IDLE: "[dim]not submitted[/dim]",
    RecordingStatus.PENDING: "[yellow]pending (no answer from grading service)[/yellow]",
    RecordingStatus.RECORDED: "[green]recorded[/green]",
    RecordingStatus.FAILED: "[red]not recorded[/red]",
    RecordingStatus.REJECTED: "[red]refused: no attempts left[/red]",
}


def _numbers(raw: str, upper: int) -> list[int]:
    """Parse '1 3' / '1,3' into zero-based indices within range."""
    picked = []
    for token in raw.replace(",", " ").split():
        if token.isdigit() and 1 <= int(token) <= upper:
            picked.append(int(token) - 1)
    return picked


def _attempts_label(session: BlockSession) -> str:
    attempts = session.attempts
    if attempts.unlimited:
        return f"{attempts.attempts_used} (unlimited)"
    return f"{attempts.attempts_used}/{attempts.max_attempts}"


# =============================================================================
# Content blocks
# =============================================================================


async def show_content(session: BlockSession, lesson: LessonSession, console: Console) -> None:
    view = session.presentation
    if session.kind == BlockKind.AUDIO_RESPONSE:
        title = "[bold magenta]SPEAKING PRACTICE[/bold magenta]"
        body = view.prompt
        if view.time_limit:
            body += f"\n\n[dim]Time limit: {view.time_limit}s[/dim]"
        console.print(Panel(body, title=title, border_style="magenta", box=box.HEAVY))
        transcript = Prompt.ask("Type what you would say", default="")
        evaluation = evaluate_transcript(session.definition.payload, transcript)
        if view.keywords:
            found = ", ".join(evaluation.found_keywords) or "none"
            console.print(f"[cyan]Keywords covered:[/cyan] {found} ({evaluation.coverage}%)")
        await lesson.report_interaction(session.block_id, "complete")
        return

    if session.kind == BlockKind.MEDIA:
        label = (view.media_type or "media").upper()
        console.print(Panel(f"[link={view.url}]{view.url}[/link]", title=f"[bold]{label}[/bold]", border_style="blue"))
        await lesson.report_interaction(session.block_id, "play", video_timestamp=0.0)
        return

    console.print(Panel(view.text, title=f"[bold]{session.definition.title or 'Reading'}[/bold]", border_style="blue"))
    await lesson.report_interaction(session.block_id, "view")


# =============================================================================
# Scored blocks
# =============================================================================


def ask_quiz(session: BlockSession, console: Console) -> None:
    for question in session.presentation.questions:
        table = Table(box=box.MINIMAL, show_header=False)
        table.add_column("Index", style="cyan", justify="right", width=4)
        table.add_column("Option", style="white")
        for i, option in enumerate(question.options):
            table.add_row(f"[{i + 1}]", option)

        title = "[bold cyan]MULTIPLE CHOICE[/bold cyan]"
        if question.multi_select:
            title = f"[bold cyan]MULTIPLE CHOICE (Select {question.required_count})[/bold cyan]"
        console.print(Panel(table, title=title, subtitle=question.question, border_style="cyan", box=box.HEAVY))

        picked = _numbers(Prompt.ask(f"Choice [1-{len(question.options)}]", default=""), len(question.options))
        if not question.multi_select:
            picked = picked[-1:]
        for option in dict.fromkeys(picked):
            session.toggle_option(question.unit_index, option)


def ask_fill_in_blanks(session: BlockSession, console: Console) -> None:
    text = Text()
    for segment in session.presentation.segments:
        if segment.is_blank:
            text.append(f"____({segment.blank_index + 1})", style="bold yellow")
        else:
            text.append(segment.text)
    console.print(Panel(text, title="[bold cyan]FILL IN THE BLANKS[/bold cyan]", border_style="cyan"))

    for unit in session.units:
        answer = Prompt.ask(f"Blank {unit.index + 1}", default="")
        if answer.strip():
            session.answer(unit.index, answer)


def ask_matching(session: BlockSession, console: Console) -> None:
    view = session.presentation
    table = Table(box=box.SIMPLE)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Term")
    table.add_column("#", style="magenta", justify="right")
    table.add_column("Match")
    for i in range(max(len(view.left), len(view.right))):
        left = view.left[i] if i < len(view.left) else ""
        right = view.right[i].text if i < len(view.right) else ""
        table.add_row(str(i + 1) if left else "", left, chr(ord("a") + i) if right else "", right)
    console.print(Panel(table, title="[bold cyan]MATCHING[/bold cyan]", border_style="cyan"))

    letters = {chr(ord("a") + i): option for i, option in enumerate(view.right)}
    for unit in session.units:
        choice = Prompt.ask(f"{unit.index + 1}. {unit.label} ->", default="").strip().lower()
        if choice in letters:
            session.answer(unit.index, letters[choice].text)


def ask_ordering(session: BlockSession, console: Console) -> None:
    items = session.presentation.items
    table = Table(box=box.MINIMAL, show_header=False)
    table.add_column("Index", style="cyan", justify="right", width=4)
    table.add_column("Item")
    for i, item in enumerate(items):
        table.add_row(f"[{i + 1}]", item.text)
    console.print(Panel(table, title="[bold cyan]PUT IN ORDER[/bold cyan]", border_style="cyan"))

    order = _numbers(Prompt.ask("Order (e.g. 3 1 2)", default=""), len(items))
    for position, picked in enumerate(order[: len(session.units)]):
        session.answer(position, items[picked].text)


def ask_short_answer(session: BlockSession, console: Console) -> None:
    console.print(Panel(session.presentation.prompt, title="[bold cyan]SHORT ANSWER[/bold cyan]", border_style="cyan"))
    answer = Prompt.ask("Answer", default="")
    if answer.strip():
        session.answer(0, answer)


def ask_hotspot(session: BlockSession, console: Console) -> None:
    view = session.presentation
    lines = [view.description or "Find the regions on the image."]
    if view.image_url:
        lines.append(f"[dim]{view.image_url}[/dim]")
    lines.append("Regions: " + ", ".join(view.labels))
    console.print(Panel("\n".join(lines), title="[bold cyan]HOTSPOT[/bold cyan]", border_style="cyan"))

    while len(session.response) < len(session.units):
        raw = Prompt.ask("Click at 'x y' in % (empty to stop)", default="")
        parts = raw.replace(",", " ").split()
        if not parts:
            break
        try:
            x, y = (float(p) for p in parts[:2])
        except ValueError:
            console.print("[yellow]Enter two numbers, e.g. 52 48[/yellow]")
            continue
        region = session.click(x, y)
        if region is None:
            console.print("[red]Nothing there[/red]")
        else:
            console.print(f"[green]Found: {session.units[region].label}[/green]")


def ask_memory_match(session: BlockSession, console: Console) -> None:
    board = session.board
    cards = session.presentation.cards

    def draw() -> None:
        table = Table(box=box.ROUNDED, show_header=False)
        row: list[str] = []
        for position, card in enumerate(cards):
            row.append(card.content if board.is_visible(card.card_id) else f"[dim]#{position + 1}[/dim]")
            if len(row) == 4:
                table.add_row(*row)
                row = []
        if row:
            table.add_row(*row)
        console.print(Panel(table, title=f"[bold cyan]MEMORY[/bold cyan] moves: {board.moves}", border_style="cyan"))

    while not board.complete:
        draw()
        picked = _numbers(Prompt.ask("Flip card (empty to stop)", default=""), len(cards))
        if not picked:
            break
        outcome, card = session.flip(cards[picked[0]].card_id)
        if outcome == FlipOutcome.IGNORED:
            console.print("[dim]Card already showing[/dim]")
        elif card is not None:
            console.print(f"[cyan]{card.content}[/cyan]")
        if outcome == FlipOutcome.MATCH:
            console.print("[green]Match![/green]")
        elif outcome == FlipOutcome.MISMATCH:
            console.print("[red]No match[/red]")


def ask_code(session: BlockSession, console: Console) -> None:
    view = session.presentation
    console.print(Panel(view.instructions, title="[bold cyan]CODE EXERCISE[/bold cyan]", border_style="cyan"))
    if view.initial_code:
        console.print(Syntax(view.initial_code, view.language or "text", line_numbers=True))
    console.print("[dim]Type your code. End with a line containing only '.'[/dim]")

    lines = []
    while True:
        line = console.input()
        if line.strip() == ".":
            break
        lines.append(line)
    session.answer(0, "\n".join(lines) if lines else view.initial_code)


ASKERS = {
    BlockKind.QUIZ: ask_quiz,
    BlockKind.FILL_IN_THE_BLANKS: ask_fill_in_blanks,
    BlockKind.MATCHING: ask_matching,
    BlockKind.ORDERING: ask_ordering,
    BlockKind.SHORT_ANSWER: ask_short_answer,
    BlockKind.HOTSPOT: ask_hotspot,
    BlockKind.MEMORY_MATCH: ask_memory_match,
    BlockKind.CODE_EXERCISE: ask_code,
}


# =============================================================================
# Results
# =============================================================================


def show_result(session: BlockSession, result: GradeResult, console: Console) -> None:
    table = Table(box=box.SIMPLE)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Item")
    table.add_column("Result", justify="center")
    for unit_result, unit in zip(result.per_unit, session.units):
        mark = "[green]correct[/green]" if unit_result.correct else "[red]incorrect[/red]"
        table.add_row(str(unit.index + 1), unit.label or "", mark)

    style = "green" if result.passed else "yellow" if result.score > 0 else "red"
    state_style = STATE_STYLES[session.state]
    console.print(
        Panel(
            table,
            title=f"[bold {style}]Score {result.score:.0%}[/bold {style}]",
            subtitle=(
                f"attempts {_attempts_label(session)} | "
                f"[{state_style}]{session.state.value}[/{state_style}] | "
                f"{RECORDING_LABELS[session.recording]}"
            ),
            border_style=style,
        )
    )


async def play_block(session: BlockSession, lesson: LessonSession, console: Console) -> None:
    """Play one block until it is submitted, locked, or the learner moves on."""
    header = session.definition.title or session.kind.value
    console.rule(f"[bold]{header}[/bold]")

    if not session.scored:
        await show_content(session, lesson, console)
        return

    if session.state == BlockState.LOCKED:
        console.print(f"[red]Locked[/red]: attempts used {_attempts_label(session)}")
        if session.last_result is not None:
            show_result(session, session.last_result, console)
        return

    while True:
        try:
            ASKERS[session.kind](session, console)
            result = await session.submit()
        except ResponseShapeError as e:
            console.print(f"[red]Invalid answer:[/red] {e}")
            session.cancel()
            continue
        show_result(session, result, console)

        while session.recording in (RecordingStatus.PENDING, RecordingStatus.FAILED):
            if not Confirm.ask("Attempt not recorded. Retry sending?", default=True):
                break
            await session.retry_recording()
            console.print(f"Recording: {RECORDING_LABELS[session.recording]}")

        if session.state != BlockState.RETRYABLE or result.passed:
            return
        if not Confirm.ask("Try again?", default=False):
            return
        session.try_again()


def show_summary(lesson: LessonSession, feedback: str, console: Console) -> None:
    table = Table(title=f"Lesson: {lesson.lesson.title or lesson.lesson.id}", box=box.ROUNDED)
    table.add_column("Block", style="cyan")
    table.add_column("Kind")
    table.add_column("Score", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("State")
    table.add_column("Recording")

    for report in lesson.report():
        if not report.scored:
            seen = "[green]viewed[/green]" if report.block_id in lesson.viewed else "[dim]not viewed[/dim]"
            table.add_row(report.block_id, report.kind, "-", "-", seen, "")
            continue
        score = f"{report.result.score:.0%}" if report.result else "-"
        attempts = f"{report.attempts_used}/{report.max_attempts}" if report.max_attempts else str(report.attempts_used)
        style = STATE_STYLES[report.state]
        table.add_row(
            report.block_id,
            report.kind,
            score,
            attempts,
            f"[{style}]{report.state.value}[/{style}]",
            RECORDING_LABELS[report.recording],
        )
    console.print(table)

    average = lesson.average_score
    status = "[green]complete[/green]" if lesson.is_complete else "[yellow]incomplete[/yellow]"
    summary = f"Lesson {status}"
    if average is not None:
        summary += f" | average score {average:.0%}"
    console.print(summary)
    console.print(Panel(feedback, title="[bold]Tutor feedback[/bold]", border_style="magenta"))
