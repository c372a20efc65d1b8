"""Rich-powered quiz session loop driven by :class:`SessionEngine`.

The loop renders the current question, reads console commands and forwards
them to the engine, which owns every state change. It returns a
:class:`QuizSessionResult` describing how the session ended so the CLI can
decide what to print next.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Callable, Literal

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .engine import AppMode, SessionEngine, SessionState
from .errors import QuizError
from .models import Attempt, QuestionRecord

InputProvider = Callable[[], str]
ExitAction = Literal["finished", "quit", "empty"]

_LETTERS = "ABCDEFGHIJ"


@dataclass(frozen=True)
class QuestionResponse:
    """A user's answer to one question of the finished session."""

    question_id: str
    question: str
    selected: str | None
    correct_answer: str
    is_correct: bool
    explanation: str
    page_number: int


@dataclass(frozen=True)
class QuizSessionResult:
    """Return value from ``run_quiz_session``."""

    responses: list[QuestionResponse]
    attempt: Attempt | None
    exit_action: ExitAction


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: Literal[
        "select", "confirm", "next", "prev", "jump", "finish", "quit"
    ]
    choice: int | None = None


def parse_session_command(raw: str | None) -> SessionCommand | None:
    """Parse raw user input into a structured command.

    Options are chosen by letter (``a``-``j``) or 1-based number, so the
    other commands avoid those letters. ``jump 3`` (or ``g 3``) moves to
    question three; the index in the command is zero-based.
    """

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in {"ok", "y", "yes", "confirm"}:
        return SessionCommand("confirm")
    if lowered in {"n", "next"}:
        return SessionCommand("next")
    if lowered in {"p", "prev", "previous"}:
        return SessionCommand("prev")
    if lowered in {"finish", "done"}:
        return SessionCommand("finish")
    if lowered in {"q", "quit", "exit"}:
        return SessionCommand("quit")
    parts = lowered.split()
    if len(parts) == 2 and parts[0] in {"g", "jump", "goto"}:
        if parts[1].isdigit() and int(parts[1]) >= 1:
            return SessionCommand("jump", int(parts[1]) - 1)
        return None
    if len(lowered) == 1 and lowered.upper() in _LETTERS:
        return SessionCommand("select", _LETTERS.index(lowered.upper()))
    if lowered.isdigit() and int(lowered) >= 1:
        return SessionCommand("select", int(lowered) - 1)
    return None


def run_quiz_session(
    engine: SessionEngine,
    console: Console,
    input_provider: InputProvider,
) -> QuizSessionResult:
    """Drive ``engine`` through its ``QUIZ`` mode until finish or quit."""

    session = engine.session
    if engine.mode is not AppMode.QUIZ or session is None:
        console.print(
            Panel(
                "There is no active quiz session.",
                title="Quiz Session",
                border_style="yellow",
            )
        )
        return QuizSessionResult([], None, "empty")

    attempt: Attempt | None = None
    while engine.mode is AppMode.QUIZ:
        render_question(console, engine)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted.[/]")
            break
        command = parse_session_command(raw)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        if command.type == "quit":
            console.print(
                "\n[bold yellow]Progress saved. Resume any time.[/]"
            )
            break
        try:
            attempt = _apply_command(command, engine, console) or attempt
        except QuizError as exc:
            console.print(f"[red]{exc}[/red]")

    responses = build_responses(engine.session or session)
    if attempt is None:
        return QuizSessionResult(responses, None, "quit")
    render_summary(console, engine, responses, attempt)
    return QuizSessionResult(responses, attempt, "finished")


def _apply_command(
    command: SessionCommand,
    engine: SessionEngine,
    console: Console,
) -> Attempt | None:
    if command.type == "select" and command.choice is not None:
        question = engine.session.current
        if command.choice >= len(question.options):
            console.print("[red]That option does not exist.[/red]")
        elif not engine.select_option(question.options[command.choice]):
            console.print("[red]This question is already answered.[/red]")
        return None
    if command.type == "confirm":
        if not engine.confirm_answer():
            console.print("[red]Select an answer before confirming.[/red]")
        return None
    if command.type == "next":
        return engine.go_next()
    if command.type == "prev":
        engine.go_prev()
        return None
    if command.type == "jump" and command.choice is not None:
        engine.jump_to(command.choice)
        return None
    if command.type == "finish":
        return engine.finish_quiz()
    return None


def option_key(index: int) -> str:
    return _LETTERS[index] if index < len(_LETTERS) else str(index + 1)


def build_responses(session: SessionState) -> list[QuestionResponse]:
    return [
        QuestionResponse(
            question_id=question.id,
            question=question.question,
            selected=session.answer_for(question),
            correct_answer=question.correct_answer,
            is_correct=question.is_correct(session.answer_for(question)),
            explanation=question.explanation,
            page_number=question.page_number,
        )
        for question in session.questions
    ]


def render_question(console: Console, engine: SessionEngine) -> None:
    session = engine.session
    question = session.current
    header = Text.assemble(
        (f"Question {session.current_index + 1}", "bold cyan"),
        (f" / {session.total}", "dim"),
        (f"  {engine.store.title}", "italic"),
    )
    console.print()
    console.rule(header)
    console.print(Text(question.question, style="bold"))

    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Option")

    answered = session.answer_for(question)
    marked = answered if answered is not None else engine.pending
    for idx, option in enumerate(question.options):
        indicator = "•" if option == marked else " "
        option_text = Text(option)
        if answered is not None and option == question.correct_answer:
            option_text.stylize("bold green")
        elif option == marked:
            option_text.stylize("bold red" if answered else "bold yellow")
        row_text = Text(indicator + " ")
        row_text += option_text
        table.add_row(option_key(idx), row_text)
    console.print(table)

    if answered is not None:
        render_feedback(console, question, answered)

    keys = ", ".join(option_key(idx) for idx in range(len(question.options)))
    console.print(
        Text(
            f"Answered {session.answered_count()}/{session.total} | "
            f"Commands: options [{keys}], ok (confirm), n (next), p (prev), "
            "jump N, finish, quit",
            style="dim",
        )
    )


def render_feedback(
    console: Console, question: QuestionRecord, answer: str
) -> None:
    correct = question.is_correct(answer)
    title = "Correct" if correct else "Incorrect"
    body = Text()
    if not correct:
        body.append("Correct answer: ", style="bold")
        body.append(question.correct_answer + "\n")
    body.append(question.explanation)
    body.append(f"\nSource: page {question.page_number}", style="dim")
    console.print(
        Panel(body, title=title, border_style="green" if correct else "red")
    )


def render_summary(
    console: Console,
    engine: SessionEngine,
    responses: Sequence[QuestionResponse],
    attempt: Attempt,
) -> None:
    console.print()
    console.rule(Text("Quiz Summary", style="bold magenta"))

    overview = Table(
        show_header=False,
        box=box.MINIMAL_DOUBLE_HEAD,
        expand=False,
    )
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Total questions", str(attempt.total))
    overview.add_row(
        "Answered", str(sum(1 for r in responses if r.selected is not None))
    )
    overview.add_row("Correct", str(attempt.score))
    overview.add_row("Score", f"{attempt.percent:.1f}%")
    console.print(overview)

    response_table = Table(title="Responses", box=box.SIMPLE, expand=True)
    response_table.add_column("#", justify="right")
    response_table.add_column("Question", overflow="fold")
    response_table.add_column("Your answer", overflow="fold")
    response_table.add_column("Correct answer", overflow="fold")
    response_table.add_column("Page", justify="right")
    response_table.add_column("Result", justify="center")
    for idx, response in enumerate(responses, start=1):
        response_table.add_row(
            str(idx),
            response.question,
            response.selected or "-",
            response.correct_answer,
            str(response.page_number),
            "✅" if response.is_correct else "❌",
        )
    console.print(response_table)
    render_history(console, engine)


def render_history(console: Console, engine: SessionEngine) -> None:
    attempts = engine.ledger.list()
    if not attempts:
        console.print(Text("No attempts recorded yet.", style="dim"))
        return
    table = Table(title="Attempt history", box=box.SIMPLE, expand=False)
    table.add_column("When")
    table.add_column("Score", justify="right")
    table.add_column("Percent", justify="right")
    for attempt in attempts:
        table.add_row(
            attempt.timestamp,
            f"{attempt.score}/{attempt.total}",
            f"{attempt.percent:.1f}%",
        )
    console.print(table)
    trend = engine.ledger.trend()
    if len(trend) > 1:
        console.print(
            Text(
                "Trend: " + " → ".join(f"{value:.0f}%" for value in trend),
                style="dim",
            )
        )
