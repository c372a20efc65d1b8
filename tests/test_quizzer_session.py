from __future__ import annotations

import logging

from rich.console import Console

from doc_quizzer.quizzer.engine import AppMode, SessionEngine
from doc_quizzer.quizzer.history import HistoryLedger
from doc_quizzer.quizzer.models import Attempt
from doc_quizzer.quizzer.session import (
    QuizSessionResult,
    SessionCommand,
    build_responses,
    option_key,
    parse_session_command,
    render_history,
    run_quiz_session,
)
from doc_quizzer.quizzer.store import QuizStore

from fixtures import make_meta


def make_provider(commands: list[str]):
    iterator = iter(commands)

    def _provider() -> str:
        return next(iterator)

    return _provider


def _console() -> Console:
    return Console(record=True, width=100, force_terminal=True)


def _engine(persistence, count: int = 2) -> SessionEngine:
    engine = SessionEngine(
        store=QuizStore(),
        ledger=HistoryLedger(persistence),
        persistence=persistence,
        logger=logging.getLogger("test.session"),
    )
    engine.load_quiz(make_meta(count))
    return engine


def test_parse_session_command_variants() -> None:
    assert parse_session_command("a") == SessionCommand("select", 0)
    assert parse_session_command("C") == SessionCommand("select", 2)
    assert parse_session_command("f") == SessionCommand("select", 5)
    assert parse_session_command("3") == SessionCommand("select", 2)
    assert parse_session_command("  Next ") == SessionCommand("next")
    assert parse_session_command("previous") == SessionCommand("prev")
    assert parse_session_command("ok") == SessionCommand("confirm")
    assert parse_session_command("y") == SessionCommand("confirm")
    assert parse_session_command("jump 2") == SessionCommand("jump", 1)
    assert parse_session_command("g 10") == SessionCommand("jump", 9)
    assert parse_session_command("finish") == SessionCommand("finish")
    assert parse_session_command("exit") == SessionCommand("quit")


def test_parse_session_command_rejects_noise() -> None:
    assert parse_session_command(None) is None
    assert parse_session_command("   ") is None
    assert parse_session_command("0") is None
    assert parse_session_command("k") is None
    assert parse_session_command("jump") is None
    assert parse_session_command("g x") is None
    assert parse_session_command("jump 0") is None


def test_option_key_falls_back_to_numbers() -> None:
    assert option_key(0) == "A"
    assert option_key(9) == "J"
    assert option_key(12) == "13"


def test_run_quiz_session_finish_flow(persistence) -> None:
    console = _console()
    engine = _engine(persistence)
    provider = make_provider(["a", "ok", "n", "b", "ok", "n"])

    result = run_quiz_session(engine, console, provider)

    assert isinstance(result, QuizSessionResult)
    assert result.exit_action == "finished"
    assert result.attempt is not None
    assert (result.attempt.score, result.attempt.total) == (1, 2)
    assert [r.selected for r in result.responses] == ["A1", "B1"]
    assert [r.is_correct for r in result.responses] == [True, False]
    assert engine.mode is AppMode.RESULTS
    rendered = console.export_text()
    assert "Quiz Summary" in rendered
    assert "Incorrect" in rendered
    assert "Source: page 1" in rendered
    assert "Attempt history" in rendered


def test_run_quiz_session_quit_keeps_progress(persistence) -> None:
    console = _console()
    engine = _engine(persistence)

    result = run_quiz_session(
        engine, console, make_provider(["a", "ok", "n", "quit"])
    )

    assert result.exit_action == "quit"
    assert result.attempt is None
    assert engine.mode is AppMode.QUIZ
    assert engine.session.current_index == 1
    assert engine.session.answers == {"q1": "A1"}
    assert "Progress saved" in console.export_text()
    assert len(engine.ledger) == 0


def test_run_quiz_session_reports_bad_input(persistence) -> None:
    console = _console()
    engine = _engine(persistence)
    provider = make_provider(
        ["zzz", "9", "ok", "jump 7", "a", "ok", "b", "finish"]
    )

    result = run_quiz_session(engine, console, provider)

    rendered = console.export_text()
    assert "Unrecognized command" in rendered
    assert "That option does not exist." in rendered
    assert "Select an answer before confirming." in rendered
    assert "Question number must be between 1 and 2." in rendered
    assert "This question is already answered." in rendered
    assert result.exit_action == "finished"
    assert result.attempt.score == 1


def test_run_quiz_session_handles_exhausted_input(persistence) -> None:
    console = _console()
    engine = _engine(persistence)

    result = run_quiz_session(engine, console, make_provider([]))

    assert result.exit_action == "quit"
    assert "Session interrupted." in console.export_text()


def test_run_quiz_session_without_session(persistence) -> None:
    console = _console()
    engine = SessionEngine(
        store=QuizStore(),
        ledger=HistoryLedger(persistence),
        persistence=persistence,
    )

    result = run_quiz_session(engine, console, make_provider(["a"]))

    assert result == QuizSessionResult([], None, "empty")
    assert "no active quiz session" in console.export_text()


def test_build_responses_reflects_answers(persistence) -> None:
    engine = _engine(persistence, count=3)
    engine.select_option("C1")
    engine.confirm_answer()

    responses = build_responses(engine.session)

    assert [r.selected for r in responses] == ["C1", None, None]
    assert responses[0].correct_answer == "A1"
    assert not any(r.is_correct for r in responses)


def test_render_history(persistence) -> None:
    engine = _engine(persistence)
    console = _console()
    render_history(console, engine)
    assert "No attempts recorded yet." in console.export_text()

    engine.ledger.append(Attempt("a1", "2024-01-01T00:00:00", 1, 2))
    engine.ledger.append(Attempt("a2", "2024-01-02T00:00:00", 2, 2))
    console = _console()
    render_history(console, engine)

    rendered = console.export_text()
    assert "Attempt history" in rendered
    assert "2/2" in rendered
    assert "Trend: 50% → 100%" in rendered
