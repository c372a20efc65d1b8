from typing import List, Optional

from textual.app import App, ComposeResult, ScreenStackError
from textual.containers import Container, Vertical
from textual.css.query import NoMatches
from textual.widget import Widget
from textual.widgets import Button, Static

from ..engine import AppMode, SessionEngine
from ..errors import QuizError
from ..models import QuestionRecord
from ..session import option_key

DARK_THEME = "textual-dark"
LIGHT_THEME = "textual-light"
RETAKE_HINT = "r: retake all   i: retake missed   l: review low confidence"


def theme_name(dark: bool) -> str:
    return DARK_THEME if dark else LIGHT_THEME


def feedback_text(question: QuestionRecord, answer: Optional[str]) -> str:
    """Feedback line shown once ``answer`` has been confirmed."""
    if answer is None:
        return ""
    source = f"(page {question.page_number})"
    if question.is_correct(answer):
        return f"Correct. {question.explanation} {source}"
    return (
        f"Incorrect. Correct answer: {question.correct_answer}. "
        f"{question.explanation} {source}"
    )


def summary_lines(engine: SessionEngine) -> List[str]:
    session = engine.session
    if session is None:
        return []
    lines = [
        f"{engine.store.title}",
        f"Score: {session.score()}/{session.total}",
    ]
    for idx, question in enumerate(session.questions, start=1):
        answer = session.answer_for(question)
        mark = "✅" if question.is_correct(answer) else "❌"
        lines.append(f"{mark} {idx}. {question.question}")
    trend = engine.ledger.trend()
    if trend:
        lines.append(
            "Trend: " + " → ".join(f"{value:.0f}%" for value in trend)
        )
    return lines


class QuizApp(App):
    CSS_PATH = None
    CSS = """
#options Button.pending { background: $warning; color: black; }
#options Button.correct { background: $success; color: black; }
#options Button.incorrect { background: $error; }
#footer { color: $text; }
"""
    BINDINGS = [
        ("n", "next", "Next"),
        ("p", "prev", "Prev"),
        ("a", "select(0)", "Select A"),
        ("b", "select(1)", "Select B"),
        ("c", "select(2)", "Select C"),
        ("d", "select(3)", "Select D"),
        ("enter", "confirm", "Confirm"),
        ("f", "finish", "Finish"),
        ("r", "retake('all')", "Retake all"),
        ("i", "retake('incorrect')", "Retake missed"),
        ("l", "retake('low-confidence')", "Review low confidence"),
        ("t", "toggle_theme", "Theme"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, engine: SessionEngine):
        super().__init__()
        self.engine = engine
        self.status = ""

    def on_mount(self) -> None:
        self.theme = theme_name(self.engine.dark_mode)

    def compose(self) -> ComposeResult:
        if self.engine.session is None or self.engine.mode not in (
            AppMode.QUIZ,
            AppMode.RESULTS,
        ):
            yield Static("No active quiz.", id="empty")
            return
        with Container(id="stage"):
            yield self._stage_widget()
        with Container(id="footer"):
            yield Button("Prev", id="prev")
            yield Button("Next", id="next")
            yield Button("Confirm", id="confirm")
            yield Button("Finish", id="finish")
            yield Static(self._answered_text(), id="answered")
            yield Static(self.status, id="status")

    # Pure helpers (testable without running the App)
    def select_option(self, index: int) -> bool:
        session = self.engine.session
        if session is None or self.engine.mode is not AppMode.QUIZ:
            return False
        options = session.current.options
        if not 0 <= index < len(options):
            return False
        selected = self.engine.select_option(options[index])
        self._update_stage()
        return selected

    def confirm(self) -> bool:
        return self._run(self.engine.confirm_answer) is True

    def next_question(self) -> None:
        self._run(self.engine.go_next)

    def prev_question(self) -> None:
        self._run(self.engine.go_prev)

    def finish(self) -> None:
        self._run(self.engine.finish_quiz)

    def retake(self, mode: str) -> bool:
        """Start a retake from the results screen; False keeps the summary."""
        return self._run(lambda: self.engine.retake(mode)) is not None

    def _run(self, operation):
        try:
            result = operation()
        except QuizError as exc:
            self.status = str(exc)
            result = None
        else:
            self.status = ""
        self._update_stage()
        return result

    def _stage_widget(self) -> Widget:
        session = self.engine.session
        if self.engine.mode is AppMode.RESULTS:
            lines = summary_lines(self.engine) + ["", RETAKE_HINT]
            return Static("\n".join(lines), id="summary")
        return QuestionView(
            session.current,
            index=session.current_index + 1,
            total=session.total,
            answered=session.answer_for(session.current),
            pending=self.engine.pending,
            low_confidence=session.current.confidence
            < self.engine.low_confidence_threshold,
        )

    def _update_stage(self) -> None:
        if self.engine.session is None:
            return
        try:
            stage = self.query_one("#stage", Container)
        except (NoMatches, ScreenStackError):
            return
        stage.remove_children()
        stage.mount(self._stage_widget())
        try:
            self.query_one("#answered", Static).update(self._answered_text())
            self.query_one("#status", Static).update(self.status)
        except (NoMatches, ScreenStackError):
            pass

    def action_next(self) -> None:
        self.next_question()

    def action_prev(self) -> None:
        self.prev_question()

    def action_select(self, index: int) -> None:
        self.select_option(index)

    def action_confirm(self) -> None:
        self.confirm()

    def action_finish(self) -> None:
        self.finish()

    def action_retake(self, mode: str) -> None:
        self.retake(mode)

    def action_toggle_theme(self) -> None:
        self.engine.set_dark_mode(not self.engine.dark_mode)
        self.theme = theme_name(self.engine.dark_mode)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = getattr(event.button, "id", "") or ""
        if bid.startswith("option-"):
            self.select_option(int(bid.split("-", 1)[1]))
        elif bid == "confirm":
            self.action_confirm()
        elif bid == "next":
            self.action_next()
        elif bid == "prev":
            self.action_prev()
        elif bid == "finish":
            self.action_finish()

    def _answered_text(self) -> str:
        session = self.engine.session
        if session is None:
            return ""
        return f"Answered: {session.answered_count()}/{session.total}"


class QuestionView(Widget):
    """Renders one question with its options, progress and feedback."""

    def __init__(
        self,
        question: QuestionRecord,
        index: int,
        total: int,
        *,
        answered: Optional[str] = None,
        pending: Optional[str] = None,
        low_confidence: bool = False,
    ) -> None:
        super().__init__()
        self.question = question
        self.index = index
        self.total = total
        self.answered = answered
        self.pending = pending
        self.low_confidence = low_confidence

    def option_class(self, option: str) -> Optional[str]:
        if self.answered is None:
            return "pending" if option == self.pending else None
        if option == self.question.correct_answer:
            return "correct"
        if option == self.answered:
            return "incorrect"
        return None

    def compose(self) -> ComposeResult:
        yield Static(self.question.question, id="stem")
        with Vertical(id="options"):
            for idx, option in enumerate(self.question.options):
                btn = Button(
                    f"{option_key(idx)}) {option}", id=f"option-{idx}"
                )
                css_class = self.option_class(option)
                if css_class:
                    btn.add_class(css_class)
                yield btn
        progress = f"{self.index}/{self.total}"
        if self.low_confidence:
            progress += "  (low extraction confidence)"
        yield Static(progress, id="progress")
        yield Static(
            feedback_text(self.question, self.answered), id="feedback"
        )
