"""Session state machine: extraction hand-off, answering, scoring, retakes.

The engine composes three independently owned stores (:class:`QuizStore`,
:class:`SessionState`, :class:`HistoryLedger`) and is the only place that
moves between :class:`AppMode` values. Every committing operation finishes
by writing the quiz slot, so a reload reconstructs the last committed state.

Extraction runs are tagged with a generation number; a run whose generation
is no longer current (a newer upload started, the user cancelled, or all data
was reset) never writes its result.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

from .errors import InputError, InvalidTransition, PersistenceReadFailure
from .export import quiz_from_payload, write_export
from .history import HistoryLedger
from .models import Attempt, QuestionRecord, QuizMeta
from .pages import validate_documents
from .pipeline import (
    IDLE_PROGRESS,
    ExtractionPipeline,
    PipelineFailure,
    PipelineProgress,
    ProgressCallback,
)
from .retake import LOW_CONFIDENCE_THRESHOLD, RetakeMode, filter_questions
from .storage import QUIZ_SLOT, PersistenceAdapter
from .store import QuizStore

Clock = Callable[[], datetime]


class AppMode(str, Enum):
    UPLOAD = "upload"
    EXTRACTING = "extracting"
    QUIZ = "quiz"
    RESULTS = "results"
    ADMIN = "admin"
    PROGRESS = "progress"


_EXCURSIONS = frozenset({AppMode.ADMIN, AppMode.PROGRESS})


@dataclass
class SessionState:
    """Live run over a (possibly filtered) view of the quiz questions."""

    questions: list[QuestionRecord]
    current_index: int = 0
    answers: dict[str, str] = field(default_factory=dict)
    finished: bool = False

    @classmethod
    def fresh(cls, questions: Sequence[QuestionRecord]) -> "SessionState":
        return cls(questions=list(questions))

    @classmethod
    def restore(
        cls,
        questions: Sequence[QuestionRecord],
        progress: Any,
    ) -> "SessionState":
        """Rebuild from stored progress, dropping anything out of range.

        ``activeIds`` narrows the run to a retake subset; ids that no longer
        exist are skipped and an empty result falls back to every question.
        """

        if not isinstance(progress, Mapping):
            return cls.fresh(questions)
        active = _active_subset(questions, progress.get("activeIds"))
        state = cls.fresh(active)
        index = progress.get("currentIndex", 0)
        if isinstance(index, int) and not isinstance(index, bool):
            state.current_index = min(max(index, 0), max(state.total - 1, 0))
        answers = progress.get("answers")
        if isinstance(answers, Mapping):
            known = {question.id for question in state.questions}
            state.answers = {
                str(qid): str(answer)
                for qid, answer in answers.items()
                if qid in known and answer is not None
            }
        state.finished = progress.get("finished") is True
        return state

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current(self) -> QuestionRecord:
        return self.questions[self.current_index]

    @property
    def is_last(self) -> bool:
        return self.current_index >= self.total - 1

    def answer_for(self, question: QuestionRecord) -> Optional[str]:
        return self.answers.get(question.id)

    def is_answered(self, question: Optional[QuestionRecord] = None) -> bool:
        target = question or self.current
        return target.id in self.answers

    def answered_count(self) -> int:
        return len(self.answers)

    def score(self) -> int:
        return sum(
            1 for q in self.questions if q.is_correct(self.answers.get(q.id))
        )

    def replace_record(self, record: QuestionRecord) -> bool:
        for idx, existing in enumerate(self.questions):
            if existing.id == record.id:
                self.questions[idx] = record
                return True
        return False

    def to_progress(self) -> dict[str, Any]:
        return {
            "currentIndex": self.current_index,
            "answers": dict(self.answers),
            "finished": self.finished,
            "activeIds": [question.id for question in self.questions],
        }


def _active_subset(
    questions: Sequence[QuestionRecord], active_ids: Any
) -> list[QuestionRecord]:
    if not isinstance(active_ids, list):
        return list(questions)
    by_id = {question.id: question for question in questions}
    subset = [
        by_id[qid] for qid in active_ids if isinstance(qid, str) and qid in by_id
    ]
    return subset or list(questions)


class SessionEngine:
    """Long-lived controller for one user's quiz workflow."""

    def __init__(
        self,
        *,
        store: QuizStore,
        ledger: HistoryLedger,
        persistence: PersistenceAdapter,
        pipeline: Optional[ExtractionPipeline] = None,
        low_confidence_threshold: float = LOW_CONFIDENCE_THRESHOLD,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.persistence = persistence
        self.pipeline = pipeline
        self.low_confidence_threshold = low_confidence_threshold
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._logger = logger or logging.getLogger(__name__)

        self.mode = AppMode.UPLOAD
        self.session: Optional[SessionState] = None
        self.pending: Optional[str] = None
        self.error: Optional[str] = None
        self.progress: PipelineProgress = IDLE_PROGRESS
        self._generation = 0
        self._return_mode: Optional[AppMode] = None
        self._dark_mode = persistence.read_dark_mode()

    @classmethod
    def restore(
        cls,
        persistence: PersistenceAdapter,
        *,
        pipeline: Optional[ExtractionPipeline] = None,
        low_confidence_threshold: float = LOW_CONFIDENCE_THRESHOLD,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "SessionEngine":
        """Build an engine from the persisted slots (startup path)."""

        log = logger or logging.getLogger(__name__)
        engine = cls(
            store=QuizStore(),
            ledger=HistoryLedger.load(persistence, logger=log),
            persistence=persistence,
            pipeline=pipeline,
            low_confidence_threshold=low_confidence_threshold,
            clock=clock,
            logger=log,
        )
        engine._restore_quiz()
        return engine

    # -- read-only views -------------------------------------------------

    @property
    def has_quiz(self) -> bool:
        return self.store.has_quiz

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current_question(self) -> Optional[QuestionRecord]:
        if self.session is None or not self.session.questions:
            return None
        return self.session.current

    @property
    def dark_mode(self) -> bool:
        return self._dark_mode

    def set_dark_mode(self, enabled: bool) -> None:
        self._dark_mode = bool(enabled)
        self.persistence.write_dark_mode(self._dark_mode)

    # -- extraction ------------------------------------------------------

    def begin_extraction(self, documents: Sequence[Path]) -> tuple[Path, int]:
        """Validate the upload and enter ``EXTRACTING``.

        Returns the document and the generation tag of this run. Starting a
        new extraction supersedes any run still in flight.
        """

        document = validate_documents(documents)
        self._generation += 1
        self.mode = AppMode.EXTRACTING
        self.progress = IDLE_PROGRESS
        self.error = None
        self._return_mode = None
        self._logger.info(
            "Extraction started",
            extra={"document": document, "generation": self._generation},
        )
        return document, self._generation

    async def extract_document(
        self,
        documents: Sequence[Path],
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        """Run the pipeline for ``documents``; True when a quiz was loaded.

        Failures return to ``UPLOAD`` with :attr:`error` set. Results from a
        superseded run are discarded.
        """

        if self.pipeline is None:
            raise InvalidTransition("No extraction pipeline is configured.")
        document, generation = self.begin_extraction(documents)

        def report(progress: PipelineProgress) -> None:
            if generation != self._generation:
                return
            self.progress = progress
            if on_progress is not None:
                on_progress(progress)

        try:
            meta = await self.pipeline.run(document, on_progress=report)
        except PipelineFailure as failure:
            if generation != self._generation:
                return False
            self.mode = AppMode.UPLOAD
            self.error = failure.message
            return False
        if generation != self._generation:
            self._logger.info(
                "Discarded stale extraction result",
                extra={"generation": generation, "current": self._generation},
            )
            return False
        self.load_quiz(meta)
        return True

    def cancel_extraction(self) -> None:
        if self.mode is not AppMode.EXTRACTING:
            return
        self._generation += 1
        self.mode = AppMode.UPLOAD
        self.progress = IDLE_PROGRESS
        self._logger.info("Extraction cancelled")

    def load_quiz(self, meta: QuizMeta) -> None:
        """Make ``meta`` the active quiz and start a fresh session on it."""

        if not meta.questions:
            raise InputError("No study material could be processed.")
        self.store.replace(meta)
        self._start_session(list(meta.questions))
        self.error = None
        self._logger.info(
            "Quiz loaded",
            extra={"title": meta.title, "question_count": len(meta.questions)},
        )
        self._persist()

    # -- navigation and answering ---------------------------------------

    def resume(self) -> None:
        """Return from ``UPLOAD`` to the stored session."""

        self._require(AppMode.UPLOAD, action="resume")
        if not self.has_quiz:
            raise InvalidTransition("There is no quiz to resume.")
        if self.session is None:
            self._start_session(list(self.store.questions))
            self._persist()
            return
        self.pending = None
        self.mode = AppMode.RESULTS if self.session.finished else AppMode.QUIZ

    def select_option(self, option: str) -> bool:
        """Set the pending answer; False when the choice is not allowed."""

        session = self._active_session("select an answer")
        question = session.current
        if session.is_answered(question) or option not in question.options:
            return False
        self.pending = option
        return True

    def confirm_answer(self) -> bool:
        """Commit the pending answer for the current question."""

        session = self._active_session("confirm an answer")
        if self.pending is None or session.is_answered():
            return False
        session.answers[session.current.id] = self.pending
        self.pending = None
        self._persist()
        return True

    def go_next(self) -> Optional[Attempt]:
        """Advance; on the last question this finishes the quiz."""

        session = self._active_session("move to the next question")
        if session.is_last:
            return self.finish_quiz()
        session.current_index += 1
        self.pending = None
        self._persist()
        return None

    def go_prev(self) -> None:
        session = self._active_session("move to the previous question")
        if session.current_index > 0:
            session.current_index -= 1
        self.pending = None
        self._persist()

    def jump_to(self, index: int) -> None:
        session = self._active_session("jump to a question")
        if not 0 <= index < session.total:
            raise InputError(
                f"Question number must be between 1 and {session.total}."
            )
        session.current_index = index
        self.pending = None
        self._persist()

    def finish_quiz(self) -> Attempt:
        """Score the session, record an Attempt and enter ``RESULTS``."""

        session = self._active_session("finish the quiz")
        attempt = Attempt(
            id=f"attempt-{uuid.uuid4().hex[:12]}",
            timestamp=self._clock().isoformat(),
            score=session.score(),
            total=session.total,
        )
        self.ledger.append(attempt)
        session.finished = True
        self.pending = None
        self.mode = AppMode.RESULTS
        self._persist()
        return attempt

    def retake(self, mode: RetakeMode | str = RetakeMode.ALL) -> SessionState:
        """Start a brand-new session over a filtered question subset.

        :class:`~doc_quizzer.quizzer.errors.EmptyFilterResult` leaves the
        current screen and session untouched.
        """

        if self.mode is not AppMode.RESULTS and not (
            self.mode is AppMode.UPLOAD and self.has_quiz
        ):
            raise InvalidTransition(
                f"Cannot start a new session while in {self.mode.value}."
            )
        previous = self.session.answers if self.session else {}
        selected = filter_questions(
            self.store.questions,
            previous,
            mode,
            threshold=self.low_confidence_threshold,
        )
        session = self._start_session(selected)
        self._logger.info(
            "Retake started",
            extra={"mode": RetakeMode(mode).value, "count": session.total},
        )
        self._persist()
        return session

    def start_fresh(self) -> SessionState:
        return self.retake(RetakeMode.ALL)

    # -- side excursions -------------------------------------------------

    def open_admin(self) -> None:
        if not self.has_quiz:
            raise InvalidTransition("There is no quiz to edit.")
        self._enter_excursion(AppMode.ADMIN)

    def open_progress(self) -> None:
        self._enter_excursion(AppMode.PROGRESS)

    def close_excursion(self) -> None:
        if self.mode not in _EXCURSIONS:
            return
        self.mode = self._return_mode or AppMode.UPLOAD
        self._return_mode = None

    # -- correction workflow --------------------------------------------

    def apply_edit(
        self, question_id: str, changes: Mapping[str, Any]
    ) -> QuestionRecord:
        """Merge ``changes`` into the quiz and any live session view.

        Past attempts are never rescored.
        """

        if self.mode is AppMode.EXTRACTING:
            raise InvalidTransition("Cannot edit questions while extracting.")
        updated = self.store.apply_edit(question_id, changes)
        if self.session is not None and self.session.replace_record(updated):
            current = self.session.current
            stale_pending = self.pending not in updated.options
            if current.id == updated.id and stale_pending:
                self.pending = None
        self._logger.info(
            "Question edited",
            extra={"question_id": question_id, "fields": sorted(changes)},
        )
        self._persist()
        return updated

    def rename(self, title: str) -> None:
        self.store.rename(title)
        self._persist()

    def reset_all(self) -> None:
        """Drop the quiz, the session and the whole attempt history."""

        self._generation += 1
        self.ledger.clear()
        self.store.clear()
        self.session = None
        self.pending = None
        self.error = None
        self.progress = IDLE_PROGRESS
        self._return_mode = None
        self.mode = AppMode.UPLOAD
        self._logger.info("All quiz data reset")
        self.persistence.clear(QUIZ_SLOT)

    def export_quiz(self, directory: Path) -> Path:
        if self.store.meta is None or not self.has_quiz:
            raise InputError("There is no quiz to export.")
        return write_export(self.store.meta, directory)

    # -- internals -------------------------------------------------------

    def _start_session(
        self, questions: Sequence[QuestionRecord]
    ) -> SessionState:
        self.session = SessionState.fresh(questions)
        self.pending = None
        self._return_mode = None
        self.mode = AppMode.QUIZ
        return self.session

    def _enter_excursion(self, target: AppMode) -> None:
        if self.mode is AppMode.EXTRACTING:
            raise InvalidTransition(
                f"Cannot open {target.value} while extracting."
            )
        if self.mode not in _EXCURSIONS:
            self._return_mode = self.mode
        self.mode = target

    def _require(self, *modes: AppMode, action: str) -> None:
        if self.mode not in modes:
            raise InvalidTransition(
                f"Cannot {action} while in {self.mode.value}."
            )

    def _active_session(self, action: str) -> SessionState:
        self._require(AppMode.QUIZ, action=action)
        if self.session is None or not self.session.questions:
            raise InvalidTransition(f"Cannot {action} without a session.")
        return self.session

    def _restore_quiz(self) -> None:
        try:
            payload = self.persistence.read(QUIZ_SLOT)
            if payload is None:
                return
            meta = quiz_from_payload(payload)
        except (PersistenceReadFailure, ValueError):
            self._logger.warning(
                "Discarding unreadable stored quiz", exc_info=True
            )
            return
        if not meta.questions:
            return
        self.store.replace(meta)
        self.session = SessionState.restore(
            meta.questions, payload.get("progress")
        )

    def _persist(self) -> None:
        meta = self.store.meta
        if meta is None or not meta.questions:
            self.persistence.clear(QUIZ_SLOT)
            return
        progress = (
            self.session.to_progress()
            if self.session is not None
            else SessionState.fresh(()).to_progress()
        )
        payload = meta.to_dict()
        payload["progress"] = progress
        self.persistence.write(QUIZ_SLOT, payload)
