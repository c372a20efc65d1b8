"""Holder of the single active QuizMeta."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .errors import InputError
from .models import NEW_QUIZ_TITLE, QuestionRecord, QuizMeta


class QuizStore:
    """Owns the active question set and its edits.

    Persistence of the quiz slot is driven by the session engine because the
    slot also carries session progress.
    """

    def __init__(self, meta: Optional[QuizMeta] = None) -> None:
        self._meta = meta

    @property
    def meta(self) -> Optional[QuizMeta]:
        return self._meta

    @property
    def has_quiz(self) -> bool:
        return self._meta is not None and bool(self._meta.questions)

    @property
    def title(self) -> str:
        return self._meta.title if self._meta else NEW_QUIZ_TITLE

    @property
    def questions(self) -> tuple[QuestionRecord, ...]:
        return self._meta.questions if self._meta else ()

    def replace(self, meta: QuizMeta) -> None:
        self._meta = meta

    def clear(self) -> None:
        self._meta = None

    def rename(self, title: str) -> None:
        cleaned = (title or "").strip()
        if not cleaned:
            raise InputError("Quiz title cannot be blank.")
        if self._meta is None:
            raise InputError("There is no quiz to rename.")
        self._meta = QuizMeta(title=cleaned, questions=self._meta.questions)

    def apply_edit(
        self, question_id: str, changes: Mapping[str, Any]
    ) -> QuestionRecord:
        """Merge ``changes`` into the record ``question_id`` and return it."""

        current = self._meta.get(question_id) if self._meta else None
        if self._meta is None or current is None:
            raise InputError(f"Unknown question id: {question_id}")
        try:
            updated = current.with_changes(**dict(changes))
        except (TypeError, ValueError) as exc:
            raise InputError(str(exc)) from exc
        known = updated.answer_known
        if known and updated.correct_answer not in updated.options:
            raise InputError(
                f"Correct answer {updated.correct_answer!r} is not one of the "
                f"options for {question_id}."
            )
        self._meta = QuizMeta(
            title=self._meta.title,
            questions=tuple(
                updated if record.id == question_id else record
                for record in self._meta.questions
            ),
        )
        return updated
