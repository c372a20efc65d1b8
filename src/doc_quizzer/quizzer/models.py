"""Domain records shared by extraction, sessions, persistence and export.

Records are immutable; edits produce new instances through
:meth:`QuestionRecord.with_changes`. The ``to_dict``/``from_dict`` pairs use
the camelCase wire names that persistence and export files carry.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Mapping, MutableMapping

ANSWER_NOT_FOUND = "Answer not found in PDF"
EXPLANATION_NOT_FOUND = "Explanation not found in PDF"
DEFAULT_TITLE = "Untitled Quiz"
NEW_QUIZ_TITLE = "New Quiz"

EDITABLE_FIELDS = frozenset(
    {
        "question",
        "options",
        "correct_answer",
        "explanation",
        "page_number",
        "confidence",
    }
)


@dataclass(frozen=True)
class QuestionRecord:
    """One multiple-choice item with grading and provenance metadata."""

    id: str
    question: str
    options: tuple[str, ...]
    correct_answer: str
    explanation: str
    page_number: int
    confidence: float

    @property
    def answer_known(self) -> bool:
        return self.correct_answer != ANSWER_NOT_FOUND

    def is_correct(self, answer: str | None) -> bool:
        return answer is not None and answer == self.correct_answer

    def with_changes(self, **changes: Any) -> "QuestionRecord":
        """Return a copy with ``changes`` merged in; ``id`` never changes."""

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(
                "Cannot edit field(s): {0}".format(", ".join(sorted(unknown)))
            )
        if "options" in changes:
            changes["options"] = tuple(str(opt) for opt in changes["options"])
        if "page_number" in changes:
            try:
                page = int(changes["page_number"])
            except (TypeError, OverflowError) as exc:
                raise ValueError("page_number must be an integer") from exc
            if page < 1:
                raise ValueError("page_number must be >= 1")
            changes["page_number"] = page
        if "confidence" in changes:
            changes["confidence"] = clamp_confidence(changes["confidence"])
        for text_field in ("question", "correct_answer", "explanation"):
            if text_field in changes:
                changes[text_field] = str(changes[text_field])
        return replace(self, **changes)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
            "pageNumber": self.page_number,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "QuestionRecord":
        """Rebuild a stored or exported record; raises ``ValueError``."""

        if not isinstance(payload, Mapping):
            raise ValueError("question entry must be an object")
        identifier = payload.get("id")
        if not isinstance(identifier, str) or not identifier:
            raise ValueError("question entry is missing its id")
        options = payload.get("options")
        if not isinstance(options, list):
            raise ValueError(f"question {identifier} has no options list")
        try:
            page = int(payload.get("pageNumber", 1))
            confidence = float(payload.get("confidence", 0.0))
        except (TypeError, ValueError, OverflowError) as exc:
            raise ValueError(
                f"question {identifier} has non-numeric metadata"
            ) from exc
        return cls(
            id=identifier,
            question=str(payload.get("question", "")),
            options=tuple(str(opt) for opt in options),
            correct_answer=str(
                payload.get("correctAnswer", ANSWER_NOT_FOUND)
            ),
            explanation=str(
                payload.get("explanation", EXPLANATION_NOT_FOUND)
            ),
            page_number=max(1, page),
            confidence=clamp_confidence(confidence),
        )


@dataclass(frozen=True)
class QuizMeta:
    """Titled, ordered master set of questions from one extraction run."""

    title: str
    questions: tuple[QuestionRecord, ...] = ()

    def __post_init__(self) -> None:
        ids = [record.id for record in self.questions]
        if len(set(ids)) != len(ids):
            raise ValueError("question ids must be unique within a quiz")

    def get(self, question_id: str) -> QuestionRecord | None:
        for record in self.questions:
            if record.id == question_id:
                return record
        return None

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "title": self.title,
            "questions": [record.to_dict() for record in self.questions],
        }


@dataclass(frozen=True)
class Attempt:
    """Immutable score summary of one finished session."""

    id: str
    timestamp: str
    score: int
    total: int

    def __post_init__(self) -> None:
        if self.score < 0 or self.total < self.score:
            raise ValueError("attempt requires 0 <= score <= total")

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return self.score / self.total * 100

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "score": self.score,
            "total": self.total,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Attempt":
        if not isinstance(payload, Mapping):
            raise ValueError("attempt entry must be an object")
        try:
            return cls(
                id=str(payload["id"]),
                timestamp=str(payload["timestamp"]),
                score=int(payload["score"]),
                total=int(payload["total"]),
            )
        except KeyError as exc:
            raise ValueError(f"attempt entry missing field: {exc}") from exc
        except (TypeError, OverflowError) as exc:
            raise ValueError(f"attempt entry has a bad count: {exc}") from exc


def clamp_confidence(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return min(1.0, max(0.0, number))
