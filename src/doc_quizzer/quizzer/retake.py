"""Question subsets for re-entering a session."""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Sequence

from .errors import EmptyFilterResult
from .models import QuestionRecord

LOW_CONFIDENCE_THRESHOLD = 0.8


class RetakeMode(str, Enum):
    ALL = "all"
    INCORRECT = "incorrect"
    LOW_CONFIDENCE = "low-confidence"


_EMPTY_MESSAGES = {
    RetakeMode.ALL: "There are no questions to retake.",
    RetakeMode.INCORRECT: "No missed questions to retry. Nice work!",
    RetakeMode.LOW_CONFIDENCE: "No low-confidence questions to review.",
}


def filter_questions(
    questions: Sequence[QuestionRecord],
    answers: Mapping[str, str],
    mode: RetakeMode | str,
    *,
    threshold: float = LOW_CONFIDENCE_THRESHOLD,
) -> list[QuestionRecord]:
    """Return the ordered subset of ``questions`` selected by ``mode``.

    - all: every question, unchanged order
    - incorrect: unanswered questions and wrong answers
    - low-confidence: extraction confidence below ``threshold``

    Raises :class:`EmptyFilterResult` instead of returning an empty list.
    """

    resolved = RetakeMode(mode)
    if resolved is RetakeMode.INCORRECT:
        selected = [
            q for q in questions if not q.is_correct(answers.get(q.id))
        ]
    elif resolved is RetakeMode.LOW_CONFIDENCE:
        selected = [q for q in questions if q.confidence < threshold]
    else:
        selected = list(questions)
    if not selected:
        raise EmptyFilterResult(_EMPTY_MESSAGES[resolved])
    return selected
