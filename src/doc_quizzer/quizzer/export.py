"""Standalone ``{title, questions}`` JSON export and re-import."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Mapping

from .errors import InputError
from .models import NEW_QUIZ_TITLE, QuestionRecord, QuizMeta

_WHITESPACE = re.compile(r"\s+")


def dumps_export(meta: QuizMeta) -> str:
    return json.dumps(meta.to_dict(), indent=2, ensure_ascii=False)


def export_filename(title: str) -> str:
    stem = _WHITESPACE.sub("_", (title or "").strip()) or "quiz"
    return f"{stem.replace('/', '_')}_quiz.json"


def write_export(meta: QuizMeta, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / export_filename(meta.title)
    target.write_text(dumps_export(meta) + "\n", encoding="utf-8")
    return target


def quiz_from_payload(
    payload: Mapping[str, Any], *, default_title: str = NEW_QUIZ_TITLE
) -> QuizMeta:
    """Rebuild a QuizMeta from exported or persisted data.

    Stored ids are kept. Raises ``ValueError`` when the structure is invalid.
    """

    if not isinstance(payload, Mapping):
        raise ValueError("quiz data must be a JSON object")
    raw_questions = payload.get("questions")
    if not isinstance(raw_questions, list):
        raise ValueError("quiz data has no 'questions' list")
    title = payload.get("title")
    return QuizMeta(
        title=title.strip() if isinstance(title, str) and title.strip()
        else default_title,
        questions=tuple(
            QuestionRecord.from_dict(item) for item in raw_questions
        ),
    )


def load_export(text: str) -> QuizMeta:
    """Parse an exported document; raises :class:`InputError`."""

    try:
        meta = quiz_from_payload(json.loads(text))
    except (json.JSONDecodeError, ValueError) as exc:
        raise InputError(f"Not a valid quiz export: {exc}") from exc
    if not meta.questions:
        raise InputError("The quiz export contains no questions.")
    return meta
