"""Builders for quiz records and fakes for the extraction boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from doc_quizzer.quizzer.models import QuestionRecord, QuizMeta
from doc_quizzer.quizzer.pages import format_pages


def make_record(index: int = 1, **overrides: Any) -> QuestionRecord:
    values = {
        "id": f"q{index}",
        "question": f"Question {index}?",
        "options": ("A1", "B1", "C1", "D1"),
        "correct_answer": "A1",
        "explanation": f"Because {index}.",
        "page_number": 1,
        "confidence": 0.95,
    }
    values.update(overrides)
    values["options"] = tuple(values["options"])
    return QuestionRecord(**values)


def make_meta(count: int = 3, title: str = "Biology") -> QuizMeta:
    return QuizMeta(
        title=title,
        questions=tuple(make_record(idx) for idx in range(1, count + 1)),
    )


@dataclass
class FakePageSource:
    """PageTextSource returning canned pages and recording documents."""

    pages: List[str] = field(
        default_factory=lambda: [
            "1. What is the powerhouse of the cell?\n"
            "A) Mitochondria B) Nucleus C) Ribosome D) Golgi",
            "Answer key: 1-A",
        ]
    )
    error: Optional[Exception] = None
    documents: List[Any] = field(default_factory=list)

    def read(self, document: Any) -> str:
        self.documents.append(document)
        if self.error is not None:
            raise self.error
        return format_pages(self.pages)


@dataclass
class StaticExtractionClient:
    """ExtractionClient double that returns ``meta`` or raises ``error``."""

    meta: Optional[QuizMeta] = None
    error: Optional[Exception] = None
    mode: str = "strict"
    texts: List[str] = field(default_factory=list)

    def extract(self, text: str, *, mode: Any = None) -> QuizMeta:
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        assert self.meta is not None
        return self.meta


def write_pdf_placeholder(directory: Path, name: str = "notes.pdf") -> Path:
    """Create a file with a .pdf suffix; content is never parsed."""

    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"%PDF-1.4\n%placeholder\n")
    return path
