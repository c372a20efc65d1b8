"""Page-delimited document text.

The extraction prompt and page-number back-fill rely on every page being
introduced by a ``--- PAGE N ---`` marker line, pages in ascending order and
separated by a blank line.
"""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Sequence, Union

import pdfplumber
from pdfplumber.utils.exceptions import PdfminerException

from .errors import InputError

PAGE_MARKER = "--- PAGE {number} ---"
PAGE_MARKER_RE = re.compile(r"^--- PAGE (\d+) ---$", re.MULTILINE)
SUPPORTED_SUFFIXES = frozenset({".pdf"})

Document = Union[Path, bytes]
PageReader = Callable[[Document], list[str]]


def format_pages(pages: Iterable[str]) -> str:
    """Join page texts with 1-based markers and blank separators."""

    blocks = [
        PAGE_MARKER.format(number=number) + "\n" + (text or "").strip()
        for number, text in enumerate(pages, start=1)
    ]
    return "\n\n".join(blocks) + ("\n" if blocks else "")


def split_pages(text: str) -> list[tuple[int, str]]:
    """Return ``(page_number, page_text)`` pairs found in marked ``text``."""

    matches = list(PAGE_MARKER_RE.finditer(text or ""))
    pages: list[tuple[int, str]] = []
    for idx, match in enumerate(matches):
        end = matches[idx + 1].start() if idx + 1 < len(matches) else len(text)
        pages.append((int(match.group(1)), text[match.end() : end].strip()))
    return pages


def locate_page(text: str, snippet: str) -> int | None:
    """Return the page whose text contains ``snippet`` (whitespace-folded)."""

    needle = _fold(snippet)
    if not needle:
        return None
    for number, body in split_pages(text):
        if needle in _fold(body):
            return number
    return None


def validate_documents(documents: Sequence[Path]) -> Path:
    """Return the single PDF in ``documents`` or raise :class:`InputError`."""

    if len(documents) != 1:
        raise InputError("Please provide exactly one PDF document.")
    document = Path(documents[0])
    if document.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise InputError("Please provide a valid PDF file.")
    if not document.is_file():
        raise InputError(f"Document not found: {document}")
    return document


@dataclass(frozen=True)
class PdfPageSource:
    """Read a PDF into page-marked plain text using pdfplumber."""

    reader: PageReader | None = None

    def read(self, document: Document) -> str:
        reader = self.reader or _read_pdf_pages
        try:
            pages = reader(document)
        except (OSError, ValueError, PdfminerException) as exc:
            raise InputError(f"Could not read the document: {exc}") from exc
        return format_pages(pages)


def _read_pdf_pages(document: Document) -> list[str]:
    source = io.BytesIO(document) if isinstance(document, bytes) else document
    with pdfplumber.open(source) as pdf:
        return [page.extract_text() or "" for page in pdf.pages]


def _fold(value: str) -> str:
    return " ".join((value or "").split()).lower()
