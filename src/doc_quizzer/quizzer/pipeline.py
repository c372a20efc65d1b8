"""Document to quiz extraction run.

The run has two suspension points, the page-text read and the backend call,
both executed off the event loop with :func:`asyncio.to_thread`. Every
failure leaves this module as a :class:`PipelineFailure` that carries one
user-facing message; callers never see raw extraction errors.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from .errors import (
    BackendError,
    EmptyResponse,
    ExtractionFailure,
    InputError,
    MalformedOutput,
    QuizError,
    SchemaViolation,
)
from .manager.client import ExtractionClient
from .manager.request import ExtractionMode
from .models import QuizMeta
from .pages import Document


class PipelineStage(Enum):
    """Extraction stages in execution order."""

    READ = ("read", "Reading document contents", 30)
    ANALYZE = ("analyze", "Analyzing study material", 70)
    STRUCTURE = ("structure", "Structuring questions", 95)
    FINALIZE = ("finalize", "Finalizing quiz", 100)

    def __init__(self, key: str, label: str, percent: int) -> None:
        self.key = key
        self.label = label
        self.percent = percent


@dataclass(frozen=True)
class PipelineProgress:
    """Snapshot handed to progress callbacks after each completed stage."""

    percent: int
    completed: tuple[PipelineStage, ...] = ()

    @property
    def stage(self) -> Optional[PipelineStage]:
        return self.completed[-1] if self.completed else None


IDLE_PROGRESS = PipelineProgress(percent=0)

ProgressCallback = Callable[[PipelineProgress], None]


class PipelineFailure(QuizError):
    """An extraction run failed; ``message`` is safe to show to users."""

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        stage: Optional[PipelineStage] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.stage = stage


class PageTextSource(Protocol):
    def read(self, document: Document) -> str: ...


_MESSAGES: dict[type[QuizError], str] = {
    EmptyResponse: "The AI service returned an empty response. Please try "
    "again.",
    MalformedOutput: "The AI response could not be read. The document may be "
    "too large or unreadable; try a smaller or clearer file.",
    SchemaViolation: "The AI response was not in the expected quiz format. "
    "Please try again.",
}


def user_message(error: QuizError) -> str:
    """Translate a classified error into a single human-readable message."""

    for error_type, message in _MESSAGES.items():
        if isinstance(error, error_type):
            return message
    if isinstance(error, BackendError):
        return f"Could not reach the AI service. {error}"
    return str(error) or "Error converting the document."


class ExtractionPipeline:
    """Read a document, call the extraction backend, return a QuizMeta."""

    def __init__(
        self,
        source: PageTextSource,
        client: ExtractionClient,
        *,
        mode: ExtractionMode | str | None = None,
        min_text_chars: int = 50,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._source = source
        self._client = client
        self.mode = ExtractionMode.parse(mode) if mode else client.mode
        self.min_text_chars = min_text_chars
        self._logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        document: Document,
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> QuizMeta:
        completed: list[PipelineStage] = []

        def advance(stage: PipelineStage) -> None:
            completed.append(stage)
            self._logger.debug(
                "Extraction stage completed", extra={"stage": stage.key}
            )
            if on_progress is not None:
                on_progress(
                    PipelineProgress(stage.percent, tuple(completed))
                )

        current = PipelineStage.READ
        try:
            text = await asyncio.to_thread(self._source.read, document)
            if len(text.strip()) < self.min_text_chars:
                raise InputError(
                    "Could not read enough text from this document."
                )
            advance(PipelineStage.READ)

            current = PipelineStage.ANALYZE
            meta = await asyncio.to_thread(
                self._client.extract, text, mode=self.mode
            )
            if not meta.questions:
                raise InputError("No study material could be processed.")
            advance(PipelineStage.ANALYZE)
        except (ExtractionFailure, InputError) as exc:
            self._logger.warning(
                "Extraction failed",
                extra={
                    "kind": type(exc).__name__,
                    "stage": current.key,
                    "detail": str(exc),
                },
            )
            raise PipelineFailure(
                user_message(exc), kind=type(exc).__name__, stage=current
            ) from exc

        advance(PipelineStage.STRUCTURE)
        advance(PipelineStage.FINALIZE)
        self._logger.info(
            "Extraction finished",
            extra={"title": meta.title, "question_count": len(meta.questions)},
        )
        return meta
