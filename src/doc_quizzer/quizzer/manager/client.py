"""Schema-constrained extraction call and reply normalization.

The reply is untrusted: it is trimmed, unfenced, decoded and shape-checked
before anything enters the typed domain model. Individual records that miss
parts of the contract are kept (never silently dropped) but their confidence
is forced to zero so the low-confidence retake surfaces them.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Any, Callable, List, Mapping, Optional

from openai import OpenAIError

from ..errors import (
    BackendError,
    EmptyResponse,
    MalformedOutput,
    SchemaViolation,
)
from ..models import (
    ANSWER_NOT_FOUND,
    DEFAULT_TITLE,
    EXPLANATION_NOT_FOUND,
    QuestionRecord,
    QuizMeta,
    clamp_confidence,
)
from ..pages import locate_page
from .request import (
    OPTION_COUNT,
    REQUIRED_QUESTION_FIELDS,
    ExtractionMode,
    ExtractionRequest,
    build_extraction_request,
)

IdFactory = Callable[[int], str]

_OPENING_FENCE = re.compile(r"^```[\w-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?```\s*$")


def _default_id(index: int) -> str:
    return f"q-{index}-{uuid.uuid4().hex[:12]}"


def normalize_payload(content: str) -> str:
    """Trim ``content`` and strip a surrounding Markdown code fence."""

    cleaned = (content or "").strip()
    if cleaned.startswith("```"):
        cleaned = _OPENING_FENCE.sub("", cleaned, count=1)
        cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def record_problems(
    record: QuestionRecord,
    mode: ExtractionMode,
    raw: Optional[Mapping[str, Any]] = None,
) -> List[str]:
    """Return contract violations for ``record`` (empty when it is sound)."""

    problems: List[str] = []
    if raw is None:
        problems.append("entry is not an object")
    else:
        missing = [key for key in REQUIRED_QUESTION_FIELDS if key not in raw]
        if missing:
            problems.append("missing field(s): " + ", ".join(missing))
    if not record.question.strip():
        problems.append("question text is blank")
    count = len(record.options)
    if mode is ExtractionMode.AUGMENTED and count != OPTION_COUNT:
        problems.append(f"expected {OPTION_COUNT} options, found {count}")
    elif count < 2:
        problems.append(f"expected at least 2 options, found {count}")
    if len(set(record.options)) != count:
        problems.append("options are not distinct")
    if record.answer_known and record.correct_answer not in record.options:
        problems.append("correctAnswer does not match any option")
    return problems


class ExtractionClient:
    """Turn page-marked document text into a :class:`QuizMeta`.

    ``client`` is any object exposing ``chat.completions.create`` (the OpenAI
    SDK client in production). No retries happen here; callers decide.
    """

    def __init__(
        self,
        client: Any,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_tokens: int = 8000,
        mode: ExtractionMode = ExtractionMode.STRICT,
        id_factory: Optional[IdFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.mode = ExtractionMode.parse(mode)
        self._id_factory = id_factory or _default_id
        self._logger = logger or logging.getLogger(__name__)

    def extract(
        self, text: str, *, mode: "ExtractionMode | str | None" = None
    ) -> QuizMeta:
        request = build_extraction_request(text, mode or self.mode)
        content = self._complete(request)
        if not content.strip():
            raise EmptyResponse(
                "The extraction service returned an empty response."
            )
        data = self._decode(normalize_payload(content))
        raw_questions = data.get("questions")
        if not isinstance(raw_questions, list):
            raise SchemaViolation(
                "The extraction reply has no 'questions' list."
            )
        records = [
            self._build_record(index, raw, text, request.mode)
            for index, raw in enumerate(raw_questions)
        ]
        raw_title = data.get("title")
        title = raw_title.strip() if isinstance(raw_title, str) else ""
        self._logger.info(
            "Extraction reply parsed",
            extra={
                "question_count": len(records),
                "mode": request.mode.value,
            },
        )
        return QuizMeta(title=title or DEFAULT_TITLE, questions=tuple(records))

    def _complete(self, request: ExtractionRequest) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=request.messages(),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format=request.response_format(),
            )
        except OpenAIError as exc:
            raise BackendError(f"Extraction request failed: {exc}") from exc
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        return choices[0].message.content or ""

    def _decode(self, payload: str) -> Mapping[str, Any]:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise MalformedOutput(
                f"Failed to parse the extraction reply as JSON: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise SchemaViolation("The extraction reply is not a JSON object.")
        return data

    def _build_record(
        self,
        index: int,
        raw: Any,
        source_text: str,
        mode: ExtractionMode,
    ) -> QuestionRecord:
        fields: Mapping[str, Any] = raw if isinstance(raw, dict) else {}
        question = fields.get("question", raw if isinstance(raw, str) else "")
        question = str(question or "").strip()
        options = fields.get("options")
        record = QuestionRecord(
            id=self._id_factory(index),
            question=question,
            options=_options(options),
            correct_answer=_text_or(
                fields.get("correctAnswer"), ANSWER_NOT_FOUND
            ),
            explanation=_text_or(
                fields.get("explanation"), EXPLANATION_NOT_FOUND
            ),
            page_number=_page_number(
                fields.get("pageNumber"), question, source_text
            ),
            confidence=clamp_confidence(fields.get("confidence", 0.0)),
        )
        problems = record_problems(
            record, mode, fields if isinstance(raw, dict) else None
        )
        if problems:
            self._logger.warning(
                "Flagged extracted question as low quality",
                extra={"question_id": record.id, "problems": problems},
            )
            record = record.with_changes(confidence=0.0)
        return record


def _options(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(opt).strip() for opt in value)


def _text_or(value: Any, fallback: str) -> str:
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


def _page_number(value: Any, question: str, source_text: str) -> int:
    if not isinstance(value, bool):
        try:
            page = int(float(value))
        except (TypeError, ValueError, OverflowError):
            page = 0
        if page >= 1:
            return page
    return locate_page(source_text, question) or 1
