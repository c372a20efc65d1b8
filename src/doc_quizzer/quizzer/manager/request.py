"""Build the instruction payload and output schema for quiz extraction."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping

from ..models import ANSWER_NOT_FOUND, EXPLANATION_NOT_FOUND
from ..pages import PAGE_MARKER

REQUIRED_QUESTION_FIELDS = (
    "question",
    "options",
    "correctAnswer",
    "explanation",
    "pageNumber",
    "confidence",
)
OPTION_COUNT = 4
SCHEMA_NAME = "quiz_extraction"


class ExtractionMode(str, Enum):
    """How strictly the backend must stick to questions already present."""

    STRICT = "strict"
    AUGMENTED = "augmented"

    @classmethod
    def parse(cls, value: "str | ExtractionMode") -> "ExtractionMode":
        try:
            return cls(str(getattr(value, "value", value)).strip().lower())
        except ValueError as exc:
            choices = ", ".join(mode.value for mode in cls)
            raise ValueError(
                f"Unknown extraction mode '{value}'. Choose one of: {choices}."
            ) from exc


@dataclass(frozen=True)
class ExtractionRequest:
    """Everything the backend needs for one schema-constrained call."""

    mode: ExtractionMode
    system_prompt: str
    user_prompt: str
    schema: Mapping[str, Any]

    def response_format(self) -> Dict[str, Any]:
        """Return the OpenAI ``response_format`` block for this request."""

        return {
            "type": "json_schema",
            "json_schema": {
                "name": SCHEMA_NAME,
                "schema": copy.deepcopy(dict(self.schema)),
            },
        }

    def messages(self) -> list[Dict[str, str]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": self.user_prompt},
        ]


def build_schema(mode: ExtractionMode) -> Dict[str, Any]:
    """Return the JSON schema describing ``{title, questions[]}``."""

    options: Dict[str, Any] = {"type": "array", "items": {"type": "string"}}
    if mode is ExtractionMode.AUGMENTED:
        options["minItems"] = OPTION_COUNT
        options["maxItems"] = OPTION_COUNT
    question = {
        "type": "object",
        "properties": {
            "question": {"type": "string"},
            "options": options,
            "correctAnswer": {"type": "string"},
            "explanation": {"type": "string"},
            "pageNumber": {"type": "number"},
            "confidence": {"type": "number"},
        },
        "required": list(REQUIRED_QUESTION_FIELDS),
    }
    return {
        "type": "object",
        "properties": {
            "title": {
                "type": "string",
                "description": "A concise title for the quiz.",
            },
            "questions": {"type": "array", "items": question},
        },
        "required": ["title", "questions"],
    }


def build_extraction_request(
    text: str, mode: "ExtractionMode | str" = ExtractionMode.STRICT
) -> ExtractionRequest:
    """Assemble prompts and schema for page-marked ``text``."""

    resolved = ExtractionMode.parse(mode)
    marker = PAGE_MARKER.format(number="X")
    if resolved is ExtractionMode.AUGMENTED:
        task = (
            "Extract ALL multiple choice questions from the text below. "
            "If the text contains too few questions, write additional ones "
            "that test concepts stated in the text. Every question must have "
            f"exactly {OPTION_COUNT} distinct options."
        )
    else:
        task = (
            "Identify and extract ALL multiple choice questions from the "
            "text below. Extract only questions that are present; do not "
            "write new ones."
        )
    rules = [
        "Copy the question text, every option, the correct answer and the "
        "explanation exactly as they appear in the text.",
        "If an answer key appears elsewhere (for example at the end), use it "
        "to determine the correct answers.",
        f'If no answer is given, set correctAnswer to "{ANSWER_NOT_FOUND}".',
        f'If no explanation is given, set explanation to '
        f'"{EXPLANATION_NOT_FOUND}".',
        "correctAnswer must repeat the text of one of the options.",
        f'Set pageNumber from the nearest preceding "{marker}" marker.',
        "Set confidence between 0 and 1 to reflect how clearly the question "
        "could be read from the text, not how sure you are of the answer.",
        "Add a short, descriptive title for the quiz.",
        'NEVER invent answers or explanations; use the "not found" strings '
        "above instead.",
    ]
    numbered = "\n".join(
        f"{idx}. {rule}" for idx, rule in enumerate(rules, start=1)
    )
    user_prompt = (
        f"{task}\n\nThe text was extracted from a PDF document.\n\n"
        f"RULES:\n{numbered}\n\nTEXT:\n{text}"
    )
    return ExtractionRequest(
        mode=resolved,
        system_prompt=(
            "You extract multiple-choice study questions from documents and "
            "reply with JSON only."
        ),
        user_prompt=user_prompt,
        schema=build_schema(resolved),
    )
