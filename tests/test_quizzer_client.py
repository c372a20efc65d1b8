from __future__ import annotations

import json

import openai
import pytest

from doc_quizzer.quizzer.errors import (
    BackendError,
    EmptyResponse,
    MalformedOutput,
    SchemaViolation,
)
from doc_quizzer.quizzer.manager import (
    ExtractionClient,
    ExtractionMode,
    normalize_payload,
    record_problems,
)
from doc_quizzer.quizzer.models import ANSWER_NOT_FOUND, EXPLANATION_NOT_FOUND
from doc_quizzer.quizzer.pages import format_pages

from fixtures import OpenAIStub, make_record, reply_json

SOURCE = format_pages(
    [
        "Intro text",
        "1. Which organelle produces ATP?\nA) Mitochondria B) Nucleus",
    ]
)


def _question(**overrides):
    item = {
        "question": "Which organelle produces ATP?",
        "options": ["Mitochondria", "Nucleus", "Ribosome", "Golgi"],
        "correctAnswer": "Mitochondria",
        "explanation": "Cellular respiration.",
        "pageNumber": 2,
        "confidence": 0.9,
    }
    item.update(overrides)
    return item


def _client(stub: OpenAIStub, **kwargs) -> ExtractionClient:
    counter = iter(range(1000))
    kwargs.setdefault("id_factory", lambda index: f"id-{next(counter)}")
    return ExtractionClient(stub, model="test-model", **kwargs)


def test_normalize_payload_strips_fences() -> None:
    assert normalize_payload('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert normalize_payload("  ```\n[]\n```  ") == "[]"
    assert normalize_payload(' {"b": 2} ') == '{"b": 2}'
    assert normalize_payload("") == ""


def test_extract_parses_fenced_reply(openai_stub: OpenAIStub) -> None:
    openai_stub.queue_response(
        "```json\n" + reply_json([_question()], title="Cells") + "\n```"
    )

    meta = _client(openai_stub).extract(SOURCE)

    assert meta.title == "Cells"
    assert len(meta.questions) == 1
    record = meta.questions[0]
    assert record.correct_answer == "Mitochondria"
    assert record.page_number == 2
    assert record.confidence == pytest.approx(0.9)
    call = openai_stub.calls[0]
    assert call["model"] == "test-model"
    assert call["max_tokens"] == 8000
    assert call["response_format"]["type"] == "json_schema"
    assert call["messages"][1]["content"].endswith(SOURCE)


def test_extract_preserves_length_and_assigns_unique_ids(
    openai_stub: OpenAIStub,
) -> None:
    items = [_question(question=f"Question {idx}?") for idx in range(6)]
    openai_stub.queue_response(reply_json(items))

    meta = ExtractionClient(openai_stub).extract(SOURCE)

    assert len(meta.questions) == 6
    assert len({record.id for record in meta.questions}) == 6


def test_extract_defaults_title(openai_stub: OpenAIStub) -> None:
    openai_stub.queue_response(json.dumps({"questions": [_question()]}))

    meta = _client(openai_stub).extract(SOURCE)

    assert meta.title == "Untitled Quiz"


@pytest.mark.parametrize("content", ["", "   ", None])
def test_blank_reply_is_empty_response(openai_stub, content) -> None:
    openai_stub.queue_response(content)

    with pytest.raises(EmptyResponse):
        _client(openai_stub).extract(SOURCE)


def test_unparseable_reply_is_malformed_output(openai_stub) -> None:
    openai_stub.queue_response('{"questions": [')

    with pytest.raises(MalformedOutput):
        _client(openai_stub).extract(SOURCE)


@pytest.mark.parametrize(
    "content", ["{}", '{"questions": "many"}', "[1, 2]", '"text"']
)
def test_wrong_shape_is_schema_violation(openai_stub, content) -> None:
    openai_stub.queue_response(content)

    with pytest.raises(SchemaViolation):
        _client(openai_stub).extract(SOURCE)


def test_backend_errors_are_classified() -> None:
    def boom(_kwargs):
        raise openai.OpenAIError("connection reset")

    stub = OpenAIStub(side_effect=boom)

    with pytest.raises(BackendError, match="connection reset"):
        _client(stub).extract(SOURCE)


def test_missing_fields_fall_back_to_sentinels(openai_stub) -> None:
    item = _question()
    del item["correctAnswer"]
    item["explanation"] = "  "
    openai_stub.queue_response(reply_json([item]))

    record = _client(openai_stub).extract(SOURCE).questions[0]

    assert record.correct_answer == ANSWER_NOT_FOUND
    assert record.explanation == EXPLANATION_NOT_FOUND
    # missing key violates the contract, so the record is flagged
    assert record.confidence == 0.0


@pytest.mark.parametrize("page", [None, "abc", 0, -3, True])
def test_unusable_page_numbers_are_back_filled(openai_stub, page) -> None:
    openai_stub.queue_response(reply_json([_question(pageNumber=page)]))

    record = _client(openai_stub).extract(SOURCE).questions[0]

    assert record.page_number == 2


def test_page_defaults_to_one_when_question_not_found(openai_stub) -> None:
    openai_stub.queue_response(
        reply_json([_question(question="Unrelated?", pageNumber=None)])
    )

    record = _client(openai_stub).extract(SOURCE).questions[0]

    assert record.page_number == 1


def test_low_quality_records_are_kept_with_zero_confidence(
    openai_stub,
) -> None:
    items = [
        _question(correctAnswer="Chloroplast"),
        _question(question="", options=["only"]),
        "not an object",
        _question(),
    ]
    openai_stub.queue_response(reply_json(items))

    meta = _client(openai_stub).extract(SOURCE)

    assert [q.confidence for q in meta.questions] == [0.0, 0.0, 0.0, 0.9]


def test_augmented_mode_requires_four_options(openai_stub) -> None:
    openai_stub.queue_response(
        reply_json([_question(options=["Mitochondria", "Nucleus"])])
    )

    meta = _client(openai_stub, mode=ExtractionMode.AUGMENTED).extract(
        SOURCE
    )

    assert meta.questions[0].confidence == 0.0


def test_record_problems_reports_each_violation() -> None:
    record = make_record(
        1, question=" ", options=("a", "a"), correct_answer="z"
    )

    problems = record_problems(record, ExtractionMode.STRICT, raw={})

    assert any("missing field" in p for p in problems)
    assert "question text is blank" in problems
    assert "options are not distinct" in problems
    assert "correctAnswer does not match any option" in problems
    assert record_problems(make_record(1), ExtractionMode.AUGMENTED, {
        key: None for key in (
            "question", "options", "correctAnswer", "explanation",
            "pageNumber", "confidence",
        )
    }) == []
