from __future__ import annotations

import asyncio

import pytest

from doc_quizzer.quizzer.errors import (
    BackendError,
    InputError,
    MalformedOutput,
    SchemaViolation,
)
from doc_quizzer.quizzer.models import QuizMeta
from doc_quizzer.quizzer.pipeline import (
    ExtractionPipeline,
    PipelineFailure,
    PipelineStage,
    user_message,
)

from fixtures import FakePageSource, StaticExtractionClient, make_meta


def _run(pipeline: ExtractionPipeline, progress=None):
    return asyncio.run(pipeline.run(b"%PDF", on_progress=progress))


def test_successful_run_reports_every_stage(page_source) -> None:
    client = StaticExtractionClient(meta=make_meta(2))
    pipeline = ExtractionPipeline(page_source, client)
    seen = []

    meta = _run(pipeline, seen.append)

    assert meta == make_meta(2)
    assert [p.percent for p in seen] == [30, 70, 95, 100]
    assert seen[-1].stage is PipelineStage.FINALIZE
    assert seen[-1].completed == tuple(PipelineStage)
    assert client.texts[0].startswith("--- PAGE 1 ---")
    assert page_source.documents == [b"%PDF"]


def test_short_text_fails_before_the_backend_call() -> None:
    source = FakePageSource(pages=["tiny"])
    client = StaticExtractionClient(meta=make_meta(1))

    with pytest.raises(PipelineFailure) as excinfo:
        _run(ExtractionPipeline(source, client, min_text_chars=500))

    assert excinfo.value.kind == "InputError"
    assert excinfo.value.stage is PipelineStage.READ
    assert "enough text" in excinfo.value.message
    assert client.texts == []


def test_unreadable_document_becomes_pipeline_failure() -> None:
    source = FakePageSource(error=InputError("Could not read the document"))
    pipeline = ExtractionPipeline(source, StaticExtractionClient())

    with pytest.raises(PipelineFailure) as excinfo:
        _run(pipeline)

    assert excinfo.value.stage is PipelineStage.READ


def test_empty_question_list_is_reported(page_source) -> None:
    client = StaticExtractionClient(meta=QuizMeta("Empty"))

    with pytest.raises(PipelineFailure) as excinfo:
        _run(ExtractionPipeline(page_source, client))

    assert excinfo.value.message == "No study material could be processed."
    assert excinfo.value.stage is PipelineStage.ANALYZE


def test_malformed_output_message_hints_at_document_size(page_source):
    client = StaticExtractionClient(error=MalformedOutput("bad json"))

    with pytest.raises(PipelineFailure) as excinfo:
        _run(ExtractionPipeline(page_source, client))

    assert excinfo.value.kind == "MalformedOutput"
    assert "too large or unreadable" in excinfo.value.message


def test_user_message_variants() -> None:
    assert "expected quiz format" in user_message(SchemaViolation("x"))
    assert user_message(BackendError("timeout")).startswith(
        "Could not reach the AI service."
    )
    assert user_message(InputError("Plain message")) == "Plain message"


def test_stage_metadata_is_ordered() -> None:
    percents = [stage.percent for stage in PipelineStage]
    assert percents == sorted(percents)
    assert PipelineStage.READ.label == "Reading document contents"
