from __future__ import annotations

import json

import pytest

from doc_quizzer.quizzer.errors import InputError
from doc_quizzer.quizzer.export import (
    dumps_export,
    export_filename,
    load_export,
    quiz_from_payload,
    write_export,
)

from fixtures import make_meta


def test_export_filename_replaces_whitespace() -> None:
    assert export_filename("Cell  Biology\tbasics") == (
        "Cell_Biology_basics_quiz.json"
    )
    assert export_filename("  ") == "quiz_quiz.json"
    assert export_filename("a/b") == "a_b_quiz.json"


def test_write_export_and_reload(tmp_path) -> None:
    meta = make_meta(3, title="Cell Biology")

    target = write_export(meta, tmp_path / "exports")

    assert target.name == "Cell_Biology_quiz.json"
    text = target.read_text(encoding="utf-8")
    assert text.startswith('{\n  "title": "Cell Biology"')
    assert load_export(text) == meta


def test_dumps_export_shape() -> None:
    payload = json.loads(dumps_export(make_meta(1)))

    assert set(payload) == {"title", "questions"}
    assert payload["questions"][0]["correctAnswer"] == "A1"


def test_quiz_from_payload_defaults_title() -> None:
    payload = make_meta(1).to_dict()
    payload["title"] = " "

    assert quiz_from_payload(payload).title == "New Quiz"


@pytest.mark.parametrize(
    "text",
    ["not json", "[]", '{"title": "x"}', '{"questions": [{"id": 1}]}',
     '{"title": "x", "questions": []}'],
)
def test_load_export_rejects_bad_documents(text) -> None:
    with pytest.raises(InputError):
        load_export(text)


def test_load_export_rejects_overflowing_page_number() -> None:
    payload = make_meta(1).to_dict()
    text = json.dumps(payload).replace(
        '"pageNumber": 1', '"pageNumber": 1e999'
    )

    with pytest.raises(InputError, match="Not a valid quiz export"):
        load_export(text)
