from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

ROOT = TESTS_DIR.parent
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from fixtures import (  # noqa: E402
    FakePageSource,
    OpenAIStub,
    make_meta,
    make_record,
)
from doc_quizzer.quizzer.storage import PersistenceAdapter  # noqa: E402


@pytest.fixture
def openai_stub() -> OpenAIStub:
    """Chat-completions fake that records calls and replays queued replies."""

    return OpenAIStub()


@pytest.fixture
def persistence(tmp_path: Path) -> PersistenceAdapter:
    return PersistenceAdapter(tmp_path / "state")


@pytest.fixture
def sample_meta():
    return make_meta(5)


@pytest.fixture
def page_source() -> FakePageSource:
    return FakePageSource()


@pytest.fixture
def workspace_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv("DOC_QUIZZER_HOME", str(home))
    monkeypatch.delenv("DOC_QUIZZER_CONFIG", raising=False)
    return home


@pytest.fixture(autouse=True)
def _detach_quizzer_handlers() -> Iterator[None]:
    yield
    logger = logging.getLogger("doc_quizzer.quizzer")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
