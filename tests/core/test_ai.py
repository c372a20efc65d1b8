from __future__ import annotations

import pytest

from doc_quizzer.core import ai


class _OpenAIRecorder:
    instances: list["_OpenAIRecorder"] = []

    def __init__(self, **kwargs):
        self.init_kwargs = kwargs
        _OpenAIRecorder.instances.append(self)


@pytest.fixture
def openai_factory(monkeypatch: pytest.MonkeyPatch):
    _OpenAIRecorder.instances = []
    monkeypatch.setattr(ai, "OpenAI", _OpenAIRecorder)
    monkeypatch.setattr(ai, "load_dotenv", lambda: False)
    return _OpenAIRecorder


def test_load_client_requires_api_key(
    monkeypatch: pytest.MonkeyPatch, openai_factory
) -> None:
    monkeypatch.delenv(ai.API_KEY_ENV, raising=False)

    with pytest.raises(RuntimeError) as exc:
        ai.load_client()

    assert "OPENAI_API_KEY" in str(exc.value)
    assert openai_factory.instances == []


def test_load_client_passes_key_and_overrides(
    monkeypatch: pytest.MonkeyPatch, openai_factory
) -> None:
    monkeypatch.setenv(ai.API_KEY_ENV, "test-key")

    client = ai.load_client(base_url="http://localhost:9999/v1", timeout=30)

    assert client is openai_factory.instances[-1]
    assert client.init_kwargs == {
        "api_key": "test-key",
        "base_url": "http://localhost:9999/v1",
        "timeout": 30,
    }


def test_load_client_omits_unset_options(
    monkeypatch: pytest.MonkeyPatch, openai_factory
) -> None:
    monkeypatch.setenv(ai.API_KEY_ENV, "test-key")

    client = ai.load_client()

    assert client.init_kwargs == {"api_key": "test-key"}
