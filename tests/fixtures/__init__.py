"""Shared testing fixtures and fakes for the doc-quizzer test suite."""

from .openai import OpenAIStub, reply_json  # noqa: F401
from .quiz import (  # noqa: F401
    FakePageSource,
    StaticExtractionClient,
    make_meta,
    make_record,
    write_pdf_placeholder,
)

__all__ = [
    "FakePageSource",
    "OpenAIStub",
    "StaticExtractionClient",
    "make_meta",
    "make_record",
    "reply_json",
    "write_pdf_placeholder",
]
