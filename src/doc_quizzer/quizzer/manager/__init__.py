from .client import ExtractionClient, normalize_payload, record_problems
from .request import (
    ExtractionMode,
    ExtractionRequest,
    build_extraction_request,
    build_schema,
)

__all__ = [
    "ExtractionClient",
    "normalize_payload",
    "record_problems",
    "ExtractionMode",
    "ExtractionRequest",
    "build_extraction_request",
    "build_schema",
]
