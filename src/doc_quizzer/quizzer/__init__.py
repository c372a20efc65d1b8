from ._main import build_arg_parser
from .engine import AppMode, SessionEngine, SessionState
from .errors import (
    BackendError,
    EmptyFilterResult,
    EmptyResponse,
    ExtractionFailure,
    InputError,
    InvalidTransition,
    MalformedOutput,
    PersistenceReadFailure,
    QuizError,
    SchemaViolation,
)
from .export import load_export, write_export
from .history import HistoryLedger
from .manager import ExtractionClient, ExtractionMode, build_extraction_request
from .models import (
    ANSWER_NOT_FOUND,
    EXPLANATION_NOT_FOUND,
    Attempt,
    QuestionRecord,
    QuizMeta,
)
from .pages import PdfPageSource
from .pipeline import ExtractionPipeline, PipelineFailure, PipelineStage
from .retake import RetakeMode, filter_questions
from .session import QuizSessionResult, parse_session_command, run_quiz_session
from .storage import PersistenceAdapter
from .store import QuizStore
from .view.quiz import QuestionView, QuizApp

__all__ = [
    "build_arg_parser",
    "AppMode",
    "SessionEngine",
    "SessionState",
    "QuizError",
    "InputError",
    "EmptyFilterResult",
    "InvalidTransition",
    "ExtractionFailure",
    "EmptyResponse",
    "MalformedOutput",
    "SchemaViolation",
    "BackendError",
    "PersistenceReadFailure",
    "load_export",
    "write_export",
    "HistoryLedger",
    "ExtractionClient",
    "ExtractionMode",
    "build_extraction_request",
    "ANSWER_NOT_FOUND",
    "EXPLANATION_NOT_FOUND",
    "Attempt",
    "QuestionRecord",
    "QuizMeta",
    "PdfPageSource",
    "ExtractionPipeline",
    "PipelineFailure",
    "PipelineStage",
    "RetakeMode",
    "filter_questions",
    "QuizSessionResult",
    "parse_session_command",
    "run_quiz_session",
    "PersistenceAdapter",
    "QuizStore",
    "QuizApp",
    "QuestionView",
]
