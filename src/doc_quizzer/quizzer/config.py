"""Configuration for the quizzer commands.

The TOML file groups the AI provider, extraction, session and logging
settings. Every key has a default so a missing default config file is valid;
unknown keys are rejected so typos surface early.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from doc_quizzer.core.config import (
    TomlConfigError,
    load_toml,
    merge_strict,
    write_toml_template,
)
from doc_quizzer.core.workspace import WorkspaceLayout

from .manager.request import ExtractionMode

CONFIG_PATH_ENV = "DOC_QUIZZER_CONFIG"
CONFIG_FILENAME = "quizzer.toml"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class OpenAIConfig:
    model: str
    temperature: float
    max_output_tokens: int
    request_timeout_seconds: int
    api_base: Optional[str]


@dataclass(frozen=True)
class ProvidersConfig:
    openai: OpenAIConfig


@dataclass(frozen=True)
class ExtractionConfig:
    mode: ExtractionMode
    min_text_chars: int


@dataclass(frozen=True)
class SessionConfig:
    low_confidence_threshold: float


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizzerConfig:
    providers: ProvidersConfig
    extraction: ExtractionConfig
    session: SessionConfig
    logging: LoggingConfig


def _require_int(value: Any, *, field: str, minimum: int) -> int:
    is_int = isinstance(value, int) and not isinstance(value, bool)
    if not is_int or value < minimum:
        kind = "positive" if minimum == 1 else "non-negative"
        raise ConfigError(f"'{field}' must be a {kind} integer.")
    return value


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not (min_value <= number <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _coerce_optional_string(value: Any, *, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string when set.")
    return value.strip()


def _require_table(tree: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    section = tree.get(key)
    if not isinstance(section, Mapping):
        raise ConfigError(f"{key} table must be a mapping.")
    return section


def _build_openai(section: Mapping[str, Any]) -> OpenAIConfig:
    return OpenAIConfig(
        model=_require_string(
            section.get("model"), field="providers.openai.model"
        ),
        temperature=_require_float_range(
            section.get("temperature"),
            field="providers.openai.temperature",
            min_value=0.0,
            max_value=2.0,
        ),
        max_output_tokens=_require_int(
            section.get("max_output_tokens"),
            field="providers.openai.max_output_tokens",
            minimum=1,
        ),
        request_timeout_seconds=_require_int(
            section.get("request_timeout_seconds"),
            field="providers.openai.request_timeout_seconds",
            minimum=1,
        ),
        api_base=_coerce_optional_string(
            section.get("api_base"), field="providers.openai.api_base"
        ),
    )


def _build_extraction(section: Mapping[str, Any]) -> ExtractionConfig:
    raw_mode = _require_string(section.get("mode"), field="extraction.mode")
    try:
        mode = ExtractionMode.parse(raw_mode)
    except ValueError as exc:
        raise ConfigError(
            "extraction.mode must be 'strict' or 'augmented'."
        ) from exc
    min_text_chars = _require_int(
        section.get("min_text_chars"),
        field="extraction.min_text_chars",
        minimum=0,
    )
    return ExtractionConfig(mode=mode, min_text_chars=min_text_chars)


def _build_session(section: Mapping[str, Any]) -> SessionConfig:
    threshold = _require_float_range(
        section.get("low_confidence_threshold"),
        field="session.low_confidence_threshold",
        min_value=0.0,
        max_value=1.0,
    )
    return SessionConfig(low_confidence_threshold=threshold)


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(
        section.get("level"), field="logging.level"
    ).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(
            "logging.level must be one of " + ", ".join(LOG_LEVELS) + "."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(tree: Mapping[str, Any]) -> QuizzerConfig:
    providers = _require_table(tree, "providers")
    openai_section = providers.get("openai")
    if not isinstance(openai_section, Mapping):
        raise ConfigError("providers.openai table is required.")
    return QuizzerConfig(
        providers=ProvidersConfig(openai=_build_openai(openai_section)),
        extraction=_build_extraction(_require_table(tree, "extraction")),
        session=_build_session(_require_table(tree, "session")),
        logging=_build_logging(_require_table(tree, "logging")),
    )


def resolve_config_path(
    layout: WorkspaceLayout,
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> tuple[Path, bool]:
    """Return the config path and whether it was requested explicitly."""

    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return explicit_path.expanduser().resolve(), True
    env_override = env_map.get(CONFIG_PATH_ENV)
    if env_override:
        return Path(env_override).expanduser().resolve(), True
    return layout.path_for("config") / CONFIG_FILENAME, False


def load_config(
    layout: WorkspaceLayout,
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> QuizzerConfig:
    """Load the TOML config, applying defaults and validation."""

    path, explicit = resolve_config_path(
        layout, explicit_path=explicit_path, env=env
    )
    tree = default_tree()
    if explicit or path.exists():
        try:
            toml_data = load_toml(path)
            merge_strict(tree, toml_data)
        except TomlConfigError as exc:
            raise ConfigError(str(exc)) from exc
    return _build_config(tree)


def default_tree() -> Dict[str, Any]:
    """Return a copy of the default configuration tree."""

    return copy.deepcopy(_DEFAULTS)


def config_template() -> str:
    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(
    path: Path, *, overwrite: bool = False, mode: int = 0o600
) -> Path:
    try:
        return write_toml_template(
            path, template=config_template(), overwrite=overwrite, mode=mode
        )
    except TomlConfigError as exc:
        raise ConfigError(str(exc)) from exc


_DEFAULTS: Dict[str, Any] = {
    "providers": {
        "openai": {
            "model": "gpt-4o-mini",
            "temperature": 0.2,
            "max_output_tokens": 8000,
            "request_timeout_seconds": 120,
            "api_base": None,
        },
    },
    "extraction": {
        "mode": "strict",
        "min_text_chars": 50,
    },
    "session": {
        "low_confidence_threshold": 0.8,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# doc-quizzer configuration

[providers.openai]
# Chat completion model used for question extraction
model = "gpt-4o-mini"
# Sampling temperature (0.0-2.0)
temperature = 0.2
max_output_tokens = 8000
request_timeout_seconds = 120
# Optional API base override
# api_base = "https://api.openai.com/v1"

[extraction]
# "strict" keeps options exactly as printed; "augmented" asks for exactly
# four options per question, synthesizing distractors when needed
mode = "strict"
# Documents with less readable text than this are rejected
min_text_chars = 50

[session]
# Questions below this extraction confidence (0-1) are offered for review
low_confidence_threshold = 0.8

[logging]
level = "INFO"
# Echo log records to stderr
verbose = false
"""
