"""``docquiz`` entry point.

``docquiz init`` bootstraps the workspace and ``docquiz quiz ...`` runs the
quizzer CLI. Quizzer subcommands are also accepted at the top level, so
``docquiz start`` behaves like ``docquiz quiz start``.
"""

from __future__ import annotations

import inspect
import sys
from dataclasses import dataclass
from importlib import import_module, metadata
from typing import Callable, Mapping, Optional, Sequence

DIST_NAME = "doc-quizzer"


@dataclass(frozen=True)
class CommandSpec:
    """A docquiz subcommand backed by a module-level ``main``."""

    name: str
    summary: str
    target: str
    is_tui: bool = False

    def run(self, argv: Sequence[str]) -> int:
        module_name, _, func_name = self.target.partition(":")
        func = getattr(import_module(module_name), func_name)
        return _invoke_main(func, f"docquiz {self.name}", argv)


COMMANDS: Mapping[str, CommandSpec] = {
    command.name: command
    for command in (
        CommandSpec(
            "init",
            "Bootstrap the doc-quizzer workspace.",
            "doc_quizzer.workspace.cli:main",
        ),
        CommandSpec(
            "quiz",
            "Extract, take and review quizzes built from PDFs.",
            "doc_quizzer.quizzer._main:main",
            is_tui=True,
        ),
    )
}

# Forwarded to ``quiz`` unchanged; keep in step with quizzer._main.
QUIZ_SHORTCUTS = frozenset(
    {
        "config",
        "extract",
        "import",
        "show",
        "start",
        "retake",
        "edit",
        "rename",
        "history",
        "export",
        "reset",
        "theme",
    }
)


def format_command_table() -> str:
    width = max(len(name) for name in COMMANDS)
    lines = ["Available commands:"]
    for command in COMMANDS.values():
        suffix = " (TUI)" if command.is_tui else ""
        name = command.name.ljust(width)
        lines.append(f"  {name}  {command.summary}{suffix}")
    lines.append("")
    lines.append(
        "Quiz shortcuts (same as `docquiz quiz <name>`): "
        + ", ".join(sorted(QUIZ_SHORTCUTS))
    )
    return "\n".join(lines)


def format_usage() -> str:
    return "\n".join(
        [
            "Usage: docquiz <command> [args...]",
            "Run `docquiz list` for commands or `docquiz help <name>` for "
            "details.",
            "",
            format_command_table(),
        ]
    )


def _out(text: str, *, err: bool = False) -> None:
    (sys.stderr if err else sys.stdout).write(text + "\n")


def _version() -> str:
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return "unknown"


def _unknown(name: str) -> int:
    _out(f"Unknown command '{name}'.", err=True)
    _out(format_command_table(), err=True)
    return 2


def _help(argv: Sequence[str]) -> int:
    if not argv:
        _out(format_usage())
        return 0
    command = COMMANDS.get(argv[0])
    if command is None:
        return _unknown(argv[0])
    _out(f"{command.name}: {command.summary}")
    _out(f"Run `docquiz {command.name} --help` for CLI-specific options.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        _out(format_usage())
        return 2

    head, tail = args[0], args[1:]
    if head in ("-h", "--help"):
        _out(format_usage())
        return 0
    if head in ("-V", "--version", "version"):
        _out(_version())
        return 0
    if head == "list":
        _out(format_command_table())
        return 0
    if head == "help":
        return _help(tail)
    if head in QUIZ_SHORTCUTS:
        return COMMANDS["quiz"].run(args)

    command = COMMANDS.get(head)
    if command is None:
        return _unknown(head)
    return command.run(tail)


def _invoke_main(
    func: Callable[..., object], prog_name: str, argv: Sequence[str]
) -> int:
    """Call ``func`` as if it were run as ``prog_name argv...``."""

    saved = sys.argv
    sys.argv = [prog_name, *argv]
    try:
        result = func(list(argv)) if _accepts_argv(func) else func()
    except SystemExit as exc:
        return _exit_code(exc)
    finally:
        sys.argv = saved
    if isinstance(result, int) and not isinstance(result, bool):
        return result
    return 0


def _accepts_argv(func: Callable[..., object]) -> bool:
    try:
        parameters = inspect.signature(func).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
        inspect.Parameter.VAR_POSITIONAL,
    )
    return any(param.kind in positional for param in parameters)


def _exit_code(exc: SystemExit) -> int:
    if exc.code is None:
        return 0
    if isinstance(exc.code, int):
        return exc.code
    _out(str(exc.code), err=True)
    return 1


if __name__ == "__main__":  # pragma: no cover - manual invocation guard
    raise SystemExit(main())
