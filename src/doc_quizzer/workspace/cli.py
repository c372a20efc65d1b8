"""``docquiz init``: create the workspace and report its directories."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from doc_quizzer.core.workspace import (
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docquiz init",
        description=(
            "Create the doc-quizzer workspace with its config, logs, state "
            "and exports directories."
        ),
    )
    parser.add_argument(
        "--path",
        type=Path,
        help="Workspace root (defaults to DOC_QUIZZER_HOME or ~/.doc-quizzer)",
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Print nothing on success"
    )
    return parser


def _status(layout: WorkspaceLayout, key: str) -> str:
    return "created" if layout.created.get(key) else "exists"


def render_layout(console: Console, layout: WorkspaceLayout) -> None:
    console.print(
        f"Workspace ready at {layout.home} ({_status(layout, 'home')})",
        soft_wrap=True,
        highlight=False,
        markup=False,
    )
    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column("Directory", style="bold")
    table.add_column("Path", overflow="fold")
    table.add_column("Status", style="dim")
    for name, directory in layout.items():
        table.add_row(name, str(directory), _status(layout, name))
    console.print(table)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(
        list(argv) if argv is not None else None
    )
    try:
        layout = ensure_workspace(path=args.path)
    except WorkspaceError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1
    if not args.quiet:
        render_layout(Console(), layout)
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
