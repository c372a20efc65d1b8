import argparse
import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from ..core import (
    WorkspaceError,
    configure_logger,
    ensure_workspace,
    load_client,
)
from ..core.workspace import WorkspaceLayout
from . import config as config_mod
from .engine import AppMode, SessionEngine
from .errors import QuizError
from .export import load_export
from .manager import ExtractionClient, ExtractionMode
from .pages import PdfPageSource
from .pipeline import ExtractionPipeline, PipelineProgress
from .retake import RetakeMode
from .session import render_history, run_quiz_session
from .storage import PersistenceAdapter
from .view.quiz import QuizApp

LOGGER_NAME = "doc_quizzer.quizzer"
LOG_FILENAME = "quizzer.log"


@dataclass(frozen=True)
class _Context:
    layout: WorkspaceLayout
    config: config_mod.QuizzerConfig
    engine: SessionEngine


def _print_error(message: str) -> None:
    sys.stderr.write(message + "\n")


def _load_context(
    args: argparse.Namespace, *, with_pipeline: bool = False
) -> _Context:
    layout = ensure_workspace()
    explicit = Path(args.config) if getattr(args, "config", None) else None
    cfg = config_mod.load_config(layout, explicit_path=explicit)
    logger, _ = configure_logger(
        LOGGER_NAME,
        log_dir=layout.path_for("logs"),
        level=cfg.logging.level,
        verbose=cfg.logging.verbose,
        filename=LOG_FILENAME,
    )
    persistence = PersistenceAdapter(
        layout.path_for("state"), logger=logger.getChild("storage")
    )
    pipeline = _build_pipeline(cfg, args, logger) if with_pipeline else None
    engine = SessionEngine.restore(
        persistence,
        pipeline=pipeline,
        low_confidence_threshold=cfg.session.low_confidence_threshold,
        logger=logger.getChild("engine"),
    )
    return _Context(layout=layout, config=cfg, engine=engine)


def _build_pipeline(
    cfg: config_mod.QuizzerConfig, args: argparse.Namespace, logger: Any
) -> ExtractionPipeline:
    openai_cfg = cfg.providers.openai
    mode = ExtractionMode.parse(
        getattr(args, "mode", None) or cfg.extraction.mode
    )
    client = ExtractionClient(
        load_client(
            base_url=openai_cfg.api_base,
            timeout=openai_cfg.request_timeout_seconds,
        ),
        model=openai_cfg.model,
        temperature=openai_cfg.temperature,
        max_tokens=openai_cfg.max_output_tokens,
        mode=mode,
        logger=logger.getChild("client"),
    )
    return ExtractionPipeline(
        PdfPageSource(),
        client,
        min_text_chars=cfg.extraction.min_text_chars,
        logger=logger.getChild("pipeline"),
    )


def _console() -> Console:
    return Console()


def _run_session(engine: SessionEngine, *, tui: bool) -> int:
    if tui:
        QuizApp(engine).run()
        return 0
    console = _console()
    run_quiz_session(engine, console, lambda: input("> "))
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    layout = ensure_workspace()
    raw_path = getattr(args, "path", None) or args.config
    explicit = Path(raw_path) if raw_path else None
    path, _ = config_mod.resolve_config_path(layout, explicit_path=explicit)
    if args.config_command == "path":
        print(path)
        return 0
    written = config_mod.write_template(path, overwrite=args.overwrite)
    print(f"Wrote config template to {written}")
    return 0


def _cmd_extract(args: argparse.Namespace) -> int:
    ctx = _load_context(args, with_pipeline=True)
    console = _console()

    def report(progress: PipelineProgress) -> None:
        stage = progress.stage
        label = stage.label if stage is not None else "Starting"
        console.print(f"[dim]{progress.percent:>3}%[/] {label}")

    loaded = asyncio.run(
        ctx.engine.extract_document([Path(args.document)], on_progress=report)
    )
    if not loaded:
        _print_error(ctx.engine.error or "Extraction failed.")
        return 1
    console.print(
        f"Loaded [bold]{ctx.engine.store.title}[/] with "
        f"{len(ctx.engine.store.questions)} question(s)."
    )
    if args.start:
        return _run_session(ctx.engine, tui=args.tui)
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    text = Path(args.file).read_text(encoding="utf-8")
    ctx.engine.load_quiz(load_export(text))
    print(
        f"Imported {ctx.engine.store.title} with "
        f"{len(ctx.engine.store.questions)} question(s)."
    )
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    if not ctx.engine.has_quiz:
        _print_error("No quiz loaded. Run 'docquiz quiz extract <pdf>' first.")
        return 1
    threshold = ctx.engine.low_confidence_threshold
    table = Table(title=ctx.engine.store.title, box=box.SIMPLE, expand=True)
    table.add_column("#", justify="right")
    table.add_column("Id", style="dim")
    table.add_column("Question", overflow="fold")
    table.add_column("Page", justify="right")
    table.add_column("Confidence", justify="right")
    if args.answers:
        table.add_column("Answer", overflow="fold")
    for idx, question in enumerate(ctx.engine.store.questions, start=1):
        confidence = f"{question.confidence:.2f}"
        if question.confidence < threshold:
            confidence = f"[yellow]{confidence}[/]"
        row = [
            str(idx),
            question.id,
            question.question,
            str(question.page_number),
            confidence,
        ]
        if args.answers:
            row.append(question.correct_answer)
        table.add_row(*row)
    _console().print(table)
    return 0


def _cmd_start(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    engine = ctx.engine
    if not engine.has_quiz:
        _print_error("No quiz loaded. Run 'docquiz quiz extract <pdf>' first.")
        return 1
    if args.fresh:
        engine.start_fresh()
    else:
        engine.resume()
        if engine.mode is AppMode.RESULTS:
            print("The last session is finished; starting a fresh one.")
            engine.start_fresh()
    return _run_session(engine, tui=args.tui)


def _cmd_retake(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    if not ctx.engine.has_quiz:
        _print_error("No quiz loaded.")
        return 1
    ctx.engine.retake(RetakeMode(args.mode))
    return _run_session(ctx.engine, tui=args.tui)


def _edit_changes(args: argparse.Namespace) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    if args.question is not None:
        changes["question"] = args.question
    if args.option:
        changes["options"] = tuple(args.option)
    if args.answer is not None:
        changes["correct_answer"] = args.answer
    if args.explanation is not None:
        changes["explanation"] = args.explanation
    if args.page is not None:
        changes["page_number"] = args.page
    if args.confidence is not None:
        changes["confidence"] = args.confidence
    return changes


def _cmd_edit(args: argparse.Namespace) -> int:
    changes = _edit_changes(args)
    if not changes:
        _print_error("Nothing to change. Pass at least one field option.")
        return 2
    ctx = _load_context(args)
    ctx.engine.open_admin()
    updated = ctx.engine.apply_edit(args.id, changes)
    ctx.engine.close_excursion()
    print(f"Updated {updated.id}: {', '.join(sorted(changes))}")
    return 0


def _cmd_rename(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    ctx.engine.rename(args.title)
    print(f"Renamed quiz to {ctx.engine.store.title}")
    return 0


def _cmd_history(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    if args.clear:
        ctx.engine.ledger.clear()
        print("Attempt history cleared.")
        return 0
    render_history(_console(), ctx.engine)
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    directory = (
        Path(args.out).expanduser()
        if args.out
        else ctx.layout.path_for("exports")
    )
    target = ctx.engine.export_quiz(directory)
    print(f"Exported quiz to {target}")
    return 0


def _cmd_reset(args: argparse.Namespace) -> int:
    if not args.yes:
        _print_error(
            "This removes the quiz, the session and all attempt history. "
            "Re-run with --yes to confirm."
        )
        return 2
    ctx = _load_context(args)
    ctx.engine.reset_all()
    print("All quiz data removed.")
    return 0


def _cmd_theme(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    if args.choice is not None:
        ctx.engine.set_dark_mode(args.choice == "dark")
    print("dark" if ctx.engine.dark_mode else "light")
    return 0


_HANDLERS = {
    "config": _cmd_config,
    "extract": _cmd_extract,
    "import": _cmd_import,
    "show": _cmd_show,
    "start": _cmd_start,
    "retake": _cmd_retake,
    "edit": _cmd_edit,
    "rename": _cmd_rename,
    "history": _cmd_history,
    "export": _cmd_export,
    "reset": _cmd_reset,
    "theme": _cmd_theme,
}


def _add_tui_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--tui", action="store_true", help="Use the Textual interface"
    )


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="quizzer",
        description="Turn a PDF of practice questions into a quiz",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--config", help="Path to quizzer.toml")
    sub = p.add_subparsers(dest="command", required=True)

    sp_config = sub.add_parser("config", help="Manage the quizzer config")
    config_sub = sp_config.add_subparsers(
        dest="config_command", required=True
    )
    sp_c_init = config_sub.add_parser(
        "init", help="Write the config template"
    )
    sp_c_init.add_argument("--path", help="Destination for quizzer.toml")
    sp_c_init.add_argument("--overwrite", action="store_true")
    config_sub.add_parser("path", help="Print the config path")

    sp_extract = sub.add_parser("extract", help="Extract a quiz from a PDF")
    sp_extract.add_argument("document")
    sp_extract.add_argument(
        "--mode",
        choices=[mode.value for mode in ExtractionMode],
        help="Override the configured extraction mode",
    )
    sp_extract.add_argument(
        "--start", action="store_true", help="Start the quiz afterwards"
    )
    _add_tui_flag(sp_extract)

    sp_import = sub.add_parser("import", help="Load an exported quiz")
    sp_import.add_argument("file")

    sp_show = sub.add_parser("show", help="List the loaded questions")
    sp_show.add_argument("--answers", action="store_true")

    sp_start = sub.add_parser("start", help="Start or resume the quiz")
    sp_start.add_argument(
        "--fresh", action="store_true", help="Discard the saved session"
    )
    _add_tui_flag(sp_start)

    sp_retake = sub.add_parser("retake", help="Retake a question subset")
    sp_retake.add_argument(
        "mode",
        nargs="?",
        choices=[mode.value for mode in RetakeMode],
        default=RetakeMode.ALL.value,
    )
    _add_tui_flag(sp_retake)

    sp_edit = sub.add_parser("edit", help="Correct a question")
    sp_edit.add_argument("id")
    sp_edit.add_argument("--question")
    sp_edit.add_argument(
        "--option",
        action="append",
        help="Replacement option (repeat for each option)",
    )
    sp_edit.add_argument("--answer")
    sp_edit.add_argument("--explanation")
    sp_edit.add_argument("--page", type=int)
    sp_edit.add_argument("--confidence", type=float)

    sp_rename = sub.add_parser("rename", help="Rename the quiz")
    sp_rename.add_argument("title")

    sp_history = sub.add_parser("history", help="Show attempt history")
    sp_history.add_argument("--clear", action="store_true")

    sp_export = sub.add_parser("export", help="Export the quiz as JSON")
    sp_export.add_argument("--out", help="Destination directory")

    sp_reset = sub.add_parser("reset", help="Remove all quiz data")
    sp_reset.add_argument("--yes", action="store_true")

    sp_theme = sub.add_parser("theme", help="Show or set the TUI theme")
    sp_theme.add_argument("choice", nargs="?", choices=["dark", "light"])
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    handler = _HANDLERS[args.command]
    try:
        return handler(args)
    except (config_mod.ConfigError, WorkspaceError) as exc:
        _print_error(f"Error: {exc}")
        return 2
    except QuizError as exc:
        _print_error(str(exc))
        return 1
    except RuntimeError as exc:
        _print_error(f"Error: {exc}")
        return 2
    except OSError as exc:
        _print_error(f"Error: {exc}")
        return 1
