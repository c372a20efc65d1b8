"""Workspace directory holding doc-quizzer config, logs, state and exports."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

WORKSPACE_ENV = "DOC_QUIZZER_HOME"
DEFAULT_WORKSPACE = Path.home() / ".doc-quizzer"

# ``state`` holds the persistence slots; ``exports`` is the default target
# for ``docquiz quiz export``.
SUBDIRECTORIES = ("config", "logs", "state", "exports")


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Resolved workspace paths and whether each one was just created."""

    home: Path
    directories: Mapping[str, Path]
    created: Mapping[str, bool]

    def path_for(self, key: str) -> Path:
        if key not in self.directories:
            raise KeyError(f"Unknown workspace directory '{key}'.")
        return self.directories[key]

    def items(self) -> tuple[tuple[str, Path], ...]:
        return tuple(self.directories.items())


def resolve_home(
    env: Mapping[str, str] | None = None, path: Path | None = None
) -> tuple[Path, bool]:
    """Return the workspace root and whether the caller chose it."""

    if path is None:
        env_map = os.environ if env is None else env
        raw = (env_map.get(WORKSPACE_ENV) or "").strip()
        path = Path(raw) if raw else None
    chosen = path is not None
    target = (path or DEFAULT_WORKSPACE).expanduser()
    try:
        return target.resolve(), chosen
    except OSError:
        return target.absolute(), chosen


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Return the workspace layout, creating directories when ``create``.

    An unwritable default home falls back to a directory under the system
    temp dir; an explicitly chosen home never does.
    """

    home, chosen = resolve_home(env, path)
    candidates = [home]
    fallback = Path(tempfile.gettempdir()) / "doc-quizzer"
    if create and not chosen and fallback != home:
        candidates.append(fallback)

    denied: Optional[PermissionError] = None
    for candidate in candidates:
        try:
            return _build_layout(candidate, create=create)
        except PermissionError as exc:
            denied = exc
    raise WorkspaceError(f"Unable to prepare workspace at {home}") from denied


def _build_layout(home: Path, *, create: bool) -> WorkspaceLayout:
    if home.exists() and not home.is_dir():
        raise WorkspaceError(
            f"Configured workspace exists and is not a directory: {home}"
        )
    created = {"home": _make_dir(home) if create else False}
    directories = {}
    for name in SUBDIRECTORIES:
        directory = home / name
        if create:
            created[name] = _make_dir(directory)
        elif directory.exists() and not directory.is_dir():
            raise WorkspaceError(
                f"Expected workspace directory for '{name}' but found a "
                f"file: {directory}"
            )
        else:
            created[name] = False
        directories[name] = directory
    return WorkspaceLayout(
        home=home,
        directories=MappingProxyType(directories),
        created=MappingProxyType(created),
    )


def _make_dir(path: Path) -> bool:
    """Create ``path`` (mode 0700); return False when it already existed."""

    existed = path.is_dir()
    if not existed:
        if path.exists():
            raise WorkspaceError(
                f"Expected directory but found a non-directory entry: {path}"
            )
        path.mkdir(parents=True, exist_ok=True)
    try:
        path.chmod(0o700)
    except (PermissionError, NotImplementedError):
        pass
    return not existed
