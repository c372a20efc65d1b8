"""File-backed key-value slots for quiz, history and preference state."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import PersistenceReadFailure

QUIZ_SLOT = "quiz"
HISTORY_SLOT = "history"
PREFERENCES_SLOT = "preferences"

_SLOTS = (QUIZ_SLOT, HISTORY_SLOT, PREFERENCES_SLOT)


class PersistenceAdapter:
    """Read and write JSON slots under ``root``.

    Reads raise :class:`PersistenceReadFailure` for corrupt slots and return
    ``None`` for missing ones. Writes never raise: a failed write is logged
    and the in-memory state stays authoritative until the next write.
    """

    def __init__(
        self, root: Path, *, logger: Optional[logging.Logger] = None
    ) -> None:
        self._root = Path(root)
        self._logger = logger or logging.getLogger(__name__)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, slot: str) -> Path:
        if slot not in _SLOTS:
            raise KeyError(f"Unknown persistence slot '{slot}'.")
        return self._root / f"{slot}.json"

    def read(self, slot: str) -> Any:
        path = self.path_for(slot)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise PersistenceReadFailure(
                f"Failed to read stored {slot} data from {path}: {exc}"
            ) from exc

    def write(self, slot: str, payload: Any) -> bool:
        path = self.path_for(slot)
        try:
            _atomic_write_json(path, payload)
        except (OSError, TypeError, ValueError):
            self._logger.exception(
                "Failed to persist slot", extra={"slot": slot, "path": path}
            )
            return False
        return True

    def clear(self, slot: str) -> None:
        path = self.path_for(slot)
        try:
            path.unlink(missing_ok=True)
        except OSError:
            self._logger.exception(
                "Failed to clear slot", extra={"slot": slot, "path": path}
            )

    def read_dark_mode(self, default: bool = False) -> bool:
        try:
            payload = self.read(PREFERENCES_SLOT)
        except PersistenceReadFailure:
            self._logger.warning(
                "Ignoring unreadable preferences",
                exc_info=True,
            )
            return default
        if isinstance(payload, Mapping) and isinstance(
            payload.get("darkMode"), bool
        ):
            return payload["darkMode"]
        return default

    def write_dark_mode(self, enabled: bool) -> None:
        self.write(PREFERENCES_SLOT, {"darkMode": bool(enabled)})


def _atomic_write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = json.dumps(payload, indent=2, ensure_ascii=False)
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
        suffix=".tmp",
    )
    try:
        handle.write(data)
        handle.flush()
        os.fsync(handle.fileno())
    finally:
        handle.close()
    os.replace(handle.name, path)
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
