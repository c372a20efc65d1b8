"""Append-only ledger of finished attempts, newest first."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import PersistenceReadFailure
from .models import Attempt
from .storage import HISTORY_SLOT, PersistenceAdapter


class HistoryLedger:
    """Owns the attempt list and mirrors it to the history slot."""

    def __init__(
        self,
        persistence: PersistenceAdapter,
        attempts: tuple[Attempt, ...] = (),
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._persistence = persistence
        self._attempts = tuple(attempts)
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def load(
        cls,
        persistence: PersistenceAdapter,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> "HistoryLedger":
        """Restore the ledger; unreadable history is treated as empty."""

        log = logger or logging.getLogger(__name__)
        try:
            attempts = _parse_attempts(persistence.read(HISTORY_SLOT))
        except PersistenceReadFailure:
            log.warning("Discarding unreadable attempt history", exc_info=True)
            attempts = ()
        return cls(persistence, attempts, logger=log)

    def __len__(self) -> int:
        return len(self._attempts)

    def list(self) -> tuple[Attempt, ...]:
        return self._attempts

    def append(self, attempt: Attempt) -> None:
        self._attempts = (attempt,) + self._attempts
        self._logger.info(
            "Attempt recorded",
            extra={"score": attempt.score, "total": attempt.total},
        )
        self._persist()

    def clear(self) -> None:
        self._attempts = ()
        self._persist()

    def trend(self, limit: int = 10) -> list[float]:
        """Percentages of the latest ``limit`` attempts, oldest first."""

        recent = self._attempts[:limit] if limit > 0 else ()
        return [attempt.percent for attempt in reversed(recent)]

    def _persist(self) -> None:
        self._persistence.write(
            HISTORY_SLOT, [attempt.to_dict() for attempt in self._attempts]
        )


def _parse_attempts(payload: object) -> tuple[Attempt, ...]:
    if payload is None:
        return ()
    if not isinstance(payload, list):
        raise PersistenceReadFailure("Stored history is not a list.")
    try:
        return tuple(Attempt.from_dict(item) for item in payload)
    except (TypeError, ValueError) as exc:
        raise PersistenceReadFailure(f"Invalid stored attempt: {exc}") from exc
