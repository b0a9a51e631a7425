"""
progress.py – Per-gesture mastery ledger with durable JSON storage.

The ledger is the only piece of core state that survives a restart.  It is
loaded once on construction and written after every mutation.  A missing or
corrupt file yields the zero-state ledger; a failed write is logged and the
in-memory ledger stays authoritative for the session.

Mastery rule: an entry is ``mastered`` only when it has at least
:data:`MASTERY_THRESHOLD` successes *and* its most recent attempt
succeeded.  A failure clears ``mastered`` until the next success.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import StorageCorruption

logger = logging.getLogger(__name__)

MASTERY_THRESHOLD = 5


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class MasteryEntry:
    gesture_id: str
    attempts: int = 0
    successes: int = 0
    last_practiced_at: str = ""
    mastered: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MasteryEntry:
        entry = cls(
            gesture_id=str(data["gesture_id"]),
            attempts=int(data["attempts"]),
            successes=int(data["successes"]),
            last_practiced_at=str(data.get("last_practiced_at", "")),
            mastered=bool(data.get("mastered", False)),
        )
        if entry.attempts < 0 or not 0 <= entry.successes <= entry.attempts:
            raise ValueError(f"Inconsistent counts for {entry.gesture_id}")
        return entry


@dataclass
class ProgressLedger:
    gestures: dict[str, MasteryEntry] = field(default_factory=dict)
    total_attempts: int = 0
    total_successes: int = 0
    current_streak: int = 0
    last_active: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProgressLedger:
        gestures = {
            gid: MasteryEntry.from_dict({"gesture_id": gid, **entry})
            for gid, entry in data.get("gestures", {}).items()
        }
        ledger = cls(
            gestures=gestures,
            total_attempts=int(data.get("total_attempts", 0)),
            total_successes=int(data.get("total_successes", 0)),
            current_streak=int(data.get("current_streak", 0)),
            last_active=str(data.get("last_active", "")),
        )
        if ledger.total_attempts != sum(e.attempts for e in gestures.values()):
            raise ValueError("total_attempts does not match per-gesture attempts")
        if ledger.total_successes != sum(e.successes for e in gestures.values()):
            raise ValueError("total_successes does not match per-gesture successes")
        if not 0 <= ledger.current_streak <= ledger.total_successes:
            raise ValueError("current_streak out of range")
        return ledger


class ProgressTracker:
    """Record practice attempts and answer progress queries.

    Parameters
    ----------
    path : str or Path or None
        JSON file backing the ledger.  ``None`` keeps the ledger in memory
        only (handy for tests and throwaway sessions).
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path).expanduser() if path is not None else None
        self._lock = threading.Lock()
        self._ledger = self._load()

    # ── Mutations ────────────────────────────────────────────────────────

    def record_attempt(self, gesture_id: str, success: bool) -> MasteryEntry:
        """Count one attempt at *gesture_id* and persist the ledger."""
        with self._lock:
            ledger = self._ledger
            now = _now()
            entry = ledger.gestures.get(gesture_id)
            if entry is None:
                entry = MasteryEntry(gesture_id=gesture_id, last_practiced_at=now)
                ledger.gestures[gesture_id] = entry

            entry.attempts += 1
            if success:
                entry.successes += 1
            entry.last_practiced_at = now
            entry.mastered = success and entry.successes >= MASTERY_THRESHOLD

            ledger.total_attempts += 1
            if success:
                ledger.total_successes += 1
                ledger.current_streak += 1
            else:
                ledger.current_streak = 0
            ledger.last_active = now

            snapshot = MasteryEntry(**asdict(entry))
            self._save()

        logger.debug(
            "Attempt %s success=%s -> %d/%d mastered=%s streak=%d",
            gesture_id, success, snapshot.successes, snapshot.attempts,
            snapshot.mastered, ledger.current_streak,
        )
        return snapshot

    def reset_all(self) -> None:
        """Clear the whole ledger.  Irreversible; confirm with the user first."""
        with self._lock:
            self._ledger = ProgressLedger(last_active=_now())
            self._save()
        logger.info("Progress ledger reset")

    # ── Queries ──────────────────────────────────────────────────────────

    def get(self, gesture_id: str) -> MasteryEntry | None:
        with self._lock:
            entry = self._ledger.gestures.get(gesture_id)
            return MasteryEntry(**asdict(entry)) if entry is not None else None

    def entries(self) -> list[MasteryEntry]:
        with self._lock:
            return [MasteryEntry(**asdict(e)) for e in self._ledger.gestures.values()]

    @property
    def total_attempts(self) -> int:
        return self._ledger.total_attempts

    @property
    def total_successes(self) -> int:
        return self._ledger.total_successes

    @property
    def current_streak(self) -> int:
        return self._ledger.current_streak

    def success_rate(self) -> int:
        """Rounded success percentage; 0 before the first attempt."""
        with self._lock:
            if self._ledger.total_attempts == 0:
                return 0
            # Half-up rounding, so 1 of 8 reads as 13%.
            return int(self._ledger.total_successes * 100 / self._ledger.total_attempts + 0.5)

    def mastered_count(self) -> int:
        with self._lock:
            return sum(1 for e in self._ledger.gestures.values() if e.mastered)

    def summary(self) -> dict[str, Any]:
        return {
            "total_attempts": self.total_attempts,
            "total_successes": self.total_successes,
            "current_streak": self.current_streak,
            "success_rate": self.success_rate(),
            "mastered": self.mastered_count(),
            "practiced": len(self._ledger.gestures),
        }

    # ── Storage ──────────────────────────────────────────────────────────

    def _load(self) -> ProgressLedger:
        if self.path is None or not self.path.exists():
            return ProgressLedger(last_active=_now())
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("ledger document is not an object")
            return ProgressLedger.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            err = StorageCorruption(f"{self.path}: {exc}")
            logger.error("%s Falling back to an empty ledger (%s).", err.user_message, err.detail)
            return ProgressLedger(last_active=_now())

    def _save(self) -> None:
        """Write the ledger atomically.  Caller holds ``_lock``."""
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(self._ledger.to_dict(), f, indent=2)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as exc:
            logger.error("Could not persist progress to %s: %s", self.path, exc)
