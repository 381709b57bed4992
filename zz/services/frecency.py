"""Visit history used to order picker candidates.

Purely a ranking hint: a missing or unreadable database only means
candidates keep their scan order.
"""

import fcntl
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from zz.models import FrecencyDB, FrecencyEntry

logger = logging.getLogger(__name__)

HOUR = 3600
DAY = 24 * HOUR
WEEK = 7 * DAY


def _weight(age_seconds: float) -> float:
    if age_seconds < HOUR:
        return 4.0
    if age_seconds < DAY:
        return 2.0
    if age_seconds < WEEK:
        return 0.5
    return 0.25


def score(entry: FrecencyEntry, now: datetime | None = None) -> float:
    now = now or datetime.now(timezone.utc)
    try:
        last = datetime.fromisoformat(entry.last_visit)
    except ValueError:
        return 0.0
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    return entry.visits * _weight((now - last).total_seconds())


class FrecencyStore:
    def __init__(self, data_dir: Path) -> None:
        self.path = data_dir / "frecency.json"

    def _lock_file(self) -> Path:
        return self.path.with_suffix(".lock")

    def load(self) -> FrecencyDB:
        if not self.path.exists():
            return FrecencyDB()
        with open(self._lock_file(), "a") as lf:
            fcntl.flock(lf, fcntl.LOCK_SH)
            try:
                data = json.loads(self.path.read_text())
            except (json.JSONDecodeError, OSError):
                logger.warning("Failed to read frecency database, starting fresh", extra={"path": str(self.path)})
                return FrecencyDB()
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)
        try:
            return FrecencyDB.model_validate(data)
        except ValidationError:
            logger.warning("Malformed frecency database, starting fresh", extra={"path": str(self.path)})
            return FrecencyDB()

    def record(self, key: str, now: datetime | None = None) -> None:
        """Count a visit to ``key``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        db = self.load()
        entry = db.entries.get(key) or FrecencyEntry()
        entry.visits += 1
        entry.last_visit = (now or datetime.now(timezone.utc)).isoformat()
        db.entries[key] = entry

        tmp = self.path.with_suffix(".tmp")
        with open(self._lock_file(), "a") as lf:
            fcntl.flock(lf, fcntl.LOCK_EX)
            try:
                tmp.write_text(db.model_dump_json(indent=2))
                tmp.rename(self.path)
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)

    def rank(self, candidates: Sequence[str], now: datetime | None = None) -> list[str]:
        """Highest score first; ties keep their original order."""
        entries = self.load().entries
        now = now or datetime.now(timezone.utc)
        return sorted(
            candidates,
            key=lambda c: -score(entries[c], now) if c in entries else 0.0,
        )
