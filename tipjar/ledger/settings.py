"""SQLite-backed key/value store for overlay display settings.

Values are pydantic models stored as JSON; missing keys fall back to the
model defaults.
"""

import logging
import sqlite3
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel

from tipjar.schemas.settings import Goal

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS settings (
    key     TEXT PRIMARY KEY,
    value   TEXT NOT NULL
)
"""

_UPSERT = """
INSERT INTO settings (key, value) VALUES (?, ?)
ON CONFLICT (key) DO UPDATE SET value = excluded.value
"""


class SettingsStore:
    """Persistent display settings.

    Usage::

        with SettingsStore("/path/to/ledger.db") as settings:
            goal = settings.get_goal()
            settings.set_goal(Goal(label="New mic", target=300, active=True))
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_CREATE_TABLE)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SettingsStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get(self, key: str, model: type[M]) -> M:
        """Read a setting, or the model's defaults if it was never set."""
        row = self._conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        if row is None:
            return model()
        return model.model_validate_json(row[0])

    def set(self, key: str, value: BaseModel) -> None:
        self._conn.execute(_UPSERT, (key, value.model_dump_json()))
        self._conn.commit()
        logger.info("Updated setting %s", key)

    def get_goal(self) -> Goal:
        return self.get("goal", Goal)

    def set_goal(self, goal: Goal) -> None:
        self.set("goal", goal)


def goal_progress(goal: Goal, total: float) -> float:
    """Fraction of the goal reached, clamped to [0, 1]. Zero for no target."""
    if goal.target <= 0:
        return 0.0
    return max(0.0, min(1.0, total / goal.target))
