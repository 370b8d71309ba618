"""SQLite-backed donation ledger.

The donation id (source message id) is the primary key. ``insert`` is a
single atomic insert-if-absent, which makes it the one dedup gate shared
by every poll cycle, including concurrent ones and ones in other processes.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Protocol

from tipjar.schemas.donations import Donation, DonationSource

logger = logging.getLogger(__name__)


class LedgerUnavailableError(RuntimeError):
    """The ledger could not be read or written."""


class Ledger(Protocol):
    def has_id(self, donation_id: str) -> bool: ...

    def all_ids(self) -> set[str]: ...

    def insert(self, donation: Donation) -> bool: ...

    def list_all(self) -> list[Donation]: ...

    def clear(self) -> int: ...


_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS donations (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    amount      REAL NOT NULL CHECK (amount >= 0),
    message     TEXT NOT NULL DEFAULT '',
    source      TEXT NOT NULL,
    timestamp   TEXT NOT NULL
)
"""

_INSERT = """
INSERT OR IGNORE INTO donations (id, name, amount, message, source, timestamp)
VALUES (?, ?, ?, ?, ?, ?)
"""

_SELECT_ALL = (
    "SELECT id, name, amount, message, source, timestamp FROM donations"
    " ORDER BY timestamp DESC, rowid DESC"
)


def _row_to_donation(row: sqlite3.Row) -> Donation:
    return Donation(
        id=row["id"],
        name=row["name"],
        amount=row["amount"],
        message=row["message"] or "",
        source=DonationSource(row["source"]),
        timestamp=row["timestamp"],
    )


class DonationLedger:
    """Persistent, deduplicated donation records.

    Usage::

        with DonationLedger("/path/to/ledger.db") as ledger:
            if ledger.insert(donation):
                print("New donation")
            total = sum(d.amount for d in ledger.list_all())
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_CREATE_TABLE)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "DonationLedger":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def has_id(self, donation_id: str) -> bool:
        """Check if a donation id is already recorded."""
        try:
            row = self._conn.execute(
                "SELECT 1 FROM donations WHERE id = ?", (donation_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise LedgerUnavailableError(f"Ledger read failed: {exc}") from exc
        return row is not None

    def all_ids(self) -> set[str]:
        """Return every recorded donation id."""
        try:
            rows = self._conn.execute("SELECT id FROM donations").fetchall()
        except sqlite3.Error as exc:
            raise LedgerUnavailableError(f"Ledger read failed: {exc}") from exc
        return {r["id"] for r in rows}

    def insert(self, donation: Donation) -> bool:
        """Record a donation unless its id already exists.

        Returns:
            True if newly inserted, False if the id was already recorded.
        """
        try:
            cursor = self._conn.execute(
                _INSERT,
                (
                    donation.id,
                    donation.name,
                    donation.amount,
                    donation.message,
                    donation.source.value,
                    donation.timestamp,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise LedgerUnavailableError(f"Ledger write failed: {exc}") from exc

        inserted = cursor.rowcount == 1
        if inserted:
            logger.info(
                "Recorded %s donation %s: %s $%.2f", donation.source, donation.id, donation.name, donation.amount
            )
        return inserted

    def list_all(self) -> list[Donation]:
        """List all donations, newest first."""
        try:
            rows = self._conn.execute(_SELECT_ALL).fetchall()
        except sqlite3.Error as exc:
            raise LedgerUnavailableError(f"Ledger read failed: {exc}") from exc
        return [_row_to_donation(r) for r in rows]

    def count(self) -> int:
        """Return the number of recorded donations."""
        row = self._conn.execute("SELECT COUNT(*) FROM donations").fetchone()
        return row[0]

    def clear(self) -> int:
        """Delete every donation. Returns the number removed."""
        cursor = self._conn.execute("DELETE FROM donations")
        self._conn.commit()
        logger.info("Cleared %d donation(s)", cursor.rowcount)
        return cursor.rowcount


def running_total(donations: list[Donation]) -> float:
    """Sum of donation amounts, rounded to cents."""
    return round(sum(d.amount for d in donations), 2)
