"""Append-only JSONL record of poll cycles.

One PollAuditEntry is written per completed cycle. ``tipjar status`` reads
the newest one to report when the mailbox was last checked.
"""

import logging
from pathlib import Path

from tipjar.schemas.donations import PollAuditEntry

logger = logging.getLogger(__name__)


class PollAuditLog:
    """Usage::

    audit = PollAuditLog("data/poll_audit.log")
    audit.log(entry)
    last = audit.last_entry()
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def log(self, entry: PollAuditEntry) -> None:
        """Append one cycle. Raises OSError if the file cannot be written."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a") as f:
            f.write(entry.model_dump_json() + "\n")
        logger.debug("Poll audit: %d new of %d candidate(s)", len(entry.new_ids), entry.candidates)

    def read_entries(self, *, limit: int | None = None) -> list[PollAuditEntry]:
        """Entries oldest first; ``limit`` keeps only the newest ``limit``."""
        if not self._path.exists():
            return []
        lines = [line for line in self._path.read_text().splitlines() if line.strip()]
        if limit is not None:
            lines = lines[-limit:] if limit > 0 else []
        return [PollAuditEntry.model_validate_json(line) for line in lines]

    def last_entry(self) -> PollAuditEntry | None:
        entries = self.read_entries(limit=1)
        return entries[0] if entries else None
