"""Shared fixtures for tipjar tests."""

import asyncio
import os

import pytest

from tipjar.ledger.store import LedgerUnavailableError
from tipjar.schemas.donations import Donation

VENMO_SENDER = "venmo@venmo.com"
ZELLE_SENDER = "notify.wellsfargo.com"


class FakeTransport:
    """In-memory mail transport.

    ``search_results`` maps a sender pattern to the rows its search returns;
    ``messages`` maps a message id to its fetch payload.
    """

    def __init__(self, search_results=None, messages=None):
        self.search_results = search_results or {}
        self.messages = messages or {}
        self.search_errors: dict[str, BaseException] = {}
        self.get_errors: dict[str, BaseException] = {}
        self.search_calls: list[dict] = []
        self.get_calls: list[str] = []

    async def search(self, sender, subject, *, since, max_results, gmail_query=None):
        self.search_calls.append(
            {
                "sender": sender,
                "subject": subject,
                "since": since,
                "max_results": max_results,
                "gmail_query": gmail_query,
            }
        )
        await asyncio.sleep(0)
        if sender in self.search_errors:
            raise self.search_errors[sender]
        return list(self.search_results.get(sender, []))

    async def get(self, uid):
        self.get_calls.append(uid)
        await asyncio.sleep(0)
        if uid in self.get_errors:
            raise self.get_errors[uid]
        return self.messages.get(uid)


class MemoryLedger:
    """In-memory ledger with insert-if-absent semantics."""

    def __init__(self, donations=()):
        self._rows: dict[str, Donation] = {d.id: d for d in donations}
        self.fail_reads = False

    def has_id(self, donation_id):
        return donation_id in self._rows

    def all_ids(self):
        if self.fail_reads:
            raise LedgerUnavailableError("ledger offline")
        return set(self._rows)

    def insert(self, donation):
        if donation.id in self._rows:
            return False
        self._rows[donation.id] = donation
        return True

    def list_all(self):
        if self.fail_reads:
            raise LedgerUnavailableError("ledger offline")
        return list(reversed(self._rows.values()))

    def clear(self):
        removed = len(self._rows)
        self._rows.clear()
        return removed


@pytest.fixture(autouse=True)
def _no_sops(monkeypatch):
    """Ensure tests never try to invoke SOPS."""
    monkeypatch.setenv("TIPJAR_USE_SOPS", "false")


@pytest.fixture()
def project_root():
    """Return the project root path."""
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def ledger():
    return MemoryLedger()
