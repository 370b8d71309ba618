"""Tests for the SQLite-backed donation ledger."""

import sqlite3

import pytest

from tipjar.ledger.store import DonationLedger, LedgerUnavailableError, running_total
from tipjar.schemas.donations import Donation, DonationSource


@pytest.fixture()
def store(tmp_path):
    with DonationLedger(tmp_path / "ledger.db") as ledger:
        yield ledger


def _donation(uid: str = "m1", amount: float = 19.0, timestamp: str = "2026-03-07T10:00:00-05:00", **overrides) -> Donation:
    fields = dict(
        id=uid,
        name="Jane Doe",
        amount=amount,
        message="Thanks for the stream!",
        source=DonationSource.VENMO,
        timestamp=timestamp,
    )
    fields.update(overrides)
    return Donation(**fields)


class TestInsert:
    def test_insert_new_returns_true(self, store):
        assert store.insert(_donation()) is True
        assert store.has_id("m1") is True

    def test_insert_duplicate_returns_false(self, store):
        store.insert(_donation())
        assert store.insert(_donation(name="Someone Else", amount=1.0)) is False

        [kept] = store.list_all()
        assert kept.name == "Jane Doe"
        assert kept.amount == 19.0

    def test_round_trip_fields(self, store):
        store.insert(_donation(source=DonationSource.ZELLE, message=""))
        [d] = store.list_all()
        assert d == _donation(source=DonationSource.ZELLE, message="")

    def test_duplicate_across_connections(self, tmp_path):
        db = tmp_path / "ledger.db"
        with DonationLedger(db) as a, DonationLedger(db) as b:
            assert a.insert(_donation()) is True
            assert b.insert(_donation()) is False
            assert b.count() == 1


class TestRead:
    def test_all_ids(self, store):
        store.insert(_donation("a"))
        store.insert(_donation("b"))
        assert store.all_ids() == {"a", "b"}

    def test_has_id_missing(self, store):
        assert store.has_id("nope") is False

    def test_list_all_newest_first(self, store):
        store.insert(_donation("old", timestamp="2026-03-07T09:00:00"))
        store.insert(_donation("new", timestamp="2026-03-07T11:00:00"))
        store.insert(_donation("mid", timestamp="2026-03-07T10:00:00"))
        assert [d.id for d in store.list_all()] == ["new", "mid", "old"]

    def test_empty(self, store):
        assert store.list_all() == []
        assert store.all_ids() == set()
        assert store.count() == 0


class TestClear:
    def test_clear_removes_everything(self, store):
        store.insert(_donation("a"))
        store.insert(_donation("b"))
        assert store.clear() == 2
        assert store.list_all() == []

    def test_cleared_id_can_be_recorded_again(self, store):
        store.insert(_donation())
        store.clear()
        assert store.insert(_donation()) is True


class TestUnavailable:
    def test_read_after_close_raises(self, tmp_path):
        ledger = DonationLedger(tmp_path / "ledger.db")
        ledger.close()
        with pytest.raises(LedgerUnavailableError):
            ledger.all_ids()
        with pytest.raises(LedgerUnavailableError):
            ledger.list_all()

    def test_write_after_close_raises(self, tmp_path):
        ledger = DonationLedger(tmp_path / "ledger.db")
        ledger.close()
        with pytest.raises(LedgerUnavailableError) as exc_info:
            ledger.insert(_donation())
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)


class TestRunningTotal:
    def test_sum(self):
        donations = [_donation("a", 5.0), _donation("b", 19.0), _donation("c", 500.0)]
        assert running_total(donations) == 524.00

    def test_empty(self):
        assert running_total([]) == 0.0

    def test_rounded_to_cents(self):
        assert running_total([_donation("a", 0.1), _donation("b", 0.2)]) == 0.3
