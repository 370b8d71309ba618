"""Tests for the tipjar CLI.

Uses Click's CliRunner; the mailbox is replaced by the in-memory fake
transport and all files live under tmp_path.
"""

from datetime import date

import pytest
from click.testing import CliRunner

from tipjar.audit.poll_logger import PollAuditLog
from tipjar.cli import cli
from tipjar.ledger.settings import SettingsStore
from tipjar.ledger.store import DonationLedger
from tipjar.schemas.donations import Donation, MailAccountConfig
from tipjar.schemas.settings import Goal

TODAY = date(2026, 3, 7)


class _TransportContext:
    def __init__(self, transport):
        self._transport = transport

    async def __aenter__(self):
        return self._transport

    async def __aexit__(self, *exc):
        return False


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def paths(tmp_path, monkeypatch):
    ledger_path = str(tmp_path / "ledger.db")
    audit_path = str(tmp_path / "poll_audit.log")
    monkeypatch.setattr("tipjar.cli.LEDGER_DB_PATH", ledger_path)
    monkeypatch.setattr("tipjar.cli.POLL_AUDIT_LOG_PATH", audit_path)
    return {"ledger": ledger_path, "audit": audit_path}


@pytest.fixture
def mailbox(monkeypatch, transport):
    """Configure IMAP settings and swap the IMAP client for the fake transport."""
    monkeypatch.setattr("tipjar.cli.IMAP_SERVER", "imap.example.com")
    monkeypatch.setattr("tipjar.cli.IMAP_EMAIL", "streamer@example.com")
    monkeypatch.setattr("tipjar.cli.IMAP_PASSWORD", "secret")
    monkeypatch.setattr("tipjar.cli.TIPJAR_TIMEZONE", "")
    monkeypatch.setattr(
        "tipjar.cli.mail_account",
        lambda: MailAccountConfig(server="imap.example.com", email="streamer@example.com", password="secret"),
    )
    monkeypatch.setattr("tipjar.cli._today", lambda: TODAY)
    monkeypatch.setattr(
        "tipjar.integrations.imap.ImapClient",
        lambda *args, **kwargs: _TransportContext(transport),
    )
    return transport


def _seed_venmo(transport, uid="v1"):
    transport.search_results.setdefault("venmo@venmo.com", []).append(
        {"id": uid, "subject": "Jane Doe paid you $19.00", "from": "venmo@venmo.com", "date": "d"}
    )
    transport.messages[uid] = {
        "body": '<p class="transaction-note">Thanks for the stream!</p>',
        "headers": {"subject": "", "from": "venmo@venmo.com", "date": "2026-03-07T10:00:00-05:00"},
    }


def _insert(path, uid="m1", amount=19.0):
    with DonationLedger(path) as ledger:
        ledger.insert(
            Donation(id=uid, name="Jane Doe", amount=amount, message="hi", source="venmo", timestamp="2026-03-07T10:00:00")
        )


# --- tipjar poll ---


class TestPoll:
    def test_missing_config_fails(self, runner, paths, monkeypatch):
        monkeypatch.setattr("tipjar.cli.IMAP_SERVER", "")
        monkeypatch.setattr("tipjar.cli.IMAP_EMAIL", "")
        monkeypatch.setattr("tipjar.cli.IMAP_PASSWORD", "")

        result = runner.invoke(cli, ["poll"])

        assert result.exit_code == 1
        assert "IMAP_SERVER" in result.output

    def test_unknown_timezone_fails(self, runner, paths, mailbox, monkeypatch):
        monkeypatch.setattr("tipjar.cli.TIPJAR_TIMEZONE", "Mars/Olympus_Mons")

        result = runner.invoke(cli, ["poll"])

        assert result.exit_code == 1
        assert "TIPJAR_TIMEZONE" in result.output

    def test_records_new_donation(self, runner, paths, mailbox):
        _seed_venmo(mailbox)

        result = runner.invoke(cli, ["poll"])

        assert result.exit_code == 0, result.output
        assert "New donation:" in result.output
        assert "Jane Doe" in result.output
        assert "New: 1" in result.output
        assert "Total: $19.00" in result.output
        with DonationLedger(paths["ledger"]) as ledger:
            assert ledger.all_ids() == {"v1"}
        assert PollAuditLog(paths["audit"]).last_entry().new_ids == ["v1"]

    def test_second_poll_reports_nothing_new(self, runner, paths, mailbox):
        _seed_venmo(mailbox)

        runner.invoke(cli, ["poll"])
        result = runner.invoke(cli, ["poll"])

        assert result.exit_code == 0
        assert "New: 0" in result.output
        assert "New donation:" not in result.output


# --- tipjar donations ---


class TestDonations:
    def test_list_empty(self, runner, paths):
        result = runner.invoke(cli, ["donations", "list"])
        assert result.exit_code == 0
        assert "No donations recorded." in result.output

    def test_list_shows_total(self, runner, paths):
        _insert(paths["ledger"], "a", 5.0)
        _insert(paths["ledger"], "b", 19.0)
        _insert(paths["ledger"], "c", 500.0)

        result = runner.invoke(cli, ["donations", "list"])

        assert result.exit_code == 0
        assert "Total: $524.00 from 3 donation(s)" in result.output

    def test_clear_requires_confirmation(self, runner, paths):
        _insert(paths["ledger"])

        result = runner.invoke(cli, ["donations", "clear"], input="n\n")

        assert result.exit_code != 0
        with DonationLedger(paths["ledger"]) as ledger:
            assert ledger.count() == 1

    def test_clear_with_yes(self, runner, paths):
        _insert(paths["ledger"])

        result = runner.invoke(cli, ["donations", "clear", "--yes"])

        assert result.exit_code == 0
        assert "Cleared 1 donation(s)." in result.output
        with DonationLedger(paths["ledger"]) as ledger:
            assert ledger.count() == 0

    def test_test_donation(self, runner, paths):
        result = runner.invoke(cli, ["donations", "test"])

        assert result.exit_code == 0
        with DonationLedger(paths["ledger"]) as ledger:
            [d] = ledger.list_all()
        assert d.id.startswith("test-")
        assert d.name == "Test Donor"
        assert d.amount == 5.0
        assert d.message == "This is a test donation!"

    def test_test_donation_rejects_negative(self, runner, paths):
        result = runner.invoke(cli, ["donations", "test", "--amount=-3"])
        assert result.exit_code == 1


# --- tipjar goal ---


class TestGoal:
    def test_show_inactive(self, runner, paths):
        result = runner.invoke(cli, ["goal", "show"])
        assert result.exit_code == 0
        assert "No active goal." in result.output

    def test_set_then_show(self, runner, paths):
        _insert(paths["ledger"], amount=50.0)

        result = runner.invoke(cli, ["goal", "set", "--label", "New mic", "--target", "200"])
        assert result.exit_code == 0
        assert "Goal set: New mic $200.00 (active)" in result.output

        result = runner.invoke(cli, ["goal", "show"])
        assert "Goal: New mic" in result.output
        assert "$50.00 of $200.00 (25%)" in result.output

    def test_set_inactive(self, runner, paths):
        runner.invoke(cli, ["goal", "set", "--target", "10", "--inactive"])
        with SettingsStore(paths["ledger"]) as settings:
            assert settings.get_goal() == Goal(label="", target=10.0, active=False)

    def test_negative_target_rejected(self, runner, paths):
        result = runner.invoke(cli, ["goal", "set", "--target=-5"])
        assert result.exit_code == 1


# --- tipjar status ---


class TestStatus:
    def test_never_polled(self, runner, paths):
        result = runner.invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "Donations:          0" in result.output
        assert "Last poll:          never" in result.output

    def test_after_poll(self, runner, paths, mailbox):
        _seed_venmo(mailbox)
        runner.invoke(cli, ["goal", "set", "--target", "100"])
        runner.invoke(cli, ["poll"])

        result = runner.invoke(cli, ["status"])

        assert "Total:              $19.00" in result.output
        assert "Goal progress:      19% of $100.00" in result.output
        assert "(1 new, 0 failure(s))" in result.output
