"""CLI entry point for the tipjar donation tracker.

Commands:
    tipjar poll        — check the mailbox once for new donations
    tipjar watch       — poll the mailbox periodically
    tipjar donations   — list, clear, or add a test donation
    tipjar goal        — show or set the fundraising goal
    tipjar status      — quick overview of the ledger and last poll
"""

import asyncio
import logging
import sys

import click

from tipjar.config import (
    IMAP_EMAIL,
    IMAP_PASSWORD,
    IMAP_SERVER,
    LEDGER_DB_PATH,
    POLL_AUDIT_LOG_PATH,
    POLL_INTERVAL_SECONDS,
    TIPJAR_TIMEZONE,
    TRANSPORT_TIMEOUT_SECONDS,
    VENMO_SENDER,
    ZELLE_SENDER,
    mail_account,
)

logger = logging.getLogger("tipjar")


def _validate_config() -> None:
    """Fail loudly if required config is missing."""
    missing = []
    if not IMAP_SERVER:
        missing.append("IMAP_SERVER")
    if not IMAP_EMAIL:
        missing.append("IMAP_EMAIL")
    if not IMAP_PASSWORD:
        missing.append("IMAP_PASSWORD")
    if missing:
        click.echo(f"Error: Missing required config: {', '.join(missing)}", err=True)
        click.echo("Set these in secrets/internal.env, via SOPS, or in the environment.", err=True)
        sys.exit(1)

    if TIPJAR_TIMEZONE:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(TIPJAR_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            click.echo(f"Error: Unknown TIPJAR_TIMEZONE: {TIPJAR_TIMEZONE}", err=True)
            sys.exit(1)


def _profiles():
    from tipjar.schemas.donations import VENMO_PROFILE, ZELLE_PROFILE

    return (
        VENMO_PROFILE.model_copy(update={"sender": VENMO_SENDER}),
        ZELLE_PROFILE.model_copy(update={"sender": ZELLE_SENDER}),
    )


def _today():
    from tipjar.pipeline.locator import today_in

    return today_in(TIPJAR_TIMEZONE)


def _format_donation(d) -> str:
    line = f"  {d.timestamp:<26} {d.source.value:<6} ${d.amount:>9.2f}  {d.name}"
    if d.message:
        line += f" — {d.message}"
    return line


def _echo_result(result) -> None:
    new = set(result.new_ids)
    for d in result.donations:
        if d.id in new:
            click.echo(f"New donation:{_format_donation(d)}")
    click.echo(
        f"Donations: {len(result.donations)}, New: {len(result.new_ids)}, "
        f"Total: ${result.total:.2f}"
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """tipjar — livestream donation tracker fed by payment notification emails."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# ------------------------------------------------------------------
# tipjar poll / tipjar watch
# ------------------------------------------------------------------


@cli.command()
def poll() -> None:
    """Check the mailbox once and record new donations."""
    _validate_config()
    asyncio.run(_poll_async(interval=None))


@cli.command()
@click.option(
    "--interval",
    default=POLL_INTERVAL_SECONDS,
    show_default=True,
    type=float,
    help="Seconds between mailbox checks.",
)
def watch(interval: float) -> None:
    """Poll the mailbox periodically (Ctrl+C to stop)."""
    _validate_config()
    if interval <= 0:
        click.echo("Error: --interval must be positive.", err=True)
        sys.exit(1)
    click.echo(f"Polling every {interval:.0f}s (Ctrl+C to stop)…")
    asyncio.run(_poll_async(interval=interval))


async def _poll_async(interval: float | None) -> None:
    from tipjar.audit.poll_logger import PollAuditLog
    from tipjar.integrations.imap import ImapClient
    from tipjar.ledger.store import DonationLedger, LedgerUnavailableError
    from tipjar.orchestrator.poll import Poller

    audit_log = PollAuditLog(POLL_AUDIT_LOG_PATH)

    with DonationLedger(LEDGER_DB_PATH) as ledger:
        async with ImapClient(mail_account(), timeout=TRANSPORT_TIMEOUT_SECONDS) as imap:
            poller = Poller(
                imap,
                ledger,
                profiles=_profiles(),
                today=_today,
                audit_log=audit_log,
            )
            if interval is not None:
                await poller.run_forever(interval, on_result=_echo_result)
                return

            try:
                result = await poller.poll_once()
            except LedgerUnavailableError as exc:
                click.echo(f"Error: {exc}", err=True)
                sys.exit(1)
            _echo_result(result)


# ------------------------------------------------------------------
# tipjar donations
# ------------------------------------------------------------------


@cli.group()
def donations() -> None:
    """Inspect and manage the donation ledger."""


@donations.command("list")
@click.option("--limit", "-n", default=0, show_default=True, help="Max donations to show (0=all).")
def donations_list(limit: int) -> None:
    """List recorded donations, newest first."""
    from tipjar.ledger.store import DonationLedger, running_total

    with DonationLedger(LEDGER_DB_PATH) as ledger:
        all_donations = ledger.list_all()

    if not all_donations:
        click.echo("No donations recorded.")
        return

    shown = all_donations[:limit] if limit > 0 else all_donations
    for d in shown:
        click.echo(_format_donation(d))
    click.echo(f"Total: ${running_total(all_donations):.2f} from {len(all_donations)} donation(s)")


@donations.command("clear")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
def donations_clear(yes: bool) -> None:
    """Delete every recorded donation."""
    from tipjar.ledger.store import DonationLedger

    if not yes:
        click.confirm("Delete all recorded donations?", abort=True)

    with DonationLedger(LEDGER_DB_PATH) as ledger:
        removed = ledger.clear()
    click.echo(f"Cleared {removed} donation(s).")


@donations.command("test")
@click.option("--name", default="Test Donor", show_default=True)
@click.option("--amount", default=5.0, show_default=True, type=float)
@click.option("--message", default="This is a test donation!", show_default=True)
@click.option(
    "--source",
    type=click.Choice(["venmo", "zelle"], case_sensitive=False),
    default="venmo",
    show_default=True,
)
def donations_test(name: str, amount: float, message: str, source: str) -> None:
    """Record a synthetic donation to exercise the overlay."""
    import uuid
    from datetime import UTC, datetime

    from pydantic import ValidationError

    from tipjar.ledger.store import DonationLedger
    from tipjar.schemas.donations import Donation, DonationSource

    try:
        donation = Donation(
            id=f"test-{uuid.uuid4()}",
            name=name,
            amount=amount,
            message=message,
            source=DonationSource(source.lower()),
            timestamp=datetime.now(UTC).isoformat(),
        )
    except ValidationError as exc:
        click.echo(f"Error: invalid donation: {exc}", err=True)
        sys.exit(1)

    with DonationLedger(LEDGER_DB_PATH) as ledger:
        ledger.insert(donation)
    click.echo(f"Recorded test donation {donation.id}:{_format_donation(donation)}")


# ------------------------------------------------------------------
# tipjar goal
# ------------------------------------------------------------------


@cli.group()
def goal() -> None:
    """Show or set the fundraising goal."""


@goal.command("show")
def goal_show() -> None:
    """Show the goal and progress toward it."""
    from tipjar.ledger.settings import SettingsStore, goal_progress
    from tipjar.ledger.store import DonationLedger, running_total

    with SettingsStore(LEDGER_DB_PATH) as settings, DonationLedger(LEDGER_DB_PATH) as ledger:
        current = settings.get_goal()
        total = running_total(ledger.list_all())

    if not current.active:
        click.echo("No active goal.")
        return
    click.echo(f"Goal: {current.label or '(unnamed)'}")
    click.echo(
        f"  ${total:.2f} of ${current.target:.2f} "
        f"({goal_progress(current, total):.0%})"
    )


@goal.command("set")
@click.option("--label", default="", help="Goal label shown on the overlay.")
@click.option("--target", required=True, type=float, help="Target amount in dollars.")
@click.option("--active/--inactive", default=True, show_default=True)
def goal_set(label: str, target: float, active: bool) -> None:
    """Set the fundraising goal."""
    from pydantic import ValidationError

    from tipjar.ledger.settings import SettingsStore
    from tipjar.schemas.settings import Goal

    try:
        new_goal = Goal(label=label, target=target, active=active)
    except ValidationError as exc:
        click.echo(f"Error: invalid goal: {exc}", err=True)
        sys.exit(1)

    with SettingsStore(LEDGER_DB_PATH) as settings:
        settings.set_goal(new_goal)
    state = "active" if new_goal.active else "inactive"
    click.echo(f"Goal set: {new_goal.label or '(unnamed)'} ${new_goal.target:.2f} ({state})")


# ------------------------------------------------------------------
# tipjar status
# ------------------------------------------------------------------


@cli.command()
def status() -> None:
    """Quick overview of the ledger, goal and last poll."""
    from tipjar.audit.poll_logger import PollAuditLog
    from tipjar.ledger.settings import SettingsStore, goal_progress
    from tipjar.ledger.store import DonationLedger, running_total

    with SettingsStore(LEDGER_DB_PATH) as settings, DonationLedger(LEDGER_DB_PATH) as ledger:
        all_donations = ledger.list_all()
        current = settings.get_goal()

    total = running_total(all_donations)
    last = PollAuditLog(POLL_AUDIT_LOG_PATH).last_entry()

    click.echo("tipjar Status")
    click.echo(f"  Donations:          {len(all_donations)}")
    click.echo(f"  Total:              ${total:.2f}")
    if current.active:
        click.echo(f"  Goal progress:      {goal_progress(current, total):.0%} of ${current.target:.2f}")
    if last is None:
        click.echo("  Last poll:          never")
    else:
        click.echo(
            f"  Last poll:          {last.timestamp:%Y-%m-%d %H:%M:%S} "
            f"({len(last.new_ids)} new, {last.failures} failure(s))"
        )
