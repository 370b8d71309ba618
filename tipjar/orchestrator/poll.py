"""Poll orchestrator: one end-to-end pass over every provider.

Flow per cycle:
1. Snapshot the ledger's recorded ids.
2. Locate today's candidates for every provider concurrently.
3. For each provider, in the order candidates were returned: skip known
   ids, fetch, parse and insert.
4. Re-read the ledger for an authoritative list and running total.

Only the two ledger reads that bracket the cycle can fail it. Everything
else (transport failures, non-donation messages, duplicates) is skipped
and retried naturally on the next cycle, since nothing was recorded.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from tipjar.audit.poll_logger import PollAuditLog
from tipjar.integrations.base import MailTransport
from tipjar.ledger.store import Ledger, LedgerUnavailableError, running_total
from tipjar.pipeline.assembler import assemble
from tipjar.pipeline.fetcher import fetch
from tipjar.pipeline.locator import locate, today_in
from tipjar.schemas.donations import (
    VENMO_PROFILE,
    ZELLE_PROFILE,
    PollAuditEntry,
    PollResult,
    ProviderProfile,
)

logger = logging.getLogger(__name__)

DEFAULT_PROFILES: tuple[ProviderProfile, ...] = (VENMO_PROFILE, ZELLE_PROFILE)


@dataclass
class _ProviderTally:
    new_ids: list[str] = field(default_factory=list)
    candidates: int = 0
    skipped: int = 0
    failures: int = 0


class Poller:
    """Runs poll cycles against an injected mail transport and ledger.

    Usage::

        poller = Poller(imap, ledger)
        result = await poller.poll_once()
        print(result.new_ids, result.total)
    """

    def __init__(
        self,
        transport: MailTransport,
        ledger: Ledger,
        *,
        profiles: Sequence[ProviderProfile] = DEFAULT_PROFILES,
        today: Callable[[], date] = today_in,
        audit_log: PollAuditLog | None = None,
    ) -> None:
        self._transport = transport
        self._ledger = ledger
        self._profiles = tuple(profiles)
        self._today = today
        self._audit_log = audit_log

    async def poll_once(self) -> PollResult:
        """Run one poll cycle.

        Returns:
            PollResult with the full ledger, the ids recorded by this cycle
            and the running total.

        Raises:
            LedgerUnavailableError: If the ledger cannot be read at the start
                or end of the cycle.
        """
        existing = self._ledger.all_ids()
        today = self._today()

        tallies = await asyncio.gather(
            *(self._poll_provider(profile, existing, today) for profile in self._profiles)
        )

        new_ids = [donation_id for t in tallies for donation_id in t.new_ids]
        failures = sum(t.failures for t in tallies)

        donations = self._ledger.list_all()
        total = running_total(donations)

        if self._audit_log is not None:
            entry = PollAuditEntry(
                timestamp=datetime.now(UTC),
                candidates=sum(t.candidates for t in tallies),
                skipped=sum(t.skipped for t in tallies),
                new_ids=new_ids,
                failures=failures,
                total=total,
            )
            try:
                self._audit_log.log(entry)
            except OSError:
                logger.exception("Failed to write poll audit entry")

        if new_ids:
            logger.info("Poll recorded %d new donation(s); total $%.2f", len(new_ids), total)
        else:
            logger.debug("Poll found nothing new; total $%.2f", total)

        return PollResult(donations=donations, new_ids=new_ids, total=total, failures=failures)

    async def _poll_provider(
        self,
        profile: ProviderProfile,
        existing: set[str],
        today: date,
    ) -> _ProviderTally:
        tally = _ProviderTally()

        outcome = await locate(self._transport, profile, today=today)
        if outcome.failure is not None:
            tally.failures += 1
        tally.candidates = len(outcome.candidates)

        for candidate in outcome.candidates:
            if candidate.id in existing:
                tally.skipped += 1
                continue

            try:
                fetched = await fetch(self._transport, candidate.id)
                if fetched.message is None:
                    tally.failures += 1
                    continue

                donation = assemble(candidate, fetched.message, profile.source, self._ledger)
                if donation is not None:
                    tally.new_ids.append(donation.id)
            except Exception:
                tally.failures += 1
                logger.exception(
                    "Error processing %s message %s: %s",
                    profile.source,
                    candidate.id,
                    candidate.subject,
                )

        return tally

    async def run_forever(
        self,
        interval: float,
        *,
        on_result: Callable[[PollResult], None] | None = None,
    ) -> None:
        """Poll every ``interval`` seconds until cancelled.

        A failed cycle is logged and retried on the next tick.
        """
        logger.info("Polling every %.0fs", interval)
        try:
            while True:
                try:
                    result = await self.poll_once()
                except LedgerUnavailableError:
                    logger.exception("Poll cycle failed; retrying in %.0fs", interval)
                except Exception:
                    logger.exception("Unexpected error in poll cycle; retrying in %.0fs", interval)
                else:
                    if on_result:
                        on_result(result)
                await asyncio.sleep(interval)
        except (asyncio.CancelledError, KeyboardInterrupt):
            pass
        finally:
            logger.info("Poller stopped.")
