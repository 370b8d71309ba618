"""Donation assembler: turn a parsed message into a recorded donation."""

import logging

from tipjar.ledger.store import Ledger
from tipjar.parsers.base import NoMatch, get_parser
from tipjar.schemas.donations import CandidateMessage, Donation, DonationSource, FetchedMessage

logger = logging.getLogger(__name__)


def build_donation(
    candidate: CandidateMessage,
    fetched: FetchedMessage,
    source: DonationSource,
) -> Donation | None:
    """Parse a message into a Donation without touching the ledger.

    Returns:
        The Donation, or None if the message is not a recognized donation.
    """
    parser = get_parser(source)
    result = parser.extract_fields(candidate, fetched)
    if isinstance(result, NoMatch):
        logger.debug("%s %s: no match (%s)", source, candidate.id, result.reason)
        return None

    return Donation(
        id=candidate.id,
        name=result.name,
        amount=result.amount,
        message=parser.extract_message(fetched.body),
        source=source,
        timestamp=fetched.headers.date or candidate.date,
    )


def assemble(
    candidate: CandidateMessage,
    fetched: FetchedMessage,
    source: DonationSource,
    ledger: Ledger,
) -> Donation | None:
    """Parse a message and record it in the ledger at most once.

    The ledger's insert result is the only dedup check: a donation is
    returned only if this call inserted it.

    Returns:
        The newly recorded Donation, or None for a no-match or a duplicate.

    Raises:
        LedgerUnavailableError: If the ledger write fails.
    """
    donation = build_donation(candidate, fetched, source)
    if donation is None:
        return None

    if not ledger.insert(donation):
        logger.debug("%s %s: already recorded", source, donation.id)
        return None

    return donation
