"""Message locator: find today's payment notifications for one provider.

Only messages received on the current calendar day are searched. A
donation email from an earlier day is never located by this path.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from tipjar.integrations.base import MailTransport, describe_failure
from tipjar.integrations.imap import TRANSPORT_ERRORS
from tipjar.schemas.donations import (
    CandidateMessage,
    ProviderProfile,
    SearchOutcome,
    TransportFailure,
    TransportFailureKind,
)

logger = logging.getLogger(__name__)


def today_in(tz_name: str = "", *, now: Callable[..., datetime] = datetime.now) -> date:
    """Current calendar date in ``tz_name``, or server local time if empty.

    Raises:
        zoneinfo.ZoneInfoNotFoundError: If ``tz_name`` is not a known zone.
    """
    if tz_name:
        return now(ZoneInfo(tz_name)).date()
    return now().date()


def search_date(day: date) -> str:
    """Date-filter string for the mailbox search (``YYYY/MM/DD``)."""
    return day.strftime("%Y/%m/%d")


def build_gmail_query(profile: ProviderProfile, today: date) -> str:
    """Gmail search string for a provider's notifications received ``today``."""
    return f'from:{profile.sender} subject:"{profile.subject}" after:{search_date(today)}'


def _to_candidates(rows: object, limit: int) -> list[CandidateMessage]:
    """Validate raw search rows. Raises on any malformed row."""
    if not isinstance(rows, list):
        raise TypeError(f"expected a list of rows, got {type(rows).__name__}")
    return [
        CandidateMessage(
            id=row["id"],
            subject=row.get("subject") or "",
            sender=row.get("from") or "",
            date=row.get("date") or "",
        )
        for row in rows[:limit]
    ]


async def locate(
    transport: MailTransport,
    profile: ProviderProfile,
    *,
    today: date,
) -> SearchOutcome:
    """Search the mailbox for ``profile``'s candidates received ``today``.

    Never raises for transport problems: a failed search is an empty
    outcome carrying the named failure, treated by callers as "nothing new
    this cycle".

    Args:
        transport: Mail transport to search.
        profile: Provider sender/subject patterns and result cap.
        today: The calendar day to search (inclusive).

    Returns:
        SearchOutcome with at most ``profile.max_results`` candidates, in the
        order the transport returned them.
    """
    try:
        rows = await transport.search(
            profile.sender,
            profile.subject,
            since=today,
            max_results=profile.max_results,
            gmail_query=build_gmail_query(profile, today),
        )
    except TRANSPORT_ERRORS as exc:
        failure = describe_failure(exc)
        logger.warning("%s search failed (%s): %s", profile.source, failure.kind, failure.detail)
        return SearchOutcome(failure=failure)

    try:
        candidates = _to_candidates(rows, profile.max_results)
    except (KeyError, TypeError, AttributeError, ValidationError) as exc:
        failure = TransportFailure(kind=TransportFailureKind.MALFORMED, detail=str(exc))
        logger.warning("%s search returned a malformed response: %s", profile.source, exc)
        return SearchOutcome(failure=failure)

    logger.debug("%s: %d candidate(s) for %s", profile.source, len(candidates), search_date(today))
    return SearchOutcome(candidates=candidates)
