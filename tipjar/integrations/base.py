"""Interface the donation pipeline needs from a mail transport.

ImapClient implements it; tests substitute in-memory fakes.
"""

from datetime import date
from typing import Any, Protocol

from tipjar.schemas.donations import TransportFailure, TransportFailureKind


class MailTransport(Protocol):
    async def search(
        self,
        sender: str,
        subject: str,
        *,
        since: date,
        max_results: int,
        gmail_query: str | None = None,
    ) -> list[dict[str, str]]: ...

    async def get(self, uid: str) -> dict[str, Any] | None: ...


def describe_failure(exc: BaseException) -> TransportFailure:
    """Name the failure behind a transport exception."""
    if isinstance(exc, TimeoutError):
        kind = TransportFailureKind.TIMEOUT
    else:
        kind = TransportFailureKind.NETWORK
    return TransportFailure(kind=kind, detail=f"{type(exc).__name__}: {exc}")
