"""Async IMAP client wrapping imap-tools.

imap-tools is synchronous; all public methods use asyncio.to_thread()
for non-blocking operation. A single IMAP connection cannot interleave
commands, so calls on the shared mailbox are serialized with a lock.

The connection is opened lazily on first use and dropped after any
transport error, so the next call reconnects.

Usage::

    async with ImapClient(account_config) as imap:
        rows = await imap.search("venmo@venmo.com", "paid you", since=date.today(), max_results=20)
        message = await imap.get(rows[0]["id"])
"""

import asyncio
import imaplib
import logging
from collections.abc import Callable
from datetime import date
from email.message import Message
from typing import Any, TypeVar

from imap_tools import AND, MailBox, MailboxLoginError, MailMessage
from imap_tools.errors import ImapToolsError

from tipjar.schemas.donations import MailAccountConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that mean "the mail service could not answer", as opposed to bugs.
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    imaplib.IMAP4.error,
    ImapToolsError,
)

# imap-tools reports unparseable Date headers as this placeholder.
_UNPARSED_DATE_YEAR = 1900


def quote_imap(value: str) -> str:
    """Render a value as an IMAP quoted string."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def gmail_raw_criteria(query: str) -> str:
    """IMAP search criteria for a Gmail web-search style query."""
    return f"X-GM-RAW {quote_imap(query)}"


def header_date(msg: MailMessage) -> str:
    """Best timestamp string for a message: ISO-8601 if parseable, else raw."""
    if msg.date and msg.date.year > _UNPARSED_DATE_YEAR:
        return msg.date.isoformat()
    return msg.date_str or ""


def _search_row(msg: MailMessage) -> dict[str, str]:
    """Convert an imap-tools MailMessage to a search result row (headers only)."""
    return {
        "id": msg.uid or "",
        "subject": msg.subject or "",
        "from": msg.from_ or "",
        "date": msg.date_str or "",
    }


def _decode_part(part: Message) -> str:
    payload = part.get_payload(decode=True) or b""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, "replace")
    except LookupError:
        return payload.decode("utf-8", "replace")


def first_body_part(msg: MailMessage) -> str:
    """Body text of the first text/plain part, else the first text/html part.

    The MIME tree is walked depth first. Containers and attachments
    (parts with a filename) are skipped. HTML is returned with its markup
    intact. Unlike ``msg.text`` this never concatenates sibling parts.
    """
    first_html: Message | None = None
    for part in msg.obj.walk():
        if part.is_multipart() or part.get_filename():
            continue
        content_type = part.get_content_type()
        if content_type == "text/plain":
            return _decode_part(part)
        if content_type == "text/html" and first_html is None:
            first_html = part
    return _decode_part(first_html) if first_html is not None else ""


def _message_payload(msg: MailMessage) -> dict[str, Any]:
    """Convert an imap-tools MailMessage to a body + headers payload."""
    return {
        "body": first_body_part(msg),
        "headers": {
            "subject": msg.subject or "",
            "from": msg.from_ or "",
            "date": header_date(msg),
        },
    }


class ImapClient:
    """Async IMAP client wrapping imap-tools.

    Usage::

        async with ImapClient(account_config, timeout=15) as imap:
            rows = await imap.search(sender, subject, since=today, max_results=20)
    """

    def __init__(self, config: MailAccountConfig, *, timeout: float = 15.0) -> None:
        self._config = config
        self._timeout = timeout
        self._mailbox: MailBox | None = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "ImapClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        if self._mailbox:
            await asyncio.to_thread(self._disconnect)

    def _connect(self) -> MailBox:
        """Connect and login (sync, called via to_thread)."""
        if self._config.ssl:
            mb = MailBox(self._config.server, port=self._config.port, timeout=self._timeout)
        else:
            from imap_tools import MailBoxUnencrypted

            mb = MailBoxUnencrypted(
                self._config.server, port=self._config.port, timeout=self._timeout
            )

        try:
            mb.login(self._config.email, self._config.password, initial_folder=self._config.folder)
        except MailboxLoginError:
            logger.error("IMAP login failed for %s", self._config.email)
            try:
                mb.client.shutdown()
            except OSError:
                logger.debug("Error closing IMAP socket after failed login", exc_info=True)
            raise

        logger.info("Connected to %s as %s", self._config.server, self._config.email)
        return mb

    def _disconnect(self) -> None:
        """Logout and close (sync, called via to_thread)."""
        mailbox, self._mailbox = self._mailbox, None
        if mailbox:
            try:
                mailbox.logout()
            except Exception:
                logger.debug("Error during IMAP logout", exc_info=True)

    def _run(self, fn: Callable[[MailBox], T]) -> T:
        """Run ``fn`` against a live mailbox, reconnecting if needed (sync)."""
        if self._mailbox is None:
            self._mailbox = self._connect()
        try:
            return fn(self._mailbox)
        except TRANSPORT_ERRORS:
            self._disconnect()
            raise

    async def _call(self, fn: Callable[[MailBox], T]) -> T:
        async with self._lock:
            return await asyncio.to_thread(self._run, fn)

    # --- Search / fetch ---

    async def search(
        self,
        sender: str,
        subject: str,
        *,
        since: date,
        max_results: int,
        gmail_query: str | None = None,
    ) -> list[dict[str, str]]:
        """Find messages from ``sender`` whose subject contains ``subject``.

        Args:
            sender: From-address pattern.
            subject: Subject phrase.
            since: Earliest day to include (inclusive).
            max_results: Result cap.
            gmail_query: Gmail search string, used instead of plain IMAP
                criteria when the account is a Gmail account.

        Returns:
            Rows of ``{id, subject, from, date}``, newest first.

        Raises:
            Any of TRANSPORT_ERRORS on connection or protocol failure.
        """
        if self._config.is_gmail and gmail_query:
            criteria: Any = gmail_raw_criteria(gmail_query)
        else:
            criteria = AND(from_=sender, subject=subject, date_gte=since)

        def _search(mailbox: MailBox) -> list[dict[str, str]]:
            msgs = mailbox.fetch(
                criteria,
                headers_only=True,
                mark_seen=False,
                reverse=True,
                limit=max_results,
            )
            return [_search_row(m) for m in msgs]

        rows = await self._call(_search)
        logger.debug("IMAP search %r returned %d row(s)", criteria, len(rows))
        return rows

    async def get(self, uid: str) -> dict[str, Any] | None:
        """Fetch a single full message by UID, or None if it does not exist.

        Raises:
            Any of TRANSPORT_ERRORS on connection or protocol failure.
        """

        def _fetch(mailbox: MailBox) -> dict[str, Any] | None:
            msgs = list(mailbox.fetch(AND(uid=uid), mark_seen=False, limit=1))
            if not msgs:
                return None
            return _message_payload(msgs[0])

        return await self._call(_fetch)
