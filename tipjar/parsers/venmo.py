"""Venmo payment notifications.

Name and amount come from the subject line, e.g. "Jane Doe paid you $19.00".
Anything else (weekly summaries, group payments, other phrasings) is not a
donation. The donor note lives in the HTML body in an element whose class
starts with ``transaction-note``.
"""

import re

from tipjar.parsers.base import Matched, NoMatch, ParseResult, html_to_text, parse_amount, register_parser
from tipjar.schemas.donations import CandidateMessage, DonationSource, FetchedMessage

_SUBJECT = re.compile(r"^(.+?)\s+paid you \$([0-9,.]+)$", re.IGNORECASE)
_NOTE = re.compile(r'class="transaction-note[^"]*"[^>]*>([\s\S]*?)</p>', re.IGNORECASE)


def extract_message(body: str) -> str:
    match = _NOTE.search(body)
    if not match:
        return ""
    return html_to_text(match.group(1))


@register_parser(DonationSource.VENMO, extract_message=extract_message)
def extract_fields(candidate: CandidateMessage, fetched: FetchedMessage) -> ParseResult:
    match = _SUBJECT.match(candidate.subject)
    if not match:
        return NoMatch(reason=f"subject not a payment: {candidate.subject!r}")
    amount = parse_amount(match.group(2))
    if amount is None:
        return NoMatch(reason=f"unparseable amount: {match.group(2)!r}")
    return Matched(name=match.group(1).strip(), amount=amount)
