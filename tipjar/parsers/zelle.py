"""Zelle payment notifications (Wells Fargo "received money with Zelle").

Name and amount come from the body heading, e.g.
``<h1>HARPER NADLMAN sent you $500.00</h1>``. The bank renders names in
capitals, so they are title-cased. The memo follows a ``Memo:`` label in
a ``<strong>`` element.
"""

import re

from tipjar.parsers.base import (
    Matched,
    NoMatch,
    ParseResult,
    html_to_text,
    parse_amount,
    register_parser,
    title_case,
)
from tipjar.schemas.donations import CandidateMessage, DonationSource, FetchedMessage

_HEADING = re.compile(r">\s*([A-Za-z][A-Za-z .'-]+?)\s+sent you \$([0-9,.]+)\s*</h1>", re.IGNORECASE)
_MEMO = re.compile(r"Memo:\s*<strong>([^<]*)</strong>", re.IGNORECASE)


def extract_message(body: str) -> str:
    match = _MEMO.search(body)
    if not match:
        return ""
    return html_to_text(match.group(1))


@register_parser(DonationSource.ZELLE, extract_message=extract_message)
def extract_fields(candidate: CandidateMessage, fetched: FetchedMessage) -> ParseResult:
    match = _HEADING.search(fetched.body)
    if not match:
        return NoMatch(reason="no 'sent you' heading in body")
    amount = parse_amount(match.group(2))
    if amount is None:
        return NoMatch(reason=f"unparseable amount: {match.group(2)!r}")
    return Matched(name=title_case(match.group(1).strip()), amount=amount)
