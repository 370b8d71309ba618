"""Provider parser base: result types, registry and shared text helpers.

Each provider module registers a ProviderParser pairing two independent
steps. ``extract_fields`` finds the donor name and amount and decides
whether the message is a donation at all. ``extract_message`` pulls the
optional note and never causes a donation to be dropped.
"""

import math
from collections.abc import Callable
from dataclasses import dataclass

from bs4 import BeautifulSoup
from pydantic import BaseModel

from tipjar.schemas.donations import CandidateMessage, DonationSource, FetchedMessage


class Matched(BaseModel):
    """Donor name and amount extracted from a recognized message."""

    name: str
    amount: float


class NoMatch(BaseModel):
    """The message is not a recognized donation for this provider."""

    reason: str = ""


ParseResult = Matched | NoMatch

FieldExtractor = Callable[[CandidateMessage, FetchedMessage], ParseResult]
MessageExtractor = Callable[[str], str]


@dataclass(frozen=True)
class ProviderParser:
    extract_fields: FieldExtractor
    extract_message: MessageExtractor


# Registry of provider -> parser
PARSERS: dict[DonationSource, ProviderParser] = {}


def register_parser(source: DonationSource, *, extract_message: MessageExtractor):
    """Decorator registering a field extractor (plus its note extractor) for a provider."""

    def decorator(func: FieldExtractor) -> FieldExtractor:
        PARSERS[source] = ProviderParser(extract_fields=func, extract_message=extract_message)
        return func

    return decorator


def get_parser(source: DonationSource) -> ProviderParser:
    """Look up the parser for a provider.

    Raises:
        KeyError: If no parser is registered for ``source``.
    """
    # Provider modules register on import.
    import tipjar.parsers.venmo  # noqa: F401
    import tipjar.parsers.zelle  # noqa: F401

    return PARSERS[source]


def parse_amount(text: str) -> float | None:
    """Parse an amount like ``19.00`` or ``1,500.00``.

    Thousands separators are stripped. Returns None for anything that is
    not a finite, non-negative number (e.g. ``"1.2.3"`` or ``"."``).
    """
    try:
        value = float(text.replace(",", ""))
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def html_to_text(html: str) -> str:
    """Text content of an HTML fragment, entities decoded and whitespace trimmed."""
    return BeautifulSoup(html, "html.parser").get_text().strip()


def title_case(name: str) -> str:
    """Capitalize each space-delimited word, lowercasing the rest."""
    return " ".join(word[:1].upper() + word[1:] for word in name.lower().split(" "))
