"""Schemas for the email-to-donation pipeline.

Covers the full lifecycle:
  mailbox search -> message fetch -> provider parse -> ledger insert -> poll result
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# --- Config ---


class MailAccountConfig(BaseModel):
    """Configuration for the mailbox that receives payment notifications."""

    server: str
    email: str
    password: str
    folder: str = "INBOX"
    is_gmail: bool = False
    port: int = 993
    ssl: bool = True


# --- Providers ---


class DonationSource(StrEnum):
    """Payment provider a donation arrived through."""

    VENMO = "venmo"
    ZELLE = "zelle"


class ProviderProfile(BaseModel):
    """How to find a provider's payment notifications in the mailbox."""

    source: DonationSource
    sender: str  # from-address pattern
    subject: str  # subject phrase
    max_results: int = Field(default=20, gt=0)


VENMO_PROFILE = ProviderProfile(
    source=DonationSource.VENMO,
    sender="venmo@venmo.com",
    subject="paid you",
)

ZELLE_PROFILE = ProviderProfile(
    source=DonationSource.ZELLE,
    sender="notify.wellsfargo.com",
    subject="received money with Zelle",
)


# --- Mail data ---


class CandidateMessage(BaseModel):
    """A located email that may be a donation. Never persisted."""

    id: str = Field(min_length=1)
    subject: str = ""
    sender: str = ""
    date: str = ""  # raw, fallback timestamp only


class MessageHeaders(BaseModel):
    """Authoritative header fields of a fetched message."""

    model_config = ConfigDict(populate_by_name=True)

    subject: str = ""
    from_: str = Field(default="", alias="from")
    date: str = ""


class FetchedMessage(BaseModel):
    """Full content for a candidate.

    ``body`` is the plain-text part when present, otherwise raw HTML.
    """

    body: str = ""
    headers: MessageHeaders = Field(default_factory=MessageHeaders)


# --- Transport outcomes ---


class TransportFailureKind(StrEnum):
    """Why a mail transport call produced nothing."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    MALFORMED = "malformed"
    NOT_FOUND = "not_found"


class TransportFailure(BaseModel):
    kind: TransportFailureKind
    detail: str = ""


class SearchOutcome(BaseModel):
    """Result of locating candidates. A failure always has no candidates."""

    candidates: list[CandidateMessage] = Field(default_factory=list)
    failure: TransportFailure | None = None


class FetchOutcome(BaseModel):
    """Result of fetching one message. ``message`` is None on failure."""

    message: FetchedMessage | None = None
    failure: TransportFailure | None = None


# --- Ledger ---


class Donation(BaseModel):
    """A confirmed donation. ``id`` is the source message id."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    amount: float = Field(ge=0.0, allow_inf_nan=False)
    message: str = ""
    source: DonationSource
    timestamp: str


# --- Pipeline results ---


class PollResult(BaseModel):
    """Outcome of one poll cycle."""

    donations: list[Donation] = Field(default_factory=list)
    new_ids: list[str] = Field(default_factory=list)
    total: float = 0.0
    failures: int = 0  # transport failures seen this cycle


# --- Audit ---


class PollAuditEntry(BaseModel):
    """A record of one completed poll cycle."""

    timestamp: datetime
    candidates: int = 0
    skipped: int = 0  # already recorded before the cycle started
    new_ids: list[str] = Field(default_factory=list)
    failures: int = 0
    total: float = 0.0
