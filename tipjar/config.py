"""Single source of truth for all configuration and secrets.

All modules import from here — never from os.environ directly.

Values come from secrets/internal.env (or the SOPS-encrypted
secrets/internal.env.enc when TIPJAR_USE_SOPS=true). Anything missing
there falls back to the process environment.
"""

import os
from pathlib import Path

from tipjar.schemas.donations import MailAccountConfig
from tipjar.secrets import load_dotenv_file, load_secrets

PROJECT_ROOT = Path(__file__).resolve().parent.parent

USE_SOPS = os.environ.get("TIPJAR_USE_SOPS", "false").lower() == "true"


def _load(scope: str) -> dict[str, str | None]:
    """Load secrets for a given scope."""
    if USE_SOPS:
        return load_secrets(PROJECT_ROOT / f"secrets/{scope}.env.enc")
    return load_dotenv_file(PROJECT_ROOT / f"secrets/{scope}.env")


_internal = _load("internal")


def _get(key: str, default: str = "") -> str:
    value = _internal.get(key)
    if value is None:
        value = os.environ.get(key, default)
    return value


def _flag(key: str, default: str = "false") -> bool:
    return _get(key, default).lower() in ("1", "true", "yes")


# --- Mailbox ---
IMAP_SERVER: str = _get("IMAP_SERVER")
IMAP_PORT: int = int(_get("IMAP_PORT", "993"))
IMAP_EMAIL: str = _get("IMAP_EMAIL")
IMAP_PASSWORD: str = _get("IMAP_PASSWORD")
IMAP_FOLDER: str = _get("IMAP_FOLDER", "INBOX")
IMAP_IS_GMAIL: bool = _flag("IMAP_IS_GMAIL", "true")
IMAP_SSL: bool = _flag("IMAP_SSL", "true")

# --- Providers ---
VENMO_SENDER: str = _get("VENMO_SENDER", "venmo@venmo.com")
ZELLE_SENDER: str = _get("ZELLE_SENDER", "notify.wellsfargo.com")

# --- Polling ---
POLL_INTERVAL_SECONDS: float = float(_get("POLL_INTERVAL_SECONDS", "30"))
TRANSPORT_TIMEOUT_SECONDS: float = float(_get("TRANSPORT_TIMEOUT_SECONDS", "15"))
# IANA zone name for "today" in the mailbox search; empty = server local time
TIPJAR_TIMEZONE: str = _get("TIPJAR_TIMEZONE")

# --- Storage ---
LEDGER_DB_PATH: str = _get("LEDGER_DB_PATH", str(PROJECT_ROOT / "data" / "ledger.db"))
POLL_AUDIT_LOG_PATH: str = _get(
    "POLL_AUDIT_LOG_PATH", str(PROJECT_ROOT / "data" / "poll_audit.log")
)


def mail_account() -> MailAccountConfig:
    """Build the mailbox config from the loaded values."""
    return MailAccountConfig(
        server=IMAP_SERVER,
        email=IMAP_EMAIL,
        password=IMAP_PASSWORD,
        folder=IMAP_FOLDER,
        is_gmail=IMAP_IS_GMAIL,
        port=IMAP_PORT,
        ssl=IMAP_SSL,
    )
