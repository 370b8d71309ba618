"""Message fetcher: retrieve a candidate's full content."""

import logging

from pydantic import ValidationError

from tipjar.integrations.base import MailTransport, describe_failure
from tipjar.integrations.imap import TRANSPORT_ERRORS
from tipjar.schemas.donations import (
    FetchedMessage,
    FetchOutcome,
    TransportFailure,
    TransportFailureKind,
)

logger = logging.getLogger(__name__)


async def fetch(transport: MailTransport, message_id: str) -> FetchOutcome:
    """Fetch one message by id.

    Not found, transport errors and malformed payloads all yield an outcome
    with ``message=None`` and a named failure. The candidate stays
    unrecorded and is picked up again on the next poll.
    """
    try:
        payload = await transport.get(message_id)
    except TRANSPORT_ERRORS as exc:
        failure = describe_failure(exc)
        logger.warning("Fetch of %s failed (%s): %s", message_id, failure.kind, failure.detail)
        return FetchOutcome(failure=failure)

    if payload is None:
        logger.debug("Message %s not found", message_id)
        return FetchOutcome(
            failure=TransportFailure(kind=TransportFailureKind.NOT_FOUND, detail=message_id)
        )

    try:
        message = FetchedMessage.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Message %s has a malformed payload: %s", message_id, exc)
        return FetchOutcome(
            failure=TransportFailure(kind=TransportFailureKind.MALFORMED, detail=str(exc))
        )

    return FetchOutcome(message=message)
