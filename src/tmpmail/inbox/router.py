"""Mailbox query API endpoints

Read-only view over the message store:
- refresh: hand out a new random disposable address
- inbox: latest message stored for an address (0 or 1 items)
- detail: full content of one stored message by id

Messages disappear from every endpoint once their TTL has elapsed.
"""

import logging
import secrets
import string
from email.utils import parseaddr
from typing import Tuple

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from ..dependencies import SettingsDep, StoreDep
from ..models.message import Message
from .schemas import (
    AddressResponse,
    ApiResponse,
    DetailEnvelope,
    DetailRequest,
    DetailResponse,
    InboxItemResponse,
    InboxListResponse,
    InboxRequest,
    TIMESTAMP_FORMAT,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mail", tags=["Mail"])

ADDRESS_ALPHABET = string.ascii_letters + string.digits
ADDRESS_LENGTH = 10


def generate_address(domain: str) -> str:
    """Random mailbox name under ``domain``."""
    local = "".join(secrets.choice(ADDRESS_ALPHABET) for _ in range(ADDRESS_LENGTH))
    return f"{local}@{domain}"


def _split_sender(sender: str) -> Tuple[str, str]:
    """Split an envelope sender into (display name, address)."""
    name, address = parseaddr(sender)
    return name, address or sender


def _created_at(message: Message) -> str:
    if message.received_at is None:
        return ""
    return message.received_at.strftime(TIMESTAMP_FORMAT)


@router.get("/refresh", response_model=ApiResponse[AddressResponse])
def refresh_address(settings: SettingsDep):
    """Generate a new disposable address.

    The address is not reserved; any mail sent to it is stored.
    """
    address = generate_address(settings.MAIL_DOMAIN)
    logger.info(f"Generated address {address}")
    return ApiResponse[AddressResponse](
        code=200,
        msg="success",
        data=AddressResponse(email=address),
    )


@router.post("/inbox", response_model=InboxListResponse)
def get_inbox(req: InboxRequest, store: StoreDep):
    """List the message currently held for an address.

    The store keeps only the most recent message per recipient, so the
    list has at most one item.

    Args:
        req: Request body with the recipient address
        store: Shared message store

    Returns:
        InboxListResponse: Envelope with the (possibly empty) item list
    """
    items = []
    message = store.get(req.email)
    if message is not None:
        from_name, from_email = _split_sender(message.sender)
        items.append(InboxItemResponse(
            id=message.id or "",
            from_name=from_name,
            from_email=from_email,
            subject=message.subject,
            created_at=_created_at(message),
        ))

    return InboxListResponse(code=200, msg="success", data=items)


@router.post(
    "/detail",
    response_model=DetailEnvelope,
    responses={404: {"model": DetailEnvelope, "description": "Message not found or expired"}},
)
def get_detail(req: DetailRequest, store: StoreDep):
    """Return the full content of a stored message.

    Args:
        req: Request body with the message id
        store: Shared message store

    Returns:
        DetailEnvelope: Message detail, or code 404 with null data
    """
    found = store.find(req.id)
    if found is None:
        envelope = DetailEnvelope(code=404, msg="message not found", data=None)
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=envelope.model_dump(),
        )

    recipient, message = found
    from_name, from_email = _split_sender(message.sender)
    return DetailEnvelope(
        code=200,
        msg="success",
        data=DetailResponse(
            id=message.id or "",
            email=recipient,
            from_name=from_name,
            from_email=from_email,
            subject=message.subject,
            content=message.body,
            created_at=_created_at(message),
        ),
    )
