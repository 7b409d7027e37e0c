"""Pydantic schemas for the mailbox query API

Every response is wrapped in the ApiResponse envelope: ``code`` mirrors
the HTTP status, ``msg`` is a short status text and ``data`` the payload.
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope"""
    code: int = Field(..., description="Status code, mirrors HTTP status")
    msg: str = Field(..., description="Status text")
    data: T


class AddressResponse(BaseModel):
    """Freshly generated disposable address"""
    email: str


class InboxRequest(BaseModel):
    email: str = Field(..., min_length=1, description="Recipient address, matched verbatim")


class InboxItemResponse(BaseModel):
    """Inbox list item - summary view"""
    id: str
    from_name: str = ""
    from_email: str = ""
    subject: str = ""
    created_at: str = Field(..., description="Receive time, YYYY-MM-DD HH:MM:SS UTC")


class DetailRequest(BaseModel):
    id: str = Field(..., min_length=1, description="Message id from the inbox listing")


class DetailResponse(BaseModel):
    """Full message content"""
    id: str
    email: str = Field(..., description="Recipient address the message was stored under")
    from_name: str = ""
    from_email: str = ""
    subject: str = ""
    content: str = ""
    created_at: str


InboxListResponse = ApiResponse[List[InboxItemResponse]]
DetailEnvelope = ApiResponse[Optional[DetailResponse]]
