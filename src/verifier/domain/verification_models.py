from __future__ import annotations

from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VerificationIntent(str, Enum):
    RETURN = "RETURN"
    COMPLAINT = "COMPLAINT"


Role = Literal["user", "assistant"]


class VerificationSession(BaseModel):
    session_id: str
    order_id: str
    intent: VerificationIntent
    description: str
    created_at: str


class ChatMessage(BaseModel):
    message_id: str
    session_id: str
    role: Role
    content: str
    created_at: str


class SessionWithMessages(BaseModel):
    session: VerificationSession
    messages: List[ChatMessage]


class AttachmentRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: Optional[str] = None
    name: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")


class ClientMessage(BaseModel):
    """One turn as submitted by the client.

    ``content`` is either a plain string or a list of typed blocks; anything
    else is tolerated and later normalised to empty text.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    role: str
    content: Any = None
    attachments: Optional[List[AttachmentRef]] = Field(default=None, alias="experimental_attachments")

    @property
    def attachment_urls(self) -> List[Optional[str]]:
        return [ref.url for ref in (self.attachments or [])]


class VerificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId", min_length=1)
    intent: VerificationIntent
    description: str = ""
    messages: List[ClientMessage] = Field(min_length=1)

    @field_validator("intent", mode="before")
    @classmethod
    def _upper_intent(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value
