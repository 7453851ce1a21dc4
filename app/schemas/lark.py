"""
Lark webhook payload schemas.

Matches the structure Lark sends to event subscription endpoints: the
url_verification handshake and schema 2.0 event envelopes
(im.message.receive_v1).
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

URL_VERIFICATION_TYPE = "url_verification"
MESSAGE_RECEIVE_EVENT_TYPE = "im.message.receive_v1"
TEXT_MESSAGE_TYPE = "text"


class LarkUrlVerification(BaseModel):
    """Handshake sent once when the endpoint is registered."""

    type: Literal["url_verification"]
    challenge: str
    token: Optional[str] = None


class LarkEventHeader(BaseModel):
    """Schema 2.0 event header."""

    event_id: str = Field(min_length=1)
    event_type: str
    create_time: Optional[str] = None
    token: Optional[str] = None
    app_id: Optional[str] = None
    tenant_key: Optional[str] = None


class LarkUserId(BaseModel):
    """The three id flavours Lark attaches to a user."""

    user_id: Optional[str] = None
    open_id: Optional[str] = None
    union_id: Optional[str] = None

    def preferred(self) -> Optional[str]:
        """user_id when the app has the scope for it, else open_id, else union_id."""
        return self.user_id or self.open_id or self.union_id


class LarkSender(BaseModel):
    """event.sender"""

    sender_id: LarkUserId
    sender_type: Optional[str] = None
    tenant_key: Optional[str] = None


class LarkMention(BaseModel):
    """A mention placeholder inside text content (e.g. key "@_user_1")."""

    key: str
    id: Optional[LarkUserId] = None
    name: Optional[str] = None


class LarkMessage(BaseModel):
    """event.message"""

    message_id: str
    chat_id: str = Field(min_length=1)
    chat_type: Optional[str] = None
    message_type: str
    content: str
    root_id: Optional[str] = None
    parent_id: Optional[str] = None
    create_time: Optional[str] = None
    mentions: Optional[list[LarkMention]] = None


class LarkMessageReceiveEvent(BaseModel):
    """Body of an im.message.receive_v1 event."""

    sender: LarkSender
    message: LarkMessage


class LarkTextContent(BaseModel):
    """Decoded message.content for message_type == "text"."""

    text: str


class LarkEventEnvelope(BaseModel):
    """Schema 2.0 envelope; `event` is decoded per event_type."""

    schema_: Optional[str] = Field(default=None, alias="schema")
    header: LarkEventHeader
    event: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}
