"""
Normalized relay contracts.

Adapters turn platform payloads into InboundMessage; the store hands back
EventRead/TurnRead so callers never hold live ORM rows.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class InboundMessage(BaseModel):
    """Normalized inbound chat message (adapter -> handler)."""

    event_id: str
    event_type: Optional[str] = None
    chat_id: str
    chat_type: Optional[str] = None
    sender_id: str
    message_id: str
    text: str
    raw: dict[str, Any] = Field(default_factory=dict)


class OutboundSendResult(BaseModel):
    """Result of sending a reply (success + optional platform message id)."""

    success: bool
    platform_message_id: Optional[str] = None


class HistoryItem(BaseModel):
    """One prior message fed to the completion model."""

    role: str  # 'user' | 'assistant'
    content: str


class EventRead(BaseModel):
    event_id: str
    event_type: Optional[str] = None
    raw_payload: Optional[dict[str, Any]] = None
    content: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TurnRead(BaseModel):
    id: int
    session_id: str
    question: str
    answer: Optional[str] = None
    size: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WebhookOutcome(str, Enum):
    """How the accept phase of a webhook call ended."""

    HANDSHAKE = "handshake"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    ACCEPTED = "accepted"


class PipelineState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    DEDUPED = "deduped"
    QUESTION_PERSISTED = "question_persisted"
    COMPLETED = "completed"
    ANSWER_PERSISTED = "answer_persisted"
    REPLIED = "replied"
    DONE = "done"
    IGNORED = "ignored"
    FAILED = "failed"


class PipelineResult(BaseModel):
    """Trace of one pipeline run; serialized into the event's content."""

    event_id: str
    state: PipelineState = PipelineState.DEDUPED
    session_id: Optional[str] = None
    turn_id: Optional[int] = None
    answer: Optional[str] = None
    completion_fallback: bool = False
    reply_sent: bool = False
    platform_message_id: Optional[str] = None
    error: Optional[str] = None

    def to_trace(self) -> str:
        return self.model_dump_json(exclude={"answer"})
