"""
Service for persisting inbound webhook events.

Insert-once by event_id; the primary key rejects duplicates. The only later
write is the processing trace in `content`.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.webhook_event import WebhookEvent


class WebhookEventService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def exists(self, event_id: str) -> bool:
        return (
            self.db.query(WebhookEvent.event_id)
            .filter(WebhookEvent.event_id == event_id)
            .first()
            is not None
        )

    def create_event(
        self,
        event_id: str,
        event_type: Optional[str] = None,
        raw_payload: Optional[dict[str, Any]] = None,
    ) -> WebhookEvent:
        """Insert a new event row. Raises IntegrityError if event_id exists."""
        event = WebhookEvent(
            event_id=event_id,
            event_type=event_type,
            raw_payload=raw_payload,
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def get_event(self, event_id: str) -> Optional[WebhookEvent]:
        return (
            self.db.query(WebhookEvent)
            .filter(WebhookEvent.event_id == event_id)
            .first()
        )

    def update_content(self, event_id: str, content: str) -> Optional[WebhookEvent]:
        event = self.get_event(event_id)
        if event is None:
            return None
        event.content = content
        self.db.commit()
        self.db.refresh(event)
        return event
