"""
WebhookEvent model: one row per platform event id.

The primary key is the dedup key. Rows are inserted once; only `content`
(the processing trace) is written afterwards.
"""

from __future__ import annotations

from sqlalchemy import JSON, Column, String, Text

from app.db import Base
from app.models.mixins import TimestampMixin


class WebhookEvent(Base, TimestampMixin):
    __tablename__ = "webhook_events"

    event_id = Column(String(255), primary_key=True)
    event_type = Column(String(128), nullable=True)
    raw_payload = Column(JSON, nullable=True)
    content = Column(Text, nullable=True)
