"""ConversationTurn model: one question/answer pair within a session."""

from __future__ import annotations

from sqlalchemy import Column, Index, Integer, String, Text

from app.db import Base
from app.models.mixins import TimestampMixin


class ConversationTurn(Base, TimestampMixin):
    """
    Question is immutable once written; answer goes from NULL to a value once.

    Grouped by session_id (chat + sender) and read newest first.
    """

    __tablename__ = "conversation_turns"

    __table_args__ = (
        Index(
            "ix_conversation_turns_session_created",
            "session_id",
            "created_at",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(512), nullable=False)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=True)
    size = Column("msg_size", Integer, nullable=False, default=0)
