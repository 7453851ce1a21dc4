"""ConversationTurn CRUD and history queries."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.conversation_turn import ConversationTurn
from app.models.mixins import utcnow


class ConversationTurnService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create_turn(self, session_id: str, question: str, size: int) -> ConversationTurn:
        turn = ConversationTurn(
            session_id=session_id,
            question=question,
            answer=None,
            size=size,
        )
        self.db.add(turn)
        self.db.commit()
        self.db.refresh(turn)
        return turn

    def get_turn(self, turn_id: int) -> Optional[ConversationTurn]:
        return (
            self.db.query(ConversationTurn)
            .filter(ConversationTurn.id == turn_id)
            .first()
        )

    def set_answer_if_unanswered(self, turn_id: int, answer: str) -> int:
        """
        Write the answer only while it is still NULL.

        Returns the number of rows updated (0 or 1). The NULL check lives in the
        UPDATE itself so two concurrent writers cannot both succeed.
        """
        updated = (
            self.db.query(ConversationTurn)
            .filter(
                ConversationTurn.id == turn_id,
                ConversationTurn.answer.is_(None),
            )
            .update(
                {
                    ConversationTurn.answer: answer,
                    ConversationTurn.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated

    def find_latest_unanswered(
        self, session_id: str, question: str
    ) -> Optional[ConversationTurn]:
        return (
            self.db.query(ConversationTurn)
            .filter(
                ConversationTurn.session_id == session_id,
                ConversationTurn.question == question,
                ConversationTurn.answer.is_(None),
            )
            .order_by(ConversationTurn.created_at.desc(), ConversationTurn.id.desc())
            .first()
        )

    def get_turns(
        self,
        session_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[ConversationTurn]:
        """Turns for a session, newest first."""
        query = (
            self.db.query(ConversationTurn)
            .filter(ConversationTurn.session_id == session_id)
            .order_by(ConversationTurn.created_at.desc(), ConversationTurn.id.desc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def delete_turn(self, turn_id: int) -> int:
        deleted = (
            self.db.query(ConversationTurn)
            .filter(ConversationTurn.id == turn_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def delete_turns_for_session(self, session_id: str) -> int:
        deleted = (
            self.db.query(ConversationTurn)
            .filter(ConversationTurn.session_id == session_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted
