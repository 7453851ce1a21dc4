"""
MessageStore: the persistence contract used by the webhook handler.

Owns both tables (webhook_events, conversation_turns). Each operation runs in
its own short session and commits a single-row write, so concurrent pipelines
share nothing but the database. Results are returned as read models
(EventRead, TurnRead), never as live ORM rows.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import DatabaseManager
from app.exceptions import (
    AnswerAlreadySetError,
    EventAlreadyExistsError,
    EventNotFoundError,
    StorageError,
    TurnNotFoundError,
)
from app.infra.logging_config import get_logger
from app.schemas.relay import EventRead, TurnRead
from app.services.conversation_turn_service import ConversationTurnService
from app.services.webhook_event_service import WebhookEventService

logger = get_logger("message_store")


class MessageStore:
    def __init__(self, db_manager: DatabaseManager) -> None:
        self._db_manager = db_manager

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        """Open a session and surface any database failure as StorageError."""
        try:
            with self._db_manager.db_session() as db:
                yield db
        except SQLAlchemyError as e:
            logger.error("Storage operation %s failed: %s", operation, e)
            raise StorageError(operation, e) from e

    def init_schema(self) -> None:
        try:
            self._db_manager.create_all()
        except SQLAlchemyError as e:
            raise StorageError("init_schema", e) from e

    def ping(self) -> bool:
        try:
            self._db_manager.ping()
        except SQLAlchemyError as e:
            logger.warning("Store ping failed: %s", e)
            return False
        return True

    def close(self) -> None:
        self._db_manager.dispose()

    # --- events -------------------------------------------------------------

    def has_seen_event(self, event_id: str) -> bool:
        with self._session("has_seen_event") as db:
            return WebhookEventService(db).exists(event_id)

    def record_event(
        self,
        event_id: str,
        event_type: Optional[str] = None,
        raw_payload: Optional[dict[str, Any]] = None,
    ) -> EventRead:
        """
        Insert the event row. The primary key decides races: a concurrent or
        repeated insert of the same id raises EventAlreadyExistsError.
        """
        with self._session("record_event") as db:
            try:
                event = WebhookEventService(db).create_event(
                    event_id, event_type=event_type, raw_payload=raw_payload
                )
            except IntegrityError as e:
                db.rollback()
                raise EventAlreadyExistsError(event_id) from e
            return EventRead.model_validate(event)

    def annotate_event(self, event_id: str, content: str) -> EventRead:
        with self._session("annotate_event") as db:
            event = WebhookEventService(db).update_content(event_id, content)
            if event is None:
                raise EventNotFoundError(event_id)
            return EventRead.model_validate(event)

    def get_event(self, event_id: str) -> Optional[EventRead]:
        with self._session("get_event") as db:
            event = WebhookEventService(db).get_event(event_id)
            return EventRead.model_validate(event) if event is not None else None

    # --- turns --------------------------------------------------------------

    def insert_turn(self, session_id: str, question: str, size: int) -> TurnRead:
        with self._session("insert_turn") as db:
            turn = ConversationTurnService(db).create_turn(session_id, question, size)
            return TurnRead.model_validate(turn)

    def set_answer(self, turn_id: int, answer: str) -> TurnRead:
        """Set the answer of an unanswered turn. Answers are written exactly once."""
        with self._session("set_answer") as db:
            service = ConversationTurnService(db)
            updated = service.set_answer_if_unanswered(turn_id, answer)
            turn = service.get_turn(turn_id)
            if turn is None:
                raise TurnNotFoundError(f"Turn not found: {turn_id}")
            if updated == 0:
                raise AnswerAlreadySetError(turn_id)
            return TurnRead.model_validate(turn)

    def set_answer_by_question(
        self, session_id: str, question: str, answer: str
    ) -> TurnRead:
        """
        Answer the most recent unanswered turn with this session and question.

        For callers without a turn id. If the same question is pending twice in
        one session, the newer turn is answered first.
        """
        with self._session("set_answer_by_question") as db:
            turn = ConversationTurnService(db).find_latest_unanswered(
                session_id, question
            )
            if turn is None:
                raise TurnNotFoundError(
                    f"No unanswered turn in session {session_id} for this question"
                )
            turn_id = turn.id
        return self.set_answer(turn_id, answer)

    def list_turns(
        self,
        session_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[TurnRead]:
        with self._session("list_turns") as db:
            turns = ConversationTurnService(db).get_turns(
                session_id, limit=limit, offset=offset
            )
            return [TurnRead.model_validate(t) for t in turns]

    def delete_turn(self, turn_id: int) -> int:
        with self._session("delete_turn") as db:
            return ConversationTurnService(db).delete_turn(turn_id)

    def delete_session(self, session_id: str) -> int:
        with self._session("delete_session") as db:
            return ConversationTurnService(db).delete_turns_for_session(session_id)
