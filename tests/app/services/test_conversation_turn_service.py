"""Tests for ConversationTurnService and WebhookEventService."""

import pytest
from sqlalchemy.exc import IntegrityError

from app.services.conversation_turn_service import ConversationTurnService
from app.services.webhook_event_service import WebhookEventService


def test_create_turn(db):
    svc = ConversationTurnService(db)
    turn = svc.create_turn("s1", "question", 8)
    assert turn.id is not None
    assert turn.answer is None
    assert turn.size == 8
    assert turn.created_at is not None


def test_set_answer_if_unanswered_updates_once(db):
    svc = ConversationTurnService(db)
    turn = svc.create_turn("s1", "question", 8)
    assert svc.set_answer_if_unanswered(turn.id, "first") == 1
    assert svc.set_answer_if_unanswered(turn.id, "second") == 0
    db.expire_all()
    assert svc.get_turn(turn.id).answer == "first"


def test_set_answer_if_unanswered_unknown_turn(db):
    svc = ConversationTurnService(db)
    assert svc.set_answer_if_unanswered(12345, "answer") == 0


def test_find_latest_unanswered_skips_answered(db):
    svc = ConversationTurnService(db)
    older = svc.create_turn("s1", "q", 1)
    newer = svc.create_turn("s1", "q", 1)
    svc.set_answer_if_unanswered(newer.id, "done")
    found = svc.find_latest_unanswered("s1", "q")
    assert found is not None
    assert found.id == older.id


def test_event_primary_key_rejects_duplicates(db):
    svc = WebhookEventService(db)
    svc.create_event("evt_1", event_type="im.message.receive_v1")
    with pytest.raises(IntegrityError):
        svc.create_event("evt_1")
    db.rollback()
    assert svc.exists("evt_1") is True


def test_update_content_unknown_event(db):
    svc = WebhookEventService(db)
    assert svc.update_content("missing", "trace") is None
