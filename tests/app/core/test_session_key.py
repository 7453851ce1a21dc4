"""Tests for session key derivation."""

from app.core.session_key import build_session_key


def test_same_chat_and_sender_give_same_key():
    assert build_session_key("oc_1", "ou_1") == build_session_key("oc_1", "ou_1")


def test_plain_lark_ids_stay_readable():
    assert build_session_key("oc_abc", "ou_def") == "oc_abc:ou_def"


def test_different_chat_or_sender_give_different_keys():
    base = build_session_key("oc_1", "ou_1")
    assert build_session_key("oc_2", "ou_1") != base
    assert build_session_key("oc_1", "ou_2") != base


def test_no_collision_when_concatenation_would_collide():
    assert build_session_key("ab", "c") != build_session_key("a", "bc")


def test_no_collision_when_ids_contain_separator():
    assert build_session_key("a:b", "c") != build_session_key("a", "b:c")
