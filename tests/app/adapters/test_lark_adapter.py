"""Tests for LarkAdapter."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from app.adapters.lark import LarkAdapter
from app.exceptions import PayloadValidationError, SendError
from app.schemas.relay import OutboundSendResult
from tests.fixtures.lark_fixtures import lark_message_event, url_verification


def lark_response(payload, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = json.dumps(payload)
    return resp


def token_response(token="t-abc", expire=7200):
    return lark_response(
        {"code": 0, "msg": "ok", "tenant_access_token": token, "expire": expire}
    )


def send_response(message_id="om_reply1"):
    return lark_response({"code": 0, "msg": "success", "data": {"message_id": message_id}})


@pytest.fixture
def adapter():
    return LarkAdapter(
        app_id="cli_test",
        app_secret="secret",
        api_base_url="https://lark.example/open-apis/",
        timeout_seconds=5,
    )


def test_get_challenge(adapter):
    assert adapter.get_challenge(url_verification("abc123")) == "abc123"


def test_get_challenge_not_a_handshake(adapter):
    assert adapter.get_challenge(lark_message_event()) is None


def test_get_challenge_malformed_handshake_raises(adapter):
    with pytest.raises(PayloadValidationError):
        adapter.get_challenge({"type": "url_verification"})


def test_verify_webhook_without_token_configured(adapter):
    assert adapter.verify_webhook(lark_message_event(token="anything")) is True
    assert adapter.verify_webhook({}) is True


def test_verify_webhook_with_token():
    adapter = LarkAdapter(app_id=None, app_secret=None, verification_token="v-token")
    assert adapter.verify_webhook(url_verification(token="v-token")) is True
    assert adapter.verify_webhook(url_verification(token="wrong")) is False
    assert adapter.verify_webhook(lark_message_event(token="v-token")) is True
    assert adapter.verify_webhook(lark_message_event(token="wrong")) is False
    assert adapter.verify_webhook(url_verification()) is False


def test_verify_webhook_non_ascii_token_is_rejected():
    adapter = LarkAdapter(app_id=None, app_secret=None, verification_token="v-token")
    assert adapter.verify_webhook(lark_message_event(token="tökén")) is False
    assert adapter.verify_webhook(url_verification(token="ünïcode")) is False


def test_verify_webhook_non_ascii_configured_token():
    adapter = LarkAdapter(app_id=None, app_secret=None, verification_token="tökén")
    assert adapter.verify_webhook(lark_message_event(token="tökén")) is True
    assert adapter.verify_webhook(lark_message_event(token="token")) is False


def test_parse_webhook(adapter):
    inbound = adapter.parse_webhook(
        lark_message_event(event_id="evt_9", chat_id="oc_42", text="  hello there  ")
    )
    assert inbound.event_id == "evt_9"
    assert inbound.event_type == "im.message.receive_v1"
    assert inbound.chat_id == "oc_42"
    assert inbound.sender_id == "u_user1"
    assert inbound.message_id == "om_evt_9"
    assert inbound.text == "hello there"
    assert inbound.raw["header"]["event_id"] == "evt_9"


def test_parse_webhook_falls_back_to_open_id(adapter):
    inbound = adapter.parse_webhook(lark_message_event(user_id=None, open_id="ou_77"))
    assert inbound.sender_id == "ou_77"


def test_parse_webhook_strips_mentions(adapter):
    payload = lark_message_event(
        text="@_user_1 what is the weather?",
        mentions=[{"key": "@_user_1", "id": {"open_id": "ou_bot"}, "name": "Bot"}],
    )
    assert adapter.parse_webhook(payload).text == "what is the weather?"


def test_parse_webhook_strips_ten_or_more_mentions(adapter):
    keys = [f"@_user_{i}" for i in range(1, 12)]
    payload = lark_message_event(
        text=" ".join(keys) + " hello",
        mentions=[{"key": key, "name": f"User {i}"} for i, key in enumerate(keys)],
    )
    assert adapter.parse_webhook(payload).text == "hello"


def test_parse_webhook_only_mention_is_empty(adapter):
    payload = lark_message_event(
        text="@_user_1 ", mentions=[{"key": "@_user_1", "name": "Bot"}]
    )
    with pytest.raises(PayloadValidationError, match="no text"):
        adapter.parse_webhook(payload)


def test_parse_webhook_unsupported_event_type(adapter):
    payload = lark_message_event()
    payload["header"]["event_type"] = "im.chat.member.bot.added_v1"
    with pytest.raises(PayloadValidationError, match="Unsupported event type"):
        adapter.parse_webhook(payload)


def test_parse_webhook_non_text_message(adapter):
    payload = lark_message_event(message_type="image")
    with pytest.raises(PayloadValidationError, match="Unsupported message type"):
        adapter.parse_webhook(payload)


def test_parse_webhook_content_not_json(adapter):
    payload = lark_message_event()
    payload["event"]["message"]["content"] = "not json"
    with pytest.raises(PayloadValidationError, match="not JSON"):
        adapter.parse_webhook(payload)


def test_parse_webhook_missing_header(adapter):
    with pytest.raises(PayloadValidationError):
        adapter.parse_webhook({"event": {}})


def test_parse_webhook_missing_message(adapter):
    payload = lark_message_event()
    del payload["event"]["message"]
    with pytest.raises(PayloadValidationError, match="Invalid message event"):
        adapter.parse_webhook(payload)


@pytest.mark.asyncio
async def test_send_posts_text_message(adapter):
    with patch(
        "app.adapters.lark.requests.post",
        side_effect=[token_response(), send_response("om_123")],
    ) as mock_post:
        result = await adapter.send("oc_42", "hi there")

    assert isinstance(result, OutboundSendResult)
    assert result.success is True
    assert result.platform_message_id == "om_123"

    token_call, send_call = mock_post.call_args_list
    assert token_call.args[0] == (
        "https://lark.example/open-apis/auth/v3/tenant_access_token/internal"
    )
    assert token_call.kwargs["json"] == {"app_id": "cli_test", "app_secret": "secret"}
    assert send_call.args[0] == "https://lark.example/open-apis/im/v1/messages"
    assert send_call.kwargs["params"] == {"receive_id_type": "chat_id"}
    assert send_call.kwargs["headers"]["Authorization"] == "Bearer t-abc"
    assert send_call.kwargs["timeout"] == 5
    body = send_call.kwargs["json"]
    assert body["receive_id"] == "oc_42"
    assert body["msg_type"] == "text"
    assert json.loads(body["content"]) == {"text": "hi there"}


@pytest.mark.asyncio
async def test_send_reuses_cached_token(adapter):
    with patch(
        "app.adapters.lark.requests.post",
        side_effect=[token_response(), send_response("om_1"), send_response("om_2")],
    ) as mock_post:
        await adapter.send("oc_1", "one")
        second = await adapter.send("oc_1", "two")

    assert second.platform_message_id == "om_2"
    assert mock_post.call_count == 3


@pytest.mark.asyncio
async def test_send_refetches_expired_token(adapter):
    # expire shorter than the refresh margin means the token is never reused
    with patch(
        "app.adapters.lark.requests.post",
        side_effect=[
            token_response("t-1", expire=30),
            send_response(),
            token_response("t-2", expire=30),
            send_response(),
        ],
    ) as mock_post:
        await adapter.send("oc_1", "one")
        await adapter.send("oc_1", "two")

    assert mock_post.call_count == 4
    assert mock_post.call_args_list[3].kwargs["headers"]["Authorization"] == "Bearer t-2"


@pytest.mark.asyncio
async def test_send_without_credentials_raises():
    adapter = LarkAdapter(app_id=None, app_secret=None)
    with patch("app.adapters.lark.requests.post") as mock_post:
        with pytest.raises(SendError, match="not configured"):
            await adapter.send("oc_1", "hi")
    mock_post.assert_not_called()


@pytest.mark.asyncio
async def test_send_lark_error_code_raises(adapter):
    error = lark_response({"code": 230002, "msg": "Bot is not in the chat"})
    with patch(
        "app.adapters.lark.requests.post", side_effect=[token_response(), error]
    ):
        with pytest.raises(SendError, match="230002"):
            await adapter.send("oc_1", "hi")


@pytest.mark.asyncio
async def test_send_http_error_raises(adapter):
    error = lark_response({"code": 99991663, "msg": "token invalid"}, status_code=401)
    with patch(
        "app.adapters.lark.requests.post", side_effect=[token_response(), error]
    ):
        with pytest.raises(SendError) as exc_info:
            await adapter.send("oc_1", "hi")
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_send_network_error_raises(adapter):
    with patch(
        "app.adapters.lark.requests.post",
        side_effect=requests.ConnectionError("connection refused"),
    ):
        with pytest.raises(SendError, match="connection refused"):
            await adapter.send("oc_1", "hi")


@pytest.mark.asyncio
async def test_send_token_error_raises(adapter):
    bad_token = lark_response({"code": 10014, "msg": "app secret invalid"})
    with patch("app.adapters.lark.requests.post", side_effect=[bad_token]):
        with pytest.raises(SendError, match="tenant access token"):
            await adapter.send("oc_1", "hi")
