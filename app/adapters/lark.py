"""
Lark platform adapter.

Parses event subscription payloads (schema 2.0) and sends text replies through
the Lark Open API with a cached tenant access token.
"""

from __future__ import annotations

import asyncio
import hmac
import json
import threading
import time
from typing import Any, Optional

import requests
from pydantic import ValidationError

from app.adapters.base import BasePlatformAdapter
from app.exceptions import PayloadValidationError, SendError
from app.infra.logging_config import get_logger
from app.schemas.lark import (
    MESSAGE_RECEIVE_EVENT_TYPE,
    TEXT_MESSAGE_TYPE,
    URL_VERIFICATION_TYPE,
    LarkEventEnvelope,
    LarkMessageReceiveEvent,
    LarkTextContent,
    LarkUrlVerification,
)
from app.schemas.relay import InboundMessage, OutboundSendResult

logger = get_logger("lark_adapter")

TENANT_TOKEN_PATH = "/auth/v3/tenant_access_token/internal"
SEND_MESSAGE_PATH = "/im/v1/messages"
# Refresh the tenant token this long before Lark says it expires
TOKEN_REFRESH_MARGIN_SECONDS = 60


class LarkAdapter(BasePlatformAdapter):
    """Lark adapter: parse webhook events, send messages via the Open API."""

    def __init__(
        self,
        app_id: Optional[str],
        app_secret: Optional[str],
        verification_token: Optional[str] = None,
        api_base_url: str = "https://open.larksuite.com/open-apis",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._app_id = app_id
        self._app_secret = app_secret
        self._verification_token = verification_token
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    # --- inbound ------------------------------------------------------------

    def get_challenge(self, raw_payload: dict[str, Any]) -> Optional[str]:
        if raw_payload.get("type") != URL_VERIFICATION_TYPE:
            return None
        try:
            return LarkUrlVerification.model_validate(raw_payload).challenge
        except ValidationError as e:
            raise PayloadValidationError(f"Invalid url_verification payload: {e}") from e

    def verify_webhook(self, raw_payload: dict[str, Any]) -> bool:
        """Compare the payload's verification token when one is configured."""
        if not self._verification_token:
            return True
        actual = raw_payload.get("token")
        header = raw_payload.get("header")
        if actual is None and isinstance(header, dict):
            actual = header.get("token")
        if not isinstance(actual, str):
            return False
        return hmac.compare_digest(
            actual.encode("utf-8"), self._verification_token.encode("utf-8")
        )

    def parse_webhook(self, raw_payload: dict[str, Any]) -> InboundMessage:
        """Parse an im.message.receive_v1 event into a normalized inbound message."""
        try:
            envelope = LarkEventEnvelope.model_validate(raw_payload)
        except ValidationError as e:
            raise PayloadValidationError(f"Not a Lark event envelope: {e}") from e

        header = envelope.header
        if header.event_type != MESSAGE_RECEIVE_EVENT_TYPE:
            raise PayloadValidationError(
                f"Unsupported event type: {header.event_type}"
            )
        try:
            event = LarkMessageReceiveEvent.model_validate(envelope.event)
        except ValidationError as e:
            raise PayloadValidationError(f"Invalid message event: {e}") from e

        message = event.message
        if message.message_type != TEXT_MESSAGE_TYPE:
            raise PayloadValidationError(
                f"Unsupported message type: {message.message_type}"
            )
        sender_id = event.sender.sender_id.preferred()
        if not sender_id:
            raise PayloadValidationError("Message event has no sender id")

        text = self._extract_text(message.content)
        # longest keys first so "@_user_1" never eats the prefix of "@_user_10"
        keys = sorted((m.key for m in message.mentions or []), key=len, reverse=True)
        for key in keys:
            text = text.replace(key, "")
        text = text.strip()
        if not text:
            raise PayloadValidationError("Message has no text")

        return InboundMessage(
            event_id=header.event_id,
            event_type=header.event_type,
            chat_id=message.chat_id,
            chat_type=message.chat_type,
            sender_id=sender_id,
            message_id=message.message_id,
            text=text,
            raw=raw_payload,
        )

    @staticmethod
    def _extract_text(content: str) -> str:
        try:
            decoded = json.loads(content)
        except ValueError as e:
            raise PayloadValidationError("Message content is not JSON") from e
        try:
            return LarkTextContent.model_validate(decoded).text
        except ValidationError as e:
            raise PayloadValidationError(f"Invalid text content: {e}") from e

    # --- outbound -----------------------------------------------------------

    async def send(self, destination: str, text: str) -> OutboundSendResult:
        """Send a text message to a chat. requests is blocking, so run it off the loop."""
        return await asyncio.to_thread(self._send_sync, destination, text)

    def _send_sync(self, destination: str, text: str) -> OutboundSendResult:
        token = self._get_tenant_access_token()
        body = {
            "receive_id": destination,
            "msg_type": "text",
            "content": json.dumps({"text": text}, ensure_ascii=False),
        }
        data = self._post(
            SEND_MESSAGE_PATH,
            body,
            params={"receive_id_type": "chat_id"},
            headers={"Authorization": f"Bearer {token}"},
            operation="send message",
        )
        message_id = (data.get("data") or {}).get("message_id")
        logger.info("Sent Lark reply to chat %s (message_id=%s)", destination, message_id)
        return OutboundSendResult(success=True, platform_message_id=message_id)

    def _get_tenant_access_token(self) -> str:
        if not self._app_id or not self._app_secret:
            raise SendError("Lark app credentials are not configured")
        with self._token_lock:
            now = time.monotonic()
            if self._token and now < self._token_expires_at:
                return self._token
            data = self._post(
                TENANT_TOKEN_PATH,
                {"app_id": self._app_id, "app_secret": self._app_secret},
                operation="fetch tenant access token",
            )
            token = data.get("tenant_access_token")
            if not token:
                raise SendError("Lark token response has no tenant_access_token")
            expire = int(data.get("expire") or 0)
            self._token = token
            self._token_expires_at = now + max(
                expire - TOKEN_REFRESH_MARGIN_SECONDS, 0
            )
            return token

    def _post(
        self,
        path: str,
        body: dict[str, Any],
        operation: str,
        params: Optional[dict[str, str]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """POST to the Open API and return the decoded body; raise SendError on any failure."""
        request_headers = {"Content-Type": "application/json; charset=utf-8"}
        request_headers.update(headers or {})
        try:
            resp = requests.post(
                f"{self._api_base_url}{path}",
                json=body,
                params=params,
                headers=request_headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise SendError(f"Lark {operation} request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            detail = data.get("msg") if isinstance(data, dict) else None
            raise SendError(
                f"Lark {operation} returned HTTP {resp.status_code}: "
                f"{detail or resp.text}",
                status_code=resp.status_code,
            )
        if not isinstance(data, dict):
            raise SendError(f"Lark {operation} returned a non-object body")
        if data.get("code", 0) != 0:
            raise SendError(
                f"Lark {operation} failed with code {data.get('code')}: {data.get('msg')}",
                status_code=resp.status_code,
            )
        return data
