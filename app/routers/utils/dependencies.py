import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from app.commands.webhooks.lark_command import LarkWebhookCommand
from app.core.app_state import AppState
from app.services.message_store import MessageStore


def get_app_state(request: Request) -> AppState:
    """FastAPI dependency returning the collaborators built in the lifespan."""
    return request.app.state.relay


def get_message_store(state: AppState = Depends(get_app_state)) -> MessageStore:
    return state.store


def get_lark_webhook_command(
    state: AppState = Depends(get_app_state),
) -> LarkWebhookCommand:
    """FastAPI dependency building a webhook command from process-wide collaborators."""
    return LarkWebhookCommand(
        settings=state.settings,
        store=state.store,
        adapter=state.adapter,
        completion_client=state.completion_client,
        reply_sender=state.reply_sender,
    )


def require_admin_token(
    authorization: Optional[str] = Header(default=None),
    state: AppState = Depends(get_app_state),
) -> None:
    """Guard maintenance routes with ADMIN_API_TOKEN when it is configured."""
    expected = state.settings.admin_api_token
    if not expected:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(
        token.encode("utf-8"), expected.encode("utf-8")
    ):
        raise HTTPException(status_code=401, detail="Invalid admin token")
