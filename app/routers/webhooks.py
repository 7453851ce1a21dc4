"""
Webhook routes for inbound Lark events.

Lark POSTs the url_verification handshake and message events here. Anything
we can decode is answered with 200 so the platform does not retry it; the
handler command decides what else happens.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from app.commands.webhooks.lark_command import LarkWebhookCommand
from app.routers.utils.dependencies import get_lark_webhook_command

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhook")
@router.post("/webhooks/lark")
async def lark_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    command: LarkWebhookCommand = Depends(get_lark_webhook_command),
) -> dict[str, str]:
    """
    Receive Lark event callbacks. Echo the handshake challenge, otherwise
    dedup and relay the message, returning {"status": "ok"}.
    """
    try:
        body = await request.json()
    except ValueError as e:
        logger.warning("Lark webhook invalid JSON: %s", e)
        raise HTTPException(status_code=400, detail="Invalid JSON body") from e
    return await command.execute(body, background_tasks=background_tasks)
