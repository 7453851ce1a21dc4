"""Webhook command handlers."""

from app.commands.webhooks.lark_command import LarkWebhookCommand

__all__ = ["LarkWebhookCommand"]
