from __future__ import annotations

from dataclasses import dataclass

from app.adapters.lark import LarkAdapter
from app.config import Settings
from app.core.runtime import CompletionClient, ReplySender
from app.services.message_store import MessageStore


@dataclass
class AppState:
    """Process-wide collaborators, built once in the app lifespan."""

    settings: Settings
    store: MessageStore
    adapter: LarkAdapter
    completion_client: CompletionClient
    reply_sender: ReplySender
