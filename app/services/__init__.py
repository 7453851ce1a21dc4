from app.services.conversation_turn_service import ConversationTurnService
from app.services.webhook_event_service import WebhookEventService
from app.services.message_store import MessageStore

__all__ = [
    "ConversationTurnService",
    "MessageStore",
    "WebhookEventService",
]
