from app.models.conversation_turn import ConversationTurn
from app.models.webhook_event import WebhookEvent

__all__ = [
    "ConversationTurn",
    "WebhookEvent",
]
