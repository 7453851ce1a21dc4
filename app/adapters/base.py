"""
Chat platform adapter interface.

An adapter turns one platform's webhook payloads into InboundMessage and
delivers reply text back to a chat. The webhook command only talks to this
interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from app.schemas.relay import InboundMessage, OutboundSendResult


class BasePlatformAdapter(ABC):
    """Inbound parsing plus outbound delivery for one chat platform."""

    @abstractmethod
    def parse_webhook(self, raw_payload: dict[str, Any]) -> InboundMessage:
        """Normalize a message event. Raise PayloadValidationError for anything else."""
        ...

    @abstractmethod
    async def send(self, destination: str, text: str) -> OutboundSendResult:
        """Post text to the destination chat. Raise SendError on failure."""
        ...

    def get_challenge(self, raw_payload: dict[str, Any]) -> Optional[str]:
        """Challenge string to echo back for an endpoint handshake, else None."""
        return None

    def verify_webhook(self, raw_payload: dict[str, Any]) -> bool:
        """
        Check the payload's shared token, for platforms that sign requests.
        False rejects the request; platforms without verification accept everything.
        """
        return True
