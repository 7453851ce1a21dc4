"""Contracts for the external collaborators of the webhook handler."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from app.schemas.relay import HistoryItem, OutboundSendResult


class CompletionClient(Protocol):
    async def complete(
        self, prompt: str, history: Optional[Sequence[HistoryItem]] = None
    ) -> str:
        """Return generated reply text. Raise CompletionError on any failure."""
        ...


class ReplySender(Protocol):
    async def send(self, destination: str, text: str) -> OutboundSendResult:
        """Deliver text to a chat. Raise SendError on failure."""
        ...
