"""
Command to handle Lark webhook calls.

Accept phase (inside the HTTP request): verify token, echo the url_verification
challenge, normalize the payload, and claim the event id in the store. Only the
caller that inserts the event row goes on to the pipeline, so redeliveries of
the same event never reach the model or the chat again.

Pipeline phase (inline or as a background task): persist the question, ask the
completion model, persist the answer, reply to the chat, then attach a trace to
the event row.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from fastapi import BackgroundTasks, HTTPException

from app.adapters.base import BasePlatformAdapter
from app.config import Settings
from app.core.runtime import CompletionClient, ReplySender
from app.core.session_key import build_session_key
from app.exceptions import (
    AnswerAlreadySetError,
    CompletionError,
    EventAlreadyExistsError,
    EventNotFoundError,
    PayloadValidationError,
    SendError,
    StorageError,
    TurnNotFoundError,
)
from app.schemas.relay import (
    HistoryItem,
    InboundMessage,
    PipelineResult,
    PipelineState,
    WebhookOutcome,
)
from app.services.message_store import MessageStore

ACK = {"status": "ok"}


class LarkWebhookCommand:
    """
    Handle one inbound Lark webhook call.
    Collaborators are passed in; the command keeps no state between calls.
    """

    def __init__(
        self,
        settings: Settings,
        store: MessageStore,
        adapter: BasePlatformAdapter,
        completion_client: CompletionClient,
        reply_sender: ReplySender,
    ) -> None:
        self.settings = settings
        self.store = store
        self.adapter = adapter
        self.completion_client = completion_client
        self.reply_sender = reply_sender
        self.logger = logging.getLogger(__name__)
        self.last_outcome: Optional[WebhookOutcome] = None

    async def execute(
        self,
        body: Any,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> dict[str, str]:
        """
        Run the accept phase and dispatch the pipeline.

        Args:
            body: Decoded JSON body of the webhook request.
            background_tasks: Where to schedule the pipeline in background mode.
                Without it, the pipeline runs before returning.

        Returns:
            dict: {"challenge": ...} for the handshake, else {"status": "ok"}.

        Raises:
            HTTPException: 403 on a verification token mismatch, 503 when the
                event cannot be recorded (safe for the platform to redeliver).
        """
        if not isinstance(body, dict):
            self.logger.warning("Ignoring non-object webhook body")
            return self._finish(WebhookOutcome.IGNORED)

        if not self.adapter.verify_webhook(body):
            self.logger.warning("Rejected webhook with invalid verification token")
            raise HTTPException(status_code=403, detail="Invalid verification token")

        try:
            challenge = self.adapter.get_challenge(body)
        except PayloadValidationError as e:
            self.logger.warning("Ignoring malformed handshake: %s", e)
            return self._finish(WebhookOutcome.IGNORED)
        if challenge is not None:
            self.logger.info("Answered Lark url_verification handshake")
            self.last_outcome = WebhookOutcome.HANDSHAKE
            return {"challenge": challenge}

        if "encrypt" in body:
            self.logger.warning(
                "Ignoring encrypted Lark payload; disable the encrypt key for this endpoint"
            )
            return self._finish(WebhookOutcome.IGNORED)

        try:
            inbound = self.adapter.parse_webhook(body)
        except PayloadValidationError as e:
            self.logger.info("Ignoring webhook payload: %s", e.message)
            return self._finish(WebhookOutcome.IGNORED)

        try:
            if await asyncio.to_thread(self.store.has_seen_event, inbound.event_id):
                raise EventAlreadyExistsError(inbound.event_id)
            await asyncio.to_thread(
                self.store.record_event,
                inbound.event_id,
                event_type=inbound.event_type,
                raw_payload=inbound.raw,
            )
        except EventAlreadyExistsError:
            self.logger.info("Duplicate delivery of event %s; skipping", inbound.event_id)
            return self._finish(WebhookOutcome.DUPLICATE)
        except StorageError as e:
            self.logger.error(
                "Could not record event %s: %s", inbound.event_id, e.message
            )
            raise HTTPException(
                status_code=503, detail="Event could not be recorded"
            ) from e

        self.logger.info(
            "Accepted event %s from chat %s", inbound.event_id, inbound.chat_id
        )
        if self.settings.dispatch_mode == "background" and background_tasks is not None:
            background_tasks.add_task(self.run_in_background, inbound)
        else:
            await self.run_in_background(inbound)
        return self._finish(WebhookOutcome.ACCEPTED)

    def _finish(self, outcome: WebhookOutcome) -> dict[str, str]:
        self.last_outcome = outcome
        return dict(ACK)

    async def run_in_background(self, inbound: InboundMessage) -> None:
        """
        Pipeline entry point for both dispatch modes. An unexpected error is
        logged, never raised into the server or the webhook response.
        """
        try:
            await self.process(inbound)
        except Exception:
            self.logger.exception(
                "Unhandled error while processing event %s", inbound.event_id
            )

    async def process(self, inbound: InboundMessage) -> PipelineResult:
        """Persist question, complete, persist answer, reply. Strictly in that order."""
        session_id = build_session_key(inbound.chat_id, inbound.sender_id)
        result = PipelineResult(
            event_id=inbound.event_id,
            state=PipelineState.DEDUPED,
            session_id=session_id,
        )

        try:
            turn = await asyncio.to_thread(
                self.store.insert_turn, session_id, inbound.text, len(inbound.text)
            )
        except StorageError as e:
            return await self._fail(result, f"insert_turn: {e.message}")
        result.turn_id = turn.id
        result.state = PipelineState.QUESTION_PERSISTED

        answer = await self._complete(inbound, result)
        result.answer = answer
        result.state = PipelineState.COMPLETED

        try:
            await asyncio.to_thread(self.store.set_answer, turn.id, answer)
        except (StorageError, TurnNotFoundError, AnswerAlreadySetError) as e:
            return await self._fail(result, f"set_answer: {e.message}")
        result.state = PipelineState.ANSWER_PERSISTED

        try:
            sent = await self.reply_sender.send(inbound.chat_id, answer)
        except SendError as e:
            return await self._fail(result, f"send: {e.message}")
        result.reply_sent = True
        result.platform_message_id = sent.platform_message_id
        result.state = PipelineState.REPLIED

        result.state = PipelineState.DONE
        self.logger.info(
            "Replied to event %s in chat %s (turn %s)",
            inbound.event_id,
            inbound.chat_id,
            turn.id,
        )
        await asyncio.to_thread(self._annotate, result)
        return result

    async def _complete(self, inbound: InboundMessage, result: PipelineResult) -> str:
        """Return the model's reply, or the fallback text if the model fails."""
        history = await asyncio.to_thread(
            self._load_history, result.session_id, result.turn_id
        )
        try:
            return await self.completion_client.complete(inbound.text, history=history)
        except CompletionError as e:
            self.logger.warning(
                "Completion failed for event %s, using fallback reply: %s",
                inbound.event_id,
                e.message,
            )
            result.completion_fallback = True
            return self.settings.completion_fallback_text

    def _load_history(
        self, session_id: Optional[str], current_turn_id: Optional[int]
    ) -> Optional[List[HistoryItem]]:
        limit = self.settings.llm_history_turns
        if limit <= 0 or session_id is None:
            return None
        try:
            turns = self.store.list_turns(session_id, limit=limit + 1)
        except StorageError as e:
            self.logger.warning("Could not load history for %s: %s", session_id, e.message)
            return None
        prior = [t for t in turns if t.id != current_turn_id and t.answer][:limit]
        history: List[HistoryItem] = []
        for turn in reversed(prior):
            history.append(HistoryItem(role="user", content=turn.question))
            history.append(HistoryItem(role="assistant", content=turn.answer))
        return history

    async def _fail(self, result: PipelineResult, error: str) -> PipelineResult:
        self.logger.error(
            "Event %s failed after %s: %s", result.event_id, result.state.value, error
        )
        result.state = PipelineState.FAILED
        result.error = error
        await asyncio.to_thread(self._annotate, result)
        return result

    def _annotate(self, result: PipelineResult) -> None:
        try:
            self.store.annotate_event(result.event_id, result.to_trace())
        except (StorageError, EventNotFoundError) as e:
            self.logger.warning(
                "Could not attach trace to event %s: %s", result.event_id, e.message
            )
