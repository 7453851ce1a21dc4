from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Sequence

from pydantic_ai import Agent
from pydantic_ai.messages import (
    ModelRequest,
    ModelResponse,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.litellm import LiteLLMProvider

from app.config import Settings
from app.exceptions import CompletionError
from app.infra.logging_config import get_logger
from app.schemas.relay import HistoryItem

logger = get_logger("llm")


def _history_to_message_list(history: Sequence[HistoryItem]) -> List[Any]:
    """Convert prior user/assistant messages to pydantic_ai message_history."""
    out: List[Any] = []
    for item in history:
        content = (item.content or "").strip()
        if not content:
            continue
        if item.role == "user":
            out.append(ModelRequest(parts=[UserPromptPart(content=content)]))
        elif item.role == "assistant":
            out.append(ModelResponse(parts=[TextPart(content=content)]))
    return out


class CompletionClient:
    """
    Single-call completion over a pydantic_ai Agent with an enforced timeout.

    Every failure mode (no model configured, provider error, timeout, empty
    output) is raised as CompletionError so callers have one thing to catch.
    """

    def __init__(
        self,
        model: Model | str | None,
        instructions: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._timeout = timeout_seconds
        self._agent: Optional[Agent] = None
        if model is not None:
            self._agent = Agent(model, instructions=instructions)

    @property
    def configured(self) -> bool:
        return self._agent is not None

    async def complete(
        self, prompt: str, history: Optional[Sequence[HistoryItem]] = None
    ) -> str:
        if self._agent is None:
            raise CompletionError("Completion client is not configured (missing API key)")
        message_history = _history_to_message_list(history or [])
        try:
            result = await asyncio.wait_for(
                self._agent.run(prompt, message_history=message_history or None),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise CompletionError(
                f"Completion timed out after {self._timeout:g}s"
            ) from e
        except Exception as e:
            raise CompletionError(f"Completion request failed: {e}") from e

        text = str(result.output or "").strip()
        if not text:
            raise CompletionError("Completion returned no text")
        logger.debug("Completion returned %d characters", len(text))
        return text


def build_completion_client_from_settings(settings: Settings) -> CompletionClient:
    logger.info(
        "LLM config: provider=%s, model=%s, timeout=%ss",
        settings.llm_provider,
        settings.llm_model,
        settings.completion_timeout_seconds,
    )
    model: Optional[Model] = None
    if settings.llm_provider == "litellm":
        if not settings.litellm_api_key:
            logger.warning(
                "LITELLM_API_KEY is not set; completions will fall back to the placeholder reply."
            )
        else:
            provider = LiteLLMProvider(
                api_key=settings.litellm_api_key, api_base=settings.litellm_api_base
            )
            model = OpenAIChatModel(settings.llm_model, provider=provider)
    else:
        if not settings.gemini_api_key:
            logger.warning(
                "GEMINI_API_KEY is not set; completions will fall back to the placeholder reply."
            )
        else:
            provider = GoogleProvider(api_key=settings.gemini_api_key)
            model = GoogleModel(settings.llm_model, provider=provider)

    return CompletionClient(
        model,
        instructions=settings.llm_instructions,
        timeout_seconds=settings.completion_timeout_seconds,
    )
