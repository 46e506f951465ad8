"""LiteLLM gateway used to pick a reaction emoji for inbound messages."""

from __future__ import annotations

import time
from typing import Any

import litellm
import structlog

from courier.config import ReactionsConfig

logger = structlog.get_logger()

# Suppress litellm's noisy logging
litellm.suppress_debug_info = True
litellm.drop_params = True

REACTION_PROMPT = (
    "Return only a single emoji that matches the sentiment of this message: {message}. "
    "Do not include any other text or explanation."
)


class ReactionGateway:
    """Async wrapper around LiteLLM for one-emoji sentiment reactions."""

    def __init__(self, config: ReactionsConfig) -> None:
        self.config = config
        self.request_count = 0

    async def completion(self, messages: list[dict[str, Any]], *, max_tokens: int | None = None) -> Any:
        """Send a completion request through LiteLLM."""
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        if self.config.api_key:
            kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base

        start = time.monotonic()
        self.request_count += 1
        request_id = self.request_count
        logger.info("llm.request", request_id=request_id, model=self.config.model)

        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            logger.error("llm.error", request_id=request_id, error=str(e), model=self.config.model)
            raise

        logger.info(
            "llm.response",
            request_id=request_id,
            duration=f"{time.monotonic() - start:.2f}s",
        )
        return response

    async def pick_emoji(self, message: str) -> str | None:
        """Return one emoji for the message, or None when the model gave nothing usable."""
        response = await self.completion(
            [{"role": "user", "content": REACTION_PROMPT.format(message=message)}]
        )
        content = (response.choices[0].message.content or "").strip()
        if not content:
            return None
        return content.split()[0]
