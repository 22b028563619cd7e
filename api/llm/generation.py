"""Text generation adapter backed by LangChain's ChatOpenAI."""

from __future__ import annotations

import time
from typing import Optional

import structlog
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

SYSTEM_MESSAGE = "You are a helpful assistant."


class ChatGenerator:
    """Issues single-prompt generation calls: ``generate(prompt, max_tokens) -> text``.

    Errors from the provider propagate; callers decide whether a failed
    generation is recoverable.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def _llm(self, max_tokens: int) -> ChatOpenAI:
        return ChatOpenAI(
            model=self.settings.openai_model,
            api_key=self.settings.openai_api_key,
            temperature=self.settings.generation_temperature,
            max_tokens=max_tokens,
            timeout=self.settings.request_timeout_seconds,
            max_retries=1,
        )

    async def generate(self, prompt: str, max_tokens: int = 500) -> str:
        start_time = time.time()
        response = await self._llm(max_tokens).ainvoke(
            [SystemMessage(content=SYSTEM_MESSAGE), HumanMessage(content=prompt)]
        )
        text = response.content if isinstance(response.content, str) else str(response.content)

        logger.debug(
            "Generation completed",
            model=self.settings.openai_model,
            max_tokens=max_tokens,
            prompt_chars=len(prompt),
            output_chars=len(text),
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return text or "No response"
