"""Web search through the OpenAI Responses API web-search tool."""

from __future__ import annotations

from typing import Any, Optional

import structlog
from openai import AsyncOpenAI

from api.tools.errors import AdapterError
from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

WEB_SEARCH_PROMPT = """You are a senior expert researcher. Perform a web search for the following topics:
"{term}" and "{question}"

Then, list the top 5 relevant online website sources in concise bullet points.
For each site, please provide:

1. The website name or source
2. A brief snippet (1-2 lines) summarizing the main point from that site

Return only plain text, with no extraneous commentary or disclaimers."""


class WebSearchClient:
    """Runs one web query and returns the model's plain-text digest of the hits."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.adapter_timeout_seconds,
            )
        return self._client

    @staticmethod
    def _extract_output_text(response: Any) -> str:
        text_val = getattr(response, "output_text", None)
        if isinstance(text_val, str):
            return text_val
        return ""

    async def search(self, term: str, question: str) -> str:
        if not self.settings.openai_api_key and self._client is None:
            raise AdapterError("web_search", "OpenAI API key not configured")

        response = await self.client.responses.create(
            model=self.settings.web_search_model,
            tools=[{"type": "web_search_preview", "search_context_size": "low"}],
            input=WEB_SEARCH_PROMPT.format(term=term, question=question),
        )
        text = self._extract_output_text(response).strip()
        logger.info("Web search completed", term=term, output_chars=len(text))
        return text
