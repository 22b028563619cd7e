"""Embedding and vector-index adapters.

Embeddings come from the OpenAI embeddings endpoint; similarity search runs
against a Pinecone index through its HTTP data-plane API. Both are plain
httpx calls with per-request clients, which keeps them serverless friendly.
"""

from __future__ import annotations

from typing import List, Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from api.tools.errors import AdapterError
from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"
_TRANSIENT = (httpx.TransportError, httpx.TimeoutException)


class EmbeddingClient:
    """OpenAI client for generating embeddings."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport

    @retry(
        retry=retry_if_exception_type(_TRANSIENT),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def embed(self, text: str) -> List[float]:
        """Get embedding for text using OpenAI API."""
        if not self.settings.openai_api_key:
            raise AdapterError("embedding", "OpenAI API key not configured")

        async with httpx.AsyncClient(timeout=self.settings.adapter_timeout_seconds, transport=self._transport) as client:
            response = await client.post(
                OPENAI_EMBEDDINGS_URL,
                headers={
                    "Authorization": f"Bearer {self.settings.openai_api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.settings.openai_embedding_model,
                    "input": text[:8000],  # Truncate to avoid token limits
                },
            )

        if response.status_code != 200:
            raise AdapterError("embedding", f"status {response.status_code}: {response.text[:200]}")

        try:
            embedding = response.json()["data"][0]["embedding"]
        except (KeyError, IndexError, ValueError) as e:
            raise AdapterError("embedding", f"malformed response: {e}") from e

        logger.debug(
            "Embedding generated",
            model=self.settings.openai_embedding_model,
            input_length=len(text),
            embedding_dim=len(embedding),
        )
        return embedding


class VectorIndexClient:
    """Pinecone data-plane client returning the text of the top matches."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport

    def _query_url(self) -> str:
        host = (self.settings.pinecone_index_host or "").rstrip("/")
        if not host.startswith("http"):
            host = f"https://{host}"
        return f"{host}/query"

    @retry(
        retry=retry_if_exception_type(_TRANSIENT),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def search(self, vector: List[float], top_k: Optional[int] = None) -> List[str]:
        """Similarity search; returns ``metadata.text`` of each match, best first."""
        if not self.settings.pinecone_api_key or not self.settings.pinecone_index_host:
            raise AdapterError("vector_search", "Pinecone credentials not configured")

        payload = {
            "vector": vector,
            "topK": top_k or self.settings.vector_top_k,
            "includeMetadata": True,
            "namespace": self.settings.pinecone_namespace,
        }
        async with httpx.AsyncClient(timeout=self.settings.adapter_timeout_seconds, transport=self._transport) as client:
            response = await client.post(
                self._query_url(),
                headers={
                    "Api-Key": self.settings.pinecone_api_key,
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                json=payload,
            )

        if response.status_code != 200:
            raise AdapterError("vector_search", f"status {response.status_code}: {response.text[:200]}")

        try:
            matches = response.json().get("matches", [])
        except ValueError as e:
            raise AdapterError("vector_search", f"malformed response: {e}") from e

        texts = [m["metadata"]["text"] for m in matches if (m.get("metadata") or {}).get("text")]
        logger.info(
            "Vector search completed",
            results_count=len(texts),
            top_score=matches[0].get("score", 0) if matches else 0,
        )
        return texts
