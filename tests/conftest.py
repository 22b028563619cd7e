"""
Pytest configuration and fixtures for Avenir tests.

Provides shared fixtures for:
- Test settings (no real credentials, no network)
- A scripted fake LLM generator
- Fake Redis client (fakeredis)
- Common domain objects (company profile, document catalog)
"""

from typing import Callable, List, Optional, Union

import pytest

from api.schemas.agent_state import CompanyProfile, DocumentTag
from libs.common.settings import Settings, get_settings


class FakeGenerator:
    """Stands in for ``ChatGenerator``; replies come from a script or a callable.

    Every prompt is recorded so tests can assert on call counts and content.
    """

    def __init__(self, replies: Union[List[str], Callable[[str], str], None] = None, error: Optional[Exception] = None):
        self.replies = replies if replies is not None else []
        self.error = error
        self.prompts: List[str] = []
        self.max_tokens: List[int] = []

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str, max_tokens: int = 500) -> str:
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        if self.error is not None:
            raise self.error
        if callable(self.replies):
            return self.replies(prompt)
        if not self.replies:
            return "No response"
        return self.replies.pop(0)


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables and reset process-wide singletons."""
    monkeypatch.setenv("AVENIR_APP_ENV", "test")
    for var in ("OPENAI_API_KEY", "PINECONE_API_KEY", "LEGISCAN_API_KEY", "BLS_API_KEY"):
        monkeypatch.delenv(var, raising=False)

    from libs.caching.evidence_cache import reset_evidence_cache

    get_settings.cache_clear()
    reset_evidence_cache()
    yield
    get_settings.cache_clear()
    reset_evidence_cache()


@pytest.fixture
def settings() -> Settings:
    """Settings with fake credentials and short timeouts."""
    return Settings(
        app_env="test",
        openai_api_key="test-openai-key",
        pinecone_api_key="test-pinecone-key",
        pinecone_index_host="test-index.svc.pinecone.io",
        legiscan_api_key="test-legiscan-key",
        adapter_timeout_seconds=2.0,
        request_timeout_seconds=10.0,
        labor_stats_enabled=False,
    )


@pytest.fixture
def make_generator() -> Callable[..., FakeGenerator]:
    """Factory for scripted fake generators."""
    return FakeGenerator


@pytest.fixture
def company() -> CompanyProfile:
    return CompanyProfile(
        name="Acme Manufacturing",
        employee_count="1200",
        locations=["MA", "NY"],
        industry="Manufacturing",
    )


@pytest.fixture
def document_catalog() -> List[DocumentTag]:
    return [
        DocumentTag(name="2024 Medical Claims.xlsx", tag="medical claims cost breakdown by condition for 2024"),
        DocumentTag(name="Benefits Guide.pdf", tag="employee benefits guide describing plan options"),
    ]


@pytest.fixture
async def redis_client():
    """
    Provide fakeredis client for testing.

    This avoids requiring actual Redis server during tests.
    """
    from fakeredis import aioredis as fakeredis

    client = fakeredis.FakeRedis(decode_responses=True)

    yield client

    await client.flushdb()
    await client.aclose()
