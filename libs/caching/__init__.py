"""
Caching utilities for the Avenir benefits assistant.

This module provides:
- Redis client management
- Evidence caching for external lookups (in-memory or Redis backed)
"""

from libs.caching.evidence_cache import (
    EvidenceCache,
    InMemoryEvidenceCache,
    RedisEvidenceCache,
    evidence_cache_factory,
    normalize_query_key,
)
from libs.caching.redis_client import get_redis_client

__all__ = [
    "EvidenceCache",
    "InMemoryEvidenceCache",
    "RedisEvidenceCache",
    "evidence_cache_factory",
    "get_redis_client",
    "normalize_query_key",
]
