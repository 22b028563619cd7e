"""LegiScan legislative search.

The LegiScan API has no full-text search on the free tier we rely on, so the
search pulls a jurisdiction's whole master list and filters it client-side.
Master lists are large and slow; filtered results are kept in the evidence
cache keyed by (jurisdiction, search phrases).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from api.schemas.agent_state import LegislativeBill
from api.tools.errors import AdapterError
from libs.caching.evidence_cache import EvidenceCache, normalize_query_key
from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

CACHE_SOURCE = "legiscan"


class LegiScanClient:
    """Thin HTTP client for the LegiScan ``getMasterList`` operation."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def get_master_list(self, jurisdiction: str) -> List[Dict[str, Any]]:
        """Return every bill record of the jurisdiction's current session."""
        if not self.settings.legiscan_api_key:
            raise AdapterError("legislation", "LegiScan API key not configured")

        async with httpx.AsyncClient(timeout=self.settings.adapter_timeout_seconds, transport=self._transport) as client:
            response = await client.get(
                self.settings.legiscan_base_url,
                params={"key": self.settings.legiscan_api_key, "op": "getMasterList", "state": jurisdiction},
            )

        if response.status_code != 200:
            raise AdapterError("legislation", f"status {response.status_code} for {jurisdiction}")

        try:
            master_list = response.json().get("masterlist")
        except ValueError as e:
            raise AdapterError("legislation", f"malformed response for {jurisdiction}: {e}") from e

        if not isinstance(master_list, dict):
            raise AdapterError("legislation", f"no masterlist returned for {jurisdiction}")

        # The "session" entry sits next to the numbered bill entries
        bills = [b for b in master_list.values() if isinstance(b, dict) and b.get("bill_id") and b.get("title")]
        logger.info("LegiScan master list fetched", jurisdiction=jurisdiction, bill_count=len(bills))
        return bills


def _bill_matches(bill: Dict[str, Any], phrases: Sequence[str]) -> bool:
    haystack = " ".join(str(bill.get(field) or "") for field in ("title", "description", "summary")).lower()
    return any(phrase.lower() in haystack for phrase in phrases)


def _to_bill(bill: Dict[str, Any], jurisdiction: str) -> LegislativeBill:
    bill_number = str(bill.get("number") or bill.get("bill_number") or "")
    session = bill.get("session")
    if isinstance(session, dict):
        session = session.get("session_id") or session.get("session_name")
    url = bill.get("url") or f"https://legiscan.com/{jurisdiction}/bill/{bill_number}/{session or ''}".rstrip("/")
    return LegislativeBill(
        bill_id=str(bill["bill_id"]),
        bill_number=bill_number,
        title=str(bill.get("title") or ""),
        description=str(bill.get("description") or ""),
        jurisdiction=jurisdiction,
        last_action_date=str(bill.get("last_action_date") or ""),
        url=url,
    )


class LegislationSearch:
    """Cache-aware ``legislativeSearch(jurisdiction, phrases) -> bills``."""

    def __init__(self, client: LegiScanClient, max_results: int = 10):
        self.client = client
        self.max_results = max_results

    async def search(
        self,
        jurisdiction: str,
        phrases: Sequence[str],
        cache: Optional[EvidenceCache] = None,
    ) -> List[LegislativeBill]:
        """Bills of one jurisdiction whose title/description/summary contain any phrase.

        Raises ``AdapterError`` when the upstream fetch fails; failures are
        never written to the cache.
        """
        jurisdiction = (jurisdiction or "").strip().upper()
        phrases = [p.strip() for p in phrases if p and p.strip()]
        if not jurisdiction or not phrases:
            return []

        key = normalize_query_key(jurisdiction, phrases)
        if cache is not None:
            cached = await cache.get(CACHE_SOURCE, key)
            if cached is not None:
                logger.info("Using cached LegiScan result", cache_key=key, bill_count=len(cached))
                return [LegislativeBill(**b) for b in cached]

        master_list = await self.client.get_master_list(jurisdiction)
        matched = [b for b in master_list if _bill_matches(b, phrases)]
        bills = [_to_bill(b, jurisdiction) for b in matched[: self.max_results]]

        logger.info(
            "LegiScan search completed",
            jurisdiction=jurisdiction,
            matched=len(matched),
            returned=len(bills),
        )
        if cache is not None:
            await cache.put(CACHE_SOURCE, key, [b.model_dump() for b in bills])
        return bills
