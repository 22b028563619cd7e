"""Bureau of Labor Statistics public API adapter."""

from __future__ import annotations

from typing import List, Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from api.schemas.agent_state import LaborStatistic
from api.tools.errors import AdapterError
from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)


class LaborStatsClient:
    """Fetches the latest observation of each configured BLS series."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def latest(self, series_ids: Optional[List[str]] = None) -> List[LaborStatistic]:
        series_ids = series_ids or self.settings.bls_series_ids
        if not series_ids:
            return []

        payload = {"seriesid": series_ids}
        if self.settings.bls_api_key:
            payload["registrationkey"] = self.settings.bls_api_key

        async with httpx.AsyncClient(timeout=self.settings.adapter_timeout_seconds, transport=self._transport) as client:
            response = await client.post(self.settings.bls_api_url, json=payload)

        if response.status_code != 200:
            raise AdapterError("labor_stats", f"status {response.status_code}")

        try:
            body = response.json()
            series_list = body["Results"]["series"]
        except (KeyError, TypeError, ValueError) as e:
            raise AdapterError("labor_stats", f"malformed response: {e}") from e

        stats = []
        for series in series_list:
            data = series.get("data") or []
            if not data:
                continue
            latest = data[0]
            stats.append(
                LaborStatistic(
                    series_id=str(series.get("seriesID", "")),
                    year=str(latest.get("year", "")),
                    period_name=str(latest.get("periodName", "")),
                    value=str(latest.get("value", "")),
                )
            )
        logger.info("BLS lookup completed", series_count=len(stats))
        return stats
