"""
Conditional, concurrent evidence gathering.

Only the evidence types the classifier asked for are fetched. Each source
runs under its own timeout and any adapter failure becomes an empty
contribution plus an entry in the caller's error list, so one failing
upstream never aborts the request.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

import structlog

from api.composer.output_parser import load_json_object
from api.composer.prompts import LAW_QUERY_PROMPT
from api.llm.generation import ChatGenerator
from api.schemas.agent_state import (
    CompanyProfile,
    DocumentSummary,
    EvidenceBundle,
    EvidenceType,
    ExternalSnippets,
    Intent,
    LegislativeBill,
)
from api.tools.document_store import FirestoreDocumentStore
from api.tools.errors import AdapterError
from api.tools.labor_stats import LaborStatsClient
from api.tools.legislation import LegiScanClient, LegislationSearch
from api.tools.vector_search import EmbeddingClient, VectorIndexClient
from api.tools.web_search import WebSearchClient
from libs.caching.evidence_cache import EvidenceCache, evidence_cache_factory
from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

LAW_QUERY_MAX_TOKENS = 200
MAX_LAW_QUERIES = 3


@dataclass
class LawQueryPlan:
    jurisdiction: str
    phrases: List[str]


class EvidenceGatherer:
    """Builds an ``EvidenceBundle`` for a classified question."""

    def __init__(
        self,
        document_store: Optional[FirestoreDocumentStore] = None,
        embedder: Optional[EmbeddingClient] = None,
        vector_index: Optional[VectorIndexClient] = None,
        web_search: Optional[WebSearchClient] = None,
        legislation: Optional[LegislationSearch] = None,
        labor_stats: Optional[LaborStatsClient] = None,
        generator: Optional[ChatGenerator] = None,
        settings: Optional[Settings] = None,
        cache_factory: Optional[Callable[[], EvidenceCache]] = None,
    ):
        self.settings = settings or get_settings()
        self.document_store = document_store or FirestoreDocumentStore()
        self.embedder = embedder or EmbeddingClient(self.settings)
        self.vector_index = vector_index or VectorIndexClient(self.settings)
        self.web_search = web_search or WebSearchClient(self.settings)
        self.legislation = legislation or LegislationSearch(
            LegiScanClient(self.settings),
            max_results=self.settings.legislation_results_per_jurisdiction,
        )
        self.labor_stats = labor_stats or LaborStatsClient(self.settings)
        self.generator = generator or ChatGenerator(self.settings)
        self.cache_factory = cache_factory or evidence_cache_factory(self.settings)

    async def _guarded(self, source: str, call: Awaitable[Any], default: Any, errors: List[str]) -> Any:
        """Await one adapter call under the adapter timeout; failures yield ``default``."""
        try:
            return await asyncio.wait_for(call, timeout=self.settings.adapter_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Evidence source timed out", source=source, timeout_s=self.settings.adapter_timeout_seconds)
            errors.append(f"{source}: timeout")
        except Exception as e:
            logger.warning("Evidence source failed", source=source, error=str(e))
            errors.append(str(e) if isinstance(e, AdapterError) else f"{source}: {e}")
        return default

    # ------------------------------------------------------------------
    # internal
    # ------------------------------------------------------------------

    async def _internal_documents(self, user_id: str, tags: Sequence[str], errors: List[str]) -> List[DocumentSummary]:
        documents: List[DocumentSummary] = []
        seen = set()
        for tag in tags:
            document = await self._guarded(
                "document_store", self.document_store.get_document_by_tag(user_id, tag), None, errors
            )
            if document is None:
                logger.debug("No document for tag", tag=tag)
                continue
            if document.name in seen:
                continue
            seen.add(document.name)
            documents.append(document)
        return documents

    # ------------------------------------------------------------------
    # external
    # ------------------------------------------------------------------

    async def _search_term(self, term: str) -> ExternalSnippets:
        vector = await self.embedder.embed(term)
        matches = await self.vector_index.search(vector, top_k=self.settings.vector_top_k)
        return ExternalSnippets(query_term=term, matches=matches)

    async def _external_snippets(self, terms: Sequence[str], errors: List[str]) -> List[ExternalSnippets]:
        # Terms are searched one after another; each term fails independently
        snippets = []
        for term in terms[: self.settings.max_search_terms]:
            result = await self._guarded("vector_search", self._search_term(term), None, errors)
            if result is not None:
                snippets.append(result)
        return snippets

    # ------------------------------------------------------------------
    # legislation
    # ------------------------------------------------------------------

    async def plan_law_queries(self, question: str, company: CompanyProfile, fallback_phrases: Sequence[str]) -> LawQueryPlan:
        """Ask the model for a jurisdiction and search phrases.

        Falls back to the federal jurisdiction and the classifier's search
        terms when the planning call fails or returns unusable JSON.
        """
        prompt = LAW_QUERY_PROMPT.format(
            question=question,
            employee_count=company.employee_count,
            locations=company.locations_text,
            industry=company.industry,
        )
        fallback = LawQueryPlan(
            jurisdiction=self.settings.federal_jurisdiction,
            phrases=list(fallback_phrases)[:MAX_LAW_QUERIES],
        )
        try:
            raw = await asyncio.wait_for(
                self.generator.generate(prompt, max_tokens=LAW_QUERY_MAX_TOKENS),
                timeout=self.settings.adapter_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Law query planning timed out", timeout_s=self.settings.adapter_timeout_seconds)
            return fallback
        except Exception as e:
            logger.warning("Law query planning failed", error=str(e))
            return fallback

        payload = load_json_object(raw) or {}
        jurisdiction = payload.get("jurisdiction")
        queries = payload.get("lawQueries")
        if not isinstance(jurisdiction, str) or not jurisdiction.strip() or not isinstance(queries, list):
            logger.warning("Law query plan unusable, using fallback", raw=raw[:200])
            return fallback

        phrases = [q.strip() for q in queries if isinstance(q, str) and q.strip()][:MAX_LAW_QUERIES]
        return LawQueryPlan(jurisdiction=jurisdiction.strip().upper(), phrases=phrases or fallback.phrases)

    async def _legislative_bills(
        self,
        question: str,
        company: CompanyProfile,
        search_terms: Sequence[str],
        cache: EvidenceCache,
        errors: List[str],
    ) -> List[LegislativeBill]:
        plan = await self.plan_law_queries(question, company, search_terms)
        if not plan.phrases:
            return []

        jurisdictions = [plan.jurisdiction]
        federal = self.settings.federal_jurisdiction.upper()
        if federal not in jurisdictions:
            jurisdictions.append(federal)

        results = await asyncio.gather(
            *[
                self._guarded("legislation", self.legislation.search(j, plan.phrases, cache=cache), [], errors)
                for j in jurisdictions
            ]
        )
        bills = [bill for result in results for bill in result]
        logger.info("Legislative evidence resolved", jurisdictions=jurisdictions, phrases=plan.phrases, bills=len(bills))
        return bills

    # ------------------------------------------------------------------
    # entry point
    # ------------------------------------------------------------------

    async def gather(
        self,
        intent: Intent,
        user_id: str,
        use_web_search: bool,
        question: str = "",
        company: Optional[CompanyProfile] = None,
        cache: Optional[EvidenceCache] = None,
        errors: Optional[List[str]] = None,
    ) -> EvidenceBundle:
        """Fetch the requested evidence types concurrently and merge them.

        Evidence types absent from ``intent.evidence_types_needed`` are never
        fetched. Source failures are appended to ``errors`` and leave the
        matching bundle field empty.
        """
        errors = errors if errors is not None else []
        company = company or CompanyProfile()
        if not intent.needs_any_evidence:
            logger.info("No evidence requested, skipping gathering")
            return EvidenceBundle()

        start = time.time()
        if cache is None:
            cache = self.cache_factory()
        tasks: List[Tuple[str, Awaitable[Any]]] = []

        if intent.needs(EvidenceType.INTERNAL) and intent.document_tags:
            tasks.append(("internal", self._internal_documents(user_id, intent.document_tags, errors)))

        if intent.needs(EvidenceType.EXTERNAL):
            if intent.search_terms:
                tasks.append(("external", self._external_snippets(intent.search_terms, errors)))
            if use_web_search:
                term = intent.search_terms[0] if intent.search_terms else question
                tasks.append(("web", self._guarded("web_search", self.web_search.search(term, question), "", errors)))
            if self.settings.labor_stats_enabled:
                tasks.append(("labor", self._guarded("labor_stats", self.labor_stats.latest(), [], errors)))

        if intent.needs(EvidenceType.LEGISLATION):
            tasks.append(
                ("legislation", self._legislative_bills(question, company, intent.search_terms, cache, errors))
            )

        results = await asyncio.gather(*[call for _, call in tasks])
        by_name = dict(zip([name for name, _ in tasks], results))

        bundle = EvidenceBundle(
            internal_document_summaries=by_name.get("internal", []),
            external_snippets=by_name.get("external", []),
            web_results=by_name.get("web", "") or "",
            legislative_bills=by_name.get("legislation", []),
            labor_statistics=by_name.get("labor", []),
        )
        logger.info(
            "Evidence gathering completed",
            sources=list(by_name),
            internal_docs=len(bundle.internal_document_summaries),
            external_terms=len(bundle.external_snippets),
            web_chars=len(bundle.web_results),
            bills=len(bundle.legislative_bills),
            labor_series=len(bundle.labor_statistics),
            failures=len(errors),
            duration_ms=round((time.time() - start) * 1000, 2),
        )
        return bundle
