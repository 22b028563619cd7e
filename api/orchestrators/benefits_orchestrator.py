"""Benefits question orchestrator built on LangGraph.

The graph routes a question through numbered stages:

    01_load_context -> 02_intent_classifier -> 03_evidence_gatherer
        -> 04_response_composer -> 05_output_parser
        -> 06_evidence_summarizer (runs beside 04/05)

with two short-circuits: the single-document fast path (caller pinned
documents) and the RFP clarification reply (RFP question without context).
Evidence-stage failures degrade inside their nodes; a failed final
generation propagates out of ``run``.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import structlog
from langgraph.graph import END, StateGraph

from api.composer.evidence_summarizer import EvidenceSummarizer
from api.composer.output_parser import parse_model_output, strip_code_fences
from api.composer.prompts import (
    FAST_PATH_EVIDENCE_NOTICE,
    FAST_PATH_MAX_TOKENS,
    FAST_PATH_PROMPT,
    RFP_CLARIFICATION_REPLY,
)
from api.composer.response_composer import ResponseComposer
from api.llm.generation import ChatGenerator
from api.orchestrators.evidence_gatherer import EvidenceGatherer
from api.orchestrators.intent_classifier import IntentClassifier
from api.schemas.agent_state import BenefitsState, CompanyProfile
from api.tools.document_store import FirestoreDocumentStore
from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

EVIDENCE_SUMMARY_UNAVAILABLE = "An evidence summary could not be generated for this answer."


def _elapsed_ms(start: float) -> float:
    return round((time.time() - start) * 1000, 2)


class BenefitsOrchestrator:
    """Runs the classify -> gather -> compose -> parse/summarize pipeline."""

    def __init__(
        self,
        document_store: Optional[FirestoreDocumentStore] = None,
        classifier: Optional[IntentClassifier] = None,
        gatherer: Optional[EvidenceGatherer] = None,
        composer: Optional[ResponseComposer] = None,
        summarizer: Optional[EvidenceSummarizer] = None,
        generator: Optional[ChatGenerator] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.generator = generator or ChatGenerator(self.settings)
        self.document_store = document_store or FirestoreDocumentStore()
        self.classifier = classifier or IntentClassifier(self.generator, self.settings)
        self.gatherer = gatherer or EvidenceGatherer(
            document_store=self.document_store, generator=self.generator, settings=self.settings
        )
        self.composer = composer or ResponseComposer(self.generator)
        self.summarizer = summarizer or EvidenceSummarizer(self.generator)
        self.graph = self._build_graph()

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        graph = StateGraph(BenefitsState)

        graph.add_node("01_load_context", self._load_context_node)
        graph.add_node("fast_path", self._fast_path_node)
        graph.add_node("02_intent_classifier", self._intent_classifier_node)
        graph.add_node("rfp_clarification", self._rfp_clarification_node)
        graph.add_node("03_evidence_gatherer", self._evidence_gatherer_node)
        graph.add_node("04_response_composer", self._response_composer_node)
        graph.add_node("05_output_parser", self._output_parser_node)
        graph.add_node("06_evidence_summarizer", self._evidence_summarizer_node)

        graph.set_entry_point("01_load_context")

        graph.add_conditional_edges(
            "01_load_context",
            self._decide_entry_route,
            {"fast_path": "fast_path", "full": "02_intent_classifier"},
        )
        graph.add_conditional_edges(
            "02_intent_classifier",
            self._decide_intent_route,
            {"rfp_clarification": "rfp_clarification", "full": "03_evidence_gatherer"},
        )

        # Summary only needs the evidence bundle, so it runs beside composition
        graph.add_edge("03_evidence_gatherer", "04_response_composer")
        graph.add_edge("03_evidence_gatherer", "06_evidence_summarizer")
        graph.add_edge("04_response_composer", "05_output_parser")

        graph.add_edge("fast_path", END)
        graph.add_edge("rfp_clarification", END)
        graph.add_edge("05_output_parser", END)
        graph.add_edge("06_evidence_summarizer", END)

        compiled_graph = graph.compile()
        logger.info("Benefits orchestrator graph compiled")
        return compiled_graph

    # ------------------------------------------------------------------
    # routing
    # ------------------------------------------------------------------

    def _decide_entry_route(self, state: BenefitsState) -> str:
        return "fast_path" if state.selected_documents else "full"

    def _decide_intent_route(self, state: BenefitsState) -> str:
        if state.intent is not None and self.composer.needs_rfp_clarification(state.intent, state.rfp_context):
            return "rfp_clarification"
        return "full"

    # ------------------------------------------------------------------
    # nodes
    # ------------------------------------------------------------------

    async def _load_context_node(self, state: BenefitsState) -> Dict[str, Any]:
        """01_load_context: company profile plus either pinned documents or the document catalog."""
        start_time = time.time()
        errors: List[str] = []

        try:
            company = await self.document_store.get_company_profile(state.user_id)
        except Exception as e:
            logger.warning("Company profile unavailable, using defaults", error=str(e), trace_id=state.trace_id)
            errors.append(f"company_profile: {e}")
            company = None

        selected = []
        if state.selected_doc_ids:
            try:
                selected = await self.document_store.get_documents_by_ids(state.user_id, state.selected_doc_ids)
            except Exception as e:
                logger.warning("Selected documents unavailable", error=str(e), trace_id=state.trace_id)
                errors.append(f"selected_documents: {e}")

        catalog = []
        if not selected:
            try:
                catalog = await self.document_store.get_all_document_tags(state.user_id)
            except Exception as e:
                logger.warning("Document catalog unavailable", error=str(e), trace_id=state.trace_id)
                errors.append(f"document_catalog: {e}")

        duration_ms = _elapsed_ms(start_time)
        logger.info(
            "01_load_context completed",
            has_company=company is not None,
            selected_documents=len(selected),
            catalog_size=len(catalog),
            duration_ms=duration_ms,
            trace_id=state.trace_id,
        )
        return {
            "company": company or CompanyProfile(),
            "selected_documents": selected,
            "document_catalog": catalog,
            "errors": errors,
            "node_timings": {"01_load_context": duration_ms},
        }

    async def _fast_path_node(self, state: BenefitsState) -> Dict[str, Any]:
        """Answer directly from pinned documents with one generation call."""
        start_time = time.time()
        documents = "\n\n".join(f"Document: {d.name}\n{d.summary}" for d in state.selected_documents)
        prompt = FAST_PATH_PROMPT.format(question=state.message, documents=documents)

        raw = await self.generator.generate(prompt, max_tokens=FAST_PATH_MAX_TOKENS)
        reply = strip_code_fences(raw).strip()

        duration_ms = _elapsed_ms(start_time)
        logger.info(
            "fast_path completed",
            documents=len(state.selected_documents),
            duration_ms=duration_ms,
            trace_id=state.trace_id,
        )
        return {
            "route": "fast_path",
            "raw_generation": raw,
            "reply": reply,
            "follow_ups": [],
            "evidence_summary": FAST_PATH_EVIDENCE_NOTICE,
            "node_timings": {"fast_path": duration_ms},
        }

    async def _intent_classifier_node(self, state: BenefitsState) -> Dict[str, Any]:
        """02_intent_classifier: structured intent (never fails, falls back)."""
        start_time = time.time()
        intent = await self.classifier.classify(
            state.message,
            state.company,
            state.document_catalog,
            recent_questions=state.recent_user_turns(self.settings.history_user_turns),
        )
        duration_ms = _elapsed_ms(start_time)
        logger.info(
            "02_intent_classifier completed",
            question_type=intent.question_type.value,
            duration_ms=duration_ms,
            trace_id=state.trace_id,
        )
        return {"intent": intent, "node_timings": {"02_intent_classifier": duration_ms}}

    async def _rfp_clarification_node(self, state: BenefitsState) -> Dict[str, Any]:
        logger.info("rfp_clarification completed", trace_id=state.trace_id)
        return {
            "route": "rfp_clarification",
            "reply": RFP_CLARIFICATION_REPLY,
            "follow_ups": [],
            "evidence_summary": None,
        }

    async def _evidence_gatherer_node(self, state: BenefitsState) -> Dict[str, Any]:
        """03_evidence_gatherer: conditional concurrent fetches."""
        start_time = time.time()
        errors: List[str] = []
        evidence = await self.gatherer.gather(
            state.intent,
            state.user_id,
            state.use_web_search,
            question=state.message,
            company=state.company,
            errors=errors,
        )
        duration_ms = _elapsed_ms(start_time)
        logger.info(
            "03_evidence_gatherer completed",
            empty=evidence.is_empty(),
            failures=len(errors),
            duration_ms=duration_ms,
            trace_id=state.trace_id,
        )
        return {
            "evidence": evidence,
            "errors": errors,
            "route": "full",
            "node_timings": {"03_evidence_gatherer": duration_ms},
        }

    async def _response_composer_node(self, state: BenefitsState) -> Dict[str, Any]:
        """04_response_composer: final generation; errors propagate."""
        start_time = time.time()
        raw = await self.composer.compose(
            state.intent,
            state.evidence,
            state.company,
            state.message,
            conversation_memory=state.last_assistant_turn(),
            rfp_context=state.rfp_context,
            document_catalog=state.document_catalog,
        )
        duration_ms = _elapsed_ms(start_time)
        logger.info(
            "04_response_composer completed",
            output_chars=len(raw),
            duration_ms=duration_ms,
            trace_id=state.trace_id,
        )
        return {"raw_generation": raw, "node_timings": {"04_response_composer": duration_ms}}

    async def _output_parser_node(self, state: BenefitsState) -> Dict[str, Any]:
        """05_output_parser: split reply body and follow-up questions."""
        start_time = time.time()
        parsed = parse_model_output(state.raw_generation or "")
        duration_ms = _elapsed_ms(start_time)
        logger.info(
            "05_output_parser completed",
            follow_ups_recovered=parsed.follow_ups_recovered,
            duration_ms=duration_ms,
            trace_id=state.trace_id,
        )
        return {
            "reply": parsed.reply_body,
            "follow_ups": parsed.follow_up_questions,
            "node_timings": {"05_output_parser": duration_ms},
        }

    async def _evidence_summarizer_node(self, state: BenefitsState) -> Dict[str, Any]:
        """06_evidence_summarizer: display-only summary; failures degrade to a notice."""
        start_time = time.time()
        errors: List[str] = []
        try:
            summary = await self.summarizer.summarize(state.evidence)
        except Exception as e:
            logger.warning("Evidence summary failed", error=str(e), trace_id=state.trace_id)
            errors.append(f"evidence_summary: {e}")
            summary = EVIDENCE_SUMMARY_UNAVAILABLE

        duration_ms = _elapsed_ms(start_time)
        logger.info(
            "06_evidence_summarizer completed",
            summary_chars=len(summary),
            duration_ms=duration_ms,
            trace_id=state.trace_id,
        )
        return {
            "evidence_summary": summary,
            "errors": errors,
            "node_timings": {"06_evidence_summarizer": duration_ms},
        }

    # ------------------------------------------------------------------
    # entry point
    # ------------------------------------------------------------------

    async def run(self, state: BenefitsState) -> BenefitsState:
        """Run a question through the graph under the request timeout.

        Raises on final-generation failure or timeout; evidence failures are
        reported in ``state.errors`` instead.
        """
        logger.info(
            "Starting benefits orchestration",
            trace_id=state.trace_id,
            user_id=state.user_id,
            query_preview=state.message[:50],
            selected_docs=len(state.selected_doc_ids),
            use_web_search=state.use_web_search,
        )
        start_time = time.time()

        result = await asyncio.wait_for(self.graph.ainvoke(state), timeout=self.settings.request_timeout_seconds)

        # LangGraph returns channel values as a dict
        if isinstance(result, dict):
            result = state.model_copy(update=result)

        logger.info(
            "Benefits orchestration completed",
            trace_id=state.trace_id,
            route=result.route,
            question_type=result.intent.question_type.value if result.intent else None,
            errors=len(result.errors),
            total_ms=_elapsed_ms(start_time),
        )
        return result


# Global orchestrator instance
_orchestrator: Optional[BenefitsOrchestrator] = None


def get_orchestrator() -> BenefitsOrchestrator:
    """Get or create the global orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = BenefitsOrchestrator()
    return _orchestrator
