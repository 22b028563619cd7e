"""
End-to-end tests for the LangGraph benefits orchestrator.

The LLM is a scripted fake that answers by prompt kind, and every external
adapter is mocked, so the full graph runs without network access.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from api.composer.prompts import FAST_PATH_EVIDENCE_NOTICE, NO_RESEARCH_NEEDED, RFP_CLARIFICATION_REPLY
from api.orchestrators.benefits_orchestrator import EVIDENCE_SUMMARY_UNAVAILABLE, BenefitsOrchestrator
from api.orchestrators.evidence_gatherer import EvidenceGatherer
from api.schemas.agent_state import ConversationTurn, DocumentSummary, QuestionType, create_initial_state
from api.tools.errors import AdapterError
from api.tools.legislation import LegislationSearch
from libs.caching.evidence_cache import InMemoryEvidenceCache

VENDOR_REPLY = (
    "<h4>Vendor comparison</h4><table><tr><th>Vendor</th><th>Features</th></tr>"
    "<tr><td>Virta Health</td><td>Diabetes reversal</td></tr></table>\n"
    '{"followUps": ["Can you estimate the ROI of Virta?", "Can you draft an RFP for diabetes vendors?"]}'
)


class ScriptedLLM:
    """Answers each prompt kind with a fixed reply and records what it saw."""

    def __init__(self, classification=None, answer=VENDOR_REPLY, summary="I used public data.\n- Point: detail",
                 fast_path="<p>Your Q1 claims rose 8%.</p>", answer_error=None, summary_error=None):
        self.classification = classification or {}
        self.answer = answer
        self.summary = summary
        self.fast_path = fast_path
        self.answer_error = answer_error
        self.summary_error = summary_error
        self.calls = []

    @property
    def call_count(self):
        return len(self.calls)

    def kinds(self):
        return [kind for kind, _ in self.calls]

    async def generate(self, prompt: str, max_tokens: int = 500) -> str:
        if "Return exactly ONE letter" in prompt:
            self.calls.append(("classify", prompt))
            return json.dumps(self.classification)
        if "LegiScan API" in prompt:
            self.calls.append(("law_plan", prompt))
            return json.dumps({"jurisdiction": "MA", "lawQueries": ["paid leave"]})
        if "Summarized Insights" in prompt:
            self.calls.append(("summary", prompt))
            if self.summary_error:
                raise self.summary_error
            return self.summary
        if "They have provided a document for you to analyze" in prompt:
            self.calls.append(("fast_path", prompt))
            return self.fast_path
        self.calls.append(("answer", prompt))
        if self.answer_error:
            raise self.answer_error
        return self.answer


@pytest.fixture
def document_store(company, document_catalog):
    store = MagicMock()
    store.get_company_profile = AsyncMock(return_value=company)
    store.get_all_document_tags = AsyncMock(return_value=document_catalog)
    store.get_documents_by_ids = AsyncMock(return_value=[])
    store.get_document_by_tag = AsyncMock(
        side_effect=lambda uid, tag: DocumentSummary(name="2024 Medical Claims.xlsx", summary="Diabetes is 18% of spend.")
        if tag.startswith("medical claims")
        else None
    )
    return store


@pytest.fixture
def adapters():
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=[0.1, 0.2])
    vector_index = MagicMock()
    vector_index.search = AsyncMock(return_value=["ADA: diabetes costs employers $327B a year."])
    web_search = MagicMock()
    web_search.search = AsyncMock(return_value="- Virta Health: reverses type 2 diabetes")
    legiscan = MagicMock()
    legiscan.get_master_list = AsyncMock(
        return_value=[{"bill_id": 9, "number": "H9", "title": "Paid Leave Act", "description": "Paid leave."}]
    )
    labor_stats = MagicMock()
    labor_stats.latest = AsyncMock(return_value=[])
    return {
        "embedder": embedder,
        "vector_index": vector_index,
        "web_search": web_search,
        "legiscan": legiscan,
        "labor_stats": labor_stats,
    }


def build_orchestrator(llm, document_store, adapters, settings):
    gatherer = EvidenceGatherer(
        document_store=document_store,
        embedder=adapters["embedder"],
        vector_index=adapters["vector_index"],
        web_search=adapters["web_search"],
        legislation=LegislationSearch(adapters["legiscan"]),
        labor_stats=adapters["labor_stats"],
        generator=llm,
        settings=settings,
        cache_factory=InMemoryEvidenceCache,
    )
    return BenefitsOrchestrator(document_store=document_store, gatherer=gatherer, generator=llm, settings=settings)


class TestScenarios:
    @pytest.mark.asyncio
    async def test_vendor_question_gathers_only_external_evidence(self, document_store, adapters, settings):
        llm = ScriptedLLM(
            classification={
                "goalSummary": "Find diabetes management vendors.",
                "questionType": "a",
                "evidenceTypesNeeded": ["external"],
                "searchTerms": ["diabetes management vendors"],
                "documentTags": [],
            }
        )
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)
        state = create_initial_state(
            user_id="u1", message="What are vendor options for diabetes management?", use_web_search=True
        )

        result = await orchestrator.run(state)

        assert result.route == "full"
        assert result.intent.question_type is QuestionType.VENDOR_RECOMMENDATION
        assert "<table>" in result.reply
        assert "followUps" not in result.reply
        assert result.follow_ups == ["Can you estimate the ROI of Virta?", "Can you draft an RFP for diabetes vendors?"]
        assert result.evidence_summary == "I used public data.\n- Point: detail"
        assert sorted(llm.kinds()) == ["answer", "classify", "summary"]

        adapters["embedder"].embed.assert_awaited_once_with("diabetes management vendors")
        adapters["web_search"].search.assert_awaited_once()
        adapters["legiscan"].get_master_list.assert_not_called()
        document_store.get_document_by_tag.assert_not_called()

        answer_prompt = dict(llm.calls)["answer"]
        assert "Suggest 3 point solution vendors" in answer_prompt
        assert "ADA: diabetes costs employers" in answer_prompt
        assert "Virta Health: reverses type 2 diabetes" in answer_prompt
        assert set(result.node_timings) >= {
            "01_load_context",
            "02_intent_classifier",
            "03_evidence_gatherer",
            "04_response_composer",
            "05_output_parser",
            "06_evidence_summarizer",
        }

    @pytest.mark.asyncio
    async def test_pinned_document_takes_fast_path(self, document_store, adapters, settings):
        document_store.get_documents_by_ids = AsyncMock(
            return_value=[DocumentSummary(name="Q1 Claims.xlsx", summary="Q1 claims total $1.2M, up 8%.")]
        )
        llm = ScriptedLLM()
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)
        state = create_initial_state(user_id="u1", message="Summarize our Q1 claims", selected_doc_ids=["doc_q1"])

        result = await orchestrator.run(state)

        assert result.route == "fast_path"
        assert result.intent is None
        assert result.reply == "<p>Your Q1 claims rose 8%.</p>"
        assert result.evidence_summary == FAST_PATH_EVIDENCE_NOTICE
        assert llm.kinds() == ["fast_path"]
        assert "Q1 claims total $1.2M, up 8%." in llm.calls[0][1]
        document_store.get_documents_by_ids.assert_awaited_once_with("u1", ["doc_q1"])
        document_store.get_all_document_tags.assert_not_called()
        adapters["embedder"].embed.assert_not_called()

    @pytest.mark.asyncio
    async def test_fast_path_keeps_trailing_json_in_document_answer(self, document_store, adapters, settings):
        document_store.get_documents_by_ids = AsyncMock(
            return_value=[DocumentSummary(name="Plan Config.json", summary="Exported plan settings.")]
        )
        answer = '<p>The export ends with:</p> {"followUps": ["tier A", "tier B"]}'
        llm = ScriptedLLM(fast_path="```html\n" + answer + "\n```")
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)

        result = await orchestrator.run(
            create_initial_state(user_id="u1", message="What is at the end of the export?", selected_doc_ids=["d1"])
        )

        assert result.reply == answer
        assert result.follow_ups == []

    @pytest.mark.asyncio
    async def test_rfp_without_context_asks_for_clarification(self, document_store, adapters, settings):
        llm = ScriptedLLM(
            classification={"questionType": "b", "evidenceTypesNeeded": ["external"], "searchTerms": ["msk vendors"]}
        )
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)
        state = create_initial_state(user_id="u1", message="Write an RFP for an MSK program", rfp_context="")

        result = await orchestrator.run(state)

        assert result.route == "rfp_clarification"
        assert result.reply == RFP_CLARIFICATION_REPLY
        assert "no RFP context was provided" in result.reply
        assert result.evidence_summary is None
        assert result.follow_ups == []
        assert llm.kinds() == ["classify"]
        adapters["embedder"].embed.assert_not_called()

    @pytest.mark.asyncio
    async def test_rfp_with_context_runs_full_pipeline(self, document_store, adapters, settings):
        llm = ScriptedLLM(classification={"questionType": "b", "evidenceTypesNeeded": ["none"]})
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)
        state = create_initial_state(
            user_id="u1", message="Write an RFP", rfp_context="MSK program, 1,200 employees, launch Q3"
        )

        result = await orchestrator.run(state)

        assert result.route == "full"
        assert result.evidence_summary == NO_RESEARCH_NEEDED
        assert sorted(llm.kinds()) == ["answer", "classify"]
        assert "MSK program, 1,200 employees, launch Q3" in dict(llm.calls)["answer"]


class TestDegradation:
    @pytest.mark.asyncio
    async def test_unparseable_classification_answers_from_internal_template(self, document_store, adapters, settings):
        llm = ScriptedLLM()
        llm.classification = None
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)

        result = await orchestrator.run(create_initial_state(user_id="u1", message="hmm"))

        assert result.intent.question_type is QuestionType.INTERNAL_ANALYSIS
        assert result.evidence_summary == NO_RESEARCH_NEEDED
        assert "Look at the company data" in dict(llm.calls)["answer"]

    @pytest.mark.asyncio
    async def test_all_sources_down_still_answers(self, document_store, adapters, settings):
        adapters["embedder"].embed = AsyncMock(side_effect=AdapterError("embedding", "status 500"))
        adapters["web_search"].search = AsyncMock(side_effect=AdapterError("web_search", "quota"))
        adapters["legiscan"].get_master_list = AsyncMock(side_effect=AdapterError("legislation", "down"))
        document_store.get_document_by_tag = AsyncMock(side_effect=AdapterError("document_store", "down"))
        llm = ScriptedLLM(
            classification={
                "questionType": "m",
                "evidenceTypesNeeded": ["internal", "external", "legislation"],
                "searchTerms": ["paid leave"],
                "documentTags": ["medical claims cost breakdown by condition for 2024"],
            }
        )
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)

        result = await orchestrator.run(create_initial_state(user_id="u1", message="Paid leave laws?", use_web_search=True))

        assert result.evidence.is_empty()
        assert result.reply.startswith("<h4>Vendor comparison</h4>")
        assert result.evidence_summary == NO_RESEARCH_NEEDED
        assert {e.split(":")[0] for e in result.errors} >= {"embedding", "web_search", "legislation", "document_store"}

    @pytest.mark.asyncio
    async def test_missing_company_profile_uses_defaults(self, document_store, adapters, settings):
        document_store.get_company_profile = AsyncMock(side_effect=AdapterError("document_store", "unavailable"))
        llm = ScriptedLLM(classification={"questionType": "j", "evidenceTypesNeeded": []})
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)

        result = await orchestrator.run(create_initial_state(user_id="u1", message="q"))

        assert result.company.name == "Unknown Company"
        assert "company_profile: document_store: unavailable" in result.errors
        assert result.reply

    @pytest.mark.asyncio
    async def test_unknown_pinned_documents_fall_back_to_full_pipeline(self, document_store, adapters, settings):
        llm = ScriptedLLM(classification={"questionType": "j", "evidenceTypesNeeded": []})
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)

        result = await orchestrator.run(create_initial_state(user_id="u1", message="q", selected_doc_ids=["gone"]))

        assert result.route == "full"
        document_store.get_all_document_tags.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_summary_failure_keeps_reply(self, document_store, adapters, settings):
        llm = ScriptedLLM(
            classification={"questionType": "a", "evidenceTypesNeeded": ["external"], "searchTerms": ["diabetes"]},
            summary_error=RuntimeError("summary model down"),
        )
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)

        result = await orchestrator.run(create_initial_state(user_id="u1", message="q"))

        assert result.evidence_summary == EVIDENCE_SUMMARY_UNAVAILABLE
        assert len(result.follow_ups) == 2

    @pytest.mark.asyncio
    async def test_final_generation_failure_propagates(self, document_store, adapters, settings):
        llm = ScriptedLLM(classification={"questionType": "j"}, answer_error=RuntimeError("provider down"))
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)

        with pytest.raises(RuntimeError, match="provider down"):
            await orchestrator.run(create_initial_state(user_id="u1", message="q"))

    @pytest.mark.asyncio
    async def test_conversation_context_reaches_prompts(self, document_store, adapters, settings):
        llm = ScriptedLLM(classification={"questionType": "j", "evidenceTypesNeeded": []})
        orchestrator = build_orchestrator(llm, document_store, adapters, settings)
        history = [
            ConversationTurn(role="user", content="What drives our claims?"),
            ConversationTurn(role="assistant", content="<p>Diabetes and MSK drive claims.</p>"),
        ]

        await orchestrator.run(create_initial_state(user_id="u1", message="And MSK?", chat_history=history))

        calls = dict(llm.calls)
        assert "What drives our claims?" in calls["classify"]
        assert "Diabetes and MSK drive claims." in calls["answer"]
