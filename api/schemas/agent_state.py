"""Agent state schema for the Avenir benefits assistant.

This module defines the domain records that flow through the LangGraph
orchestrator (company profile, conversation turns, classified intent,
evidence bundle, parsed generation) and the state object that carries them
from the raw question to the final response.
"""

from __future__ import annotations

import operator
import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class QuestionType(str, Enum):
    """Closed taxonomy of question types; each one selects a response template.

    Unknown values resolve to ``INTERNAL_ANALYSIS`` through ``_missing_``, so
    every classification ends up with a valid template.
    """

    VENDOR_RECOMMENDATION = "vendor_recommendation"
    RFP_GENERATION = "rfp_generation"
    COST_SAVINGS_ESTIMATE = "cost_savings_estimate"
    EMAIL_DRAFT = "email_draft"
    SURVEY_GENERATION = "survey_generation"
    COMMUNICATION_DRAFT = "communication_draft"
    RISK_PROFILE = "risk_profile"
    POINT_SOLUTION_EVALUATION = "point_solution_evaluation"
    EXTERNAL_TRENDS = "external_trends"
    INTERNAL_ANALYSIS = "internal_analysis"
    ACTION_SUGGESTIONS = "action_suggestions"
    INDUSTRY_BENCHMARKING = "industry_benchmarking"
    COMPLIANCE_LAW = "compliance_law"
    METRICS_METHODOLOGY = "metrics_methodology"
    AMBIGUOUS_SCOPE = "ambiguous_scope"
    OFF_TOPIC = "off_topic"

    @classmethod
    def _missing_(cls, value: object) -> "QuestionType":
        if isinstance(value, str):
            key = value.strip().lower().replace("-", "_").replace(" ", "_")
            if key in QUESTION_TYPE_CODES:
                return QUESTION_TYPE_CODES[key]
            for member in cls:
                if member.value == key:
                    return member
        return cls.INTERNAL_ANALYSIS


# Single-letter codes the classifier prompt offers to the model
QUESTION_TYPE_CODES: Dict[str, QuestionType] = {
    "a": QuestionType.VENDOR_RECOMMENDATION,
    "b": QuestionType.RFP_GENERATION,
    "c": QuestionType.COST_SAVINGS_ESTIMATE,
    "d": QuestionType.EMAIL_DRAFT,
    "e": QuestionType.SURVEY_GENERATION,
    "f": QuestionType.COMMUNICATION_DRAFT,
    "g": QuestionType.RISK_PROFILE,
    "h": QuestionType.POINT_SOLUTION_EVALUATION,
    "i": QuestionType.EXTERNAL_TRENDS,
    "j": QuestionType.INTERNAL_ANALYSIS,
    "k": QuestionType.ACTION_SUGGESTIONS,
    "l": QuestionType.INDUSTRY_BENCHMARKING,
    "m": QuestionType.COMPLIANCE_LAW,
    "n": QuestionType.METRICS_METHODOLOGY,
    "y": QuestionType.AMBIGUOUS_SCOPE,
    "z": QuestionType.OFF_TOPIC,
}


class EvidenceType(str, Enum):
    """Kinds of evidence the classifier can ask for."""

    INTERNAL = "internal"
    EXTERNAL = "external"
    LEGISLATION = "legislation"
    NONE = "none"


class CompanyProfile(BaseModel):
    """Company context for the requesting user (read-only within a request)."""

    name: str = Field(default="Unknown Company", description="Company name")
    employee_count: str = Field(default="Unknown Employee Count", description="Headcount as entered at onboarding")
    locations: List[str] = Field(default_factory=list, description="Ordered region strings")
    industry: str = Field(default="Unknown Industry", description="Industry label")
    requester_role: str = Field(default="head of benefits and wellbeing", description="Role of the person asking")

    @field_validator("employee_count", mode="before")
    @classmethod
    def coerce_employee_count(cls, v: Any) -> str:
        return "Unknown Employee Count" if v in (None, "") else str(v)

    @field_validator("locations", mode="before")
    @classmethod
    def coerce_locations(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return [str(item) for item in v]

    @property
    def locations_text(self) -> str:
        return ", ".join(self.locations) if self.locations else "unspecified locations"


class ConversationTurn(BaseModel):
    """One message of the chat history supplied by the client."""

    role: Literal["user", "assistant"]
    content: str = ""
    timestamp: Optional[datetime] = None


class Intent(BaseModel):
    """Structured classification of a question."""

    goal_summary: str = "unknown"
    question_type: QuestionType = QuestionType.INTERNAL_ANALYSIS
    evidence_types_needed: List[EvidenceType] = Field(default_factory=list)
    search_terms: List[str] = Field(default_factory=list)
    document_tags: List[str] = Field(default_factory=list)

    @classmethod
    def fallback(cls) -> "Intent":
        """Deterministic intent used when the classifier output is unusable."""
        return cls()

    def needs(self, evidence_type: EvidenceType) -> bool:
        return evidence_type in self.evidence_types_needed

    @property
    def needs_any_evidence(self) -> bool:
        return any(t is not EvidenceType.NONE for t in self.evidence_types_needed)


class DocumentTag(BaseModel):
    """Catalog entry for an uploaded document (name plus descriptive tag)."""

    name: str
    tag: str


class DocumentSummary(BaseModel):
    """Stored name and pre-computed summary of an uploaded document."""

    name: str
    summary: str = ""


class ExternalSnippets(BaseModel):
    """Vector-search matches for one search term."""

    query_term: str
    matches: List[str] = Field(default_factory=list)


class LegislativeBill(BaseModel):
    """A bill returned by the legislative search."""

    bill_id: str
    bill_number: str = ""
    title: str
    description: str = ""
    jurisdiction: str
    last_action_date: str = ""
    url: str = ""


class LaborStatistic(BaseModel):
    """Latest observation of a labor-statistics series."""

    series_id: str
    year: str = ""
    period_name: str = ""
    value: str = ""


class EvidenceBundle(BaseModel):
    """Evidence gathered for a single request.

    Absent evidence types leave their collections empty so that prompt
    composition never has to special-case missing fields.
    """

    internal_document_summaries: List[DocumentSummary] = Field(default_factory=list)
    external_snippets: List[ExternalSnippets] = Field(default_factory=list)
    web_results: str = ""
    legislative_bills: List[LegislativeBill] = Field(default_factory=list)
    labor_statistics: List[LaborStatistic] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.internal_document_summaries
            or any(s.matches for s in self.external_snippets)
            or self.web_results.strip()
            or self.legislative_bills
            or self.labor_statistics
        )


def merge_timings(left: Optional[Dict[str, float]], right: Optional[Dict[str, float]]) -> Dict[str, float]:
    """Graph reducer combining per-node timings from parallel branches."""
    return {**(left or {}), **(right or {})}


class GenerationResult(BaseModel):
    """Reply body and follow-up questions recovered from raw model text."""

    reply_body: str
    follow_up_questions: List[str] = Field(default_factory=list)
    follow_ups_recovered: bool = False


class BenefitsState(BaseModel):
    """Core state object for the benefits question pipeline.

    This state flows through all nodes of the LangGraph orchestrator.
    """

    # Versioning and tracing
    state_version: Literal["v1"] = "v1"
    trace_id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Unique trace identifier")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    request_id: Optional[str] = None

    # Request input
    user_id: str
    message: str
    chat_history: List[ConversationTurn] = Field(default_factory=list)
    use_web_search: bool = False
    selected_doc_ids: List[str] = Field(default_factory=list)
    rfp_context: Optional[str] = None

    # Context resolved from the document store
    company: CompanyProfile = Field(default_factory=CompanyProfile)
    document_catalog: List[DocumentTag] = Field(default_factory=list)
    selected_documents: List[DocumentSummary] = Field(default_factory=list)

    # Stage outputs
    intent: Optional[Intent] = None
    evidence: EvidenceBundle = Field(default_factory=EvidenceBundle)
    raw_generation: Optional[str] = None
    reply: Optional[str] = None
    follow_ups: List[str] = Field(default_factory=list)
    evidence_summary: Optional[str] = None
    route: Optional[Literal["fast_path", "rfp_clarification", "full"]] = None

    # Diagnostics (reducers let parallel graph branches report independently)
    node_timings: Annotated[Dict[str, float], merge_timings] = Field(default_factory=dict)
    errors: Annotated[List[str], operator.add] = Field(default_factory=list)

    def recent_user_turns(self, limit: int) -> List[str]:
        """Most recent ``limit`` user messages, oldest first."""
        turns = [t.content for t in self.chat_history if t.role == "user"]
        return turns[-limit:] if limit > 0 else []

    def last_assistant_turn(self) -> Optional[str]:
        for turn in reversed(self.chat_history):
            if turn.role == "assistant" and turn.content.strip():
                return turn.content
        return None


def create_initial_state(
    user_id: str,
    message: str,
    chat_history: Optional[List[ConversationTurn]] = None,
    use_web_search: bool = False,
    selected_doc_ids: Optional[List[str]] = None,
    rfp_context: Optional[str] = None,
    request_id: Optional[str] = None,
) -> BenefitsState:
    """Create initial state for a new question."""
    return BenefitsState(
        user_id=user_id,
        message=message,
        chat_history=chat_history or [],
        use_web_search=use_web_search,
        selected_doc_ids=selected_doc_ids or [],
        rfp_context=rfp_context,
        request_id=request_id,
    )

