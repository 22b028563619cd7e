"""
Intent classification for benefits questions.

One generation call maps the question, recent conversation and company
context onto an ``Intent``. Every failure (model error, non-JSON output,
missing or malformed fields) degrades to a well-formed intent instead of
raising.
"""

import asyncio
import time
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import structlog

from api.composer.output_parser import load_json_object
from api.composer.prompts import INTENT_CLASSIFIER_PROMPT, format_document_listing
from api.llm.generation import ChatGenerator
from api.schemas.agent_state import CompanyProfile, DocumentTag, EvidenceType, Intent, QuestionType
from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

CLASSIFIER_MAX_TOKENS = 400

# Key names used by earlier prompt revisions are accepted too
_KEY_ALIASES = {
    "goalSummary": ("goalSummary", "goalSentence"),
    "questionType": ("questionType", "type"),
    "evidenceTypesNeeded": ("evidenceTypesNeeded", "evidenceTypes"),
    "searchTerms": ("searchTerms", "ragQueries"),
    "documentTags": ("documentTags", "docTags"),
}


def _field(payload: Dict[str, Any], name: str) -> Any:
    for key in _KEY_ALIASES[name]:
        if key in payload:
            return payload[key]
    return None


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    seen = []
    for item in value:
        if isinstance(item, str) and item.strip() and item.strip() not in seen:
            seen.append(item.strip())
    return seen


def _evidence_types(value: Any) -> List[EvidenceType]:
    types: List[EvidenceType] = []
    for item in _string_list(value):
        try:
            evidence_type = EvidenceType(item.lower())
        except ValueError:
            logger.debug("Ignoring unknown evidence type", value=item)
            continue
        if evidence_type not in types:
            types.append(evidence_type)

    if EvidenceType.NONE in types and len(types) > 1:
        types.remove(EvidenceType.NONE)
    return types


def parse_intent(raw_output: str, max_search_terms: int = 3) -> Intent:
    """Build an Intent from classifier output, falling back field by field.

    Non-object output yields ``Intent.fallback()``. When the evidence list is
    absent altogether it is inferred from the other fields.
    """
    payload = load_json_object(raw_output or "")
    if payload is None:
        logger.warning("Classifier output is not a JSON object, using fallback intent")
        return Intent.fallback()

    goal = _field(payload, "goalSummary")
    question_type_raw = _field(payload, "questionType")
    question_type = (
        QuestionType(question_type_raw) if isinstance(question_type_raw, str) else QuestionType.INTERNAL_ANALYSIS
    )
    search_terms = _string_list(_field(payload, "searchTerms"))[:max_search_terms]
    document_tags = _string_list(_field(payload, "documentTags"))

    evidence_raw = _field(payload, "evidenceTypesNeeded")
    if evidence_raw is None:
        evidence_types = []
        if document_tags:
            evidence_types.append(EvidenceType.INTERNAL)
        if search_terms:
            evidence_types.append(EvidenceType.EXTERNAL)
        if question_type == QuestionType.COMPLIANCE_LAW:
            evidence_types.append(EvidenceType.LEGISLATION)
    else:
        evidence_types = _evidence_types(evidence_raw)

    return Intent(
        goal_summary=goal.strip() if isinstance(goal, str) and goal.strip() else "unknown",
        question_type=question_type,
        evidence_types_needed=evidence_types,
        search_terms=search_terms,
        document_tags=document_tags,
    )


class IntentClassifier:
    """LLM-backed classifier producing structured intents."""

    def __init__(self, generator: Optional[ChatGenerator] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.generator = generator or ChatGenerator(self.settings)

    def build_prompt(
        self,
        question: str,
        company: CompanyProfile,
        document_catalog: Sequence[DocumentTag],
        recent_questions: Sequence[str] = (),
        today: Optional[str] = None,
    ) -> str:
        history = ""
        if recent_questions:
            history = "Here are my previous questions in this conversation, oldest first:\n" + "\n".join(
                f"- {q}" for q in recent_questions
            )
        return INTENT_CLASSIFIER_PROMPT.format(
            requester_role=company.requester_role,
            company_name=company.name,
            employee_count=company.employee_count,
            locations=company.locations_text,
            industry=company.industry,
            today=today or date.today().isoformat(),
            recent_questions=history,
            question=question,
            document_listing=format_document_listing([(d.name, d.tag) for d in document_catalog]),
        )

    async def classify(
        self,
        question: str,
        company: CompanyProfile,
        document_catalog: Sequence[DocumentTag],
        recent_questions: Sequence[str] = (),
    ) -> Intent:
        start = time.time()
        prompt = self.build_prompt(question, company, document_catalog, recent_questions)

        try:
            raw = await asyncio.wait_for(
                self.generator.generate(prompt, max_tokens=CLASSIFIER_MAX_TOKENS),
                timeout=self.settings.adapter_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Intent classification timed out, using fallback intent",
                timeout_s=self.settings.adapter_timeout_seconds,
            )
            return Intent.fallback()
        except Exception as e:
            logger.warning("Intent classification call failed, using fallback intent", error=str(e))
            return Intent.fallback()

        intent = parse_intent(raw, max_search_terms=self.settings.max_search_terms)
        logger.info(
            "Intent classification completed",
            question_type=intent.question_type.value,
            evidence_types=[t.value for t in intent.evidence_types_needed],
            search_terms=len(intent.search_terms),
            document_tags=len(intent.document_tags),
            duration_ms=round((time.time() - start) * 1000, 2),
        )
        return intent
