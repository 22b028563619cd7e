"""
Final answer composition.

Selects the response template for the classified question type, assembles
the answer prompt from labeled sections and runs the generation call under
the template's output budget.
"""

from __future__ import annotations

import time
from datetime import date
from typing import List, Optional, Sequence, Tuple

import structlog

from api.composer.prompts import (
    ANSWER_PREAMBLE,
    DIRECT_ANSWER_INSTRUCTION,
    FOLLOW_UP_DIRECTIVE,
    OUTPUT_FORMAT_DIRECTIVES,
    RFP_CLARIFICATION_REPLY,
    PromptBuilder,
    get_max_tokens,
    get_response_template,
)
from api.llm.generation import ChatGenerator
from api.schemas.agent_state import CompanyProfile, DocumentTag, EvidenceBundle, Intent, QuestionType

logger = structlog.get_logger(__name__)

# Labels used for evidence sections in both the answer and the summary prompts
INTERNAL_LABEL = "My Company Documents"
EXTERNAL_LABEL = "External Evidence"
WEB_LABEL = "Web Search Results"
LEGISLATION_LABEL = "Relevant Laws & Legislation"
LABOR_LABEL = "Labor Market Statistics (BLS)"


def render_evidence_sections(evidence: EvidenceBundle) -> List[Tuple[str, str]]:
    """Serialize the non-empty parts of an evidence bundle as (label, text) pairs."""
    sections: List[Tuple[str, str]] = []

    if evidence.internal_document_summaries:
        body = "\n\n".join(f"Document: {d.name}\n{d.summary}" for d in evidence.internal_document_summaries)
        sections.append((INTERNAL_LABEL, body))

    external = [s for s in evidence.external_snippets if s.matches]
    if external:
        blocks = []
        for snippet in external:
            matches = "\n".join(f"- {m}" for m in snippet.matches)
            blocks.append(f"Search term: {snippet.query_term}\n{matches}")
        sections.append((EXTERNAL_LABEL, "\n\n".join(blocks)))

    if evidence.web_results.strip():
        sections.append((WEB_LABEL, evidence.web_results.strip()))

    if evidence.legislative_bills:
        lines = []
        for bill in evidence.legislative_bills:
            lines.append(
                f"- {bill.bill_number or bill.bill_id} ({bill.jurisdiction}): {bill.title}. "
                f"{bill.description} Last action: {bill.last_action_date or 'unknown'}. URL: {bill.url or 'n/a'}"
            )
        sections.append((LEGISLATION_LABEL, "\n".join(lines)))

    if evidence.labor_statistics:
        lines = [
            f"- Series {s.series_id}: {s.value} ({s.period_name} {s.year})".rstrip()
            for s in evidence.labor_statistics
        ]
        sections.append((LABOR_LABEL, "\n".join(lines)))

    return sections


class _TemplateValues(dict):
    """Leaves unknown placeholders untouched when formatting templates."""

    def __missing__(self, key):
        return "{" + key + "}"


class ResponseComposer:
    """Builds and runs the final answer prompt."""

    def __init__(self, generator: Optional[ChatGenerator] = None):
        self.generator = generator or ChatGenerator()

    @staticmethod
    def needs_rfp_clarification(intent: Intent, rfp_context: Optional[str]) -> bool:
        """RFP questions without caller-supplied context are answered with a clarification request."""
        return intent.question_type == QuestionType.RFP_GENERATION and not (rfp_context or "").strip()

    def build_prompt(
        self,
        intent: Intent,
        evidence: EvidenceBundle,
        company: CompanyProfile,
        question: str,
        conversation_memory: Optional[str] = None,
        rfp_context: Optional[str] = None,
        document_catalog: Sequence[DocumentTag] = (),
        today: Optional[str] = None,
    ) -> str:
        template = get_response_template(intent.question_type).format_map(
            _TemplateValues(
                employee_count=company.employee_count,
                locations=company.locations_text,
                rfp_context=(rfp_context or "").strip(),
                document_names=", ".join(d.name for d in document_catalog) or "No documents uploaded.",
            )
        )

        builder = PromptBuilder()
        builder.add(
            ANSWER_PREAMBLE.format(
                requester_role=company.requester_role,
                company_name=company.name,
                employee_count=company.employee_count,
                locations=company.locations_text,
                industry=company.industry,
                today=today or date.today().isoformat(),
                question=question,
            )
        )
        builder.add(DIRECT_ANSWER_INSTRUCTION)
        builder.add(template)
        for label, body in render_evidence_sections(evidence):
            builder.add(body, label=label)
        builder.add(
            conversation_memory or "",
            label="Your previous answer in this conversation (for continuity)",
            include=bool(conversation_memory),
        )
        builder.add(OUTPUT_FORMAT_DIRECTIVES)
        builder.add(FOLLOW_UP_DIRECTIVE)
        return builder.build()

    async def compose(
        self,
        intent: Intent,
        evidence: EvidenceBundle,
        company: CompanyProfile,
        question: str,
        conversation_memory: Optional[str] = None,
        rfp_context: Optional[str] = None,
        document_catalog: Sequence[DocumentTag] = (),
    ) -> str:
        """Return raw model output for the final answer.

        The RFP guard returns the clarification reply without a model call.
        Generation errors propagate to the caller.
        """
        if self.needs_rfp_clarification(intent, rfp_context):
            logger.info("RFP requested without context, returning clarification")
            return RFP_CLARIFICATION_REPLY

        prompt = self.build_prompt(
            intent,
            evidence,
            company,
            question,
            conversation_memory=conversation_memory,
            rfp_context=rfp_context,
            document_catalog=document_catalog,
        )
        max_tokens = get_max_tokens(intent.question_type)

        start = time.time()
        raw = await self.generator.generate(prompt, max_tokens=max_tokens)
        logger.info(
            "Response composition completed",
            question_type=intent.question_type.value,
            max_tokens=max_tokens,
            prompt_chars=len(prompt),
            duration_ms=round((time.time() - start) * 1000, 2),
        )
        return raw
