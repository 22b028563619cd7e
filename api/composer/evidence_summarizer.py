"""Citation-style summary of the gathered evidence, shown beside the reply."""

import time
from typing import Optional

import structlog

from api.composer.prompts import EVIDENCE_SUMMARY_MAX_TOKENS, EVIDENCE_SUMMARY_PROMPT, NO_RESEARCH_NEEDED
from api.composer.response_composer import render_evidence_sections
from api.llm.generation import ChatGenerator
from api.schemas.agent_state import EvidenceBundle

logger = structlog.get_logger(__name__)


class EvidenceSummarizer:
    """Condenses an evidence bundle with one short generation call.

    Empty bundles short-circuit to ``NO_RESEARCH_NEEDED`` without calling the
    model. The summary is display-only and never fed back into later turns.
    """

    def __init__(self, generator: Optional[ChatGenerator] = None):
        self.generator = generator or ChatGenerator()

    async def summarize(self, evidence: EvidenceBundle) -> str:
        if evidence.is_empty():
            return NO_RESEARCH_NEEDED

        sections = render_evidence_sections(evidence)
        rendered = "\n\n".join(f"{label}:\n{body}" for label, body in sections)
        prompt = EVIDENCE_SUMMARY_PROMPT.format(evidence=rendered)

        start = time.time()
        summary = await self.generator.generate(prompt, max_tokens=EVIDENCE_SUMMARY_MAX_TOKENS)
        logger.info(
            "Evidence summary completed",
            sections=[label for label, _ in sections],
            duration_ms=round((time.time() - start) * 1000, 2),
        )
        return summary.strip()
