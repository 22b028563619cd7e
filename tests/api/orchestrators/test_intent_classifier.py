"""
Tests for the LLM intent classifier.

Covers well-formed classifications, the deterministic fallback for
unusable model output, field-level tolerance and prompt contents.
"""

import asyncio
import json

import pytest

from api.orchestrators.intent_classifier import IntentClassifier, parse_intent
from api.schemas.agent_state import EvidenceType, Intent, QuestionType


def _classifier_reply(**overrides) -> str:
    payload = {
        "goalSummary": "Find vendors for diabetes management.",
        "questionType": "a",
        "evidenceTypesNeeded": ["external"],
        "searchTerms": ["diabetes management vendors", "diabetes cost"],
        "documentTags": [],
    }
    payload.update(overrides)
    return json.dumps(payload)


class TestParseIntent:
    def test_well_formed_output(self):
        intent = parse_intent(_classifier_reply())

        assert intent.goal_summary == "Find vendors for diabetes management."
        assert intent.question_type is QuestionType.VENDOR_RECOMMENDATION
        assert intent.evidence_types_needed == [EvidenceType.EXTERNAL]
        assert intent.search_terms == ["diabetes management vendors", "diabetes cost"]
        assert intent.document_tags == []

    @pytest.mark.parametrize(
        "raw",
        [
            "I think this is a vendor question.",
            "",
            "[1, 2, 3]",
            '{"questionType": "a", ',
            "null",
        ],
    )
    def test_unusable_output_returns_fallback(self, raw):
        assert parse_intent(raw) == Intent.fallback()

    def test_unknown_question_type_falls_back_to_internal_analysis(self):
        intent = parse_intent(_classifier_reply(questionType="q"))

        assert intent.question_type is QuestionType.INTERNAL_ANALYSIS

    def test_non_string_fields_are_ignored(self):
        intent = parse_intent(
            _classifier_reply(goalSummary=42, questionType=["a"], searchTerms="single term", documentTags=[None, "tag"])
        )

        assert intent.goal_summary == "unknown"
        assert intent.question_type is QuestionType.INTERNAL_ANALYSIS
        assert intent.search_terms == ["single term"]
        assert intent.document_tags == ["tag"]

    def test_extra_fields_are_ignored(self):
        intent = parse_intent(_classifier_reply(confidence=0.9, reasoning="because"))

        assert intent.question_type is QuestionType.VENDOR_RECOMMENDATION

    def test_search_terms_are_capped(self):
        intent = parse_intent(_classifier_reply(searchTerms=["a", "b", "c", "d", "e"]), max_search_terms=3)

        assert intent.search_terms == ["a", "b", "c"]

    def test_none_evidence_and_unknown_types(self):
        assert parse_intent(_classifier_reply(evidenceTypesNeeded=["none"])).evidence_types_needed == [EvidenceType.NONE]
        assert parse_intent(_classifier_reply(evidenceTypesNeeded=[])).evidence_types_needed == []

        mixed = parse_intent(_classifier_reply(evidenceTypesNeeded=["None", "legislation", "astrology", "legislation"]))
        assert mixed.evidence_types_needed == [EvidenceType.LEGISLATION]

    def test_missing_evidence_list_is_inferred(self):
        raw = json.dumps({"questionType": "m", "searchTerms": ["paid leave"], "docTags": ["handbook"]})

        intent = parse_intent(raw)

        assert intent.document_tags == ["handbook"]
        assert intent.evidence_types_needed == [EvidenceType.INTERNAL, EvidenceType.EXTERNAL, EvidenceType.LEGISLATION]

    def test_code_fenced_output(self):
        intent = parse_intent("```json\n" + _classifier_reply(questionType="m") + "\n```")

        assert intent.question_type is QuestionType.COMPLIANCE_LAW


class TestIntentClassifier:
    @pytest.mark.asyncio
    async def test_classify(self, make_generator, settings, company, document_catalog):
        generator = make_generator([_classifier_reply(documentTags=["medical claims cost breakdown by condition for 2024"])])
        classifier = IntentClassifier(generator, settings)

        intent = await classifier.classify(
            "What are vendor options for diabetes management?",
            company,
            document_catalog,
            recent_questions=["What drives our claims?"],
        )

        assert intent.question_type is QuestionType.VENDOR_RECOMMENDATION
        assert intent.document_tags == ["medical claims cost breakdown by condition for 2024"]
        prompt = generator.prompts[0]
        assert "What are vendor options for diabetes management?" in prompt
        assert "Benefits Guide.pdf (employee benefits guide describing plan options)" in prompt
        assert "- What drives our claims?" in prompt
        assert "Acme Manufacturing" in prompt

    @pytest.mark.asyncio
    async def test_catalog_contents_are_not_sent(self, make_generator, settings, company, document_catalog):
        generator = make_generator([_classifier_reply()])

        await IntentClassifier(generator, settings).classify("q", company, document_catalog)

        assert "Diabetes is 18% of spend" not in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_generation_error_returns_fallback(self, make_generator, settings, company):
        classifier = IntentClassifier(make_generator(error=TimeoutError("slow")), settings)

        intent = await classifier.classify("q", company, [])

        assert intent == Intent.fallback()

    @pytest.mark.asyncio
    async def test_slow_generation_returns_fallback(self, settings, company):
        class StalledGenerator:
            async def generate(self, prompt, max_tokens=500):
                await asyncio.sleep(30)
                return _classifier_reply()

        settings = settings.model_copy(update={"adapter_timeout_seconds": 0.05})
        classifier = IntentClassifier(StalledGenerator(), settings)

        intent = await asyncio.wait_for(classifier.classify("q", company, []), timeout=3)

        assert intent == Intent.fallback()

    @pytest.mark.asyncio
    async def test_garbage_output_returns_fallback(self, make_generator, settings, company):
        classifier = IntentClassifier(make_generator(["Sorry, I cannot help with that."]), settings)

        intent = await classifier.classify("asdf qwerty", company, [])

        assert intent.question_type is QuestionType.INTERNAL_ANALYSIS
        assert not intent.needs_any_evidence
