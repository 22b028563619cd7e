"""Tests for recovering reply bodies and follow-up questions from model output."""

import pytest

from api.composer.output_parser import (
    find_last_json_span,
    load_json_object,
    parse_model_output,
    strip_code_fences,
)


class TestParseModelOutput:
    def test_trailing_follow_ups_are_extracted_and_removed(self):
        raw = '<p>Here is the reply text.</p> {"followUpQuestions":["Q1?","Q2?"]}'

        result = parse_model_output(raw)

        assert result.reply_body == "<p>Here is the reply text.</p>"
        assert result.follow_up_questions == ["Q1?", "Q2?"]
        assert result.follow_ups_recovered

    def test_prompted_follow_ups_key(self):
        raw = '<h4>Vendors</h4><p>...</p>\n{"followUps": ["Which vendor has the best NPS?", "Can you draft an RFP?"]}'

        result = parse_model_output(raw)

        assert result.follow_up_questions == ["Which vendor has the best NPS?", "Can you draft an RFP?"]
        assert "followUps" not in result.reply_body

    def test_no_braces_leaves_text_unchanged(self):
        raw = "<p>Plain answer with no JSON at all.</p>"

        result = parse_model_output(raw)

        assert result.reply_body == raw
        assert result.follow_up_questions == []
        assert not result.follow_ups_recovered

    def test_invalid_json_leaves_body_intact(self):
        raw = '<p>Answer</p> {"followUps": ["Q1?", "Q2?"'
        raw_closed = raw + "}"

        result = parse_model_output(raw_closed)

        assert result.reply_body == raw_closed
        assert result.follow_up_questions == []

    @pytest.mark.parametrize(
        "payload",
        [
            '{"followUps": []}',
            '{"followUps": ["Only one?"]}',
            '{"followUps": ["One?", "Two?", "Three?"]}',
            '{"followUps": "not a list"}',
            '{"followUps": [1, 2]}',
        ],
    )
    def test_malformed_follow_ups_default_to_empty(self, payload):
        result = parse_model_output(f"<p>Answer</p>\n{payload}")

        assert result.follow_up_questions == []
        assert result.reply_body == "<p>Answer</p>"

    def test_json_without_follow_up_key_is_left_in_body(self):
        raw = '<p>Config example:</p> {"plan": "PPO"}'

        result = parse_model_output(raw)

        assert result.reply_body == raw
        assert result.follow_up_questions == []

    def test_css_braces_are_not_mistaken_for_follow_ups(self):
        raw = "<style>.table { width: 100%; }</style><p>Answer</p>"

        result = parse_model_output(raw)

        assert result.reply_body == raw
        assert result.follow_up_questions == []

    def test_code_fences_are_stripped(self):
        raw = '```html\n<p>Answer</p>\n```\n```json\n{"followUps": ["A?", "B?"]}\n```'

        result = parse_model_output(raw)

        assert result.reply_body == "<p>Answer</p>"
        assert result.follow_up_questions == ["A?", "B?"]

    def test_only_last_span_is_used(self):
        raw = '<p>{"followUps": ["Old?", "Older?"]}</p> <p>More</p> {"followUps": ["New?", "Newer?"]}'

        result = parse_model_output(raw)

        assert result.follow_up_questions == ["New?", "Newer?"]
        assert "Old?" in result.reply_body

    @pytest.mark.parametrize(
        "questions",
        [
            ["Which plan covers {in-network} care?", "Can you draft an RFP?"],
            ["What does the } symbol mean in the report?", "How do we compare?"],
            ["Is {deductible reset yearly?", "What about HSA limits?"],
        ],
    )
    def test_braces_inside_follow_up_strings(self, questions):
        raw = '<p>Answer</p>\n{"followUps": ["%s", "%s"]}' % tuple(questions)

        result = parse_model_output(raw)

        assert result.follow_up_questions == questions
        assert result.reply_body == "<p>Answer</p>"

    def test_empty_input(self):
        result = parse_model_output("")

        assert result.reply_body == ""
        assert result.follow_up_questions == []


class TestHelpers:
    def test_find_last_json_span_nested(self):
        text = 'x {"a": {"b": 1}} y'
        start, end = find_last_json_span(text)

        assert text[start:end] == '{"a": {"b": 1}}'

    def test_find_last_json_span_ignores_braces_in_strings(self):
        text = 'body {"q": "a } b"} tail'
        start, end = find_last_json_span(text)

        assert text[start:end] == '{"q": "a } b"}'

    def test_find_last_json_span_unbalanced(self):
        assert find_last_json_span("no close {") is None
        assert find_last_json_span("only close }") is None

    def test_strip_code_fences(self):
        assert strip_code_fences("```json\n{}\n```") == "{}\n"

    def test_load_json_object_with_prose(self):
        assert load_json_object('Sure! Here you go: {"jurisdiction": "MA"} Thanks.') == {"jurisdiction": "MA"}

    def test_load_json_object_rejects_non_objects(self):
        assert load_json_object("[1, 2]") is None
        assert load_json_object("not json") is None
