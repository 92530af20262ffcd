"""Unit tests for the Analysis Parser.

Tests cover:
- Plain, fenced and prose-wrapped JSON
- Missing clause fields filled with "not found" sentinels
- Fallback result for undecodable or incomplete output
- Risk terms normalized into the result's own language
"""

import json

import pytest

from app.models.contract import Language
from core.agents.analysis_parser import (
    FALLBACK_CLAUSE_TEXT,
    FALLBACK_SUMMARY,
    NOT_FOUND_SENTINELS,
    decode_model_json,
    extract_braced_object,
    parse_analysis_response,
    strip_code_fence,
)
from core.errors import MalformedResponseError


VALID_PAYLOAD = {
    "extracted_clauses": {
        "deadlines": "Deliver within 14 days",
        "responsibilities": "Supplier ships goods",
        "payment_terms": "Net 30",
        "penalties": "1% per day of delay",
        "confidentiality": "Mutual NDA",
        "termination_conditions": "60 days written notice",
    },
    "summary": "Supply agreement.",
    "risk_level": "High",
}


class TestJSONExtraction:
    """Tests for recovering the JSON object from raw model text."""

    def test_fenced_json_matches_unwrapped(self) -> None:
        """A ```json fenced block decodes to the same object as the bare JSON."""
        raw = json.dumps(VALID_PAYLOAD)
        fenced = f"```json\n{raw}\n```"

        assert decode_model_json(fenced) == decode_model_json(raw)

    def test_fence_without_language_tag(self) -> None:
        raw = json.dumps(VALID_PAYLOAD)
        assert strip_code_fence(f"```\n{raw}\n```") == raw

    def test_json_surrounded_by_prose(self) -> None:
        """Stray prose before and after the object is ignored."""
        text = f"Sure! Here is the analysis:\n{json.dumps(VALID_PAYLOAD)}\nLet me know if you need more."

        assert decode_model_json(text)["summary"] == "Supply agreement."

    def test_braces_inside_strings_are_ignored(self) -> None:
        text = 'prefix {"summary": "uses {curly} braces", "n": {"a": 1}} suffix'
        assert extract_braced_object(text) == '{"summary": "uses {curly} braces", "n": {"a": 1}}'

    def test_no_object_raises(self) -> None:
        with pytest.raises(MalformedResponseError):
            decode_model_json("I cannot analyze this document.")

    def test_json_array_is_rejected(self) -> None:
        with pytest.raises(MalformedResponseError):
            decode_model_json("[1, 2, 3]")


class TestParseAnalysisResponse:
    """Tests for building a fully populated AnalysisResult."""

    def test_valid_response(self) -> None:
        parsed = parse_analysis_response(json.dumps(VALID_PAYLOAD), Language.EN)

        assert parsed.is_fallback is False
        assert parsed.result.summary == "Supply agreement."
        assert parsed.result.risk_level == "High"
        assert parsed.result.extracted_clauses.payment_terms == "Net 30"

    def test_missing_clause_fields_get_sentinels(self) -> None:
        payload = {
            "extracted_clauses": {"payment_terms": "Net 30"},
            "summary": "Short contract.",
            "risk_level": "Low",
        }
        parsed = parse_analysis_response(json.dumps(payload), Language.EN)

        clauses = parsed.result.extracted_clauses
        assert parsed.is_fallback is False
        assert clauses.payment_terms == "Net 30"
        assert clauses.deadlines == NOT_FOUND_SENTINELS["deadlines"]
        assert clauses.termination_conditions == NOT_FOUND_SENTINELS["termination_conditions"]

    def test_list_clause_values_are_joined(self) -> None:
        payload = dict(VALID_PAYLOAD)
        payload["extracted_clauses"] = dict(VALID_PAYLOAD["extracted_clauses"], penalties=["Late fee", "Interest"])

        parsed = parse_analysis_response(json.dumps(payload), Language.EN)

        assert parsed.result.extracted_clauses.penalties == "Late fee; Interest"

    def test_prose_only_gives_fallback(self) -> None:
        """Unparseable output degrades to the fallback result with Medium risk."""
        parsed = parse_analysis_response("This does not look like a contract to me.", Language.EN)

        assert parsed.is_fallback is True
        assert parsed.result.risk_level == "Medium"
        assert parsed.result.summary == FALLBACK_SUMMARY
        for value in parsed.result.extracted_clauses.model_dump().values():
            assert value.startswith("Unable to extract")

    def test_fallback_in_arabic_uses_arabic_risk_term(self) -> None:
        parsed = parse_analysis_response("not json", Language.AR)

        assert parsed.is_fallback is True
        assert parsed.result.risk_level == "متوسط"

    def test_missing_summary_gives_fallback(self) -> None:
        payload = dict(VALID_PAYLOAD, summary="")
        parsed = parse_analysis_response(json.dumps(payload), Language.EN)

        assert parsed.is_fallback is True
        assert parsed.result.extracted_clauses.deadlines == FALLBACK_CLAUSE_TEXT["deadlines"]

    def test_missing_risk_level_gives_fallback(self) -> None:
        payload = {k: v for k, v in VALID_PAYLOAD.items() if k != "risk_level"}
        parsed = parse_analysis_response(json.dumps(payload), Language.EN)

        assert parsed.is_fallback is True
        assert "risk_level" in parsed.reason

    def test_truncated_json_gives_fallback(self) -> None:
        truncated = json.dumps(VALID_PAYLOAD)[:60]
        parsed = parse_analysis_response(truncated, Language.EN)

        assert parsed.is_fallback is True

    def test_unrecognized_risk_term_becomes_medium(self) -> None:
        payload = dict(VALID_PAYLOAD, risk_level="Critical-ish")
        parsed = parse_analysis_response(json.dumps(payload), Language.EN)

        assert parsed.is_fallback is False
        assert parsed.result.risk_level == "Medium"

    def test_english_risk_term_in_arabic_result_is_translated(self) -> None:
        payload = dict(VALID_PAYLOAD, risk_level="high")
        parsed = parse_analysis_response(json.dumps(payload, ensure_ascii=False), Language.AR)

        assert parsed.result.risk_level == "عالي"
