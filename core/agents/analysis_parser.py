"""Analysis Parser - turns raw model text into a fully populated AnalysisResult.

The model is an untrusted, best-effort collaborator. Output may be wrapped in
markdown fences, surrounded by prose, truncated, or missing fields. This parser
never raises for malformed output: anything it cannot decode degrades to a
deterministic fallback result.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from app.models.contract import AnalysisResult, ExtractedClauses, Language, RiskLevel
from core.agents.utils.risk_taxonomy import normalize_risk_term, to_language_term
from core.errors import MalformedResponseError


logger = logging.getLogger("aqd.analysis_parser")


CLAUSE_FIELDS: tuple[str, ...] = (
    "deadlines",
    "responsibilities",
    "payment_terms",
    "penalties",
    "confidentiality",
    "termination_conditions",
)

REQUIRED_FIELDS: tuple[str, ...] = ("extracted_clauses", "summary", "risk_level")

# Per-field "not found" sentinels used when the model omits a clause
NOT_FOUND_SENTINELS: dict[str, str] = {
    "deadlines": "No specific deadlines found",
    "responsibilities": "No specific responsibilities found",
    "payment_terms": "No payment terms found",
    "penalties": "No penalties found",
    "confidentiality": "No confidentiality clauses found",
    "termination_conditions": "No termination conditions found",
}

NO_DEADLINE_SENTINEL = NOT_FOUND_SENTINELS["deadlines"]

_FALLBACK_LABELS: dict[str, str] = {
    "deadlines": "deadlines",
    "responsibilities": "responsibilities",
    "payment_terms": "payment terms",
    "penalties": "penalties",
    "confidentiality": "confidentiality clauses",
    "termination_conditions": "termination conditions",
}

FALLBACK_CLAUSE_TEXT: dict[str, str] = {
    field: f"Unable to extract {label} - document may not be a contract"
    for field, label in _FALLBACK_LABELS.items()
}

FALLBACK_SUMMARY = "Unable to analyze this document. It may not be a contract or the text is unclear."

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


@dataclass
class ParsedAnalysis:
    """Parser output: the result plus whether it is the fallback."""
    result: AnalysisResult
    is_fallback: bool = False
    reason: str = ""


def fallback_result(language: Language | str = Language.EN) -> AnalysisResult:
    """Deterministic result used when model output cannot be decoded."""
    return AnalysisResult(
        extracted_clauses=ExtractedClauses(**FALLBACK_CLAUSE_TEXT),
        summary=FALLBACK_SUMMARY,
        risk_level=to_language_term(RiskLevel.MEDIUM, language),
    )


def strip_code_fence(text: str) -> str:
    """Remove a surrounding triple-backtick fence, with or without a language tag."""
    text = text.strip()
    if text.startswith("```"):
        return _FENCE_RE.sub("", text).strip()
    if "```json" in text:
        return text.split("```json", 1)[1].split("```", 1)[0].strip()
    if text.count("```") >= 2:
        return text.split("```", 2)[1].strip()
    return text


def extract_braced_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring, ignoring braces inside strings."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def decode_model_json(text: str) -> dict[str, Any]:
    """Decode a JSON object from raw model text.

    Raises:
        MalformedResponseError: if no JSON object can be recovered.
    """
    cleaned = strip_code_fence(text or "")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        candidate = extract_braced_object(cleaned)
        if candidate is None:
            raise MalformedResponseError("No JSON object found in model output")
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Embedded JSON object is invalid: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _clause_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        value = "; ".join(str(item).strip() for item in value if str(item).strip())
    elif isinstance(value, dict):
        value = "; ".join(f"{k}: {v}" for k, v in value.items())
    text = str(value).strip()
    return text or None


def build_analysis_result(data: dict[str, Any], language: Language | str) -> AnalysisResult:
    """Build a fully populated result from a decoded object.

    Raises:
        MalformedResponseError: if a required top-level field is absent or empty.
    """
    missing = [field for field in REQUIRED_FIELDS if not data.get(field)]
    if missing:
        raise MalformedResponseError(f"Missing required fields: {', '.join(missing)}")

    raw_clauses = data["extracted_clauses"]
    if not isinstance(raw_clauses, dict):
        raise MalformedResponseError("extracted_clauses is not an object")

    clauses = {
        field: _clause_text(raw_clauses.get(field)) or NOT_FOUND_SENTINELS[field]
        for field in CLAUSE_FIELDS
    }

    return AnalysisResult(
        extracted_clauses=ExtractedClauses(**clauses),
        summary=str(data["summary"]).strip(),
        risk_level=normalize_risk_term(str(data["risk_level"]), language),
    )


def parse_analysis_response(text: str, language: Language | str = Language.EN) -> ParsedAnalysis:
    """Parse raw model text into an AnalysisResult, degrading to the fallback."""
    try:
        data = decode_model_json(text)
        return ParsedAnalysis(result=build_analysis_result(data, language))
    except MalformedResponseError as e:
        logger.warning(f"Providing fallback analysis ({language}): {e}")
        logger.debug(f"Raw model output was: {text!r}")
        return ParsedAnalysis(result=fallback_result(language), is_fallback=True, reason=str(e))
