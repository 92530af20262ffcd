"""Risk Taxonomy and Reconciler for multilingual contract analysis.

Each language's analysis states its risk tier in that language's own vocabulary
(an Arabic result says "عالي" where an English one says "High"). This module maps
those terms onto the canonical ``RiskLevel`` ordinal and reconciles results across
languages: the highest tier wins and is written back into every result.

Usage:
    from core.agents.utils.risk_taxonomy import reconcile_risk, to_canonical
"""

from dataclasses import dataclass

from app.models.contract import AnalysisResult, Language, RiskLevel


# Ordinal used for comparison. UNKNOWN sits below LOW so any real tier wins.
RISK_ORDER: dict[RiskLevel, int] = {
    RiskLevel.UNKNOWN: 0,
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
}

RISK_VOCABULARY: dict[Language, dict[RiskLevel, str]] = {
    Language.EN: {
        RiskLevel.LOW: "Low",
        RiskLevel.MEDIUM: "Medium",
        RiskLevel.HIGH: "High",
    },
    Language.AR: {
        RiskLevel.LOW: "منخفض",
        RiskLevel.MEDIUM: "متوسط",
        RiskLevel.HIGH: "عالي",
    },
}

# Lookup of every known term (any language, case-insensitive) to its canonical tier
_TERM_TO_LEVEL: dict[str, RiskLevel] = {
    term.casefold(): level
    for vocabulary in RISK_VOCABULARY.values()
    for level, term in vocabulary.items()
}
_TERM_TO_LEVEL.update({
    "مرتفع": RiskLevel.HIGH,
    "عالية": RiskLevel.HIGH,
    "متوسطة": RiskLevel.MEDIUM,
    "منخفضة": RiskLevel.LOW,
})


def to_canonical(term: str | None) -> RiskLevel:
    """Translate a risk term from any supported vocabulary to the canonical tier.

    Unrecognized or empty terms map to ``RiskLevel.UNKNOWN``.
    """
    if not term:
        return RiskLevel.UNKNOWN
    return _TERM_TO_LEVEL.get(term.strip().casefold(), RiskLevel.UNKNOWN)


def to_language_term(level: RiskLevel, language: Language | str) -> str:
    """Express a canonical tier in the given language's vocabulary."""
    if level == RiskLevel.UNKNOWN:
        raise ValueError("Unknown risk has no per-language term")
    return RISK_VOCABULARY[Language(language)][level]


def normalize_risk_term(term: str | None, language: Language | str, default: RiskLevel = RiskLevel.MEDIUM) -> str:
    """Coerce a model-supplied risk term into the language's own vocabulary.

    Terms from the other language's vocabulary are translated. Unrecognized terms
    fall back to ``default``.
    """
    level = to_canonical(term)
    if level == RiskLevel.UNKNOWN:
        level = default
    return to_language_term(level, language)


def highest_risk(levels: list[RiskLevel]) -> RiskLevel:
    if not levels:
        return RiskLevel.UNKNOWN
    return max(levels, key=lambda level: RISK_ORDER[level])


@dataclass
class RiskReconciliation:
    """Reconciled canonical tier plus the rewritten per-language results."""
    risk_level: RiskLevel
    results: dict[Language, AnalysisResult]


def reconcile_risk(results: dict[Language, AnalysisResult]) -> RiskReconciliation:
    """Combine per-language risk tiers into one canonical level.

    The reconciled tier is the maximum across all present results. It is written
    back into each result in that result's own vocabulary. With no results the
    risk is ``UNKNOWN``. Input results are not mutated.
    """
    if not results:
        return RiskReconciliation(risk_level=RiskLevel.UNKNOWN, results={})

    reconciled = highest_risk([to_canonical(result.risk_level) for result in results.values()])
    if reconciled == RiskLevel.UNKNOWN:
        return RiskReconciliation(risk_level=RiskLevel.UNKNOWN, results=dict(results))

    rewritten = {
        Language(language): result.model_copy(
            update={"risk_level": to_language_term(reconciled, language)}
        )
        for language, result in results.items()
    }
    return RiskReconciliation(risk_level=reconciled, results=rewritten)
