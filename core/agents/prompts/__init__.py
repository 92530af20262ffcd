"""Prompt templates for the contract analysis agents."""

from core.agents.prompts.contract_analysis_prompt import (
    CONTRACT_ANALYSIS_PROMPT_AR,
    CONTRACT_ANALYSIS_PROMPT_EN,
    CONTRACT_ANALYSIS_PROMPTS,
    format_contract_analysis_prompt,
)
from core.agents.prompts.deadline_prompt import (
    DEADLINE_PROMPT_TEMPLATE,
    NO_DATE_TOKEN,
    format_deadline_prompt,
)

__all__ = [
    "CONTRACT_ANALYSIS_PROMPT_AR",
    "CONTRACT_ANALYSIS_PROMPT_EN",
    "CONTRACT_ANALYSIS_PROMPTS",
    "format_contract_analysis_prompt",
    "DEADLINE_PROMPT_TEMPLATE",
    "NO_DATE_TOKEN",
    "format_deadline_prompt",
]
