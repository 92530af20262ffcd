"""Analysis agents for the contract workflow.

Each agent is stateless: it turns contract text into results and leaves
persistence and status changes to the workflow façade.
"""

from core.agents.contract_analysis_agent import (
    AnalysisOutcome,
    ContractAnalysisAgent,
    LanguageAnalysis,
)
from core.agents.deadline_resolver import DeadlineResolver

__all__ = [
    "AnalysisOutcome",
    "ContractAnalysisAgent",
    "LanguageAnalysis",
    "DeadlineResolver",
]
