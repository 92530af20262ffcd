"""Shared fixtures: a scripted stand-in for the LLM client and canned replies."""

import json
from datetime import date, timedelta
from typing import Callable

import pytest

from app.models.contract import Actor, UserRole
from core.agents.contract_analysis_agent import ContractAnalysisAgent
from core.agents.deadline_resolver import DeadlineResolver
from core.agents.retry import RetryPolicy
from core.cost_tracker import CostTracker
from core.llm.client import CompletionOptions, CompletionResult


ARABIC_PROMPT_MARKER = "نص العقد"
DEADLINE_PROMPT_MARKER = "Deadline information"

FIXED_TODAY = date(2024, 3, 1)


def build_analysis_reply(
    risk_level: str = "Medium",
    deadlines: str = "Payment due within 30 days of signing",
    summary: str = "A services agreement between two parties.",
) -> str:
    return json.dumps({
        "extracted_clauses": {
            "deadlines": deadlines,
            "responsibilities": "Provider delivers monthly reports",
            "payment_terms": "USD 5,000 per month",
            "penalties": "2% late fee per month",
            "confidentiality": "Both parties keep terms confidential",
            "termination_conditions": "Either party with 30 days notice",
        },
        "summary": summary,
        "risk_level": risk_level,
    }, ensure_ascii=False)


class ScriptedLLMClient:
    """Replies according to a handler; a returned exception is raised instead."""

    def __init__(self, handler: Callable[[str], "str | Exception"]) -> None:
        self.handler = handler
        self.prompts: list[str] = []

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> CompletionResult:
        self.prompts.append(prompt)
        reply = self.handler(prompt)
        if isinstance(reply, Exception):
            raise reply
        return CompletionResult(
            text=reply,
            model=options.model if options else "gpt-4o",
            input_tokens=120,
            output_tokens=60,
        )

    def calls_for(self, marker: str) -> int:
        return sum(1 for prompt in self.prompts if marker in prompt)


def is_arabic_prompt(prompt: str) -> bool:
    return ARABIC_PROMPT_MARKER in prompt


def is_deadline_prompt(prompt: str) -> bool:
    return DEADLINE_PROMPT_MARKER in prompt


@pytest.fixture
def analysis_reply() -> Callable[..., str]:
    return build_analysis_reply


@pytest.fixture
def scripted_llm() -> Callable[[Callable[[str], "str | Exception"]], ScriptedLLMClient]:
    return ScriptedLLMClient


@pytest.fixture
def default_llm() -> ScriptedLLMClient:
    """English Medium, Arabic High, deadline resolved to today + 30 days."""

    def handler(prompt: str) -> str:
        if is_deadline_prompt(prompt):
            return (FIXED_TODAY + timedelta(days=30)).isoformat()
        if is_arabic_prompt(prompt):
            return build_analysis_reply(risk_level="عالي", deadlines="الدفع خلال 30 يومًا من التوقيع")
        return build_analysis_reply(risk_level="Medium")

    return ScriptedLLMClient(handler)


@pytest.fixture
def make_agent() -> Callable[[ScriptedLLMClient], ContractAnalysisAgent]:
    def factory(llm: ScriptedLLMClient, max_attempts: int = 3) -> ContractAnalysisAgent:
        return ContractAnalysisAgent(
            llm_client=llm,
            retry_policy=RetryPolicy(max_attempts=max_attempts, delay_seconds=0),
            cost_tracker=CostTracker(logger_name="aqd.test.cost"),
        )
    return factory


@pytest.fixture
def make_resolver() -> Callable[[ScriptedLLMClient], DeadlineResolver]:
    def factory(llm: ScriptedLLMClient) -> DeadlineResolver:
        return DeadlineResolver(llm_client=llm, cost_tracker=CostTracker(logger_name="aqd.test.cost"))
    return factory


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin-1", role=UserRole.ADMIN, organization_id="org-1")


@pytest.fixture
def assistant() -> Actor:
    return Actor(user_id="assistant-1", role=UserRole.LEGAL_ASSISTANT, organization_id="org-1")


@pytest.fixture
def other_assistant() -> Actor:
    return Actor(user_id="assistant-2", role=UserRole.LEGAL_ASSISTANT, organization_id="org-1")


@pytest.fixture
def org_user() -> Actor:
    return Actor(user_id="user-1", role=UserRole.ORG_USER, organization_id="org-1")


@pytest.fixture
def standalone() -> Actor:
    return Actor(user_id="solo-1", role=UserRole.STANDALONE)
