"""Contract Analysis Agent - multilingual clause extraction orchestrator.

Runs one clause-extraction request per requested language, retrying transient
LLM failures under a bounded fixed-delay policy, parses each reply into a fully
populated AnalysisResult and reconciles the risk tier across languages.

Key features:
- Languages run concurrently; reconciliation waits for all of them
- Fill-the-gap semantics: a language already analyzed is never re-run or replaced
- Retries only classified-transient failures (timeout, 429, 5xx, connection reset)
- Malformed model output degrades to a fallback result instead of failing
- Per-call cost tracking

The agent does not persist anything. The workflow façade stores the returned
results and advances the contract status.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Iterable

from app.config import get_settings
from app.models.contract import AnalysisResult, Language, RiskLevel
from core.agents.analysis_parser import parse_analysis_response
from core.agents.prompts.contract_analysis_prompt import format_contract_analysis_prompt
from core.agents.retry import RetryPolicy
from core.agents.utils.risk_taxonomy import reconcile_risk
from core.cost_tracker import CostTracker, ExecutionStatus
from core.errors import AnalysisFailedError, ContractValidationError, LLMServiceError
from core.llm.client import CompletionOptions, LLMClient


logger = logging.getLogger("aqd.analysis_agent")

DEFAULT_LANGUAGES: tuple[Language, ...] = (Language.EN, Language.AR)


@dataclass
class LanguageAnalysis:
    """Result of analyzing the contract in one language."""
    language: Language
    result: AnalysisResult
    is_fallback: bool = False
    attempts: int = 1
    input_tokens: int = 0
    output_tokens: int = 0
    execution_time_ms: int = 0


@dataclass
class AnalysisOutcome:
    """Merged, risk-reconciled analysis across languages."""
    results: dict[Language, AnalysisResult]
    risk_level: RiskLevel
    analyzed_languages: list[Language] = field(default_factory=list)
    fallback_languages: list[Language] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Whether any language was newly analyzed."""
        return bool(self.analyzed_languages)


class ContractAnalysisAgent:
    """Stateless orchestrator for multilingual contract analysis.

    Example:
        agent = ContractAnalysisAgent()
        outcome = await agent.analyze(contract.text, existing=contract.analysis)
        outcome.results[Language.AR].risk_level  # "عالي"
        outcome.risk_level                        # RiskLevel.HIGH
    """

    CALL_TYPE = "CONTRACT_ANALYSIS"

    def __init__(
        self,
        llm_client: LLMClient | None = None,
        retry_policy: RetryPolicy | None = None,
        cost_tracker: CostTracker | None = None,
        options: CompletionOptions | None = None,
    ) -> None:
        settings = get_settings()
        self.llm_client = llm_client or LLMClient()
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.analysis_max_attempts,
            delay_seconds=settings.analysis_retry_delay_seconds,
        )
        self.cost_tracker = cost_tracker or CostTracker(logger_name="aqd.analysis_agent.cost")
        self.options = options or CompletionOptions(
            model=settings.analysis_model,
            temperature=settings.analysis_temperature,
            max_tokens=settings.analysis_max_tokens,
            timeout_seconds=settings.analysis_timeout_seconds,
        )

    async def analyze_language(
        self,
        contract_text: str,
        language: Language,
        contract_id: str = "",
    ) -> LanguageAnalysis:
        """Analyze the contract in a single language.

        Raises:
            AnalysisFailedError: retry budget exhausted or non-retryable failure.
        """
        language = Language(language)
        prompt = format_contract_analysis_prompt(contract_text, language)
        start_time = time.time()

        def log_attempt_failure(attempt: int, error: Exception) -> None:
            logger.warning(
                f"Contract analysis ({language.value}) attempt "
                f"{attempt}/{self.retry_policy.max_attempts} failed: {error}"
            )

        try:
            completion, attempts = await self.retry_policy.run(
                lambda: self.llm_client.complete(prompt, self.options),
                on_failure=log_attempt_failure,
            )
        except LLMServiceError as e:
            attempts = getattr(e, "attempts", 1)
            log = self.cost_tracker.create_log(
                call_type=self.CALL_TYPE,
                contract_id=contract_id,
                language=language.value,
                model=self.options.model,
                input_tokens=0,
                output_tokens=0,
                execution_time_ms=int((time.time() - start_time) * 1000),
                status=ExecutionStatus.FAILURE,
                attempts=attempts,
                error_message=str(e),
            )
            self.cost_tracker.log_execution(log)
            raise AnalysisFailedError(e.kind, attempts, language.value, detail=str(e)) from e

        parsed = parse_analysis_response(completion.text, language)
        execution_time_ms = int((time.time() - start_time) * 1000)

        log = self.cost_tracker.create_log(
            call_type=self.CALL_TYPE,
            contract_id=contract_id,
            language=language.value,
            model=completion.model,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            execution_time_ms=execution_time_ms,
            status=ExecutionStatus.FALLBACK if parsed.is_fallback else ExecutionStatus.SUCCESS,
            attempts=attempts,
            extra_data={"risk_level": parsed.result.risk_level},
            error_message=parsed.reason or None,
        )
        self.cost_tracker.log_execution(log)

        return LanguageAnalysis(
            language=language,
            result=parsed.result,
            is_fallback=parsed.is_fallback,
            attempts=attempts,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            execution_time_ms=execution_time_ms,
        )

    async def analyze(
        self,
        contract_text: str,
        languages: Iterable[Language | str] = DEFAULT_LANGUAGES,
        existing: dict[Language, AnalysisResult] | None = None,
        contract_id: str = "",
    ) -> AnalysisOutcome:
        """Analyze the contract in every requested language not already present.

        Languages already in ``existing`` are left exactly as they are; only the
        gap is filled, then risk is reconciled across all present results.

        Raises:
            ContractValidationError: contract text is empty.
            AnalysisFailedError: any requested language failed.
        """
        if not contract_text or not contract_text.strip():
            raise ContractValidationError("No contract text found for analysis.")

        requested = list(dict.fromkeys(Language(language) for language in languages))
        if not requested:
            raise ContractValidationError("At least one analysis language is required.")

        current = {Language(language): result for language, result in (existing or {}).items()}
        missing = [language for language in requested if language not in current]

        if not missing:
            logger.info(f"Analysis already present for {[l.value for l in requested]}, nothing to do")
            return AnalysisOutcome(
                results=current,
                risk_level=reconcile_risk(current).risk_level,
            )

        outcomes = await asyncio.gather(
            *(self.analyze_language(contract_text, language, contract_id) for language in missing),
            return_exceptions=True,
        )

        failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if failures:
            raise failures[0]

        new_results = {outcome.language: outcome.result for outcome in outcomes}
        reconciliation = reconcile_risk({**current, **new_results})

        logger.info(
            f"Analyzed {contract_id or 'contract'} in {[l.value for l in missing]}; "
            f"reconciled risk={reconciliation.risk_level.value}"
        )

        return AnalysisOutcome(
            results=reconciliation.results,
            risk_level=reconciliation.risk_level,
            analyzed_languages=missing,
            fallback_languages=[outcome.language for outcome in outcomes if outcome.is_fallback],
        )
