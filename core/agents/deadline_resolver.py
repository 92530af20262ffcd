"""Deadline Resolver - turns free-text deadline language into a concrete date.

Deadline resolution is background enrichment: a single attempt, no retries, and
no failure ever reaches the caller. Anything that cannot be resolved yields
``None`` ("no date").
"""

import logging
import math
import re
import time
from datetime import date, datetime, timezone

from app.config import get_settings
from core.agents.analysis_parser import FALLBACK_CLAUSE_TEXT, NO_DEADLINE_SENTINEL
from core.agents.prompts.deadline_prompt import NO_DATE_TOKEN, format_deadline_prompt
from core.cost_tracker import CostTracker, ExecutionStatus
from core.errors import LLMErrorKind, LLMServiceError
from core.llm.client import CompletionOptions, LLMClient


logger = logging.getLogger("aqd.deadline_resolver")

_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")

_UNRESOLVABLE_TEXTS = frozenset(
    text.casefold() for text in (NO_DEADLINE_SENTINEL, FALLBACK_CLAUSE_TEXT["deadlines"])
)


def is_resolvable_deadline_text(text: str | None) -> bool:
    """False for empty text and for the "not found" / "unable to extract" sentinels."""
    if not text or not text.strip():
        return False
    return text.strip().casefold() not in _UNRESOLVABLE_TEXTS


def parse_deadline_response(text: str | None) -> date | None:
    """Read a YYYY-MM-DD date out of the model reply, or None."""
    if not text:
        return None
    cleaned = text.strip().strip("`'\"").strip()
    if not cleaned or NO_DATE_TOKEN in cleaned.upper():
        return None

    match = _ISO_DATE_RE.search(cleaned)
    if not match:
        logger.warning(f"Invalid date parsed from deadline text: {cleaned!r}")
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        logger.warning(f"Invalid calendar date in deadline reply: {match.group(0)}")
        return None


def deadline_to_timestamp(value: date) -> datetime:
    """Persisted form of a resolved deadline: midnight UTC on that day."""
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def days_remaining(deadline: date | datetime, today: date | None = None) -> int:
    """Days left until the deadline; negative when overdue."""
    if isinstance(deadline, datetime):
        now = datetime.now(timezone.utc) if today is None else datetime(
            today.year, today.month, today.day, tzinfo=timezone.utc
        )
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        return math.ceil((deadline - now).total_seconds() / 86400)
    today = today or date.today()
    return (deadline - today).days


def format_deadline_message(contract_title: str, days: int) -> str:
    """Reminder text tiered by urgency."""
    if days < 0:
        return f"⚠️ Contract \"{contract_title}\" is overdue by {abs(days)} days"
    if days == 0:
        return f"🚨 Contract \"{contract_title}\" expires today!"
    if days <= 3:
        return f"⚠️ Contract \"{contract_title}\" expires in {days} days"
    if days <= 7:
        return f"📅 Contract \"{contract_title}\" expires in {days} days"
    return f"📋 Contract \"{contract_title}\" expires in {days} days"


class DeadlineResolver:
    """Resolves deadline clauses into calendar dates with one LLM call."""

    CALL_TYPE = "DEADLINE_RESOLUTION"

    def __init__(
        self,
        llm_client: LLMClient | None = None,
        cost_tracker: CostTracker | None = None,
        options: CompletionOptions | None = None,
    ) -> None:
        settings = get_settings()
        self.llm_client = llm_client or LLMClient()
        self.cost_tracker = cost_tracker or CostTracker(logger_name="aqd.deadline_resolver.cost")
        self.options = options or CompletionOptions(
            model=settings.analysis_model,
            temperature=settings.deadline_temperature,
            max_tokens=settings.deadline_max_tokens,
            timeout_seconds=settings.deadline_timeout_seconds,
        )

    async def resolve(
        self,
        free_text: str | None,
        today: date | None = None,
        contract_id: str = "",
    ) -> date | None:
        """Resolve deadline text to a date, or None when there is no usable date.

        Never raises for service failures.
        """
        if not is_resolvable_deadline_text(free_text):
            return None

        today = today or datetime.now(timezone.utc).date()
        prompt = format_deadline_prompt(free_text.strip(), today)
        start_time = time.time()

        try:
            completion = await self.llm_client.complete(prompt, self.options)
        except LLMServiceError as e:
            if e.kind in (LLMErrorKind.NETWORK, LLMErrorKind.TIMED_OUT):
                logger.info(f"Deadline resolution skipped ({e.kind.value})")
            elif e.kind == LLMErrorKind.INVALID_CREDENTIALS:
                logger.error("Deadline resolution failed: OpenAI API authentication failed. Check the API key.")
            else:
                logger.warning(f"Deadline resolution failed: {e}")
            self._log(contract_id, start_time, ExecutionStatus.SKIPPED, error_message=str(e))
            return None
        except ValueError as e:
            # Client not configured
            logger.error(f"Deadline resolution unavailable: {e}")
            self._log(contract_id, start_time, ExecutionStatus.SKIPPED, error_message=str(e))
            return None

        resolved = parse_deadline_response(completion.text)
        self._log(
            contract_id,
            start_time,
            ExecutionStatus.SUCCESS,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            extra_data={"deadline": resolved.isoformat() if resolved else NO_DATE_TOKEN},
        )
        return resolved

    def _log(
        self,
        contract_id: str,
        start_time: float,
        status: ExecutionStatus,
        input_tokens: int = 0,
        output_tokens: int = 0,
        extra_data: dict | None = None,
        error_message: str | None = None,
    ) -> None:
        log = self.cost_tracker.create_log(
            call_type=self.CALL_TYPE,
            contract_id=contract_id,
            language="-",
            model=self.options.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            execution_time_ms=int((time.time() - start_time) * 1000),
            status=status,
            extra_data=extra_data,
            error_message=error_message,
        )
        self.cost_tracker.log_execution(log)
