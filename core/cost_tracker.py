"""Cost Tracking and Logging Utilities for LLM calls.

Every call the analysis pipeline makes to the language model (clause extraction
per language, deadline resolution) is recorded as one log entry with token usage,
latency, attempts and an estimated cost.

Usage:
    from core.cost_tracker import CostTracker, ExecutionStatus

    tracker = CostTracker()
    log = tracker.create_log(
        call_type="CONTRACT_ANALYSIS",
        contract_id="c_123",
        language="en",
        model="gpt-4o",
        input_tokens=2450,
        output_tokens=410,
        execution_time_ms=5200,
        status=ExecutionStatus.SUCCESS,
    )
    tracker.log_execution(log)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ExecutionStatus(str, Enum):
    """Status of an LLM call."""
    SUCCESS = "SUCCESS"
    FALLBACK = "FALLBACK"
    FAILURE = "FAILURE"
    SKIPPED = "SKIPPED"


class ModelPricing(Enum):
    """Pricing per model (cost per 1M tokens)."""
    GPT_4O = {"input": 2.5, "output": 10.0}
    GPT_4O_MINI = {"input": 0.15, "output": 0.6}
    GPT_4_1 = {"input": 2.0, "output": 8.0}
    GPT_4_1_MINI = {"input": 0.4, "output": 1.6}

    @classmethod
    def get_pricing(cls, model_name: str) -> dict[str, float]:
        """Get pricing for a model by name."""
        model_map = {
            "gpt-4o": cls.GPT_4O,
            "gpt-4o-mini": cls.GPT_4O_MINI,
            "gpt-4.1": cls.GPT_4_1,
            "gpt-4.1-mini": cls.GPT_4_1_MINI,
        }
        pricing = model_map.get(model_name.lower(), cls.GPT_4O)
        return pricing.value


@dataclass
class LLMCallLog:
    """Log entry for a single LLM call."""
    timestamp: datetime
    call_type: str
    contract_id: str
    language: str
    model: str
    input_tokens: int
    output_tokens: int
    execution_time_ms: int
    cost_usd: float
    status: ExecutionStatus
    attempts: int = 1
    extra_data: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_log_string(self) -> str:
        """Format as a single key=value log line."""
        timestamp_str = self.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        base = (
            f"[{timestamp_str}] {self.call_type} | {self.contract_id} | "
            f"language={self.language} | model={self.model} | "
            f"input_tokens={self.input_tokens} | output_tokens={self.output_tokens} | "
            f"execution_time_ms={self.execution_time_ms} | "
            f"cost_usd={self.cost_usd:.5f} | attempts={self.attempts} | "
            f"status={self.status.value}"
        )
        extra_parts = " | ".join(f"{k}={v}" for k, v in self.extra_data.items())
        if extra_parts:
            base += f" | {extra_parts}"
        if self.error_message:
            base += f" | error={self.error_message}"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "call_type": self.call_type,
            "contract_id": self.contract_id,
            "language": self.language,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "execution_time_ms": self.execution_time_ms,
            "cost_usd": self.cost_usd,
            "status": self.status.value,
            "attempts": self.attempts,
            "extra_data": self.extra_data,
            "error_message": self.error_message,
        }


@dataclass
class CostSummary:
    """Aggregate cost figures over a set of LLM calls."""
    total_calls: int
    failed_calls: int
    total_cost_usd: float
    total_input_tokens: int
    total_output_tokens: int
    avg_execution_time_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_calls": self.total_calls,
            "failed_calls": self.failed_calls,
            "total_cost_usd": self.total_cost_usd,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "avg_execution_time_ms": self.avg_execution_time_ms,
        }


class CostTracker:
    """Cost tracking and logging for LLM calls."""

    def __init__(self, logger_name: str = "aqd.cost_tracker") -> None:
        """Initialize the cost tracker with a named logger."""
        self.logger = logging.getLogger(logger_name)
        self._logs: list[LLMCallLog] = []

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Calculate cost in USD for a given model and token usage."""
        pricing = ModelPricing.get_pricing(model)
        input_cost = (input_tokens * pricing["input"]) / 1_000_000
        output_cost = (output_tokens * pricing["output"]) / 1_000_000
        return input_cost + output_cost

    def create_log(
        self,
        call_type: str,
        contract_id: str,
        language: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
        execution_time_ms: int,
        status: str | ExecutionStatus,
        attempts: int = 1,
        extra_data: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> LLMCallLog:
        """Create an LLM call log entry."""
        if isinstance(status, str):
            status = ExecutionStatus(status)

        return LLMCallLog(
            timestamp=datetime.now(timezone.utc),
            call_type=call_type,
            contract_id=contract_id,
            language=language,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            execution_time_ms=execution_time_ms,
            cost_usd=self.calculate_cost(model, input_tokens, output_tokens),
            status=status,
            attempts=attempts,
            extra_data=extra_data or {},
            error_message=error_message,
        )

    def log_execution(self, log: LLMCallLog) -> None:
        """Record a call and write it to the log."""
        self._logs.append(log)
        log_level = logging.WARNING if log.status == ExecutionStatus.FAILURE else logging.INFO
        self.logger.log(log_level, log.to_log_string())

    def get_summary(self, contract_id: str | None = None) -> CostSummary:
        """Summarize recorded calls, optionally for one contract."""
        logs = [
            log for log in self._logs
            if contract_id is None or log.contract_id == contract_id
        ]
        if not logs:
            return CostSummary(0, 0, 0.0, 0, 0, 0.0)

        return CostSummary(
            total_calls=len(logs),
            failed_calls=sum(1 for log in logs if log.status == ExecutionStatus.FAILURE),
            total_cost_usd=sum(log.cost_usd for log in logs),
            total_input_tokens=sum(log.input_tokens for log in logs),
            total_output_tokens=sum(log.output_tokens for log in logs),
            avg_execution_time_ms=sum(log.execution_time_ms for log in logs) / len(logs),
        )

    def get_all_logs(self) -> list[LLMCallLog]:
        return list(self._logs)

    def reset(self) -> None:
        """Clear all accumulated logs."""
        self._logs = []
