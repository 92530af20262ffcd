"""Error taxonomy for the contract workflow and analysis pipeline.

Workflow errors (not found, invalid transition, permission, validation) are caller
errors and are never retried. LLM service errors carry a classified kind that the
analysis orchestrator uses to decide retry eligibility.
"""

from enum import Enum


class WorkflowError(Exception):
    """Base class for every error the workflow surfaces to callers."""

    user_message: str = "The requested action could not be completed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


class ContractNotFoundError(WorkflowError):
    """The contract does not exist in the document store."""

    user_message = "Contract not found."

    def __init__(self, contract_id: str) -> None:
        super().__init__(f"Contract not found: {contract_id}")
        self.contract_id = contract_id


class InvalidTransitionError(WorkflowError):
    """The requested status edge does not exist in the workflow graph."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move a contract from '{current}' to '{target}'.")
        self.current = current
        self.target = target


class ContractPermissionError(WorkflowError, PermissionError):
    """The acting user's role or assignment does not allow the action."""

    user_message = "Access denied."


class ContractValidationError(WorkflowError, ValueError):
    """Bad input, such as a contract with no text to analyze."""

    user_message = "Invalid input."


class LLMErrorKind(str, Enum):
    """Classified cause of an LLM call failure."""
    INVALID_CREDENTIALS = "invalid_credentials"
    MODEL_NOT_FOUND = "model_not_found"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    SERVER_ERROR = "server_error"
    TIMED_OUT = "timed_out"
    NETWORK = "network"
    BAD_REQUEST = "bad_request"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    LLMErrorKind.RATE_LIMITED,
    LLMErrorKind.UNAVAILABLE,
    LLMErrorKind.SERVER_ERROR,
    LLMErrorKind.TIMED_OUT,
    LLMErrorKind.NETWORK,
})

# One human-readable sentence per cause
LLM_ERROR_MESSAGES: dict[LLMErrorKind, str] = {
    LLMErrorKind.INVALID_CREDENTIALS: "The AI service API key is invalid or missing.",
    LLMErrorKind.MODEL_NOT_FOUND: "The AI model could not be found. Check the configured model name.",
    LLMErrorKind.RATE_LIMITED: "The AI service rate limit was exceeded. Please wait a moment and try again.",
    LLMErrorKind.UNAVAILABLE: "The AI service is temporarily unavailable. Please try again later.",
    LLMErrorKind.SERVER_ERROR: "The AI service encountered an internal error. Please try again later.",
    LLMErrorKind.TIMED_OUT: "The AI service request timed out. Please check your connection and try again.",
    LLMErrorKind.NETWORK: "The AI service could not be reached. Please check your connection and try again.",
    LLMErrorKind.BAD_REQUEST: "The AI service rejected the analysis request.",
    LLMErrorKind.UNKNOWN: "The AI service returned an unexpected error.",
}


class LLMServiceError(Exception):
    """A classified failure from the LLM client."""

    def __init__(
        self,
        kind: LLMErrorKind,
        detail: str = "",
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @property
    def user_message(self) -> str:
        return LLM_ERROR_MESSAGES[self.kind]


class TransientServiceError(LLMServiceError):
    """Timeout, rate limit, 5xx or connection reset. Eligible for retry."""


class NetworkUnavailableError(TransientServiceError):
    """No connectivity to the LLM service."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(LLMErrorKind.NETWORK, detail)


class MalformedResponseError(ValueError):
    """Model output could not be decoded into an analysis. Never leaves the parser."""


class AnalysisFailedError(WorkflowError):
    """Contract analysis could not be completed.

    Raised after the retry budget is exhausted or on the first non-retryable failure.
    """

    def __init__(
        self,
        kind: LLMErrorKind,
        attempts: int,
        language: str | None = None,
        detail: str = "",
    ) -> None:
        self.kind = kind
        self.attempts = attempts
        self.language = language
        self.detail = detail
        if kind in RETRYABLE_KINDS:
            message = (
                f"Contract analysis failed after {attempts} attempt(s). "
                f"{LLM_ERROR_MESSAGES[kind]}"
            )
        else:
            message = f"Contract analysis failed. {LLM_ERROR_MESSAGES[kind]}"
        super().__init__(message)
