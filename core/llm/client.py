"""Async LLM client for structured-extraction requests.

Issues a single chat completion per call. Retries are deliberately disabled on the
underlying OpenAI client; callers own retry policy and use the classified error kind
to decide whether a failure is worth another attempt.
"""

import logging
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from app.config import get_settings
from core.errors import (
    LLMErrorKind,
    LLMServiceError,
    NetworkUnavailableError,
    TransientServiceError,
)


logger = logging.getLogger("aqd.llm_client")


@dataclass
class CompletionOptions:
    """Per-call completion parameters."""
    model: str = "gpt-4o"
    temperature: float = 0.3
    max_tokens: int = 2000
    timeout_seconds: float = 30.0


@dataclass
class CompletionResult:
    """Raw model text plus token usage."""
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


_STATUS_KINDS: dict[int, LLMErrorKind] = {
    400: LLMErrorKind.BAD_REQUEST,
    401: LLMErrorKind.INVALID_CREDENTIALS,
    403: LLMErrorKind.INVALID_CREDENTIALS,
    404: LLMErrorKind.MODEL_NOT_FOUND,
    422: LLMErrorKind.BAD_REQUEST,
    429: LLMErrorKind.RATE_LIMITED,
    500: LLMErrorKind.SERVER_ERROR,
    502: LLMErrorKind.UNAVAILABLE,
    503: LLMErrorKind.UNAVAILABLE,
    504: LLMErrorKind.TIMED_OUT,
}


def classify_openai_error(error: Exception) -> LLMServiceError:
    """Map an OpenAI SDK exception onto the service error taxonomy."""
    if isinstance(error, LLMServiceError):
        return error

    # APITimeoutError subclasses APIConnectionError, so check it first
    if isinstance(error, openai.APITimeoutError):
        return TransientServiceError(LLMErrorKind.TIMED_OUT, str(error))
    if isinstance(error, openai.APIConnectionError):
        return NetworkUnavailableError(str(error))

    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        kind = _STATUS_KINDS.get(status)
        if kind is None:
            kind = LLMErrorKind.SERVER_ERROR if status >= 500 else LLMErrorKind.UNKNOWN
        error_class = TransientServiceError if kind in (
            LLMErrorKind.RATE_LIMITED,
            LLMErrorKind.SERVER_ERROR,
            LLMErrorKind.UNAVAILABLE,
            LLMErrorKind.TIMED_OUT,
        ) else LLMServiceError
        return error_class(kind, error.message, status_code=status)

    return LLMServiceError(LLMErrorKind.UNKNOWN, str(error))


class LLMClient:
    """Async chat-completion client (lazy initialization)."""

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key
        self._client: AsyncOpenAI | None = None

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create the AsyncOpenAI client."""
        if self._client is None:
            api_key = self._api_key
            if api_key is None:
                settings = get_settings()
                if not settings.has_openai_key:
                    raise ValueError("OpenAI API key not configured. Set OPENAI_API_KEY in .env")
                api_key = settings.openai_api_key
            self._client = AsyncOpenAI(api_key=api_key, max_retries=0)
        return self._client

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> CompletionResult:
        """Send one user prompt and return the model's text.

        Raises:
            LLMServiceError: classified failure (auth, rate limit, server, timeout, network).
        """
        options = options or CompletionOptions()
        try:
            client = self.client
        except ValueError as e:
            raise LLMServiceError(LLMErrorKind.INVALID_CREDENTIALS, str(e)) from e

        try:
            response = await client.chat.completions.create(
                model=options.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                timeout=options.timeout_seconds,
            )
        except openai.OpenAIError as e:
            classified = classify_openai_error(e)
            logger.debug(f"LLM call failed: kind={classified.kind.value} status={classified.status_code}")
            raise classified from e

        usage = response.usage
        return CompletionResult(
            text=response.choices[0].message.content or "",
            model=options.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    async def validate_credentials(self, model: str = "gpt-4o") -> bool:
        """Probe the API with a tiny request to check the key works."""
        try:
            await self.complete(
                "Hello",
                CompletionOptions(model=model, temperature=0.0, max_tokens=10, timeout_seconds=10.0),
            )
        except LLMServiceError as e:
            if e.kind == LLMErrorKind.INVALID_CREDENTIALS:
                logger.error("OpenAI authentication failed. Check the key is correct, unexpired and has model access.")
            elif e.kind == LLMErrorKind.RATE_LIMITED:
                logger.error("OpenAI rate limit exceeded while validating the key.")
            elif e.kind == LLMErrorKind.UNAVAILABLE:
                logger.error("OpenAI service is temporarily unavailable.")
            else:
                logger.error(f"OpenAI key validation failed: {e}")
            return False
        logger.info("OpenAI API key is valid")
        return True
