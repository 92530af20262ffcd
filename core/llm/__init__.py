"""LLM client package.

Thin async wrapper over the OpenAI chat completions API that knows nothing about
contracts and reports failures as classified ``LLMServiceError`` instances.
"""

from core.llm.client import CompletionOptions, CompletionResult, LLMClient, classify_openai_error

__all__ = [
    "CompletionOptions",
    "CompletionResult",
    "LLMClient",
    "classify_openai_error",
]
