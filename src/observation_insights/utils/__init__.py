"""Shared utilities: the LLM client used for report narratives."""

from .llm import (
    APIError,
    ChatCompletionsProvider,
    LLMClient,
    LLMError,
    LLMProvider,
    LLMRequest,
    LLMResponse,
    NarrativeGenerator,
    RateLimitError,
    create_llm_client,
    create_narrative_generator,
)

__all__ = [
    "APIError",
    "ChatCompletionsProvider",
    "LLMClient",
    "LLMError",
    "LLMProvider",
    "LLMRequest",
    "LLMResponse",
    "NarrativeGenerator",
    "RateLimitError",
    "create_llm_client",
    "create_narrative_generator",
]
