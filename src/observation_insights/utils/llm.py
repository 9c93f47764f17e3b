"""LLM client for report narratives: async HTTP provider with retry logic."""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from ..config import LLMConfig, get_settings
from ..reports.prompts import SYSTEM_PROMPT


logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for LLM-related errors."""
    pass


class RateLimitError(LLMError):
    """Exception raised when rate limit is exceeded."""
    pass


class APIError(LLMError):
    """Exception raised for API-specific errors."""
    pass


@dataclass
class LLMRequest:
    """Represents a single LLM request."""
    prompt: str
    system_prompt: Optional[str] = None
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMResponse:
    """Represents a single LLM response."""
    content: str
    latency_ms: Optional[float] = None
    token_usage: Optional[Dict[str, int]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def call_single(self, request: LLMRequest) -> LLMResponse:
        """Make a single LLM call."""
        pass


class ChatCompletionsProvider(LLMProvider):
    """Provider for OpenAI-compatible chat completions endpoints."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4",
        base_url: str = "https://api.openai.com/v1/chat/completions",
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 60.0
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

    def _payload(self, request: LLMRequest) -> Dict[str, Any]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": request.temperature,
        }
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens
        return payload

    async def call_single(self, request: LLMRequest) -> LLMResponse:
        """
        Make a single call, retrying transport failures with exponential backoff.

        Raises:
            RateLimitError: on HTTP 429
            APIError: on other HTTP errors, malformed responses, or when
                retries are exhausted
        """
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = self._payload(request)
        start_time = time.time()

        for attempt in range(self.max_retries + 1):
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.post(
                        self.base_url,
                        headers=headers,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout)
                    ) as response:

                        if response.status == 429:
                            raise RateLimitError("Rate limit exceeded")
                        elif response.status >= 400:
                            error_text = await response.text()
                            raise APIError(f"API error {response.status}: {error_text}")

                        response_data = await response.json()

                choices = response_data.get("choices") or []
                if not choices:
                    raise APIError("API response contained no choices")
                content = (choices[0].get("message") or {}).get("content") or ""

                return LLMResponse(
                    content=content,
                    latency_ms=(time.time() - start_time) * 1000,
                    token_usage=response_data.get("usage", {}),
                    metadata=request.metadata,
                )

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt == self.max_retries:
                    raise APIError(f"API call failed after {self.max_retries} retries: {e}") from e
                await asyncio.sleep(self.retry_delay * (2 ** attempt))
            except LLMError:
                raise
            except (json.JSONDecodeError, ValueError, AttributeError, KeyError, TypeError) as e:
                raise APIError(f"Malformed API response: {e}") from e


class LLMClient:
    """High-level client for LLM operations with built-in retry and error handling."""

    def __init__(
        self,
        provider: LLMProvider,
        default_retry_count: int = 3,
        default_retry_delay: float = 1.0,
        rate_limit_delay: float = 2.0
    ):
        self.provider = provider
        self.default_retry_count = default_retry_count
        self.default_retry_delay = default_retry_delay
        self.rate_limit_delay = rate_limit_delay

    async def call(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        retry_count: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        """Make a single LLM call with retry logic."""
        request = LLMRequest(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            metadata=metadata or {}
        )

        retry_count = self.default_retry_count if retry_count is None else retry_count

        for attempt in range(retry_count + 1):
            try:
                response = await self.provider.call_single(request)

                logger.info(
                    "LLM call completed",
                    extra={
                        "prompt_length": len(prompt),
                        "response_length": len(response.content),
                        "latency_ms": response.latency_ms,
                        "attempt": attempt + 1,
                        "tokens": response.token_usage,
                    }
                )
                return response

            except RateLimitError:
                if attempt == retry_count:
                    logger.error(f"Rate limit still exceeded after {retry_count} retries")
                    raise
                logger.warning(f"Rate limit hit, waiting {self.rate_limit_delay}s before retry")
                await asyncio.sleep(self.rate_limit_delay)
            except LLMError as e:
                if attempt == retry_count:
                    logger.error(f"LLM call failed after {retry_count} retries: {e}")
                    raise
                logger.warning(f"Error on attempt {attempt + 1}, retrying: {e}")
                await asyncio.sleep(self.default_retry_delay * (attempt + 1))


class NarrativeGenerator:
    """
    Writes report narratives through an LLMClient.

    The system prompt fixes persona and house style (British English); the
    caller supplies the rendered report prompt.
    """

    def __init__(self, client: LLMClient, config: Optional[LLMConfig] = None, system_prompt: Optional[str] = None):
        self.client = client
        self.config = config or LLMConfig()
        self.system_prompt = system_prompt or SYSTEM_PROMPT.render()

    async def generate_narrative(self, prompt: str, context: Optional[Dict[str, Any]] = None) -> str:
        """
        Generate narrative text for a report prompt.

        Raises:
            LLMError: if the model cannot be reached or returns nothing
        """
        response = await self.client.call(
            prompt,
            system_prompt=self.system_prompt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            metadata=context or {},
        )
        if not response.content.strip():
            raise LLMError("Model returned an empty narrative")
        return response.content


def create_llm_client(config: Optional[LLMConfig] = None, api_key: Optional[str] = None) -> LLMClient:
    """
    Create an LLM client from configuration.

    Requires an API key, from the argument or LLM_API_KEY.
    """
    config = config or get_settings().llm
    api_key = api_key or config.api_key
    if not api_key:
        raise ValueError("No LLM API key configured. Set LLM_API_KEY to enable narrative generation.")

    # Retries happen once, in LLMClient; the provider makes a single attempt per call
    provider = ChatCompletionsProvider(
        api_key=api_key,
        model=config.model,
        base_url=config.base_url,
        max_retries=0,
        retry_delay=config.retry_delay,
        timeout=config.request_timeout,
    )
    return LLMClient(provider, default_retry_count=config.max_retries, default_retry_delay=config.retry_delay)


def create_narrative_generator(config: Optional[LLMConfig] = None) -> Optional[NarrativeGenerator]:
    """NarrativeGenerator from settings, or None when no API key is configured."""
    config = config or get_settings().llm
    if not config.api_key:
        logger.info("No LLM API key configured; reports will use rule-based narratives")
        return None
    return NarrativeGenerator(create_llm_client(config), config)
