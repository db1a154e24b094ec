"""
LiteLLM Provider

Implements ``chat(messages, options) -> str`` on top of ``litellm.acompletion``
with a retry policy for transient provider errors.

Supported providers:
- openai: model names are passed through (``gpt-4o-mini``)
- openrouter: models are addressed with the ``openrouter/`` prefix

The provider is a plain handle built once by the application factory and
passed to every consumer; switching providers means building a new one.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import litellm
import structlog

from taskpilot.core.domain.errors import LLMError

SUPPORTED_PROVIDERS = ("openai", "openrouter")


@dataclass
class RetryPolicy:
    """Retry policy configuration."""

    max_attempts: int = 3
    backoff_multiplier: float = 2.0
    timeout: int = 60
    retry_on_errors: list[str] = field(
        default_factory=lambda: [
            "RateLimitError",
            "Timeout",
            "ServiceUnavailableError",
            "APIConnectionError",
            "rate limit",
        ]
    )


def resolve_model(provider: str, model: str) -> str:
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported provider: {provider} (expected one of {', '.join(SUPPORTED_PROVIDERS)})"
        )
    if provider == "openrouter" and not model.startswith("openrouter/"):
        return f"openrouter/{model}"
    return model


class LiteLLMProvider:
    def __init__(
        self,
        model: str,
        provider: str = "openai",
        api_key: str | None = None,
        api_base: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4000,
        retry_policy: RetryPolicy | None = None,
    ):
        """
        Args:
            model: Model name as known to the provider
            provider: ``openai`` or ``openrouter``
            api_key: Provider API key; litellm falls back to its env variables
            api_base: Optional custom endpoint
            temperature: Default sampling temperature
            max_tokens: Default completion token limit
            retry_policy: Retry behaviour for transient errors

        Raises:
            ValueError: If the provider is not supported
        """
        self.provider = provider
        self.model = resolve_model(provider, model)
        self.api_key = api_key
        self.api_base = api_base
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = structlog.get_logger().bind(component="llm_provider", provider=provider)

    async def chat(
        self, messages: list[dict[str, str]], options: dict[str, Any] | None = None
    ) -> str:
        """
        Complete ``messages`` and return the reply text.

        Raises:
            LLMError: After the last failed attempt, chained from the provider error
        """
        params: dict[str, Any] = {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            **(options or {}),
        }
        if self.api_key:
            params["api_key"] = self.api_key
        if self.api_base:
            params["api_base"] = self.api_base

        for attempt in range(self.retry_policy.max_attempts):
            started = time.monotonic()
            try:
                self.logger.info(
                    "llm_completion_started",
                    model=self.model,
                    attempt=attempt + 1,
                    message_count=len(messages),
                )
                response = await litellm.acompletion(
                    model=self.model,
                    messages=messages,
                    timeout=self.retry_policy.timeout,
                    **params,
                )
                content = response.choices[0].message.content or ""
                self.logger.info(
                    "llm_completion_success",
                    model=self.model,
                    latency_ms=int((time.monotonic() - started) * 1000),
                )
                return content

            except Exception as exc:
                error_type = type(exc).__name__
                error_msg = str(exc)
                should_retry = attempt < self.retry_policy.max_attempts - 1 and any(
                    marker in error_type or marker in error_msg
                    for marker in self.retry_policy.retry_on_errors
                )

                if not should_retry:
                    self.logger.error(
                        "llm_completion_failed",
                        model=self.model,
                        error_type=error_type,
                        error=error_msg[:200],
                        attempts=attempt + 1,
                    )
                    raise LLMError(
                        f"{error_type}: {error_msg}", provider=self.provider, model=self.model
                    ) from exc

                backoff = self.retry_policy.backoff_multiplier**attempt
                self.logger.warning(
                    "llm_completion_retry",
                    model=self.model,
                    error_type=error_type,
                    attempt=attempt + 1,
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)

        raise LLMError("No completion attempts were made", provider=self.provider, model=self.model)
