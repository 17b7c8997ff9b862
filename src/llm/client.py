"""Centralized LLM client supporting OpenAI and Anthropic (Claude) with timeout, retry, and error handling."""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from anthropic import Anthropic, APIError as AnthropicAPIError, RateLimitError as AnthropicRateLimitError
from openai import OpenAI, APIError, APITimeoutError, RateLimitError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.config import Settings, get_settings
from core.exceptions import LLMAPIError, LLMError, LLMRateLimitError, LLMTimeoutError
from core.logging_config import external_call, get_logger

LOGGER = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a real estate acquisition analyst. You read property listings "
    "and answer with strict JSON only."
)


def _create_anthropic_client(settings: Settings) -> Optional[Anthropic]:
    if not settings.anthropic_api_key:
        return None
    return Anthropic(
        api_key=settings.anthropic_api_key,
        timeout=settings.anthropic_timeout_seconds,
        max_retries=0,  # We handle retries via tenacity
    )


def _create_openai_client(settings: Settings) -> Optional[OpenAI]:
    if not settings.openai_api_key:
        return None
    return OpenAI(
        api_key=settings.openai_api_key,
        timeout=settings.openai_timeout_seconds,
        max_retries=0,
    )


def extract_json(text: str, opener: str = "{") -> Any:
    """
    Pull the first JSON object (or array, with ``opener="["``) out of a reply.

    Models often wrap JSON in prose or code fences; everything outside the
    outermost brackets is ignored.

    Raises:
        ValueError: If no parsable JSON is present.
    """
    closer = "}" if opener == "{" else "]"
    start = text.find(opener)
    end = text.rfind(closer) + 1
    if start < 0 or end <= start:
        raise ValueError("No JSON found in LLM response")
    return json.loads(text[start:end])


class LLMClient:
    """Unified LLM client: OpenAI primary, Anthropic fallback."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.anthropic_client = _create_anthropic_client(self.settings)
        self.openai_client = _create_openai_client(self.settings)

        if self.openai_client:
            self.provider = "openai"
            self.model = self.settings.openai_model
            self.temperature = self.settings.openai_temperature
            LOGGER.info(f"LLM client initialized with OpenAI as primary (model: {self.model})")
        elif self.anthropic_client:
            self.provider = "anthropic"
            self.model = self.settings.anthropic_model
            self.temperature = self.settings.anthropic_temperature
            LOGGER.info(f"LLM client initialized with Anthropic (model: {self.model})")
        else:
            self.provider = None
            self.model = None
            self.temperature = 0.2
            LOGGER.warning("No LLM provider configured - AI parsing unavailable")

    def is_available(self) -> bool:
        return self.provider is not None

    @retry(
        retry=retry_if_exception_type((ConnectionError, TimeoutError, LLMTimeoutError)),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        before_sleep=before_sleep_log(LOGGER, logging.WARNING),
        reraise=True,
    )
    def generate_completion(
        self,
        prompt: str,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        temperature: Optional[float] = None,
        max_tokens: int = 1200,
    ) -> str:
        """
        Generate a completion from the LLM.

        Raises:
            LLMError: If no provider is configured.
            LLMAPIError: If the API call fails after retries.
            LLMRateLimitError: If rate limit is exceeded.
            LLMTimeoutError: If the request times out.
        """
        if not self.is_available():
            raise LLMError("No LLM provider configured")

        temp = temperature if temperature is not None else self.temperature

        if self.provider == "openai":
            try:
                return self._timed("openai", self._generate_openai, prompt, system_prompt, temp, max_tokens)
            except (LLMAPIError, LLMRateLimitError, LLMTimeoutError) as e:
                if not self.anthropic_client:
                    raise
                LOGGER.warning(f"OpenAI failed ({e}), attempting Anthropic fallback")
                return self._timed(
                    "anthropic", self._generate_anthropic, prompt, system_prompt, temp, max_tokens
                )
        return self._timed("anthropic", self._generate_anthropic, prompt, system_prompt, temp, max_tokens)

    def _timed(self, service: str, func: Any, *args: Any) -> str:
        with external_call(LOGGER, service, "completion", model=self.model):
            return func(*args)

    def _generate_anthropic(
        self,
        prompt: str,
        system_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        model = self.model if self.provider == "anthropic" else self.settings.anthropic_model
        try:
            message = self.anthropic_client.messages.create(
                model=model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
            )
            content = message.content[0].text if message.content else ""
            return content.strip()

        except AnthropicRateLimitError as exc:
            LOGGER.error("Anthropic rate limit exceeded: %s", exc)
            raise LLMRateLimitError(f"Rate limit exceeded: {exc}") from exc
        except AnthropicAPIError as exc:
            LOGGER.error("Anthropic API error: %s", exc)
            raise LLMAPIError(f"API error: {exc}") from exc

    def _generate_openai(
        self,
        prompt: str,
        system_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        try:
            response = self.openai_client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
            content = response.choices[0].message.content
            return content.strip() if content else ""

        except RateLimitError as exc:
            LOGGER.error("OpenAI rate limit exceeded: %s", exc)
            raise LLMRateLimitError(f"Rate limit exceeded: {exc}") from exc
        except APITimeoutError as exc:
            LOGGER.error("OpenAI request timed out: %s", exc)
            raise LLMTimeoutError(f"Request timed out: {exc}") from exc
        except APIError as exc:
            LOGGER.error("OpenAI API error: %s", exc)
            raise LLMAPIError(f"API error: {exc}") from exc


# Global instance
_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create the global LLM client instance."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client


def reset_llm_client() -> None:
    """Reset the global LLM client (useful for testing)."""
    global _llm_client
    _llm_client = None


__all__ = [
    "LLMClient",
    "extract_json",
    "get_llm_client",
    "reset_llm_client",
]
