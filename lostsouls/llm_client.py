"""Model call contract: one system prompt plus one user message in, raw text out.

Failures surface as ``ModelCallError``. Only ``RateLimitedError`` is worth
retrying; everything else (auth, network, timeouts, bad requests) ends the
turn on the first attempt.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from mirascope import llm
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from lostsouls.config import Config
from lostsouls.local_llm import LocalLLMError, call_ollama_chat
from lostsouls.logging_utils import log_error, log_llm, log_llm_exchange

Transport = Callable[[str, str], Awaitable[str]]
SleepFn = Callable[[float], Awaitable[Any]]

RATE_LIMIT_STATUS = 429


class ModelCallError(Exception):
    """Raised when the model could not produce a reply for this turn."""

    def __init__(self, reason: str, *, provider: str | None = None) -> None:
        self.reason = reason
        self.provider = provider
        message = (
            f"Model call failed ({provider or 'unknown provider'}): {reason}\n\n"
            "Remediation tips:\n"
            "  - Verify LLM_PROVIDER, LLM_MODEL and the provider API key\n"
            "  - For LLM_PROVIDER=ollama, check OLLAMA_BASE_URL and that the server is running\n"
            "  - DEBUG_LLM=true to inspect prompts/responses"
        )
        super().__init__(message)


class RateLimitedError(ModelCallError):
    """Raised when the provider asks us to slow down (HTTP 429)."""


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_rate_limit(exc: BaseException) -> bool:
    """Provider SDKs disagree on shape; match on status code or class name."""
    return _status_of(exc) == RATE_LIMIT_STATUS or "RateLimit" in type(exc).__name__


def classify_error(exc: BaseException, provider: str | None = None) -> ModelCallError:
    """Map any transport failure onto the retryable/non-retryable split."""
    if isinstance(exc, ModelCallError):
        return exc
    if is_rate_limit(exc):
        return RateLimitedError(str(exc) or type(exc).__name__, provider=provider)
    return ModelCallError(str(exc) or type(exc).__name__, provider=provider)


async def call_model(
    system_prompt: str,
    user_message: str,
    *,
    provider: str,
    model: str,
    max_tokens: int = 300,
    temperature: float = 0.7,
    timeout: float = 15.0,
    base_url: str | None = None,
) -> str:
    """Make a single model call and return the raw reply text."""

    try:
        if provider.lower() == "ollama":
            return await asyncio.wait_for(
                call_ollama_chat(
                    system_prompt=system_prompt,
                    user_prompt=user_message,
                    llm_model=model,
                    base_url=base_url,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    timeout=timeout,
                ),
                timeout=timeout,
            )

        @llm.call(
            provider=provider,
            model=model,
            call_params={"max_tokens": max_tokens, "temperature": temperature},
        )
        async def _invoke(prompt: str) -> str:
            return prompt

        combined = "\n\n".join(part for part in (system_prompt.strip(), user_message.strip()) if part)
        response = await asyncio.wait_for(_invoke(combined), timeout=timeout)
        return response.content or ""
    except asyncio.TimeoutError as exc:
        raise ModelCallError(f"no reply within {timeout:g}s", provider=provider) from exc
    except LocalLLMError as exc:
        if exc.status == RATE_LIMIT_STATUS:
            raise RateLimitedError(str(exc), provider=provider) from exc
        raise ModelCallError(str(exc), provider=provider) from exc
    except ModelCallError:
        raise
    except Exception as exc:
        raise classify_error(exc, provider) from exc


async def call_model_with_retries(
    system_prompt: str,
    user_message: str,
    *,
    transport: Transport,
    max_attempts: int = 3,
    backoff_seconds: float = 2.0,
    sleep: SleepFn = asyncio.sleep,
) -> str:
    """Call ``transport`` and retry rate limits with a linear backoff.

    Attempt ``n`` that is rate limited waits ``n * backoff_seconds`` before the
    retry decision, including the final attempt, so three 429s in a row wait
    2, 4 and 6 seconds before ``RateLimitedError`` reaches the caller.
    """

    attempt_number = 0
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(RateLimitedError),
        stop=stop_after_attempt(max_attempts),
        reraise=True,
    ):
        with attempt:
            attempt_number += 1
            if attempt_number > 1:
                log_llm(f"Model retry {attempt_number}/{max_attempts}")
            try:
                response = await transport(system_prompt, user_message)
            except RateLimitedError:
                # Slept here, not via wait=, so the final rate-limited attempt also backs off.
                wait = attempt_number * backoff_seconds
                log_llm(f"Rate limited (attempt {attempt_number}/{max_attempts}); waiting {wait:g}s")
                await sleep(wait)
                raise
            except ModelCallError as exc:
                log_error(f"Model call failed: {exc.reason}")
                raise
            log_llm_exchange(system_prompt, user_message, response)
            return response

    raise ModelCallError("retry loop exited unexpectedly")


@dataclass
class ModelClient:
    """Model settings bundled with the retry policy the orchestrator uses."""

    provider: str = field(default_factory=lambda: Config.LLM_PROVIDER)
    model: str = field(default_factory=lambda: Config.LLM_MODEL)
    max_tokens: int = field(default_factory=lambda: Config.LLM_MAX_TOKENS)
    temperature: float = field(default_factory=lambda: Config.LLM_TEMPERATURE)
    timeout: float = field(default_factory=lambda: Config.LLM_TIMEOUT_SECONDS)
    base_url: str | None = field(default_factory=lambda: Config.OLLAMA_BASE_URL)
    max_attempts: int = field(default_factory=lambda: Config.MODEL_MAX_ATTEMPTS)
    backoff_seconds: float = field(default_factory=lambda: Config.RATE_LIMIT_BACKOFF_SECONDS)
    sleep: SleepFn = asyncio.sleep
    transport: Transport | None = None

    async def _call(self, system_prompt: str, user_message: str) -> str:
        return await call_model(
            system_prompt,
            user_message,
            provider=self.provider,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            timeout=self.timeout,
            base_url=self.base_url,
        )

    async def complete(self, system_prompt: str, user_message: str) -> str:
        log_llm(f"Calling {self.provider}/{self.model}")
        return await call_model_with_retries(
            system_prompt,
            user_message,
            transport=self.transport or self._call,
            max_attempts=self.max_attempts,
            backoff_seconds=self.backoff_seconds,
            sleep=self.sleep,
        )


__all__ = [
    "ModelCallError",
    "RateLimitedError",
    "ModelClient",
    "call_model",
    "call_model_with_retries",
    "classify_error",
    "is_rate_limit",
]
