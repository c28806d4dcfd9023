"""Chat transport for models served locally by Ollama (``LLM_PROVIDER=ollama``)."""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any
from urllib import error, request

DEFAULT_OLLAMA_BASE_URL = "http://127.0.0.1:11434"
_CHAT_ENDPOINT = "/api/chat"


class LocalLLMError(RuntimeError):
    """Raised when the local model server could not produce a reply.

    ``status`` carries the HTTP status code when the server answered at all,
    so callers can tell a rate limit (429) from an unreachable server.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def build_chat_payload(
    system_prompt: str,
    user_prompt: str,
    llm_model: str,
    *,
    max_tokens: int | None = None,
    temperature: float | None = None,
) -> dict[str, Any]:
    """Shape one non-streaming ``/api/chat`` request.

    A blank system prompt is left out entirely; ``max_tokens`` maps onto
    Ollama's ``num_predict`` option.
    """

    system_text = system_prompt.strip()
    user_text = user_prompt.strip()
    if not user_text:
        raise LocalLLMError("Refusing to send an empty player message to Ollama.")

    messages = [{"role": "system", "content": system_text}] if system_text else []
    messages.append({"role": "user", "content": user_text})

    payload: dict[str, Any] = {"model": llm_model, "messages": messages, "stream": False}
    options = {
        key: value
        for key, value in (("num_predict", max_tokens), ("temperature", temperature))
        if value is not None
    }
    if options:
        payload["options"] = options
    return payload


def _assistant_text(raw: str) -> str:
    try:
        body = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LocalLLMError("Ollama answered with something other than JSON.") from exc
    text = (body.get("message") or {}).get("content")
    if not text:
        raise LocalLLMError("Ollama reply carried no assistant message.")
    return text


def _perform_ollama_request(
    payload: dict[str, Any],
    base_url: str,
    timeout: float,
) -> str:
    """POST ``payload`` and return the assistant text. Blocks; run it in a thread."""

    endpoint = base_url + _CHAT_ENDPOINT
    http_request = request.Request(
        endpoint,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with request.urlopen(http_request, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
    except error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="ignore") if exc.fp else ""
        raise LocalLLMError(
            f"Ollama returned HTTP {exc.code} for {payload.get('model')}: {detail or exc.reason}",
            status=exc.code,
        ) from exc
    except error.URLError as exc:
        raise LocalLLMError(f"Ollama is not reachable at {endpoint}: {exc.reason}") from exc
    return _assistant_text(raw)


async def call_ollama_chat(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_model: str,
    base_url: str | None = None,
    max_tokens: int | None = None,
    temperature: float | None = None,
    timeout: float = 15.0,
) -> str:
    """Send one system prompt plus one player message to a local model."""

    payload = build_chat_payload(
        system_prompt,
        user_prompt,
        llm_model,
        max_tokens=max_tokens,
        temperature=temperature,
    )
    server = (base_url or os.getenv("OLLAMA_BASE_URL") or DEFAULT_OLLAMA_BASE_URL).rstrip("/")
    return await asyncio.to_thread(_perform_ollama_request, payload, server, timeout)


__all__ = ["LocalLLMError", "build_chat_payload", "call_ollama_chat", "DEFAULT_OLLAMA_BASE_URL"]
