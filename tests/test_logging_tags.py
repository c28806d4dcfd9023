"""Tests for truthful logging tags ([AI] vs [•]) in turn output.

These tests assert that:
- Model calls are tagged [AI] and validator refusals [•]
- Rate-limit retries and listener faults are tagged [!] or [AI] as appropriate
- LOSTSOULS_NO_COLOR strips ANSI codes
"""

from __future__ import annotations

import contextlib
import io
import json
from unittest.mock import AsyncMock

import pytest

from lostsouls.character import Explorer
from lostsouls.environment import GridModel
from lostsouls.events import EventChannel, TurnCompleted
from lostsouls.llm_client import ModelClient, RateLimitedError
from lostsouls.logging_utils import Color, colored, log_llm_exchange
from lostsouls.orchestrator import TurnOrchestrator
from lostsouls.registry import ObjectRegistry
from lostsouls.schemas import CharacterProfile
from lostsouls.session import LevelSession


def _orchestrator(model) -> TurnOrchestrator:
    grid = GridModel.from_rows(["...", "...", "..."])
    registry = ObjectRegistry(grid)
    explorer = Explorer(grid, registry, (0, 0))
    session = LevelSession(prompt_budget=5, grid=grid, registry=registry, character=explorer)
    session.start()
    return TurnOrchestrator(
        session=session,
        grid=grid,
        registry=registry,
        character=explorer,
        profile=CharacterProfile(),
        model=model,
        action_pacing=0.0,
        budget_fail_delay=0.0,
    )


@pytest.mark.asyncio
async def test_validator_refusal_is_deterministic(monkeypatch):
    monkeypatch.setenv("LOSTSOULS_NO_COLOR", "1")
    model = AsyncMock()
    model.complete.return_value = json.dumps(
        {"dialogue": "Okay", "actions": [{"action": "move", "params": {"direction": "south"}}]}
    )
    orchestrator = _orchestrator(model)

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        await orchestrator.submit_prompt("go down")
    out = buf.getvalue()

    assert "[AI] Model replied" in out
    assert "[•] Validator rejected action:" in out
    assert "[AI] Validator" not in out


@pytest.mark.asyncio
async def test_rate_limit_retries_are_model_tagged(monkeypatch):
    monkeypatch.setenv("LOSTSOULS_NO_COLOR", "1")

    async def transport(system_prompt, user_message):
        raise RateLimitedError("429")

    async def no_sleep(seconds):
        return None

    client = ModelClient(provider="openai", model="gpt-4o-mini", sleep=no_sleep, transport=transport)
    orchestrator = _orchestrator(client)

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        await orchestrator.submit_prompt("go north")
    out = buf.getvalue()

    assert "[AI] Rate limited (attempt 1/3); waiting 2s" in out
    assert "[AI] Model retry 3/3" in out
    assert "[!] Model unavailable, refunding prompt" in out


def test_listener_faults_are_logged_not_raised(monkeypatch):
    monkeypatch.setenv("LOSTSOULS_NO_COLOR", "1")
    channel = EventChannel()
    seen = []

    def broken(event):
        raise ValueError("listener bug")

    channel.subscribe(broken)
    channel.subscribe(seen.append)
    channel.emit(TurnCompleted())

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        delivered = channel.drain()

    assert delivered == [TurnCompleted()]
    assert seen == [TurnCompleted()]
    assert "[!] Event listener failed on TurnCompleted: listener bug" in buf.getvalue()


def test_colored_respects_no_color(monkeypatch):
    monkeypatch.delenv("LOSTSOULS_NO_COLOR", raising=False)
    assert colored("hi", Color.RED) == f"{Color.RED.value}hi{Color.RESET.value}"
    assert colored("hi", Color.RED, bold=True).startswith(Color.BOLD.value + Color.RED.value)

    monkeypatch.setenv("LOSTSOULS_NO_COLOR", "1")
    assert colored("hi", Color.RED) == "hi"


def test_llm_exchange_only_printed_when_debugging(monkeypatch):
    monkeypatch.setenv("LOSTSOULS_NO_COLOR", "1")
    monkeypatch.delenv("DEBUG_LLM", raising=False)

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        log_llm_exchange("system text", "user text", "reply text")
    assert buf.getvalue() == ""

    monkeypatch.setenv("DEBUG_LLM", "true")
    with contextlib.redirect_stdout(buf):
        log_llm_exchange("system text", "user text", "reply text")
    out = buf.getvalue()
    assert "=== SYSTEM PROMPT ===" in out
    assert "reply text" in out
