"""
Turn orchestrator.

Ties the pipeline together for one character on one level: sanitize the
player's text, spend a prompt, build the prompt, call the model, parse the
reply into an action chain and run that chain through personality,
validation and execution. Only one turn is ever in flight; every stage that
can fail is caught here so ``is_processing_turn`` is always released.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from lostsouls.character import Explorer
from lostsouls.config import Config
from lostsouls.environment.grid import GridModel
from lostsouls.events import CharacterResponse, EventChannel, InputRejected, LevelFailed, TurnCompleted, TurnStarted
from lostsouls.executor import ActionExecutor
from lostsouls.llm_client import ModelCallError
from lostsouls.logging_utils import log_deterministic, log_error, log_info, log_llm, log_verbose
from lostsouls.personality import PersonalityProcessor, TurnState
from lostsouls.prompt_builder import build_prompt
from lostsouls.prompts import PromptLibrary
from lostsouls.registry import ObjectRegistry
from lostsouls.response_parser import parse_response
from lostsouls.sanitizer import sanitize
from lostsouls.schemas import PHYSICAL_ACTIONS, ActionType, CharacterAction, CharacterProfile
from lostsouls.session import LevelSession
from lostsouls.validator import ActionValidator

API_ERROR_LINE = "The connection wavers... (prompt not consumed)"
INTERNAL_ERROR_LINE = "Huh? Something went strange for a moment. Could you say that again?"
BUDGET_EXHAUSTED_LINE = "The spirit's voice grows faint... I can't hear you anymore. Let's try this again."
OVERFLOW_NOTE_SINGLE = " That's too much at once! I'll just do the first thing."
OVERFLOW_NOTE_MULTI = " That's too much at once! I'll just do the first {count} things."
UNKNOWN_WORD_LINE = "\"{word}\"? I don't know what that is. Do you mean the {replacement}?"


class ModelCaller(Protocol):
    """Anything with ``complete(system_prompt, user_message) -> str`` that returns raw model text."""

    async def complete(self, system_prompt: str, user_message: str) -> str: ...


class TurnPhase(str, Enum):
    IDLE = "idle"
    SANITIZING = "sanitizing"
    BUDGET_CHECK = "budget_check"
    PROMPT_BUILDING = "prompt_building"
    AWAITING_MODEL = "awaiting_model"
    PARSING = "parsing"
    PROCESSING_ACTION_CHAIN = "processing_action_chain"


# A fault in these phases happens before the player got anything for their prompt.
_REFUNDABLE_PHASES = frozenset({TurnPhase.PROMPT_BUILDING, TurnPhase.AWAITING_MODEL, TurnPhase.PARSING})


@dataclass
class TurnOutcome:
    """What happened to one submitted prompt."""

    accepted: bool
    prompt_consumed: bool = False
    reason: str = ""
    actions: List[CharacterAction] = field(default_factory=list)
    executed: List[ActionType] = field(default_factory=list)


def find_unknown_vocabulary(player_text: str, profile: CharacterProfile) -> Optional[tuple[str, str]]:
    """Return ``(word, own_word)`` if the player used a name the character doesn't know."""
    for real, own in profile.vocabulary_map.items():
        if not real or real.lower() == own.lower():
            continue
        if re.search(rf"\b{re.escape(real)}\b", player_text, re.IGNORECASE):
            return real, own
    return None


def truncate_to_comprehension(actions: List[CharacterAction], profile: CharacterProfile) -> List[CharacterAction]:
    """Keep as many actions as the character can follow, noting the overflow."""
    limit = profile.comprehension.max_actions
    if len(actions) <= limit:
        return actions
    kept = actions[:limit]
    note = OVERFLOW_NOTE_SINGLE if limit == 1 else OVERFLOW_NOTE_MULTI.format(count=limit)
    kept[-1].dialogue = (kept[-1].dialogue or "") + note
    log_deterministic(f"Truncated {len(actions)} actions to {limit} ({profile.comprehension.value})")
    return kept


class TurnOrchestrator:
    """Runs player turns for one character. All collaborators are injected."""

    def __init__(
        self,
        *,
        session: LevelSession,
        grid: GridModel,
        registry: ObjectRegistry,
        character: Explorer,
        profile: CharacterProfile,
        model: ModelCaller,
        events: Optional[EventChannel] = None,
        state: Optional[TurnState] = None,
        prompt_library: Optional[PromptLibrary] = None,
        max_prompt_length: Optional[int] = None,
        action_timeout: Optional[float] = None,
        action_pacing: Optional[float] = None,
        budget_fail_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.session = session
        self.model = model
        self.events = events or EventChannel()
        self.state = state or TurnState()
        self.prompt_library = prompt_library
        self.max_prompt_length = max_prompt_length or Config.DEFAULT_PROMPT_MAX_LENGTH
        self.action_timeout = Config.ACTION_TIMEOUT_SECONDS if action_timeout is None else action_timeout
        self.action_pacing = Config.ACTION_PACING_SECONDS if action_pacing is None else action_pacing
        self.budget_fail_delay = Config.BUDGET_FAIL_DELAY_SECONDS if budget_fail_delay is None else budget_fail_delay
        self._sleep = sleep

        self.phase = TurnPhase.IDLE
        self.is_processing_turn = False
        self.initialize_for_level(grid=grid, registry=registry, character=character, profile=profile)

    def initialize_for_level(
        self,
        *,
        grid: GridModel,
        registry: ObjectRegistry,
        character: Explorer,
        profile: CharacterProfile,
    ) -> None:
        """Bind a (re)loaded level and forget everything learned on the last one."""
        self.grid = grid
        self.registry = registry
        self.character = character
        self.profile = profile
        self.state.reset()
        self.personality = PersonalityProcessor(profile, self.state)
        self.validator = ActionValidator(character, grid, registry, profile)
        self.executor = ActionExecutor(character, grid, registry, profile, self.events)
        log_info(f"Turn pipeline ready for {profile.name} ({profile.comprehension.value})")

    # Entry point ------------------------------------------------------------

    async def submit_prompt(self, player_text: str) -> TurnOutcome:
        if self.is_processing_turn:
            log_deterministic("Turn already in progress; prompt ignored")
            return TurnOutcome(accepted=False, reason="busy")
        if not self.session.is_playing:
            log_deterministic(f"Prompt ignored: game state is {self.session.state.value}")
            return TurnOutcome(accepted=False, reason="not_playing")

        self.is_processing_turn = True
        outcome = TurnOutcome(accepted=True)
        self.events.emit(TurnStarted(player_text))
        self.events.drain()
        try:
            await self._run_turn(player_text, outcome)
        except Exception as exc:
            log_error(f"Turn failed during {self.phase.value}: {exc!r}")
            if outcome.prompt_consumed and self.phase in _REFUNDABLE_PHASES:
                self.session.refund_prompt_unit()
                outcome.prompt_consumed = False
            outcome.reason = f"internal_error:{self.phase.value}"
            self._say(INTERNAL_ERROR_LINE, "confused")
        finally:
            self.phase = TurnPhase.IDLE
            self.is_processing_turn = False
            self.events.emit(TurnCompleted())
            self.events.drain()
        return outcome

    # Stages -----------------------------------------------------------------

    async def _run_turn(self, player_text: str, outcome: TurnOutcome) -> None:
        self.phase = TurnPhase.SANITIZING
        result = sanitize(player_text, self.max_prompt_length, self.profile, self.profile.name)
        if not result.passed:
            log_deterministic(f"Input rejected (costs prompt: {result.costs_prompt})")
            if result.costs_prompt:
                outcome.prompt_consumed = self.session.consume_prompt_unit()
                self.state.escalate_hint()
            self.events.emit(InputRejected(result.rejection_dialogue))
            self._say(result.rejection_dialogue, "annoyed")
            outcome.reason = "rejected"
            return

        self.phase = TurnPhase.BUDGET_CHECK
        if not self.session.consume_prompt_unit():
            outcome.reason = "no_budget"
            await self._check_budget_exhausted()
            return
        outcome.prompt_consumed = True

        self.phase = TurnPhase.PROMPT_BUILDING
        prompt = build_prompt(
            self.profile,
            self.character,
            self.grid,
            self.registry,
            self.state.hint_escalation_level,
            player_text,
            library=self.prompt_library,
        )

        self.phase = TurnPhase.AWAITING_MODEL
        try:
            raw = await self.model.complete(prompt.system, prompt.user)
        except ModelCallError as exc:
            log_error(f"Model unavailable, refunding prompt: {exc.reason}")
            self.session.refund_prompt_unit()
            outcome.prompt_consumed = False
            outcome.reason = "model_error"
            self._say(API_ERROR_LINE, "confused")
            return
        log_llm(f"Model replied ({len(raw)} chars)")

        self.phase = TurnPhase.PARSING
        actions = truncate_to_comprehension(parse_response(raw), self.profile)
        unknown = find_unknown_vocabulary(player_text, self.profile)
        if unknown is not None:
            word, replacement = unknown
            log_deterministic(f"Player said '{word}', which {self.profile.name} calls '{replacement}'")
            for action in actions:
                if action.type in PHYSICAL_ACTIONS:
                    action.type = ActionType.NONE
            actions[0].dialogue = UNKNOWN_WORD_LINE.format(word=word, replacement=replacement)
            actions[0].emotion = "confused"
        outcome.actions = actions

        self.phase = TurnPhase.PROCESSING_ACTION_CHAIN
        await self._run_chain(actions, outcome)
        await self._check_budget_exhausted()

    async def _run_chain(self, actions: List[CharacterAction], outcome: TurnOutcome) -> None:
        last_type: Optional[ActionType] = None
        for index, action in enumerate(actions):
            if not self.session.is_playing:
                log_deterministic("Game state changed mid-chain; stopping")
                break
            is_first = index == 0
            conversational = action.type == ActionType.NONE

            if is_first:
                self.personality.apply(action)
            if not conversational:
                self.validator.validate(action)
            log_verbose(f"Action {index + 1}/{len(actions)}: {action.type.value} {action.direction or ''}".rstrip())

            if is_first or action.type == ActionType.NONE:
                self._say(action.dialogue, action.emotion)
            last_type = action.type

            if action.type == ActionType.NONE:
                self.state.escalate_hint()
                if is_first:
                    break
                continue

            try:
                await asyncio.wait_for(self.executor.execute(action), timeout=self.action_timeout)
                outcome.executed.append(action.type)
            except asyncio.TimeoutError:
                log_error(f"{action.type.value} did not finish within {self.action_timeout:g}s")
            self.events.drain()

            if index < len(actions) - 1 and self.session.is_playing:
                await self._sleep(self.action_pacing)

        if last_type is not None:
            self.state.last_action_type = last_type

    async def _check_budget_exhausted(self) -> None:
        if self.session.prompts_remaining > 0 or not self.session.is_playing:
            return
        # Let a final step onto the exit land before calling the level lost.
        await self._sleep(self.budget_fail_delay)
        if not self.session.is_playing:
            return
        log_deterministic("Prompt budget exhausted; failing level")
        self.events.emit(LevelFailed(self.session.prompts_used))
        self._say(BUDGET_EXHAUSTED_LINE, "sad")
        self.events.drain()
        self.session.fail_level()
        self.session.restart_level()
        self.state.reset()

    def _say(self, dialogue: str, emotion: str) -> None:
        text = (dialogue or "").strip()
        if text:
            self.events.emit(CharacterResponse(text, emotion))
