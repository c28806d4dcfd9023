"""Per-character behavioural filters applied to the first action of a turn."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from lostsouls.logging_utils import log_deterministic
from lostsouls.schemas import (
    ActionType,
    CharacterAction,
    CharacterProfile,
    PersonalityQuirk,
    PersonalityQuirkType,
)
from lostsouls.targeting import invert_direction

STUBBORN_LINE = "Hmm, I don't feel like doing that right now."
DISTRUST_INVERT_LINE = "I'll go... this way instead."
DEFAULT_TRUST_LINE = "Alright... I suppose I can trust you now."
IMPATIENT_LINE = "Ugh, not THAT again. Tell me something different."

DEFAULT_REFUSAL_COUNT = 1
DEFAULT_TRUST_THRESHOLD = 2

# Actions stubbornness and distrust never react to.
_EXEMPT = frozenset({ActionType.NONE, ActionType.LOOK})


@dataclass
class TurnState:
    """Mutable per-level memory of how the player has been treating the character."""

    hint_escalation_level: int = 0
    trust_counter: int = 0
    stubborn_attempts: Dict[ActionType, int] = field(default_factory=dict)
    last_action_type: ActionType = ActionType.NONE

    def escalate_hint(self) -> None:
        self.hint_escalation_level += 1

    def reset(self) -> None:
        self.hint_escalation_level = 0
        self.trust_counter = 0
        self.stubborn_attempts.clear()
        self.last_action_type = ActionType.NONE


class PersonalityProcessor:
    """Applies the profile's stubborn, distrustful and impatient quirks in profile order."""

    def __init__(self, profile: CharacterProfile, state: TurnState) -> None:
        self.profile = profile
        self.state = state

    def apply(self, action: CharacterAction) -> CharacterAction:
        for quirk in self.profile.personality_quirks:
            if quirk.type == PersonalityQuirkType.STUBBORN:
                self._apply_stubborn(action, quirk)
            elif quirk.type == PersonalityQuirkType.DISTRUSTFUL:
                self._apply_distrustful(action, quirk)
            elif quirk.type == PersonalityQuirkType.IMPATIENT:
                self._apply_impatient(action, quirk)
        return action

    def _apply_stubborn(self, action: CharacterAction, quirk: PersonalityQuirk) -> None:
        if action.type in _EXEMPT:
            return
        refusal_count = quirk.config.refusal_count
        if refusal_count is None:
            refusal_count = DEFAULT_REFUSAL_COUNT
        attempts = self.state.stubborn_attempts.get(action.type, 0) + 1
        self.state.stubborn_attempts[action.type] = attempts
        if attempts <= refusal_count:
            log_deterministic(f"Stubborn refusal of {action.type.value} ({attempts}/{refusal_count})")
            action.refuse(STUBBORN_LINE, "annoyed")

    def _apply_distrustful(self, action: CharacterAction, quirk: PersonalityQuirk) -> None:
        threshold = quirk.config.trust_threshold
        if threshold is None:
            threshold = DEFAULT_TRUST_THRESHOLD
        if self.state.trust_counter >= threshold or action.type in _EXEMPT:
            return
        self.state.trust_counter += 1

        if (
            quirk.config.invert_before_trust
            and action.type in (ActionType.MOVE, ActionType.MOVE_TO)
            and action.direction
        ):
            action.direction = invert_direction(action.direction)
            action.dialogue = DISTRUST_INVERT_LINE
            action.emotion = "annoyed"
            log_deterministic(f"Distrust inverted direction to {action.direction}")

        if self.state.trust_counter >= threshold:
            action.dialogue = f"{action.dialogue} {quirk.config.trust_response or DEFAULT_TRUST_LINE}"

    def _apply_impatient(self, action: CharacterAction, quirk: PersonalityQuirk) -> None:
        if action.type != ActionType.NONE and action.type == self.state.last_action_type:
            action.refuse(quirk.config.refusal_response or IMPATIENT_LINE, "annoyed")
