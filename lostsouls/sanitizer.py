"""Player input screening that runs before any model call.

Formatting mistakes and personality refusals are free; adversarial input
(prompt injection, profanity) burns a prompt from the player's budget.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from lostsouls.schemas import CharacterProfile, PersonalityQuirkType

INJECTION_PHRASES = (
    "ignore previous",
    "ignore above",
    "ignore all",
    "you are now",
    "system:",
    "system prompt",
    "forget everything",
    "act as",
    "repeat your instructions",
    "what are your rules",
    "reveal your prompt",
    "new instructions",
    "override",
    "pretend you are",
    "roleplay as",
    "disregard",
    "ignore your instructions",
    "bypass",
)

PROFANITY_WORDS = ("fuck", "shit", "damn", "bitch", "ass hole")

DEFAULT_POLITE_KEYWORDS = ("please", "could you", "would you", "kindly", "if you don't mind")

EMPTY_INPUT_LINE = "Say something to guide the explorer."
TOO_LONG_LINE = "Your spirit energy is too dispersed. Try a shorter message."
INJECTION_LINE = "I don't understand what you mean. Can you just help me get out of here?"
IMPOLITE_LINE = "*looks away, seemingly offended by the lack of manners*"

_PROFANITY_RES = tuple(re.compile(rf"\b{re.escape(word)}\b") for word in PROFANITY_WORDS)


@dataclass(frozen=True)
class SanitizeResult:
    passed: bool
    rejection_dialogue: str = ""
    costs_prompt: bool = False

    @classmethod
    def ok(cls) -> "SanitizeResult":
        return cls(passed=True)

    @classmethod
    def reject(cls, dialogue: str, costs_prompt: bool) -> "SanitizeResult":
        return cls(passed=False, rejection_dialogue=dialogue, costs_prompt=costs_prompt)


def _has_polite_keyword(text_lower: str, keywords: Optional[Sequence[str]]) -> bool:
    return any(keyword.lower() in text_lower for keyword in (keywords or DEFAULT_POLITE_KEYWORDS))


def sanitize(
    text: Optional[str],
    max_length: int,
    profile: Optional[CharacterProfile],
    character_name: str,
) -> SanitizeResult:
    """Screen ``text``; the first failing check decides the outcome."""
    if text is None or not text.strip():
        return SanitizeResult.reject(EMPTY_INPUT_LINE, costs_prompt=False)

    if len(text) > max_length:
        return SanitizeResult.reject(TOO_LONG_LINE, costs_prompt=False)

    lowered = text.lower()

    if any(phrase in lowered for phrase in INJECTION_PHRASES):
        return SanitizeResult.reject(INJECTION_LINE, costs_prompt=True)

    if any(pattern.search(lowered) for pattern in _PROFANITY_RES):
        return SanitizeResult.reject(
            f'{character_name} frowns. "That\'s not very nice. I\'d rather you spoke kindly."',
            costs_prompt=True,
        )

    polite = profile.personality_quirk(PersonalityQuirkType.POLITE) if profile else None
    if polite is not None and not _has_polite_keyword(lowered, polite.config.required_keywords):
        return SanitizeResult.reject(
            polite.config.refusal_response or IMPOLITE_LINE,
            costs_prompt=False,
        )

    return SanitizeResult.ok()
