"""Turns raw model text into an ordered list of ``CharacterAction``."""

from __future__ import annotations

import re
from typing import List, Optional

from pydantic import ValidationError

from lostsouls.logging_utils import log_error
from lostsouls.schemas import ActionParams, ActionType, CharacterAction, ModelResponse

FALLBACK_DIALOGUE = "I... I'm not sure what to do."
RAW_DIALOGUE_LIMIT = 300

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

_ACTION_ALIASES = {
    "move": ActionType.MOVE,
    "move_to": ActionType.MOVE_TO,
    "turn": ActionType.TURN,
    "look": ActionType.LOOK,
    "examine": ActionType.EXAMINE,
    "pick_up": ActionType.PICK_UP,
    "put_down": ActionType.PUT_DOWN,
    "use": ActionType.USE,
    "push": ActionType.PUSH,
    "open_close": ActionType.OPEN_CLOSE,
    "open": ActionType.OPEN_CLOSE,
    "close": ActionType.OPEN_CLOSE,
    "wait": ActionType.WAIT,
    "none": ActionType.NONE,
}


def parse_action_type(tag: Optional[str]) -> ActionType:
    """Unknown or missing tags become ``NONE``."""
    if not tag:
        return ActionType.NONE
    return _ACTION_ALIASES.get(tag.strip().lower(), ActionType.NONE)


def strip_to_json(text: str) -> str:
    """Pull the JSON object out of fenced or chatty model output."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    first = text.find("{")
    last = text.rfind("}")
    if first >= 0 and last > first:
        return text[first : last + 1].strip()
    return text


def fallback_action(dialogue: Optional[str] = None) -> CharacterAction:
    return CharacterAction(type=ActionType.NONE, dialogue=dialogue or FALLBACK_DIALOGUE, emotion="confused")


def _build_action(tag: Optional[str], params: Optional[ActionParams], dialogue: str, emotion: str) -> CharacterAction:
    params = params or ActionParams()
    return CharacterAction(
        type=parse_action_type(tag),
        direction=params.direction,
        steps=params.steps if params.steps > 0 else 1,
        target_object_id=params.target,
        use_on_target_id=params.use_on,
        dialogue=dialogue,
        emotion=emotion,
    )


def parse_response(raw: Optional[str]) -> List[CharacterAction]:
    """Parse model output; never returns an empty list.

    Only the first action carries the turn's dialogue and emotion. Output that
    cannot be parsed at all becomes a single ``NONE`` action whose dialogue is
    the raw text, so the player always sees a reply.
    """
    if raw is None or not raw.strip():
        return [fallback_action()]

    cleaned = strip_to_json(raw.strip())
    try:
        response = ModelResponse.model_validate_json(cleaned)
    except ValidationError as exc:
        log_error(f"Could not parse model response ({exc.error_count()} issue(s)); using raw text")
        text = raw.strip()
        if len(text) > RAW_DIALOGUE_LIMIT:
            text = text[:RAW_DIALOGUE_LIMIT] + "..."
        return [CharacterAction(type=ActionType.NONE, dialogue=text, emotion="neutral")]

    dialogue = response.dialogue or ""
    emotion = response.emotion or "neutral"

    actions = [
        _build_action(
            item.action,
            item.params,
            dialogue if index == 0 else "",
            emotion if index == 0 else "neutral",
        )
        for index, item in enumerate(response.actions or [])
    ]
    if not actions:
        actions.append(_build_action(response.action, response.params, dialogue, emotion))
    return actions
