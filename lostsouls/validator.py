"""Legality checks for a single action against the live grid and objects.

Each check leaves the action alone, fills in resolved fields (target ids),
or downgrades it to ``NONE`` with a line explaining the refusal appended to
the character's dialogue. Nothing here raises for bad model output.
"""

from __future__ import annotations

from typing import Optional

from lostsouls.character import Explorer
from lostsouls.environment.grid import GridModel, GridPosition
from lostsouls.environment.pathfinding import find_path
from lostsouls.logging_utils import log_deterministic
from lostsouls.objects import DoorObject, GridObject, KeyObject
from lostsouls.registry import ObjectRegistry
from lostsouls.schemas import ActionType, CharacterAction, CharacterProfile, ComprehensionLevel
from lostsouls.targeting import (
    approach_position,
    parse_direction,
    resolve_object,
    resolve_target_position,
)

NEEDS_DIRECTIONS = (
    " I don't know how to get there on my own. "
    "Tell me which way to go: up, down, left, or right."
)
UNKNOWN_DIRECTION = " I don't know which direction that is."
BLOCKED_MOVE = " I can't go that way, there's something blocking me."
UNKNOWN_TARGET = " I can't find what you're referring to."
NO_ROUTE = " I can't find a way to get there."
TOO_FAR = " That's too far away. I'd have to be right next to it."
HANDS_FULL = " My hands are full already!"
NOTHING_TO_PICK_UP = " I don't see anything I can pick up nearby."
NOT_HOLDING = " I'm not holding anything."
NOTHING_TO_USE = " I'm not holding anything to use."
NO_USE_TARGET = " I don't see anything nearby to use this on."
NOTHING_TO_PUSH = " There's nothing here I can push."
PUSH_WHICH_WAY = " Push it which way?"
PUSH_BLOCKED = " I can't push it that way, something's blocking it."
NO_DOOR = " I don't see a door nearby."
DOOR_LOCKED = " It's locked. I need something to unlock it."


class ActionValidator:
    """Validates actions for one character on one level."""

    def __init__(
        self,
        character: Explorer,
        grid: GridModel,
        registry: ObjectRegistry,
        profile: CharacterProfile,
    ) -> None:
        self.character = character
        self.grid = grid
        self.registry = registry
        self.profile = profile

    @property
    def is_simple(self) -> bool:
        return self.profile.comprehension == ComprehensionLevel.SIMPLE

    def validate(self, action: CharacterAction) -> CharacterAction:
        if action.type in (ActionType.NONE, ActionType.WAIT):
            return action

        if self.is_simple and action.type == ActionType.MOVE_TO:
            action.reject(NEEDS_DIRECTIONS, "confused")
            return action

        handler = {
            ActionType.MOVE: self._validate_move,
            ActionType.MOVE_TO: self._validate_move_to,
            ActionType.PICK_UP: self._validate_pick_up,
            ActionType.PUT_DOWN: self._validate_put_down,
            ActionType.USE: self._validate_use,
            ActionType.PUSH: self._validate_push,
            ActionType.OPEN_CLOSE: self._validate_open_close,
        }.get(action.type)
        if handler is not None:
            handler(action)
        if action.type == ActionType.NONE:
            log_deterministic(f"Validator rejected action:{action.dialogue}")
        return action

    # Reach ------------------------------------------------------------------

    def _can_reach(self, action: CharacterAction, target: GridPosition) -> bool:
        """Simple characters must already be adjacent; others need a route."""
        here = self.character.position
        if here.manhattan(target) <= 1:
            return True
        if self.is_simple:
            action.reject(TOO_FAR)
            return False
        goal = approach_position(self.grid, target, here)
        if goal is None or not find_path(self.grid, here, goal, ignore_occupants=True):
            action.reject(NO_ROUTE)
            return False
        return True

    # Per-type checks ------------------------------------------------------

    def _validate_move(self, action: CharacterAction) -> None:
        direction = parse_direction(action.direction)
        if direction is None:
            action.reject(UNKNOWN_DIRECTION)
            return
        steps = action.steps if action.steps > 0 else 1
        dx, dy = direction.offset
        check = self.character.position
        for index in range(steps):
            check = check.offset(dx, dy)
            if not self.grid.is_walkable(check):
                if index == 0:
                    action.reject(BLOCKED_MOVE)
                else:
                    action.steps = index
                return

    def _validate_move_to(self, action: CharacterAction) -> None:
        target = resolve_target_position(action.target_object_id, self.grid, self.registry, self.profile)
        if target is None:
            action.reject(UNKNOWN_TARGET)
            return
        here = self.character.position
        goal = approach_position(self.grid, target, here)
        if goal is None or not find_path(self.grid, here, goal, ignore_occupants=True):
            action.reject(NO_ROUTE)

    def _validate_pick_up(self, action: CharacterAction) -> None:
        if self.character.is_holding_object:
            action.reject(HANDS_FULL)
            return
        target = resolve_object(action.target_object_id, self.registry, self.profile)
        if target is None or not target.can_pick_up():
            target = self.registry.get_pickable_object_near(self.character.position)
        if target is None:
            action.reject(NOTHING_TO_PICK_UP)
            return
        if self._can_reach(action, target.position):
            action.target_object_id = target.object_id

    def _validate_put_down(self, action: CharacterAction) -> None:
        if not self.character.is_holding_object:
            action.reject(NOT_HOLDING)

    def _find_use_target(self, name: Optional[str], held: GridObject) -> Optional[GridObject]:
        target = resolve_object(name, self.registry, self.profile, exclude=held)
        if target is None:
            near = self.registry.get_interactable_object_near(self.character.position)
            target = near if near is not held else None
        if target is None and not self.is_simple:
            target = next(iter(self.registry.get_objects_of_type(DoorObject)), None)
        return target

    def _validate_use(self, action: CharacterAction) -> None:
        held = self.character.held_object
        if held is None:
            action.reject(NOTHING_TO_USE)
            return
        target = self._find_use_target(action.use_on_target_id or action.target_object_id, held)
        if target is None:
            action.reject(NO_USE_TARGET)
            return
        if self._can_reach(action, target.position):
            action.use_on_target_id = target.object_id

    def _validate_push(self, action: CharacterAction) -> None:
        box = self.registry.get_pushable_box_on_tile(self.character.position)
        if box is None:
            action.reject(NOTHING_TO_PUSH)
            return
        direction = parse_direction(action.direction)
        if direction is None:
            action.reject(PUSH_WHICH_WAY)
            return
        if not box.can_push_in_direction(*direction.offset):
            action.reject(PUSH_BLOCKED)

    def _find_door(self, name: Optional[str]) -> Optional[DoorObject]:
        named = resolve_object(name, self.registry, self.profile)
        if isinstance(named, DoorObject):
            return named
        near = self.registry.get_interactable_object_near(self.character.position)
        if isinstance(near, DoorObject):
            return near
        if self.is_simple:
            return None
        return next(iter(self.registry.get_objects_of_type(DoorObject)), None)

    def _validate_open_close(self, action: CharacterAction) -> None:
        door = self._find_door(action.use_on_target_id or action.target_object_id)
        if door is None:
            action.reject(NO_DOOR)
            return
        if not self._can_reach(action, door.position):
            return
        action.use_on_target_id = door.object_id
        if door.is_locked:
            if isinstance(self.character.held_object, KeyObject):
                log_deterministic(f"Locked door {door.object_id}: using held key instead")
                action.type = ActionType.USE
                return
            action.reject(DOOR_LOCKED)
