"""Carries out validated actions against the character, grid and objects.

Every call to ``execute`` ends with exactly one ``ActionCompleted`` event on
the channel. Targets are resolved through the same chain the validator used;
interactions first walk next to the target when it is more than a tile away,
and the "hands full" check is repeated after arriving.
"""

from __future__ import annotations

from typing import Optional

from lostsouls.character import Explorer
from lostsouls.environment.grid import GridModel, GridPosition
from lostsouls.events import ActionCompleted, CharacterResponse, EventChannel
from lostsouls.logging_utils import log_deterministic
from lostsouls.objects import DoorObject, GemObject, GridObject, PedestalObject
from lostsouls.registry import ObjectRegistry
from lostsouls.schemas import (
    PASSIVE_ACTIONS,
    ActionType,
    CharacterAction,
    CharacterProfile,
    DoorState,
)
from lostsouls.targeting import (
    RELATIVE_TURN_WORDS,
    nearest_walkable_neighbor,
    parse_direction,
    resolve_direction,
    resolve_object,
    resolve_target_position,
)

HANDS_FULL_FEEDBACK = "My hands are full! I can't pick that up."
DOOR_USE_FAILED_FEEDBACK = "Hmm, this doesn't seem to work on this door."


class ActionExecutor:
    def __init__(
        self,
        character: Explorer,
        grid: GridModel,
        registry: ObjectRegistry,
        profile: CharacterProfile,
        events: EventChannel,
    ) -> None:
        self.character = character
        self.grid = grid
        self.registry = registry
        self.profile = profile
        self.events = events

    async def execute(self, action: CharacterAction) -> bool:
        """Perform ``action`` and signal completion. Returns whether it had an effect."""
        success = True
        if action.type not in PASSIVE_ACTIONS:
            direction = resolve_direction(action.direction, self.profile.direction_mode, self.character)
            log_deterministic(
                f"Executing {action.type.value} (direction={direction}, steps={action.steps}, "
                f"target={action.target_object_id}, use_on={action.use_on_target_id})"
            )
            if action.type == ActionType.MOVE:
                success = await self._move(direction, action.steps)
            elif action.type == ActionType.MOVE_TO:
                success = await self._move_to(action.target_object_id)
            elif action.type == ActionType.TURN:
                success = self._turn(direction)
            elif action.type == ActionType.PICK_UP:
                success = await self._pick_up(action.target_object_id)
            elif action.type == ActionType.PUT_DOWN:
                success = self._put_down()
            elif action.type == ActionType.USE:
                success = await self._use(action.use_on_target_id or action.target_object_id)
            elif action.type == ActionType.PUSH:
                success = await self._push(direction)
            elif action.type == ActionType.OPEN_CLOSE:
                success = await self._open_close(action.use_on_target_id or action.target_object_id)
        self.events.emit(ActionCompleted(action.type, success))
        return success

    def _feedback(self, dialogue: str, emotion: str) -> None:
        self.events.emit(CharacterResponse(dialogue, emotion))

    async def _walk_next_to(self, target: GridPosition) -> None:
        here = self.character.position
        if here.manhattan(target) <= 1:
            return
        best = nearest_walkable_neighbor(self.grid, target, here)
        if best is not None:
            await self.character.move_to(best)

    async def _move(self, direction: Optional[str], steps: int) -> bool:
        parsed = parse_direction(direction)
        if parsed is None:
            return False
        return await self.character.move_in_direction(parsed, steps if steps > 0 else 1)

    async def _move_to(self, target_name: Optional[str]) -> bool:
        target = resolve_target_position(target_name, self.grid, self.registry, self.profile)
        if target is None:
            return False
        if not self.grid.is_walkable(target):
            target = nearest_walkable_neighbor(self.grid, target, self.character.position) or target
        return await self.character.move_to(target)

    def _turn(self, direction: Optional[str]) -> bool:
        if not direction:
            return False
        lowered = direction.lower()
        if lowered in RELATIVE_TURN_WORDS:
            self.character.turn_relative(lowered)
            return True
        parsed = parse_direction(direction)
        if parsed is None:
            return False
        self.character.turn(parsed)
        return True

    async def _pick_up(self, target_name: Optional[str]) -> bool:
        target = resolve_object(target_name, self.registry, self.profile)
        if target is None or not target.can_pick_up():
            target = self.registry.get_pickable_object_near(self.character.position)
        if target is None:
            return False

        if self.character.position.manhattan(target.position) > 1:
            await self.character.move_to(target.position)

        # Walking takes time; the hands may have been filled meanwhile.
        if self.character.is_holding_object:
            self._feedback(HANDS_FULL_FEEDBACK, "confused")
            return False
        if self.character.position.manhattan(target.position) > 1:
            log_deterministic(f"{target.object_id} is out of reach")
            return False
        return self.character.pick_up(target)

    def _put_down(self) -> bool:
        held = self.character.held_object
        if held is None:
            return False
        if isinstance(held, GemObject):
            for pedestal in self.registry.get_objects_of_type(PedestalObject):
                if pedestal.position.manhattan(self.character.position) <= 1 and held.try_place_on_pedestal(pedestal):
                    self.character.clear_held_object()
                    log_deterministic(f"Placed {held.object_id} on {pedestal.object_id}")
                    return True
        return self.character.put_down() is not None

    def _find_use_target(self, name: Optional[str], held: GridObject) -> Optional[GridObject]:
        target = resolve_object(name, self.registry, self.profile, exclude=held)
        if target is None:
            near = self.registry.get_interactable_object_near(self.character.position)
            target = near if near is not held else None
        if target is None:
            # "use key on door" is by far the most common request.
            target = next(iter(self.registry.get_objects_of_type(DoorObject)), None)
        return target

    async def _use(self, target_name: Optional[str]) -> bool:
        held = self.character.held_object
        if held is None:
            return False
        target = self._find_use_target(target_name, held)
        if target is None:
            return self.character.use_held_object()

        await self._walk_next_to(target.position)
        used = self.character.use_held_object_on(target)
        if not used and isinstance(target, DoorObject):
            self._feedback(DOOR_USE_FAILED_FEEDBACK, "confused")
        return used

    async def _push(self, direction: Optional[str]) -> bool:
        parsed = parse_direction(direction)
        if parsed is None:
            return False
        return await self.character.push_box(parsed)

    async def _open_close(self, target_name: Optional[str]) -> bool:
        door = self.registry.get_object(target_name)
        if not isinstance(door, DoorObject):
            near = self.registry.get_interactable_object_near(self.character.position)
            door = near if isinstance(near, DoorObject) else None
        if door is None:
            return False

        await self._walk_next_to(door.position)
        # Toggle only; unlocking goes through ``use``.
        if door.state == DoorState.CLOSED:
            return door.open()
        if door.state == DoorState.OPEN:
            return door.close()
        return False
