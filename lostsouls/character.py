"""Headless explorer character.

Holds the grid position, facing and carried object of the player's
character and performs the physical effects of actions. Movement is
asynchronous: each tile step yields to the event loop (optionally sleeping
``step_delay`` seconds) so a caller can bound an action with a timeout the
same way an animated client would.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional

from lostsouls.environment.grid import CHARACTER_SLOT, GridModel, GridPosition
from lostsouls.environment.pathfinding import find_path
from lostsouls.logging_utils import log_deterministic
from lostsouls.objects import GridObject
from lostsouls.registry import ObjectRegistry
from lostsouls.schemas import Direction, TileType

PositionListener = Callable[[GridPosition], None]


class Explorer:
    """The character the player guides through the room."""

    def __init__(
        self,
        grid: GridModel,
        registry: ObjectRegistry,
        position: GridPosition,
        *,
        facing: Direction = Direction.NORTH,
        name: str = "Explorer",
        step_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.grid = grid
        self.registry = registry
        self.name = name
        self.facing = facing
        self.step_delay = step_delay
        self._sleep = sleep
        self.position = GridPosition(*position)
        self.sub_tile = CHARACTER_SLOT
        self.held_object: Optional[GridObject] = None
        self.is_moving = False
        self.reached_exit_listeners: List[PositionListener] = []
        self.position_listeners: List[PositionListener] = []

        tile = self.grid.get_tile(self.position)
        if tile is not None:
            self.sub_tile = tile.set_occupant(self, CHARACTER_SLOT)

    @property
    def is_holding_object(self) -> bool:
        return self.held_object is not None

    # Position -------------------------------------------------------------

    def set_position(self, position: GridPosition) -> None:
        """Teleport one tile's worth of state: slots, plates and exit checks."""
        position = GridPosition(*position)
        old_tile = self.grid.get_tile(self.position)
        if old_tile is not None:
            old_tile.clear_occupant(self)

        old_position = self.position
        self.position = position
        new_tile = self.grid.get_tile(position)
        if new_tile is not None:
            self.sub_tile = new_tile.set_occupant(self, CHARACTER_SLOT)

        if old_position != position:
            old_plate = self.registry.get_pressure_plate_at(old_position)
            if old_plate is not None:
                old_plate.on_character_exited(self)
            new_plate = self.registry.get_pressure_plate_at(position)
            if new_plate is not None:
                new_plate.on_character_entered(self)

        for listener in list(self.position_listeners):
            listener(position)

        if new_tile is not None and (
            new_tile.type == TileType.EXIT
            or (new_tile.type == TileType.DOOR and new_tile.is_open)
        ):
            for listener in list(self.reached_exit_listeners):
                listener(position)

    async def _walk(self, path: List[GridPosition]) -> None:
        self.is_moving = True
        try:
            for step in path[1:]:
                self.facing = Direction.from_offset(step.x - self.position.x, step.y - self.position.y)
                await self._sleep(self.step_delay)
                self.set_position(step)
        finally:
            self.is_moving = False

    async def move_to(self, target: GridPosition) -> bool:
        """Walk along the A* path to ``target``, respecting occupants."""
        if self.is_moving:
            return False
        path = find_path(self.grid, self.position, target, ignore_occupants=False)
        if not path:
            log_deterministic(f"No path from {tuple(self.position)} to {tuple(target)}")
            return False
        await self._walk(path)
        return True

    async def move_in_direction(self, direction: Direction, steps: int = 1) -> bool:
        """Walk ``steps`` tiles in a straight line; refuses if any tile is blocked."""
        if self.is_moving or steps <= 0:
            return False
        dx, dy = direction.offset
        path = [self.position]
        for _ in range(steps):
            nxt = path[-1].offset(dx, dy)
            if not self.grid.is_walkable(nxt):
                log_deterministic(f"Cannot move to {tuple(nxt)}: not walkable")
                return False
            path.append(nxt)
        self.facing = direction
        await self._walk(path)
        return True

    # Facing ---------------------------------------------------------------

    def turn(self, direction: Direction) -> None:
        self.facing = direction

    def turn_relative(self, relative: str) -> None:
        steps = {"left": -1, "right": 1, "around": 2, "back": 2}.get(relative.lower(), 0)
        self.facing = self.facing.rotate(steps)

    def relative_to_absolute(self, relative: str) -> Direction:
        steps = {"forward": 0, "backward": 2, "back": 2, "left": -1, "right": 1}.get(
            (relative or "").lower(), 0
        )
        return self.facing.rotate(steps)

    # Objects --------------------------------------------------------------

    def pick_up(self, obj: Optional[GridObject]) -> bool:
        if self.is_holding_object:
            log_deterministic("Already holding an object")
            return False
        if obj is None or not obj.can_pick_up():
            return False
        self.held_object = obj
        obj.on_picked_up(self)
        log_deterministic(f"{self.name} picked up {obj.display_name}")
        return True

    def put_down(self) -> Optional[GridObject]:
        obj = self.held_object
        if obj is None:
            return None
        self.held_object = None
        obj.on_put_down(self.position)
        log_deterministic(f"{self.name} put down {obj.display_name} at {tuple(self.position)}")
        return obj

    def clear_held_object(self) -> None:
        self.held_object = None

    def use_held_object_on(self, target: Optional[GridObject]) -> bool:
        if self.held_object is None or target is None:
            return False
        return target.on_item_used(self.held_object, self)

    def use_held_object(self) -> bool:
        return self.use_held_object_on(self.registry.get_interactable_object_near(self.position))

    async def push_box(self, direction: Direction) -> bool:
        """Shove the box sharing this tile one tile in ``direction``."""
        if self.is_moving:
            return False
        box = self.registry.get_pushable_box_on_tile(self.position)
        if box is None:
            log_deterministic("No pushable box on current tile")
            return False
        dx, dy = direction.offset
        if not box.can_push_in_direction(dx, dy):
            log_deterministic(f"Cannot push box {direction.value}: destination blocked")
            return False
        self.facing = direction
        self.is_moving = True
        try:
            await self._sleep(self.step_delay)
            box.on_pushed(self.position.offset(dx, dy))
        finally:
            self.is_moving = False
        return True
