"""Interactable grid objects.

Each variant declares its capabilities (pick-up, push, use-target,
open-close, blocks-movement) and reacts to the character through a small set
of hooks. Objects reach the grid and their peers through the
``ObjectRegistry`` they are registered with.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from lostsouls.environment.grid import ITEM_SLOT, GridModel, GridPosition
from lostsouls.logging_utils import log_deterministic
from lostsouls.schemas import DoorState, ObjectType, TileType

if TYPE_CHECKING:  # pragma: no cover
    from lostsouls.registry import ObjectRegistry


@dataclass(eq=False)
class GridObject:
    """Base for everything the character can see and interact with."""

    object_type: ClassVar[ObjectType]
    # Tile-mounted objects convert the tile they sit on instead of taking a slot.
    mounted_tile_type: ClassVar[Optional[TileType]] = None

    object_id: str
    display_name: str
    position: GridPosition
    color: Optional[str] = None
    size: Optional[str] = None
    shape: Optional[str] = None
    registry: Optional["ObjectRegistry"] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.position = GridPosition(*self.position)

    @property
    def grid(self) -> Optional[GridModel]:
        return self.registry.grid if self.registry else None

    @property
    def is_held(self) -> bool:
        return False

    # Capabilities ---------------------------------------------------------

    def can_pick_up(self) -> bool:
        return False

    def can_push(self) -> bool:
        return False

    def can_use_item_on(self) -> bool:
        return False

    def can_open_close(self) -> bool:
        return False

    def blocks_movement(self) -> bool:
        return False

    # Hooks ------------------------------------------------------------------

    def on_picked_up(self, character: Any) -> None:
        pass

    def on_put_down(self, position: GridPosition) -> None:
        pass

    def on_item_used(self, item: "GridObject", character: Any) -> bool:
        return False

    def on_character_entered(self, character: Any) -> None:
        pass

    def on_character_exited(self, character: Any) -> None:
        pass

    def set_grid_position(self, position: GridPosition) -> None:
        """Move to ``position``, releasing the old slot and claiming an item slot."""
        grid = self.grid
        if grid is not None:
            grid.clear_occupant(self.position, self)
        self.position = GridPosition(*position)
        if grid is not None:
            grid.set_item(self.position, self, ITEM_SLOT)

    def state_label(self) -> str:
        """Short state suffix shown to the model, empty when stateless."""
        return ""

    def describe(self) -> str:
        return f"{self.display_name} ({self.object_type.value})"

    def _notify_objectives(self) -> None:
        if self.registry is not None:
            self.registry.notify_objective_changed()


@dataclass(eq=False)
class KeyObject(GridObject):
    object_type: ClassVar[ObjectType] = ObjectType.KEY

    unlocks_door_id: Optional[str] = None
    is_picked_up: bool = False

    @property
    def is_held(self) -> bool:
        return self.is_picked_up

    def can_pick_up(self) -> bool:
        return not self.is_picked_up

    def on_picked_up(self, character: Any) -> None:
        self.is_picked_up = True
        if self.grid is not None:
            self.grid.clear_occupant(self.position, self)

    def on_put_down(self, position: GridPosition) -> None:
        self.is_picked_up = False
        self.set_grid_position(position)

    def describe(self) -> str:
        text = f"A {self.color or 'plain'} key"
        if self.shape:
            text += f" ({self.shape})"
        return text


@dataclass(eq=False)
class GemObject(GridObject):
    object_type: ClassVar[ObjectType] = ObjectType.GEM

    target_pedestal_id: Optional[str] = None
    is_picked_up: bool = False
    is_on_pedestal: bool = False
    pedestal: Optional["PedestalObject"] = field(default=None, repr=False)

    @property
    def is_held(self) -> bool:
        return self.is_picked_up

    def can_pick_up(self) -> bool:
        return not self.is_picked_up

    def on_picked_up(self, character: Any) -> None:
        if self.pedestal is not None:
            self.pedestal.remove_gem()
        self.is_picked_up = True
        self.is_on_pedestal = False
        if self.grid is not None:
            self.grid.clear_occupant(self.position, self)

    def on_put_down(self, position: GridPosition) -> None:
        self.is_picked_up = False
        self.set_grid_position(position)

    def try_place_on_pedestal(self, pedestal: Optional["PedestalObject"]) -> bool:
        if pedestal is None or not pedestal.accept_gem(self):
            return False
        self.is_on_pedestal = True
        self.is_picked_up = False
        self.pedestal = pedestal
        self.set_grid_position(pedestal.position)
        return True

    def remove_from_pedestal(self) -> None:
        self.is_on_pedestal = False
        self.pedestal = None

    def state_label(self) -> str:
        return "on a pedestal" if self.is_on_pedestal else ""

    def describe(self) -> str:
        parts = [p for p in (self.color, self.size) if p]
        return f"A {' '.join(parts + ['gem'])}"


@dataclass(eq=False)
class BoxObject(GridObject):
    object_type: ClassVar[ObjectType] = ObjectType.BOX

    weight: float = 1.0

    def can_push(self) -> bool:
        return True

    def blocks_movement(self) -> bool:
        return True

    def can_push_in_direction(self, dx: int, dy: int) -> bool:
        """Destination must be walkable and free of movement-blocking objects."""
        target = self.position.offset(dx, dy)
        grid = self.grid
        if grid is None or not grid.is_walkable(target):
            return False
        if self.registry is not None:
            return not any(obj.blocks_movement() for obj in self.registry.get_objects_at(target))
        return True

    def on_pushed(self, new_position: GridPosition) -> None:
        old_plate = self.registry.get_pressure_plate_at(self.position) if self.registry else None
        self.set_grid_position(new_position)
        log_deterministic(f"Box {self.object_id} pushed to {tuple(self.position)}")
        if old_plate is not None:
            old_plate.on_box_removed(self)
        new_plate = self.registry.get_pressure_plate_at(self.position) if self.registry else None
        if new_plate is not None:
            new_plate.on_box_placed(self)

    def describe(self) -> str:
        return f"A {self.size or 'plain'} box (weight: {self.weight:g})"


@dataclass(eq=False)
class DoorObject(GridObject):
    object_type: ClassVar[ObjectType] = ObjectType.DOOR
    mounted_tile_type: ClassVar[Optional[TileType]] = TileType.DOOR

    state: DoorState = DoorState.CLOSED
    required_key_id: Optional[str] = None

    @property
    def is_locked(self) -> bool:
        return self.state == DoorState.LOCKED

    @property
    def is_open(self) -> bool:
        return self.state == DoorState.OPEN

    def can_open_close(self) -> bool:
        return True

    def can_use_item_on(self) -> bool:
        return self.is_locked

    def blocks_movement(self) -> bool:
        return not self.is_open

    def unlock(self, key: "KeyObject") -> bool:
        """Unlock and swing open, only with the key cut for this door."""
        if self.state != DoorState.LOCKED or key.unlocks_door_id != self.object_id:
            return False
        self.state = DoorState.CLOSED
        self.open()
        return True

    def open(self) -> bool:
        if self.state == DoorState.LOCKED:
            return False
        if self.state == DoorState.OPEN:
            return True
        self.state = DoorState.OPEN
        self.apply_state_to_tile()
        self._notify_objectives()
        return True

    def close(self) -> bool:
        if self.state != DoorState.OPEN:
            return False
        self.state = DoorState.CLOSED
        self.apply_state_to_tile()
        self._notify_objectives()
        return True

    def on_item_used(self, item: GridObject, character: Any) -> bool:
        if not isinstance(item, KeyObject) or not self.unlock(item):
            return False
        # The key is consumed.
        character.clear_held_object()
        if self.registry is not None:
            self.registry.remove(item)
        log_deterministic(f"Door {self.object_id} unlocked with {item.object_id}")
        return True

    def apply_state_to_tile(self) -> None:
        tile = self.grid.get_tile(self.position) if self.grid else None
        if tile is None:
            return
        if self.state == DoorState.OPEN:
            tile.open()
        else:
            tile.close()

    def state_label(self) -> str:
        return self.state.value

    def describe(self) -> str:
        return f"A door ({self.state.value})"


@dataclass(eq=False)
class PedestalObject(GridObject):
    object_type: ClassVar[ObjectType] = ObjectType.PEDESTAL

    accepts_gem_id: Optional[str] = None
    activated: bool = False
    placed_gem: Optional[GemObject] = field(default=None, repr=False)

    @property
    def has_gem(self) -> bool:
        return self.placed_gem is not None

    def can_use_item_on(self) -> bool:
        # Any gem may be placed; only the accepted one activates it.
        return True

    def blocks_movement(self) -> bool:
        return True

    def on_item_used(self, item: GridObject, character: Any) -> bool:
        if not isinstance(item, GemObject) or not item.try_place_on_pedestal(self):
            return False
        character.clear_held_object()
        return True

    def accept_gem(self, gem: GemObject) -> bool:
        if self.placed_gem is not None:
            return False
        self.placed_gem = gem
        if self.accepts_gem_id and gem.object_id == self.accepts_gem_id:
            self.activated = True
            log_deterministic(f"Pedestal {self.object_id} activated by {gem.object_id}")
            self._notify_objectives()
        return True

    def remove_gem(self) -> Optional[GemObject]:
        gem = self.placed_gem
        if gem is None:
            return None
        self.placed_gem = None
        was_activated = self.activated
        self.activated = False
        gem.remove_from_pedestal()
        if was_activated:
            self._notify_objectives()
        return gem

    def state_label(self) -> str:
        if self.activated:
            return "activated"
        if self.placed_gem is not None:
            return "holding the wrong gem"
        return "empty"

    def describe(self) -> str:
        if self.activated:
            return f"An activated pedestal (with {self.placed_gem.display_name})"
        if self.placed_gem is not None:
            return f"A pedestal (with wrong gem: {self.placed_gem.display_name})"
        return "An empty pedestal"


@dataclass(eq=False)
class PressurePlateObject(GridObject):
    object_type: ClassVar[ObjectType] = ObjectType.PRESSURE_PLATE
    mounted_tile_type: ClassVar[Optional[TileType]] = TileType.PRESSURE_PLATE

    linked_object_id: Optional[str] = None
    activated: bool = False

    def on_character_entered(self, character: Any) -> None:
        self._set_active(True)

    def on_character_exited(self, character: Any) -> None:
        if not self._has_box():
            self._set_active(False)

    def on_box_placed(self, box: BoxObject) -> None:
        self._set_active(True)

    def on_box_removed(self, box: BoxObject) -> None:
        tile = self.grid.get_tile(self.position) if self.grid else None
        # Slot 0 is where a standing character sits.
        if tile is None or not tile.is_sub_tile_occupied(0):
            self._set_active(False)

    def _has_box(self) -> bool:
        if self.registry is None:
            return False
        return any(isinstance(obj, BoxObject) for obj in self.registry.get_objects_at(self.position))

    def _set_active(self, active: bool) -> None:
        if self.activated == active:
            return
        self.activated = active
        log_deterministic(
            f"Pressure plate {self.object_id} {'pressed' if active else 'released'}"
        )
        linked = self.registry.get_object(self.linked_object_id) if self.registry and self.linked_object_id else None
        if isinstance(linked, DoorObject):
            if active:
                linked.open()
            else:
                linked.close()
        self._notify_objectives()

    def state_label(self) -> str:
        return "pressed" if self.activated else "released"

    def describe(self) -> str:
        return f"A pressure plate ({self.state_label()})"
