"""Indexed collection of grid objects with spatial queries."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Type, TypeVar, Union

from lostsouls.environment.grid import ITEM_SLOT, GridModel, GridPosition
from lostsouls.logging_utils import log_error
from lostsouls.objects import (
    BoxObject,
    DoorObject,
    GridObject,
    PedestalObject,
    PressurePlateObject,
)
from lostsouls.schemas import Direction, ObjectType

ObjectT = TypeVar("ObjectT", bound=GridObject)


class ObjectRegistry:
    """Owns every ``GridObject`` in the level, keyed by ``object_id``.

    Objects held by the character stay registered but are invisible to the
    spatial queries until they are put down again.
    """

    def __init__(self, grid: GridModel) -> None:
        self.grid = grid
        self._objects: Dict[str, GridObject] = {}
        self._objective_listeners: List[Callable[[], None]] = []

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._objects

    def add(self, obj: GridObject) -> bool:
        """Register ``obj`` and place it on the grid. Duplicate ids are ignored."""
        if not obj.object_id:
            return False
        if obj.object_id in self._objects:
            log_error(f"Duplicate object id '{obj.object_id}' ignored")
            return False

        self._objects[obj.object_id] = obj
        obj.registry = self

        tile = self.grid.get_tile(obj.position)
        if tile is not None:
            if obj.mounted_tile_type is not None:
                if tile.type != obj.mounted_tile_type:
                    tile.change_tile_type(obj.mounted_tile_type)
            elif not obj.is_held:
                tile.set_item(obj, ITEM_SLOT)
        if isinstance(obj, DoorObject):
            obj.apply_state_to_tile()
        return True

    def extend(self, objects: Iterable[GridObject]) -> None:
        for obj in objects:
            self.add(obj)

    def remove(self, obj: GridObject) -> None:
        if self._objects.get(obj.object_id) is not obj:
            return
        del self._objects[obj.object_id]
        self.grid.clear_occupant(obj.position, obj)
        obj.registry = None

    def clear(self) -> None:
        for obj in list(self._objects.values()):
            obj.registry = None
        self._objects.clear()

    # Lookups ----------------------------------------------------------------

    def get_object(self, object_id: Optional[str]) -> Optional[GridObject]:
        if not object_id:
            return None
        return self._objects.get(object_id)

    def all_objects(self) -> List[GridObject]:
        return list(self._objects.values())

    def get_objects_of_type(self, kind: Union[ObjectType, Type[ObjectT]]) -> List[ObjectT]:
        if isinstance(kind, ObjectType):
            return [obj for obj in self._objects.values() if obj.object_type == kind]
        return [obj for obj in self._objects.values() if isinstance(obj, kind)]

    def get_objects_at(self, position: Iterable[int]) -> List[GridObject]:
        position = GridPosition(*position)
        return [
            obj
            for obj in self._objects.values()
            if obj.position == position and not obj.is_held
        ]

    def _search_near(self, position: GridPosition, predicate: Callable[[GridObject], bool]) -> Optional[GridObject]:
        # Own tile first, then up/down/left/right.
        position = GridPosition(*position)
        for candidate in [position] + [position.offset(dx, dy) for dx, dy in ((0, 1), (0, -1), (-1, 0), (1, 0))]:
            for obj in self.get_objects_at(candidate):
                if predicate(obj):
                    return obj
        return None

    def get_pickable_object_near(self, position: Iterable[int]) -> Optional[GridObject]:
        return self._search_near(position, lambda obj: obj.can_pick_up())

    def get_interactable_object_near(self, position: Iterable[int]) -> Optional[GridObject]:
        return self._search_near(position, lambda obj: obj.can_use_item_on() or obj.can_open_close())

    def get_pushable_box_on_tile(self, position: Iterable[int]) -> Optional[BoxObject]:
        for obj in self.get_objects_at(position):
            if isinstance(obj, BoxObject) and obj.can_push():
                return obj
        return None

    def get_pushable_box_in_direction(self, position: Iterable[int], direction: Direction) -> Optional[BoxObject]:
        dx, dy = direction.offset
        return self.get_pushable_box_on_tile(GridPosition(*position).offset(dx, dy))

    def get_pressure_plate_at(self, position: Iterable[int]) -> Optional[PressurePlateObject]:
        for obj in self.get_objects_at(position):
            if isinstance(obj, PressurePlateObject):
                return obj
        return None

    # Objectives -------------------------------------------------------------

    def are_all_doors_open(self) -> bool:
        return all(door.is_open for door in self.get_objects_of_type(DoorObject))

    def are_all_pedestals_activated(self) -> bool:
        return all(p.activated for p in self.get_objects_of_type(PedestalObject))

    def add_objective_listener(self, listener: Callable[[], None]) -> None:
        self._objective_listeners.append(listener)

    def notify_objective_changed(self) -> None:
        for listener in list(self._objective_listeners):
            listener()
