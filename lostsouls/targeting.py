"""Direction parsing and target resolution shared by validation and execution.

The validator and executor must resolve a model's free-text ``target`` to
the same object, so both go through ``resolve_object`` /
``resolve_target_position`` here: exact id, then substring match on display
name or id, then the character's own vocabulary mapped back to real names.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional

from lostsouls.environment.grid import GridModel, GridPosition
from lostsouls.objects import GridObject
from lostsouls.registry import ObjectRegistry
from lostsouls.schemas import CharacterProfile, Direction, DirectionMode, TileType

if TYPE_CHECKING:  # pragma: no cover
    from lostsouls.character import Explorer

EXIT_KEYWORDS = ("exit", "doorway", "way out", "leave", "escape", "through")

_DIRECTION_WORDS = {
    "north": Direction.NORTH,
    "up": Direction.NORTH,
    "south": Direction.SOUTH,
    "down": Direction.SOUTH,
    "east": Direction.EAST,
    "right": Direction.EAST,
    "west": Direction.WEST,
    "left": Direction.WEST,
    # Relative words collapse to north/south here; the executor re-resolves
    # them against the character's facing.
    "forward": Direction.NORTH,
    "backward": Direction.SOUTH,
    "back": Direction.SOUTH,
}

_INVERSES = {
    "north": "south",
    "up": "south",
    "south": "north",
    "down": "north",
    "east": "west",
    "west": "east",
    "forward": "backward",
    "backward": "forward",
    "back": "forward",
    "left": "right",
    "right": "left",
}

RELATIVE_TURN_WORDS = ("left", "right", "around", "back")


def parse_direction(text: Optional[str]) -> Optional[Direction]:
    if not text:
        return None
    return _DIRECTION_WORDS.get(text.strip().lower())


def invert_direction(text: Optional[str]) -> Optional[str]:
    """Compass opposite of a direction word; unknown words come back unchanged."""
    if not text:
        return text
    return _INVERSES.get(text.lower(), text)


def resolve_direction(text: Optional[str], mode: DirectionMode, character: "Explorer") -> Optional[str]:
    """Apply the character's direction mode to a raw direction word."""
    if not text:
        return text
    lowered = text.lower()
    if mode == DirectionMode.RELATIVE:
        return character.relative_to_absolute(lowered).value
    if mode == DirectionMode.INVERTED_LEFT_RIGHT:
        if lowered in ("left", "west"):
            return "east"
        if lowered in ("right", "east"):
            return "west"
        return text
    if mode == DirectionMode.INVERTED_NORTH_SOUTH:
        if lowered in ("north", "up"):
            return "south"
        if lowered in ("south", "down"):
            return "north"
        return text
    return text


def reverse_vocabulary_lookup(name: Optional[str], profile: Optional[CharacterProfile]) -> Optional[str]:
    """Map the character's own word back to the real object name."""
    if not name or profile is None:
        return None
    lowered = name.lower()
    for real, own in profile.vocabulary_map.items():
        if own.lower() == lowered:
            return real
    return None


def _mutual_contains(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def fuzzy_find_object(
    name: Optional[str],
    registry: ObjectRegistry,
    profile: Optional[CharacterProfile],
    exclude: Optional[GridObject] = None,
) -> Optional[GridObject]:
    if not name:
        return None
    lowered = name.lower()
    candidates = [obj for obj in registry.all_objects() if obj is not exclude]
    for obj in candidates:
        if _mutual_contains(obj.display_name.lower(), lowered) or _mutual_contains(obj.object_id.lower(), lowered):
            return obj

    real = reverse_vocabulary_lookup(name, profile)
    if real:
        real_lower = real.lower()
        for obj in candidates:
            if _mutual_contains(obj.display_name.lower(), real_lower):
                return obj
    return None


def resolve_object(
    name: Optional[str],
    registry: ObjectRegistry,
    profile: Optional[CharacterProfile],
    exclude: Optional[GridObject] = None,
) -> Optional[GridObject]:
    """Exact id, then fuzzy name, then reverse vocabulary."""
    if not name:
        return None
    obj = registry.get_object(name)
    if obj is not None and obj is not exclude:
        return obj
    return fuzzy_find_object(name, registry, profile, exclude)


def is_exit_reference(name: str, profile: Optional[CharacterProfile]) -> bool:
    lowered = name.lower()
    if any(keyword in lowered for keyword in EXIT_KEYWORDS):
        return True
    real = reverse_vocabulary_lookup(name, profile)
    return bool(real) and "exit" in real.lower()


def resolve_exit_position(grid: GridModel) -> Optional[GridPosition]:
    """Exit tile, else an open door tile, else any door tile."""
    exit_tile = grid.get_exit_tile()
    if exit_tile is not None:
        return exit_tile.position
    doors = grid.get_tiles_of_type(TileType.DOOR)
    for tile in doors:
        if tile.is_open:
            return tile.position
    return doors[0].position if doors else None


def resolve_target_position(
    name: Optional[str],
    grid: GridModel,
    registry: ObjectRegistry,
    profile: Optional[CharacterProfile],
) -> Optional[GridPosition]:
    if not name:
        return None
    if is_exit_reference(name, profile):
        position = resolve_exit_position(grid)
        if position is not None:
            return position
    obj = resolve_object(name, registry, profile)
    return obj.position if obj is not None else None


def nearest_walkable_neighbor(
    grid: GridModel, target: Iterable[int], origin: Iterable[int]
) -> Optional[GridPosition]:
    """Walkable 4-neighbour of ``target`` closest (Manhattan) to ``origin``; first wins ties."""
    origin = GridPosition(*origin)
    best: Optional[GridPosition] = None
    best_distance = 0
    for neighbor in grid.get_walkable_neighbors(target):
        distance = neighbor.manhattan(origin)
        if best is None or distance < best_distance:
            best, best_distance = neighbor, distance
    return best


def approach_position(
    grid: GridModel, target: Iterable[int], origin: Iterable[int]
) -> Optional[GridPosition]:
    """Where to walk to reach ``target``: itself if walkable, else its nearest walkable neighbour."""
    target = GridPosition(*target)
    if grid.is_walkable(target):
        return target
    return nearest_walkable_neighbor(grid, target, origin)
