"""Tile grid with four sub-tile slots per tile.

Positions are ``(x, y)`` with north as +y. Each tile has four slots
(0 front-left, 1 front-right, 2 back-left, 3 back-right) so a character,
a carried-down key and a box can share one tile without overlapping.
Characters prefer slot 0, items prefer slot 3.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from lostsouls.schemas import TileType

SUB_TILE_COUNT = 4
CHARACTER_SLOT = 0
ITEM_SLOT = 3

# Fallback search order for each preferred slot: same row first, then the
# diagonal-most slot last.
_SLOT_SEARCH_ORDER = {
    0: (0, 1, 2, 3),
    1: (1, 0, 3, 2),
    2: (2, 3, 0, 1),
    3: (3, 2, 1, 0),
}


class GridPosition(NamedTuple):
    x: int
    y: int

    def offset(self, dx: int, dy: int) -> "GridPosition":
        return GridPosition(self.x + dx, self.y + dy)

    def manhattan(self, other: "GridPosition") -> int:
        return abs(self.x - other.x) + abs(self.y - other.y)


@dataclass(eq=False)
class Tile:
    """A single grid cell."""

    type: TileType
    position: GridPosition
    is_border_wall: bool = False
    is_open: bool = field(init=False, default=True)
    slots: List[Optional[Any]] = field(default_factory=lambda: [None] * SUB_TILE_COUNT)

    def __post_init__(self) -> None:
        # Doors and exits are built closed; everything else is open.
        self.is_open = self.type not in (TileType.EXIT, TileType.DOOR)

    @property
    def is_walkable(self) -> bool:
        if self.type == TileType.WALL:
            return False
        if self.type in (TileType.EXIT, TileType.DOOR):
            return self.is_open
        return True

    @property
    def is_occupied(self) -> bool:
        """True only when every slot is filled."""
        return all(slot is not None for slot in self.slots)

    @property
    def occupants(self) -> List[Any]:
        return [slot for slot in self.slots if slot is not None]

    def is_sub_tile_occupied(self, index: int) -> bool:
        return 0 <= index < SUB_TILE_COUNT and self.slots[index] is not None

    def get_occupant(self, index: int) -> Optional[Any]:
        if 0 <= index < SUB_TILE_COUNT:
            return self.slots[index]
        return None

    def get_available_sub_tile(self, preferred: int) -> int:
        """Return the first free slot for ``preferred``, or ``preferred`` if all are full."""
        if not self.is_sub_tile_occupied(preferred):
            return preferred
        for index in _SLOT_SEARCH_ORDER.get(preferred, _SLOT_SEARCH_ORDER[0]):
            if not self.is_sub_tile_occupied(index):
                return index
        return preferred

    def set_occupant(self, occupant: Any, preferred: int = CHARACTER_SLOT) -> int:
        index = self.get_available_sub_tile(preferred)
        self.slots[index] = occupant
        return index

    def set_item(self, item: Any, preferred: int = ITEM_SLOT) -> int:
        return self.set_occupant(item, preferred)

    def clear_occupant(self, occupant: Any) -> None:
        """Free whichever slot holds ``occupant`` (identity match)."""
        for index, slot in enumerate(self.slots):
            if slot is occupant:
                self.slots[index] = None
                return

    def clear_sub_tile(self, index: int) -> None:
        if 0 <= index < SUB_TILE_COUNT:
            self.slots[index] = None

    def clear_all(self) -> None:
        self.slots = [None] * SUB_TILE_COUNT

    def change_tile_type(self, new_type: TileType) -> None:
        self.type = new_type
        if new_type in (TileType.DOOR, TileType.EXIT):
            self.is_open = False

    def open(self) -> None:
        if self.type in (TileType.EXIT, TileType.DOOR):
            self.is_open = True

    def close(self) -> None:
        if self.type in (TileType.EXIT, TileType.DOOR):
            self.is_open = False


# Characters used by ``GridModel.from_rows``.
_ROW_LEGEND = {
    ".": TileType.FLOOR,
    "#": TileType.WALL,
    "E": TileType.EXIT,
    "D": TileType.DOOR,
    "P": TileType.PRESSURE_PLATE,
    "O": TileType.PEDESTAL,
}


@dataclass
class GridModel:
    """Rectangular tile registry for one level."""

    width: int
    height: int
    tiles: Dict[GridPosition, Tile] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.tiles:
            for y in range(self.height):
                for x in range(self.width):
                    pos = GridPosition(x, y)
                    self.tiles[pos] = Tile(TileType.FLOOR, pos)

    @classmethod
    def from_rows(cls, rows: List[str]) -> "GridModel":
        """Build a grid from a text map, rows listed north to south.

        Legend: ``.`` floor, ``#`` wall, ``E`` exit, ``D`` door,
        ``P`` pressure plate, ``O`` pedestal.
        """
        height = len(rows)
        width = max((len(row) for row in rows), default=0)
        grid = cls(width, height)
        for row_index, row in enumerate(rows):
            y = height - 1 - row_index
            for x, char in enumerate(row):
                grid.set_tile_type(GridPosition(x, y), _ROW_LEGEND.get(char, TileType.FLOOR))
        return grid

    def set_tile_type(self, pos: GridPosition, tile_type: TileType) -> None:
        pos = GridPosition(*pos)
        border = pos.x in (0, self.width - 1) or pos.y in (0, self.height - 1)
        self.tiles[pos] = Tile(tile_type, pos, is_border_wall=border and tile_type == TileType.WALL)

    def is_in_bounds(self, pos: Iterable[int]) -> bool:
        x, y = pos
        return 0 <= x < self.width and 0 <= y < self.height

    def get_tile(self, pos: Iterable[int]) -> Optional[Tile]:
        x, y = pos
        return self.tiles.get(GridPosition(x, y))

    def is_walkable(self, pos: Iterable[int]) -> bool:
        tile = self.get_tile(pos)
        return tile is not None and tile.is_walkable

    def get_all_neighbors(self, pos: Iterable[int]) -> List[GridPosition]:
        """In-bounds 4-neighbours in up, down, left, right order."""
        x, y = pos
        candidates = [
            GridPosition(x, y + 1),
            GridPosition(x, y - 1),
            GridPosition(x - 1, y),
            GridPosition(x + 1, y),
        ]
        return [candidate for candidate in candidates if self.is_in_bounds(candidate)]

    def get_walkable_neighbors(self, pos: Iterable[int]) -> List[GridPosition]:
        return [n for n in self.get_all_neighbors(pos) if self.is_walkable(n)]

    def get_tiles_of_type(self, tile_type: TileType) -> List[Tile]:
        return [tile for tile in self.tiles.values() if tile.type == tile_type]

    def get_exit_tile(self) -> Optional[Tile]:
        exits = self.get_tiles_of_type(TileType.EXIT)
        return exits[0] if exits else None

    def open_exits(self) -> None:
        for tile in self.get_tiles_of_type(TileType.EXIT):
            tile.open()

    def close_exits(self) -> None:
        for tile in self.get_tiles_of_type(TileType.EXIT):
            tile.close()

    def set_occupant(self, pos: Iterable[int], occupant: Any, preferred: int = CHARACTER_SLOT) -> int:
        tile = self.get_tile(pos)
        return tile.set_occupant(occupant, preferred) if tile else preferred

    def set_item(self, pos: Iterable[int], item: Any, preferred: int = ITEM_SLOT) -> int:
        tile = self.get_tile(pos)
        return tile.set_item(item, preferred) if tile else preferred

    def clear_occupant(self, pos: Iterable[int], occupant: Any) -> None:
        tile = self.get_tile(pos)
        if tile is not None:
            tile.clear_occupant(occupant)
