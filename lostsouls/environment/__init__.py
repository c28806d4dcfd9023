"""Grid model and pathfinding for Lost Souls levels."""

from .grid import (
    CHARACTER_SLOT,
    ITEM_SLOT,
    SUB_TILE_COUNT,
    GridModel,
    GridPosition,
    Tile,
)
from .pathfinding import find_path, get_next_step, get_path_distance, path_exists

__all__ = [
    "CHARACTER_SLOT",
    "ITEM_SLOT",
    "SUB_TILE_COUNT",
    "GridModel",
    "GridPosition",
    "Tile",
    "find_path",
    "get_next_step",
    "get_path_distance",
    "path_exists",
]
