"""A* search over a ``GridModel``."""

from __future__ import annotations

import heapq
from itertools import count
from typing import Dict, Iterable, List, Optional

from .grid import GridModel, GridPosition


def _heuristic(a: GridPosition, b: GridPosition) -> int:
    return abs(a.x - b.x) + abs(a.y - b.y)


def find_path(
    grid: GridModel,
    start: Iterable[int],
    end: Iterable[int],
    ignore_occupants: bool = False,
) -> List[GridPosition]:
    """Return the path from ``start`` to ``end`` inclusive, or ``[]`` if unreachable.

    Manhattan heuristic, uniform cost 1 per step, neighbours expanded in
    up/down/left/right order. Fully occupied tiles are skipped unless
    ``ignore_occupants`` is set; the destination itself may always be entered.

    Ties on f-score are broken by the lower heuristic (the node closer to the
    goal), then by insertion order into the open set, so repeated searches on
    the same grid always return the same path.
    """
    start = GridPosition(*start)
    end = GridPosition(*end)

    end_tile = grid.get_tile(end)
    if end_tile is None or not end_tile.is_walkable:
        return []

    counter = count()
    g_score: Dict[GridPosition, int] = {start: 0}
    came_from: Dict[GridPosition, GridPosition] = {}
    closed: set[GridPosition] = set()
    # Entries are (f, h, insertion, position); stale entries are skipped on pop.
    open_heap = [(_heuristic(start, end), _heuristic(start, end), next(counter), start)]

    while open_heap:
        _, _, _, current = heapq.heappop(open_heap)
        if current in closed:
            continue
        if current == end:
            return _reconstruct(came_from, current)
        closed.add(current)

        for neighbor in _neighbors(current):
            if neighbor in closed:
                continue
            tile = grid.get_tile(neighbor)
            if tile is None or not tile.is_walkable:
                continue
            if not ignore_occupants and tile.is_occupied and neighbor != end:
                continue

            tentative = g_score[current] + 1
            if tentative >= g_score.get(neighbor, float("inf")):
                continue
            came_from[neighbor] = current
            g_score[neighbor] = tentative
            h = _heuristic(neighbor, end)
            heapq.heappush(open_heap, (tentative + h, h, next(counter), neighbor))

    return []


def path_exists(grid: GridModel, start: Iterable[int], end: Iterable[int]) -> bool:
    return bool(find_path(grid, start, end))


def get_path_distance(grid: GridModel, start: Iterable[int], end: Iterable[int]) -> int:
    """Number of steps along the path, or -1 when there is none."""
    path = find_path(grid, start, end)
    return len(path) - 1 if path else -1


def get_next_step(grid: GridModel, start: Iterable[int], end: Iterable[int]) -> Optional[GridPosition]:
    path = find_path(grid, start, end)
    return path[1] if len(path) > 1 else None


def _neighbors(pos: GridPosition) -> List[GridPosition]:
    return [
        GridPosition(pos.x, pos.y + 1),
        GridPosition(pos.x, pos.y - 1),
        GridPosition(pos.x - 1, pos.y),
        GridPosition(pos.x + 1, pos.y),
    ]


def _reconstruct(came_from: Dict[GridPosition, GridPosition], current: GridPosition) -> List[GridPosition]:
    path = [current]
    while current in came_from:
        current = came_from[current]
        path.append(current)
    path.reverse()
    return path
