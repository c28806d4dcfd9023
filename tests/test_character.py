"""Tests for the headless explorer."""

import pytest

from lostsouls.character import Explorer
from lostsouls.environment import CHARACTER_SLOT, GridModel, GridPosition
from lostsouls.objects import DoorObject, KeyObject
from lostsouls.registry import ObjectRegistry
from lostsouls.schemas import Direction, DoorState


def _explorer(rows, position, **kwargs):
    grid = GridModel.from_rows(rows)
    registry = ObjectRegistry(grid)
    return grid, registry, Explorer(grid, registry, position, **kwargs)


@pytest.mark.asyncio
async def test_move_in_direction_updates_slots_and_facing():
    grid, _, explorer = _explorer(["...", "...", "..."], (0, 0))

    assert await explorer.move_in_direction(Direction.NORTH, 2) is True

    assert explorer.position == GridPosition(0, 2)
    assert explorer.facing == Direction.NORTH
    assert grid.get_tile((0, 0)).occupants == []
    assert grid.get_tile((0, 2)).get_occupant(CHARACTER_SLOT) is explorer


@pytest.mark.asyncio
async def test_blocked_straight_move_does_not_move_at_all():
    _, _, explorer = _explorer(["...", "#..", "..."], (0, 0))

    assert await explorer.move_in_direction(Direction.NORTH, 2) is False
    assert explorer.position == GridPosition(0, 0)


@pytest.mark.asyncio
async def test_move_to_follows_path_and_reports_each_step():
    _, _, explorer = _explorer(["...", ".#.", "..."], (0, 0))
    visited = []
    explorer.position_listeners.append(visited.append)

    assert await explorer.move_to(GridPosition(2, 2)) is True

    assert explorer.position == GridPosition(2, 2)
    assert len(visited) == 4
    assert visited[-1] == GridPosition(2, 2)


@pytest.mark.asyncio
async def test_reaching_open_exit_or_open_door_notifies():
    grid, registry, explorer = _explorer([".E.", "...", "..."], (1, 1))
    reached = []
    explorer.reached_exit_listeners.append(reached.append)

    assert await explorer.move_in_direction(Direction.NORTH) is False
    grid.open_exits()
    assert await explorer.move_in_direction(Direction.NORTH) is True
    assert reached == [GridPosition(1, 2)]

    door = DoorObject("door", "Door", (0, 1), state=DoorState.OPEN)
    registry.add(door)
    await explorer.move_to(GridPosition(0, 1))
    assert reached[-1] == GridPosition(0, 1)


def test_relative_turns_rotate_clockwise():
    _, _, explorer = _explorer(["..."], (0, 0), facing=Direction.NORTH)

    explorer.turn_relative("right")
    assert explorer.facing == Direction.EAST
    explorer.turn_relative("around")
    assert explorer.facing == Direction.WEST
    explorer.turn_relative("left")
    assert explorer.facing == Direction.SOUTH

    assert explorer.relative_to_absolute("forward") == Direction.SOUTH
    assert explorer.relative_to_absolute("left") == Direction.EAST
    assert explorer.relative_to_absolute("back") == Direction.NORTH


def test_hands_hold_one_thing():
    grid, registry, explorer = _explorer(["..."], (0, 0))
    a = KeyObject("a", "Key A", (0, 0))
    b = KeyObject("b", "Key B", (1, 0))
    registry.extend([a, b])

    assert explorer.pick_up(a) is True
    assert explorer.pick_up(b) is False
    assert explorer.is_holding_object
    assert explorer.put_down() is a
    assert explorer.put_down() is None
