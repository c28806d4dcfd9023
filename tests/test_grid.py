"""Tests for tiles, sub-tile slots and the grid model."""

from lostsouls.environment import CHARACTER_SLOT, ITEM_SLOT, GridModel, GridPosition, Tile
from lostsouls.schemas import TileType


def test_tile_slots_fill_in_search_order():
    tile = Tile(TileType.FLOOR, GridPosition(0, 0))

    assert tile.set_occupant("explorer") == CHARACTER_SLOT
    assert tile.set_item("key") == ITEM_SLOT
    # Preferred slot 0 is taken; same row comes next.
    assert tile.set_occupant("box") == 1
    assert tile.is_occupied is False
    assert tile.set_occupant("gem") == 2
    assert tile.is_occupied is True
    assert len(tile.occupants) == 4


def test_full_tile_never_exceeds_four_occupants():
    tile = Tile(TileType.FLOOR, GridPosition(0, 0))
    for name in ("a", "b", "c", "d", "e"):
        tile.set_occupant(name)

    assert len(tile.occupants) == 4
    # The overflowing occupant overwrote the preferred slot.
    assert tile.get_occupant(CHARACTER_SLOT) == "e"


def test_clear_occupant_matches_identity():
    tile = Tile(TileType.FLOOR, GridPosition(0, 0))
    first, second = ["same"], ["same"]
    tile.set_occupant(first)
    tile.set_occupant(second)

    tile.clear_occupant(second)

    assert tile.get_occupant(0) is first
    assert tile.is_sub_tile_occupied(1) is False


def test_clear_sub_tile_and_clear_all():
    tile = Tile(TileType.FLOOR, GridPosition(0, 0))
    tile.set_occupant("a")
    tile.set_item("b")

    tile.clear_sub_tile(ITEM_SLOT)
    assert tile.occupants == ["a"]
    tile.clear_sub_tile(9)  # out of range is ignored
    tile.clear_all()
    assert tile.occupants == []


def test_doors_and_exits_start_closed_and_toggle():
    exit_tile = Tile(TileType.EXIT, GridPosition(1, 1))
    floor = Tile(TileType.FLOOR, GridPosition(0, 0))

    assert exit_tile.is_walkable is False
    exit_tile.open()
    assert exit_tile.is_walkable is True
    exit_tile.close()
    assert exit_tile.is_walkable is False

    floor.close()
    assert floor.is_walkable is True


def test_change_tile_type_closes_doors():
    tile = Tile(TileType.FLOOR, GridPosition(2, 2))
    tile.change_tile_type(TileType.DOOR)

    assert tile.type == TileType.DOOR
    assert tile.is_open is False
    assert tile.is_walkable is False


def test_walls_pedestals_and_plates():
    assert Tile(TileType.WALL, GridPosition(0, 0)).is_walkable is False
    assert Tile(TileType.PEDESTAL, GridPosition(0, 0)).is_walkable is True
    assert Tile(TileType.PRESSURE_PLATE, GridPosition(0, 0)).is_walkable is True


def test_from_rows_puts_north_at_the_top():
    grid = GridModel.from_rows(
        [
            "#E#",
            "#.#",
            "###",
        ]
    )

    assert grid.width == 3 and grid.height == 3
    assert grid.get_tile((1, 2)).type == TileType.EXIT
    assert grid.get_tile((1, 1)).type == TileType.FLOOR
    assert grid.get_tile((0, 0)).is_border_wall is True
    assert grid.get_exit_tile().position == GridPosition(1, 2)


def test_bounds_and_neighbors():
    grid = GridModel(3, 3)

    assert grid.is_in_bounds((2, 2)) is True
    assert grid.is_in_bounds((3, 0)) is False
    assert grid.get_tile((5, 5)) is None
    assert grid.is_walkable((-1, 0)) is False
    assert grid.get_all_neighbors((0, 0)) == [GridPosition(0, 1), GridPosition(1, 0)]
    assert grid.get_all_neighbors((1, 1)) == [
        GridPosition(1, 2),
        GridPosition(1, 0),
        GridPosition(0, 1),
        GridPosition(2, 1),
    ]


def test_open_and_close_exits():
    grid = GridModel.from_rows(["E..", "...", "..E"])
    assert all(not tile.is_open for tile in grid.get_tiles_of_type(TileType.EXIT))

    grid.open_exits()
    assert all(tile.is_walkable for tile in grid.get_tiles_of_type(TileType.EXIT))

    grid.close_exits()
    assert not any(tile.is_walkable for tile in grid.get_tiles_of_type(TileType.EXIT))
