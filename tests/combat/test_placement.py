"""Unit tests for src/combat/placement.py"""

import random

import pytest

from src.combat.board import Board, is_straight_line
from src.combat.placement import Placement, random_board, validate_roster
from src.combat.units import MAX_UNITS, UNITS_BY_NAME, UnitType
from src.core.exceptions import InvalidBoardError, PlacementError
from src.core.shared_types import Orientation, PlacementWarning

# Layout that never collides: one unit per row, starting in column 1
ROW_LAYOUT = [
    ("Tank Convoy", "A1"),
    ("Recon Vehicle", "B1"),
    ("Fighter Jet", "C1"),
    ("Missile Launcher", "D1"),
    ("Supply Truck", "E1"),
    ("Drone", "F1"),
]


@pytest.fixture
def full_placement() -> Placement:
    placement = Placement()
    for name, start in ROW_LAYOUT:
        assert placement.deploy(name, start, Orientation.HORIZONTAL) is None
    return placement


def test_deploy_and_complete(full_placement: Placement) -> None:
    assert full_placement.is_complete
    assert full_placement.remaining_units() == []
    assert len(full_placement.pieces()) == MAX_UNITS
    assert {"name": "Drone", "coordinates": ["F1"]} in full_placement.pieces()


def test_cap_reached_before_anything_else(full_placement: Placement) -> None:
    """Seventh unit: refused because the cap is hit, even though the name would also be a duplicate."""
    assert full_placement.deploy("Drone", "I9", Orientation.HORIZONTAL) == PlacementWarning.CAP_REACHED


@pytest.mark.parametrize(
    "unit_name, start, orientation, warning",
    [
        (None, "A1", Orientation.HORIZONTAL, PlacementWarning.UNKNOWN_UNIT),
        ("Battleship", "A1", Orientation.HORIZONTAL, PlacementWarning.UNKNOWN_UNIT),
        ("Drone", "A1", "diagonal", PlacementWarning.INVALID_ORIENTATION),
        ("Missile Launcher", "A6", Orientation.HORIZONTAL, PlacementWarning.INVALID_PLACEMENT),
        ("Missile Launcher", "F1", Orientation.VERTICAL, PlacementWarning.INVALID_PLACEMENT),
        ("Drone", "Z1", Orientation.HORIZONTAL, PlacementWarning.INVALID_PLACEMENT),
    ],
)
def test_deploy_refusals(
    unit_name: str | None, start: str, orientation: str, warning: PlacementWarning
) -> None:
    placement = Placement()
    assert placement.deploy(unit_name, start, orientation) == warning
    assert placement.placed == []
    assert placement.board == Board.empty()


def test_duplicate_and_overlap() -> None:
    placement = Placement()
    assert placement.deploy("Recon Vehicle", "B2", Orientation.HORIZONTAL) is None
    assert placement.deploy("Recon Vehicle", "E5", Orientation.HORIZONTAL) == PlacementWarning.DUPLICATE_UNIT
    assert placement.deploy("Tank Convoy", "A3", Orientation.VERTICAL) == PlacementWarning.INVALID_PLACEMENT
    assert [record.unit for record in placement.placed] == ["Recon Vehicle"]


def test_toggle_picks_unit_back_up() -> None:
    placement = Placement()
    assert placement.toggle("B2", "Recon Vehicle", Orientation.HORIZONTAL) is None
    assert placement.board.cells["B3"].occupant == "Recon Vehicle"
    # clicking any occupied cell removes the whole unit
    assert placement.toggle("B3", "Drone", Orientation.HORIZONTAL) is None
    assert placement.placed == []
    assert placement.board.cells["B2"].occupant is None


def test_remove_unknown_unit() -> None:
    assert Placement().remove("Drone") is False


def test_lock_requires_full_roster() -> None:
    placement = Placement()
    placement.deploy("Drone", "A1", Orientation.HORIZONTAL)
    with pytest.raises(PlacementError):
        placement.lock()
    assert not placement.locked


def test_lock_returns_independent_board(full_placement: Placement) -> None:
    board = full_placement.lock()
    assert full_placement.locked
    board.cells["A1"].hit = True
    assert full_placement.board.cells["A1"].hit is False
    assert full_placement.toggle("A1", None, Orientation.HORIZONTAL) == PlacementWarning.LOCKED
    assert full_placement.deploy("Drone", "I9", Orientation.HORIZONTAL) == PlacementWarning.LOCKED
    assert full_placement.remove("Drone") is False
    with pytest.raises(PlacementError):
        full_placement.randomize()


def test_reset(full_placement: Placement) -> None:
    full_placement.lock()
    full_placement.reset()
    assert full_placement.placed == []
    assert not full_placement.locked
    assert full_placement.board == Board.empty()


@pytest.mark.parametrize("seed", range(20))
def test_randomize_always_produces_a_legal_layout(seed: int) -> None:
    placement = Placement()
    placement.deploy("Drone", "E5", Orientation.HORIZONTAL)
    placement.randomize(random.Random(seed))

    assert placement.is_complete
    occupied = [coord for coord, cell in placement.board.cells.items() if cell.occupant]
    assert len(occupied) == 17
    for unit in placement.board.units:
        assert unit.size == UNITS_BY_NAME[unit.name].size
        assert is_straight_line(unit.coordinates)
    validate_roster(placement.board)


def test_randomize_is_reproducible() -> None:
    first = random_board(random.Random(7))
    second = random_board(random.Random(7))
    assert first == second


# --- ROSTER VALIDATION ---
def test_validate_roster_accepts_fixed_board(fixed_board: Board) -> None:
    validate_roster(fixed_board)


def test_validate_roster_rejects_missing_unit(fixed_board: Board) -> None:
    fixed_board.remove_unit("Drone")
    with pytest.raises(InvalidBoardError):
        validate_roster(fixed_board)


def test_validate_roster_rejects_hits(fixed_board: Board) -> None:
    fixed_board.cells["I9"].hit = True
    with pytest.raises(InvalidBoardError):
        validate_roster(fixed_board)


def test_validate_roster_rejects_wrong_size(fixed_board: Board) -> None:
    fixed_board.remove_unit("Tank Convoy")
    fixed_board.place(UnitType("Tank Convoy", 2), ["I1", "I2"])
    with pytest.raises(InvalidBoardError):
        validate_roster(fixed_board)
