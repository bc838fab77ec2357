"""Unit tests for src/combat/attack.py"""

from src.combat.attack import AttackResult, resolve_attack
from src.combat.board import Board
from src.combat.units import UNITS_BY_NAME


def test_miss_marks_the_cell(fixed_board: Board) -> None:
    result = resolve_attack(fixed_board, "I9")
    assert result == AttackResult("I9")
    assert fixed_board.cells["I9"].hit


def test_hit_without_destruction(fixed_board: Board) -> None:
    result = resolve_attack(fixed_board, "D4")
    assert result.hit
    assert result.destroyed_unit is None
    assert not result.victory


def test_missile_launcher_destroyed_on_last_cell(fixed_board: Board) -> None:
    """D1-D5: the fifth hit reports the destruction, not before."""
    results = [resolve_attack(fixed_board, coord) for coord in ["D1", "D2", "D3", "D4", "D5"]]
    assert [result.destroyed_unit for result in results] == [None] * 4 + ["Missile Launcher"]
    assert not any(result.victory for result in results)


def test_drone_is_last_unit_standing(fixed_board: Board) -> None:
    """Everything but the drone is destroyed; hitting the drone wins."""
    for unit in fixed_board.units:
        if unit.name == "Drone":
            continue
        for coord in unit.coordinates:
            assert not resolve_attack(fixed_board, coord).victory

    result = resolve_attack(fixed_board, "F1")
    assert result.hit
    assert result.destroyed_unit == "Drone"
    assert result.victory


def test_single_drone_board() -> None:
    board = Board.empty()
    board.place(UNITS_BY_NAME["Drone"], ["E5"])
    result = resolve_attack(board, "E5")
    assert result.to_payload() == {
        "coordinate": "E5",
        "hit": True,
        "destroyedUnit": "Drone",
        "victory": True,
    }


def test_repeated_shot_changes_nothing(fixed_board: Board) -> None:
    resolve_attack(fixed_board, "B1")
    before = fixed_board.to_dict()
    result = resolve_attack(fixed_board, "B1")
    assert result.already_targeted
    assert not result.hit
    assert result.to_payload()["alreadyTargeted"] is True
    assert fixed_board.to_dict() == before


def test_invalid_coordinate_is_a_miss(fixed_board: Board) -> None:
    before = fixed_board.to_dict()
    assert resolve_attack(fixed_board, "Z9") == AttackResult("Z9")
    assert fixed_board.to_dict() == before


def test_empty_board_never_reports_victory() -> None:
    board = Board.empty()
    assert not resolve_attack(board, "A1").victory


def test_supply_truck_reported_on_third_hit() -> None:
    board = Board.empty()
    board.place(UNITS_BY_NAME["Supply Truck"], ["D4", "D5", "D6"])
    board.place(UNITS_BY_NAME["Drone"], ["A1"])

    results = [resolve_attack(board, coord) for coord in ["D4", "D5", "D6"]]
    assert all(result.hit for result in results)
    assert [result.destroyed_unit for result in results] == [None, None, "Supply Truck"]
    assert not any(result.victory for result in results)
    assert board.find_unit("Supply Truck").coordinates == ["D4", "D5", "D6"]
