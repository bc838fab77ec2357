"""
Setup phase: building a complete, legal layout of the roster on a placement board.

Refusals a player can trigger by clicking around (cap reached, duplicate unit, off-grid, ...) are returned as
`PlacementWarning` values so the caller can show them. Only broken invariants raise.
"""

import random
from dataclasses import dataclass, field
from typing import Optional

from src.combat.board import Board, is_straight_line
from src.combat.coordinates import COLUMNS, ROWS, Coordinate, to_coordinate
from src.combat.units import AVAILABLE_UNITS, MAX_UNITS, UNITS_BY_NAME, unit_type
from src.core.exceptions import InvalidBoardError, PlacementError
from src.core.shared_types import Orientation, PlacementWarning

ATTEMPTS_PER_UNIT = 200
MAX_LAYOUT_ATTEMPTS = 50


@dataclass
class PlacementRecord:
    unit: str
    coordinates: list[Coordinate]


@dataclass
class Placement:
    board: Board = field(default_factory=Board.empty)
    placed: list[PlacementRecord] = field(default_factory=list)
    locked: bool = False

    @property
    def is_complete(self) -> bool:
        """Exactly one of each roster unit on the board."""
        names = {record.unit for record in self.placed}
        return len(self.placed) == MAX_UNITS and names == set(UNITS_BY_NAME)

    def remaining_units(self) -> list[str]:
        placed = {record.unit for record in self.placed}
        return [unit.name for unit in AVAILABLE_UNITS if unit.name not in placed]

    def deploy(
        self, unit_name: Optional[str], start: Coordinate, orientation: str
    ) -> Optional[PlacementWarning]:
        """Try to put a roster unit down. Returns None on success, otherwise the reason it was refused."""
        if self.locked:
            return PlacementWarning.LOCKED
        if len(self.placed) >= MAX_UNITS:
            return PlacementWarning.CAP_REACHED
        unit = unit_type(unit_name) if unit_name else None
        if unit is None:
            return PlacementWarning.UNKNOWN_UNIT
        if any(record.unit == unit.name for record in self.placed):
            return PlacementWarning.DUPLICATE_UNIT
        if orientation not in tuple(Orientation):
            return PlacementWarning.INVALID_ORIENTATION

        coordinates = self.board.can_place(unit, start, orientation)
        if not coordinates:
            return PlacementWarning.INVALID_PLACEMENT
        self.board.place(unit, coordinates)
        self.placed.append(PlacementRecord(unit.name, coordinates))
        return None

    def remove(self, unit_name: str) -> bool:
        if self.locked:
            return False
        removed = self.board.remove_unit(unit_name)
        if removed is None:
            return False
        self.placed = [record for record in self.placed if record.unit != unit_name]
        return True

    def toggle(
        self, coordinate: Coordinate, unit_name: Optional[str], orientation: str
    ) -> Optional[PlacementWarning]:
        """Click on the placement grid: an occupied cell picks its unit back up, an empty one deploys the selection."""
        if self.locked:
            return PlacementWarning.LOCKED
        cell = self.board.cell(coordinate)
        if cell is not None and cell.occupant is not None:
            self.remove(cell.occupant)
            return None
        return self.deploy(unit_name, coordinate, orientation)

    def reset(self) -> None:
        self.board = Board.empty()
        self.placed = []
        self.locked = False

    def randomize(self, rng: Optional[random.Random] = None) -> None:
        """
        Replace the current layout with a random complete one.

        Each unit gets ATTEMPTS_PER_UNIT random tries. If one runs out, the whole layout is thrown away and retried,
        so a partial layout is never left behind.
        """
        if self.locked:
            raise PlacementError("Cannot randomize a locked deployment.")
        rng = rng or random.Random()
        for _ in range(MAX_LAYOUT_ATTEMPTS):
            self.reset()
            if self._try_random_layout(rng):
                return
        self.reset()
        raise PlacementError(f"No random layout found in {MAX_LAYOUT_ATTEMPTS} attempts.")

    def lock(self) -> Board:
        """End of setup. Returns an independent copy of the board to fight with."""
        if not self.is_complete:
            raise PlacementError(
                f"Deploy all {MAX_UNITS} units before locking. Missing: {', '.join(self.remaining_units())}"
            )
        self.locked = True
        return self.board.clone()

    def pieces(self) -> list[dict]:
        return [{"name": record.unit, "coordinates": list(record.coordinates)} for record in self.placed]

    def _try_random_layout(self, rng: random.Random) -> bool:
        units = list(AVAILABLE_UNITS)
        rng.shuffle(units)
        for unit in units:
            for _ in range(ATTEMPTS_PER_UNIT):
                orientation = rng.choice(list(Orientation))
                start = to_coordinate(rng.randrange(len(ROWS)), rng.randrange(len(COLUMNS)))
                if self.deploy(unit.name, start, orientation) is None:
                    break
            else:
                return False
        return True


def random_board(rng: Optional[random.Random] = None) -> Board:
    """Convenience for the scripted opponent and tests: a complete, random board."""
    placement = Placement()
    placement.randomize(rng)
    return placement.lock()


def validate_roster(board: Board) -> None:
    """
    A board submitted for combat must hold exactly the roster: each unit once, at its roster size, in a straight line,
    and nothing hit yet. Raises InvalidBoardError otherwise.
    """
    names = [unit.name for unit in board.units]
    if len(names) != MAX_UNITS or set(names) != set(UNITS_BY_NAME):
        raise InvalidBoardError(f"Board must contain each of the {MAX_UNITS} roster units exactly once.")
    for unit in board.units:
        if unit.size != UNITS_BY_NAME[unit.name].size:
            raise InvalidBoardError(f"{unit.name!r} must have size {UNITS_BY_NAME[unit.name].size}.")
        if not is_straight_line(unit.coordinates):
            raise InvalidBoardError(f"{unit.name!r} is not a contiguous straight line.")
    if board.hit_coordinates():
        raise InvalidBoardError("A fresh board cannot contain hits.")

