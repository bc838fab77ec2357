"""The board holds one player's grid of cells plus the units placed on it, and implements all rules about occupancy."""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Literal, Optional, Self

from src.combat.coordinates import Coordinate, all_coordinates, to_coordinate, to_indices
from src.combat.units import Unit, UnitType
from src.core.exceptions import InvalidBoardError, PlacementError
from src.core.shared_types import Orientation


@dataclass
class Cell:
    occupant: Optional[str] = None
    hit: bool = False


@dataclass
class Board:
    cells: dict[Coordinate, Cell]
    units: list[Unit] = field(default_factory=list)

    @classmethod
    def empty(cls) -> Self:
        """All 81 cells present, nothing placed, nothing hit."""
        return cls({coord: Cell() for coord in all_coordinates()}, [])

    def cell(self, coordinate: Coordinate) -> Optional[Cell]:
        return self.cells.get(coordinate)

    def can_place(
        self, unit: UnitType | Unit, start: Coordinate, orientation: Orientation | str
    ) -> list[Coordinate] | Literal[False]:
        """
        Compute the `unit.size` coordinates starting at `start` and extending along `orientation`.
        False if any of them falls off the grid or is already occupied. Never mutates the board.
        """
        indices = to_indices(start)
        if indices is None or orientation not in tuple(Orientation):
            return False
        row_index, column_index = indices
        coordinates: list[Coordinate] = []
        for offset in range(unit.size):
            if orientation == Orientation.VERTICAL:
                coord = to_coordinate(row_index + offset, column_index)
            else:
                coord = to_coordinate(row_index, column_index + offset)
            if coord is None or self.cells[coord].occupant is not None:
                return False
            coordinates.append(coord)
        return coordinates

    def place(self, unit: UnitType | Unit, coordinates: list[Coordinate]) -> Unit:
        """
        Commit a unit to the board.

        The footprint is re-validated here, so a caller skipping `can_place` cannot break the board.
        On failure nothing is mutated and PlacementError is raised.
        """
        if self.find_unit(unit.name) is not None:
            raise PlacementError(f"Unit {unit.name!r} is already on the board.")
        if len(coordinates) != unit.size:
            raise PlacementError(
                f"Unit {unit.name!r} needs {unit.size} coordinates, got {len(coordinates)}."
            )
        if not is_straight_line(coordinates):
            raise PlacementError(f"Coordinates {coordinates} are not a contiguous straight line.")
        for coord in coordinates:
            if self.cells[coord].occupant is not None:
                raise PlacementError(f"{coord} is already occupied by {self.cells[coord].occupant!r}.")

        placed = Unit(unit.name, unit.size, list(coordinates))
        self.units.append(placed)
        for coord in coordinates:
            self.cells[coord].occupant = placed.name
        return placed

    def remove_unit(self, unit_name: str) -> Optional[Unit]:
        """Delete the unit and clear its former cells. Only meant for the setup phase."""
        unit = self.find_unit(unit_name)
        if unit is None:
            return None
        self.units.remove(unit)
        for coord in unit.coordinates:
            self.cells[coord].occupant = None
            self.cells[coord].hit = False
        return unit

    def remove_at(self, coordinate: Coordinate) -> Optional[Unit]:
        unit = self.unit_at(coordinate)
        if unit is None:
            return None
        return self.remove_unit(unit.name)

    def find_unit(self, unit_name: str) -> Optional[Unit]:
        return next((unit for unit in self.units if unit.name == unit_name), None)

    def unit_at(self, coordinate: Coordinate) -> Optional[Unit]:
        return next((unit for unit in self.units if coordinate in unit.coordinates), None)

    def is_destroyed(self, unit: Unit) -> bool:
        return all(self.cells[coord].hit for coord in unit.coordinates)

    def all_destroyed(self) -> bool:
        """Victory condition. An empty board is never 'destroyed'."""
        return len(self.units) > 0 and all(self.is_destroyed(unit) for unit in self.units)

    def destroyed_units(self) -> list[str]:
        return [unit.name for unit in self.units if self.is_destroyed(unit)]

    def hit_coordinates(self) -> list[Coordinate]:
        return [coord for coord, cell in self.cells.items() if cell.hit]

    def clone(self) -> Self:
        """Deep copy: the combat board must not share cells or units with the placement board."""
        return deepcopy(self)

    # -- serialization ---
    def to_dict(self) -> dict:
        return {
            "cells": {
                coord: {"occupant": cell.occupant, "hit": cell.hit}
                for coord, cell in self.cells.items()
            },
            "units": [unit.to_dict() for unit in self.units],
        }

    @classmethod
    def from_dict(cls, data: object) -> Self:
        """
        Rebuild a board from its plain-dict form (save files, client submissions).

        Raises InvalidBoardError if the payload breaks the board invariant:
        all 81 cells present, each occupied cell listed by exactly one unit and vice versa.
        """
        if not isinstance(data, dict):
            raise InvalidBoardError("Board must be an object with 'cells' and 'units'.")
        raw_cells = data.get("cells")
        raw_units = data.get("units", [])
        if not isinstance(raw_cells, dict) or not isinstance(raw_units, list):
            raise InvalidBoardError("Board must contain a 'cells' mapping and a 'units' list.")

        expected = all_coordinates()
        if set(raw_cells.keys()) != set(expected):
            raise InvalidBoardError("Board cells must cover exactly the 81 grid coordinates.")

        cells: dict[Coordinate, Cell] = {}
        for coord in expected:
            raw_cell = raw_cells[coord]
            if not isinstance(raw_cell, dict):
                raise InvalidBoardError(f"Cell {coord} is malformed.")
            occupant = raw_cell.get("occupant")
            if occupant is not None and not isinstance(occupant, str):
                raise InvalidBoardError(f"Cell {coord} has an invalid occupant.")
            cells[coord] = Cell(occupant=occupant or None, hit=bool(raw_cell.get("hit", False)))

        units: list[Unit] = []
        claimed: dict[Coordinate, str] = {}
        for raw_unit in raw_units:
            try:
                unit = Unit.from_dict(raw_unit)
            except (KeyError, TypeError, ValueError) as exc:
                raise InvalidBoardError(f"Unit record is malformed: {raw_unit!r}") from exc
            if any(existing.name == unit.name for existing in units):
                raise InvalidBoardError(f"Unit {unit.name!r} appears more than once.")
            if len(unit.coordinates) != unit.size:
                raise InvalidBoardError(f"Unit {unit.name!r} does not cover {unit.size} cells.")
            for coord in unit.coordinates:
                if coord not in cells:
                    raise InvalidBoardError(f"Unit {unit.name!r} lies outside the grid at {coord!r}.")
                if coord in claimed:
                    raise InvalidBoardError(f"Units {claimed[coord]!r} and {unit.name!r} overlap at {coord}.")
                claimed[coord] = unit.name
            units.append(unit)

        for coord, cell in cells.items():
            if cell.occupant != claimed.get(coord):
                raise InvalidBoardError(f"Cell {coord} occupant does not match the unit list.")

        return cls(cells, units)


def is_straight_line(coordinates: list[Coordinate]) -> bool:
    """Consecutive cells along one row or one column, in increasing order."""
    indices = [to_indices(coord) for coord in coordinates]
    if not indices or any(index is None for index in indices):
        return False
    if len(indices) == 1:
        return True
    rows = [row for row, _ in indices]
    columns = [column for _, column in indices]
    if len(set(rows)) == 1:
        return columns == list(range(columns[0], columns[0] + len(columns)))
    if len(set(columns)) == 1:
        return rows == list(range(rows[0], rows[0] + len(rows)))
    return False
