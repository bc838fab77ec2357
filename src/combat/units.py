"""Defines the unit roster and the placed unit record"""

from dataclasses import dataclass, field
from typing import Optional, Self

from src.combat.coordinates import Coordinate, to_indices
from src.core.shared_types import Orientation

MAX_UNITS = 6


@dataclass(frozen=True)
class UnitType:
    name: str
    size: int


AVAILABLE_UNITS: tuple[UnitType, ...] = (
    UnitType("Tank Convoy", 4),
    UnitType("Recon Vehicle", 2),
    UnitType("Fighter Jet", 2),
    UnitType("Missile Launcher", 5),
    UnitType("Supply Truck", 3),
    UnitType("Drone", 1),
)

UNITS_BY_NAME: dict[str, UnitType] = {unit.name: unit for unit in AVAILABLE_UNITS}


def unit_type(name: str) -> Optional[UnitType]:
    return UNITS_BY_NAME.get(name)


@dataclass
class Unit:
    """A unit that has been put on a board. Its orientation is never stored, only derived from its coordinates."""

    name: str
    size: int
    coordinates: list[Coordinate] = field(default_factory=list)

    @classmethod
    def from_type(cls, unit: UnitType, coordinates: list[Coordinate]) -> Self:
        return cls(unit.name, unit.size, list(coordinates))

    @property
    def orientation(self) -> Orientation:
        """Same row for the first two coordinates means horizontal, anything else is vertical."""
        if len(self.coordinates) < 2:
            return Orientation.HORIZONTAL
        first = to_indices(self.coordinates[0])
        second = to_indices(self.coordinates[1])
        if first is None or second is None:
            return Orientation.HORIZONTAL
        return Orientation.HORIZONTAL if first[0] == second[0] else Orientation.VERTICAL

    @property
    def anchor(self) -> Optional[Coordinate]:
        """Top-left end of the unit: lowest column for horizontal units, lowest row for vertical ones."""
        indexed = [(to_indices(coord), coord) for coord in self.coordinates]
        indexed = [(indices, coord) for indices, coord in indexed if indices is not None]
        if not indexed:
            return None
        if self.orientation == Orientation.HORIZONTAL:
            return min(indexed, key=lambda item: (item[0][1], item[0][0]))[1]
        return min(indexed, key=lambda item: item[0])[1]

    def to_dict(self) -> dict:
        return {"name": self.name, "size": self.size, "coordinates": list(self.coordinates)}

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        return cls(data["name"], int(data["size"]), list(data["coordinates"]))
