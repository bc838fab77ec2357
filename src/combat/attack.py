"""
Attack resolution: the single authority on combat outcomes.

The human player, the scripted opponent and the match server all resolve shots through `resolve_attack`,
always against the defender's board.
"""

from dataclasses import dataclass
from typing import Optional

from src.combat.board import Board
from src.combat.coordinates import Coordinate


@dataclass(frozen=True)
class AttackResult:
    coordinate: Coordinate
    hit: bool = False
    destroyed_unit: Optional[str] = None
    victory: bool = False
    already_targeted: bool = False

    def to_payload(self) -> dict:
        """Wire format of a result, as broadcast in `attackResult` / `gameOver`."""
        payload: dict = {
            "coordinate": self.coordinate,
            "hit": self.hit,
            "destroyedUnit": self.destroyed_unit,
            "victory": self.victory,
        }
        if self.already_targeted:
            payload["alreadyTargeted"] = True
        return payload


def resolve_attack(board: Board, coordinate: Coordinate) -> AttackResult:
    """
    Fire on `coordinate` and mark the hit on the board.

    ----
    1. unknown coordinate: counts as a miss, nothing changes
    2. cell already hit: reported as `already_targeted`, nothing changes.
       Callers keep a shot history so this never happens in a real game; re-resolving an occupied cell would
       under-report damage.
    3. mark the cell as hit
    4. occupied? the unit is destroyed when all of its cells are hit, victory when every unit is destroyed
    """
    cell = board.cell(coordinate)
    if cell is None:
        return AttackResult(coordinate)
    if cell.hit:
        return AttackResult(coordinate, already_targeted=True)

    cell.hit = True
    if cell.occupant is None:
        return AttackResult(coordinate)

    unit = board.unit_at(coordinate)
    destroyed = unit.name if unit is not None and board.is_destroyed(unit) else None
    return AttackResult(coordinate, hit=True, destroyed_unit=destroyed, victory=board.all_destroyed())
