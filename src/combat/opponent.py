"""
Target selection for the scripted opponent in solo mode.

Each difficulty is a pure function choosing among the coordinates that have not been fired on yet.
Pass a seeded `random.Random` to make the choices reproducible.
"""

import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from src.combat.coordinates import Coordinate, all_coordinates, to_indices
from src.core.shared_types import Difficulty

CENTER_INDEX = 4

TargetingRuleFn = Callable[[list[Coordinate], random.Random], Coordinate]


def remaining_targets(shots: set[Coordinate]) -> list[Coordinate]:
    return [coord for coord in all_coordinates() if coord not in shots]


def _pick_preferred(
    available: list[Coordinate], prefer: Callable[[int, int], bool], rng: random.Random
) -> Coordinate:
    """Uniform choice among preferred coordinates, falling back to all remaining ones."""
    preferred = [coord for coord in available if prefer(*to_indices(coord))]
    return rng.choice(preferred or available)


def low_target(available: list[Coordinate], rng: random.Random) -> Coordinate:
    return rng.choice(available)


def medium_target(available: list[Coordinate], rng: random.Random) -> Coordinate:
    """Checkerboard: every unit of size >= 2 covers at least one of these cells."""
    return _pick_preferred(available, lambda row, column: (row + column) % 2 == 0, rng)


def hard_target(available: list[Coordinate], rng: random.Random) -> Coordinate:
    return _pick_preferred(
        available, lambda row, column: row == CENTER_INDEX or column == CENTER_INDEX, rng
    )


TARGETING_RULES: dict[Difficulty, TargetingRuleFn] = {
    Difficulty.LOW: low_target,
    Difficulty.MEDIUM: medium_target,
    Difficulty.HARD: hard_target,
}


def choose_target(
    difficulty: Difficulty, shots: set[Coordinate], rng: random.Random
) -> Optional[Coordinate]:
    available = remaining_targets(shots)
    if not available:
        return None
    return TARGETING_RULES[difficulty](available, rng)


@dataclass
class OpponentPolicy:
    """The only state is the running shot history."""

    difficulty: Difficulty = Difficulty.LOW
    rng: random.Random = field(default_factory=random.Random)
    shots: set[Coordinate] = field(default_factory=set)

    def next_target(self) -> Optional[Coordinate]:
        target = choose_target(self.difficulty, self.shots, self.rng)
        if target is not None:
            self.shots.add(target)
        return target
