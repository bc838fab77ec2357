"""
The SoloGame orchestrates a single-player match against the scripted opponent.

It owns both boards, both shot histories and the turn flag; every shot goes through `resolve_attack` against the
defender's board, exactly like the match server does for two players.
"""

import random
from dataclasses import dataclass, field
from typing import Optional, Self

from src.combat.attack import AttackResult, resolve_attack
from src.combat.board import Board
from src.combat.coordinates import Coordinate, is_valid
from src.combat.opponent import OpponentPolicy
from src.combat.placement import random_board, validate_roster
from src.core.exceptions import (
    AlreadyTargetedError,
    GameStateError,
    InvalidBoardError,
    InvalidCoordinateError,
    NotYourTurnError,
)
from src.core.shared_types import Difficulty, GameMode, Status

OPPONENT_NAME = "CPU"


@dataclass
class SoloGame:
    player_board: Board
    opponent_board: Board
    opponent: OpponentPolicy
    player_shots: set[Coordinate] = field(default_factory=set)
    player_turn: bool = True
    status: Status = Status.IN_PROGRESS

    @classmethod
    def new_game(
        cls,
        player_board: Board,
        difficulty: Difficulty = Difficulty.LOW,
        rng: Optional[random.Random] = None,
    ) -> Self:
        """Start a game with a locked player board. The opponent deploys randomly and initiative is a coin flip."""
        validate_roster(player_board)
        rng = rng or random.Random()
        opponent_board = random_board(rng)
        return cls(
            player_board=player_board.clone(),
            opponent_board=opponent_board,
            opponent=OpponentPolicy(difficulty=Difficulty(difficulty), rng=rng),
            player_turn=rng.random() < 0.5,
        )

    @property
    def difficulty(self) -> Difficulty:
        return self.opponent.difficulty

    @property
    def winner(self) -> Optional[str]:
        if self.status == Status.VICTORY:
            return "player"
        if self.status == Status.DEFEAT:
            return OPPONENT_NAME
        return None

    def player_attack(self, coordinate: Coordinate) -> AttackResult:
        """
        Fire on the opponent's board.
        ----
        1. game must be in progress, and it must be the player's turn
        2. coordinate must be on the grid and not fired on before
        3. resolve, then pass the turn unless the player just won
        """
        self._assert_in_progress()
        if not self.player_turn:
            raise NotYourTurnError("Hold fire until it is your turn.")
        if not is_valid(coordinate):
            raise InvalidCoordinateError(f"{coordinate!r} is not a grid coordinate.")
        if coordinate in self.player_shots:
            raise AlreadyTargetedError(f"{coordinate} already targeted.")

        self.player_shots.add(coordinate)
        result = resolve_attack(self.opponent_board, coordinate)
        if result.victory:
            self.status = Status.VICTORY
        else:
            self.player_turn = False
        return result

    def opponent_turn(self) -> AttackResult:
        """Let the scripted opponent pick a target and fire on the player's board."""
        self._assert_in_progress()
        if self.player_turn:
            raise NotYourTurnError("It is the player's turn.")
        target = self.opponent.next_target()
        if target is None:
            raise GameStateError("No coordinates left to target.")

        result = resolve_attack(self.player_board, target)
        if result.victory:
            self.status = Status.DEFEAT
        else:
            self.player_turn = True
        return result

    # -- persistence ---
    def to_save(self) -> dict:
        return {
            "mode": GameMode.SOLO.value,
            "difficulty": self.difficulty.value,
            "status": self.status.value,
            "player": {
                "board": self.player_board.to_dict(),
                "turn": self.player_turn,
                "attackHistory": sorted(self.player_shots),
            },
            "ai": {
                "board": self.opponent_board.to_dict(),
                "shots": sorted(self.opponent.shots),
            },
        }

    @classmethod
    def from_save(cls, data: dict, rng: Optional[random.Random] = None) -> Self:
        """Inverse of `to_save`. Raises InvalidBoardError on anything that cannot be a solo save."""
        if not isinstance(data, dict) or data.get("mode") != GameMode.SOLO:
            raise InvalidBoardError("Not a solo save.")
        try:
            player = data["player"]
            ai = data["ai"]
            if not isinstance(player, dict) or not isinstance(ai, dict):
                raise InvalidBoardError("Solo save is malformed.")
            difficulty = Difficulty(data.get("difficulty", Difficulty.LOW))
            game_status = Status(data.get("status", Status.IN_PROGRESS))
            player_shots = set(player.get("attackHistory", []))
            opponent_shots = set(ai.get("shots", []))
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidBoardError("Solo save is malformed.") from exc

        if not all(isinstance(coord, str) and is_valid(coord) for coord in player_shots | opponent_shots):
            raise InvalidBoardError("Shot history contains invalid coordinates.")

        return cls(
            player_board=Board.from_dict(player.get("board")),
            opponent_board=Board.from_dict(ai.get("board")),
            opponent=OpponentPolicy(
                difficulty=difficulty, rng=rng or random.Random(), shots=opponent_shots
            ),
            player_shots=player_shots,
            player_turn=bool(player.get("turn", True)),
            status=game_status,
        )

    def _assert_in_progress(self) -> None:
        if self.status != Status.IN_PROGRESS:
            raise GameStateError(f"Game is not in progress. status: {self.status}")
