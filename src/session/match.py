"""
The Match is the server-authoritative record of one two-player game.

It validates every action before touching any state, so a rejected action (raised as a GameError) leaves the
record exactly as it was. The session hub is the only caller; it turns the exceptions into `matchError`
messages for the offending player.
"""

import random
import time
from dataclasses import dataclass, field
from typing import Optional, Self
from uuid import uuid4

from src.combat.attack import AttackResult, resolve_attack
from src.combat.board import Board
from src.combat.coordinates import Coordinate, is_valid
from src.combat.placement import validate_roster
from src.core.exceptions import (
    AlreadyTargetedError,
    GameStateError,
    InvalidBoardError,
    InvalidCoordinateError,
    NotYourTurnError,
    PlayerUnavailableError,
)
from src.core.shared_types import EndReason, MatchState

PlayerId = str


@dataclass
class PlayerSlot:
    player_id: PlayerId
    name: str
    ready: bool = False
    board: Optional[Board] = None
    shots: set[Coordinate] = field(default_factory=set)
    destroyed_units: list[str] = field(default_factory=list)
    connected: bool = True


@dataclass
class Match:
    id: str
    players: dict[PlayerId, PlayerSlot]
    order: list[PlayerId] = field(default_factory=list)
    current_turn: Optional[PlayerId] = None
    winner: Optional[PlayerId] = None
    end_reason: Optional[EndReason] = None
    history: list[dict] = field(default_factory=list)
    state: MatchState = MatchState.SETUP
    created_at: float = field(default_factory=time.time)
    last_update: float = field(default_factory=time.time)

    @classmethod
    def create(cls, challenger: tuple[PlayerId, str], opponent: tuple[PlayerId, str]) -> Self:
        """Both sides accepted: open a fresh record in the setup phase."""
        if challenger[0] == opponent[0]:
            raise PlayerUnavailableError("A match needs two different players.")
        players = {
            player_id: PlayerSlot(player_id, name) for player_id, name in (challenger, opponent)
        }
        return cls(id=str(uuid4()), players=players)

    # -- queries ---
    @property
    def is_terminated(self) -> bool:
        return self.state == MatchState.TERMINATED

    @property
    def all_ready(self) -> bool:
        return all(slot.ready for slot in self.players.values())

    def slot(self, player_id: PlayerId) -> PlayerSlot:
        if player_id not in self.players:
            raise PlayerUnavailableError("Player not in game.")
        return self.players[player_id]

    def opponent_of(self, player_id: PlayerId) -> PlayerSlot:
        self.slot(player_id)
        return next(slot for pid, slot in self.players.items() if pid != player_id)

    # -- setup phase ---
    def submit_board(self, player_id: PlayerId, board: Board) -> bool:
        """
        Lock a player's deployment. The board is copied so the match never shares it with anyone.
        Returns True when this submission made both sides ready.
        """
        self._assert_state(MatchState.SETUP)
        slot = self.slot(player_id)
        if slot.ready:
            raise GameStateError("Deployment already locked.")
        validate_roster(board)

        slot.board = board.clone()
        slot.ready = True
        slot.destroyed_units = []
        self._touch()
        return self.all_ready

    def start_combat(self, rng: Optional[random.Random] = None) -> list[PlayerId]:
        """Both ready: shuffle the two ids into the turn order and hand the first turn out."""
        self._assert_state(MatchState.SETUP)
        if not self.all_ready:
            raise GameStateError("Both players must lock their deployment first.")
        order = list(self.players.keys())
        (rng or random.Random()).shuffle(order)
        self.order = order
        self.current_turn = order[0]
        self.state = MatchState.COMBAT
        self.history.append({"type": "combat-start", "order": list(order)})
        self._touch()
        return order

    # -- combat phase ---
    def attack(self, player_id: PlayerId, coordinate: Coordinate) -> AttackResult:
        """
        Fire on the opponent's board.
        ----
        1. match must be in combat, sender must hold the turn
        2. coordinate must be on the grid and not in the sender's own shot history
        3. resolve against the defender's board, record it
        4. victory ends the match, anything else passes the turn
        """
        self._assert_state(MatchState.COMBAT)
        attacker = self.slot(player_id)
        if self.current_turn != player_id:
            raise NotYourTurnError("Not your turn.")
        if not is_valid(coordinate):
            raise InvalidCoordinateError(f"{coordinate!r} is not a grid coordinate.")
        if coordinate in attacker.shots:
            raise AlreadyTargetedError("Coordinate already targeted.")
        defender = self.opponent_of(player_id)
        if defender.board is None:
            raise InvalidBoardError("Opponent has no board.")

        attacker.shots.add(coordinate)
        result = resolve_attack(defender.board, coordinate)
        self.history.append(
            {
                "type": "attack",
                "attacker": player_id,
                "attackerName": attacker.name,
                "coordinate": coordinate,
                "result": result.to_payload(),
                "timestamp": time.time(),
            }
        )
        if result.destroyed_unit:
            defender.destroyed_units.append(result.destroyed_unit)
        if result.victory:
            self._terminate(EndReason.VICTORY, winner=player_id)
        else:
            self._pass_turn()
        self._touch()
        return result

    # -- teardown ---
    def forfeit(self, loser_id: PlayerId, reason: EndReason = EndReason.FORFEIT) -> PlayerId:
        """The other player wins. Only meaningful once combat started."""
        self._assert_state(MatchState.COMBAT)
        winner = self.opponent_of(loser_id).player_id
        self._terminate(reason, winner=winner)
        return winner

    def abort(self, reason: EndReason = EndReason.ABORTED) -> None:
        """Tear the match down without a winner."""
        if self.is_terminated:
            raise GameStateError("Match already finished.")
        self._terminate(reason, winner=None)

    def mark_disconnected(self, player_id: PlayerId) -> None:
        self.slot(player_id).connected = False
        self._touch()

    def mark_connected(self, player_id: PlayerId) -> None:
        self.slot(player_id).connected = True
        self._touch()

    # -- serialization ---
    def to_dict(self, board_owner: Optional[PlayerId] = None) -> dict:
        """Public snapshot. Only `board_owner` gets their own board included; the other side stays hidden."""
        players = []
        for slot in self.players.values():
            record = {
                "socketId": slot.player_id,
                "name": slot.name,
                "ready": slot.ready,
                "connected": slot.connected,
                "destroyed": list(slot.destroyed_units),
                "shots": sorted(slot.shots),
            }
            if slot.player_id == board_owner:
                record["board"] = slot.board.to_dict() if slot.board else None
            players.append(record)
        return {
            "id": self.id,
            "mode": "pvp",
            "state": self.state.value,
            "players": players,
            "order": list(self.order),
            "currentTurn": self.current_turn,
            "winner": self.winner,
            "endReason": self.end_reason.value if self.end_reason else None,
            "history": list(self.history),
            "lastUpdate": self.last_update,
        }

    # -- PRIVATE HELPERS ---
    def _assert_state(self, expected: MatchState) -> None:
        if self.state != expected:
            raise GameStateError(f"Match is not in {expected.value}. state: {self.state.value}")

    def _pass_turn(self) -> None:
        index = self.order.index(self.current_turn)
        self.current_turn = self.order[(index + 1) % len(self.order)]

    def _terminate(self, reason: EndReason, winner: Optional[PlayerId]) -> None:
        self.state = MatchState.TERMINATED
        self.winner = winner
        self.end_reason = reason
        self.history.append({"type": "end", "reason": reason.value, "winner": winner})
        self._touch()

    def _touch(self) -> None:
        self.last_update = time.time()
