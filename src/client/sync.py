"""
Client-side view state and its synchronisation with the match server.

A ClientSession is what a front end binds to. Player intents (`ready`, `fire`, ...) either resolve locally (solo) or
produce a protocol message to send (pvp); server events are fed back through `apply`. Whatever the server rejects,
the local boards stay as they were: rejections only ever add a status message.
"""

import logging
import random
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable, Optional

from src.combat.attack import AttackResult, resolve_attack
from src.combat.board import Board
from src.combat.coordinates import Coordinate, is_valid, normalize
from src.combat.game import OPPONENT_NAME, SoloGame
from src.combat.placement import Placement
from src.core.exceptions import GameError, GameStateError, InvalidBoardError
from src.core.shared_types import Difficulty, GameMode, PlacementWarning, Status, StatusLevel

logger = logging.getLogger(__name__)

Message = dict[str, Any]

PLACEMENT_WARNINGS: dict[PlacementWarning, tuple[str, StatusLevel]] = {
    PlacementWarning.CAP_REACHED: ("Unit cap reached. Remove a unit before placing another.", StatusLevel.WARNING),
    PlacementWarning.UNKNOWN_UNIT: ("Select a unit to deploy.", StatusLevel.WARNING),
    PlacementWarning.DUPLICATE_UNIT: ("Each unit profile may be deployed once.", StatusLevel.WARNING),
    PlacementWarning.INVALID_PLACEMENT: ("Placement invalid. Check terrain boundaries.", StatusLevel.DANGER),
    PlacementWarning.INVALID_ORIENTATION: ("Pick a horizontal or vertical orientation.", StatusLevel.WARNING),
    PlacementWarning.LOCKED: ("Deployment is locked.", StatusLevel.WARNING),
}


class Phase(StrEnum):
    HOME = "home"
    SETUP = "setup"
    GAME = "game"
    OVER = "over"


@dataclass
class StatusMessage:
    text: str
    level: StatusLevel = StatusLevel.INFO

    def to_dict(self) -> dict:
        return {"message": self.text, "context": self.level.value}


@dataclass
class SoloMode:
    difficulty: Difficulty = Difficulty.LOW
    game: Optional[SoloGame] = None


@dataclass
class PvpMode:
    game_id: Optional[str] = None
    current_turn: Optional[str] = None
    order: list[str] = field(default_factory=list)
    pending_attack: Optional[Coordinate] = None


Mode = SoloMode | PvpMode


def message(event: str, payload: Optional[dict] = None) -> Message:
    return {"type": event, "payload": payload or {}}


def _status_feed_from_save(entries: object) -> list[StatusMessage]:
    if not isinstance(entries, list):
        raise InvalidBoardError("Saved status log must be a list.")
    feed = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        try:
            level = StatusLevel(entry.get("context", StatusLevel.INFO))
        except ValueError as exc:
            raise InvalidBoardError("Saved status log has an unknown context.") from exc
        feed.append(StatusMessage(str(entry.get("message", "")), level))
    return feed


class ClientSession:
    def __init__(self, player_name: str = "", rng: Optional[random.Random] = None) -> None:
        self.player_name = player_name
        self.rng = rng or random.Random()
        self.mode: Optional[Mode] = None
        self.phase = Phase.HOME
        self.socket_id: Optional[str] = None
        self.token: Optional[str] = None
        self.players: list[dict] = []
        self.incoming_challenge: Optional[dict] = None
        self.opponent_name: Optional[str] = None
        self.outcome: Optional[str] = None
        self.status_feed: list[StatusMessage] = []
        self._reset_boards()
        self._handlers: dict[str, Callable[[dict], None]] = {
            "playerRegistered": self._on_player_registered,
            "playerList": self._on_player_list,
            "matchRequest": self._on_match_request,
            "matchRequestSent": self._on_match_request_sent,
            "matchRejected": self._on_match_rejected,
            "matchRequestCancelled": self._on_match_request_cancelled,
            "matchStarted": self._on_match_started,
            "playerReady": self._on_player_ready,
            "setupComplete": self._on_setup_complete,
            "turnStart": self._on_turn_start,
            "attackResult": self._on_attack_result,
            "gameOver": self._on_game_over,
            "opponentLeft": self._on_opponent_left,
            "opponentDisconnected": self._on_opponent_disconnected,
            "opponentReconnected": self._on_opponent_reconnected,
            "gameState": self._on_game_state,
            "matchError": self._on_match_error,
            "saved": self._on_saved,
        }

    # -- INTENTS ---
    def start_solo(self, difficulty: Difficulty = Difficulty.LOW) -> None:
        self.mode = SoloMode(difficulty=Difficulty(difficulty))
        self.opponent_name = OPPONENT_NAME
        self._enter_setup()

    def register(self, name: str) -> Message:
        self.player_name = name
        return message("registerPlayer", {"name": name})

    def request_players(self) -> Message:
        return message("requestPlayerList")

    def challenge(self, opponent_id: str) -> Message:
        return message("createMatch", {"opponentId": opponent_id})

    def respond(self, accept: bool) -> Message:
        self.incoming_challenge = None
        return message("respondMatchRequest", {"accept": accept})

    def cancel(self) -> Message:
        return message("cancelMatch")

    def place(self, coordinate: Coordinate, unit_name: Optional[str], orientation: str) -> Optional[PlacementWarning]:
        """Click on the deployment grid. Refusals become status messages and are returned."""
        warning = self.placement.toggle(coordinate, unit_name, orientation)
        if warning is not None:
            self._push(*PLACEMENT_WARNINGS[warning])
        return warning

    def randomize(self) -> None:
        self.placement.randomize(self.rng)

    def ready(self) -> Optional[Message]:
        """Lock the deployment. Solo starts the game right away; pvp returns the `submitBoard` message."""
        if self.phase != Phase.SETUP or self.placement.locked:
            return None
        if not self.placement.is_complete:
            self._push("Deploy every unit before locking in.", StatusLevel.WARNING)
            return None

        if isinstance(self.mode, SoloMode):
            self.player_board = self.placement.lock()
            game = SoloGame.new_game(self.player_board, self.mode.difficulty, self.rng)
            self.mode.game = game
            self.player_board = game.player_board
            self.phase = Phase.GAME
            self.player_turn = game.player_turn
            self._push("Deployment locked.", StatusLevel.INFO)
            if game.player_turn:
                self._push("You fire the first shot!", StatusLevel.SUCCESS)
            else:
                self._push("Opponent gains initiative!", StatusLevel.WARNING)
                self._solo_opponent_turn()
            return None

        if isinstance(self.mode, PvpMode) and self.mode.game_id:
            self.player_board = self.placement.lock()
            self._push("Deployment transmitted to command.", StatusLevel.INFO)
            return message(
                "submitBoard",
                {
                    "gameId": self.mode.game_id,
                    "board": self.player_board.to_dict(),
                    "pieces": self.placement.pieces(),
                },
            )
        return None

    def fire(self, coordinate: Coordinate) -> Optional[Message]:
        """
        Attack the opponent: same call for both modes.
        Solo resolves immediately (and lets the opponent answer), pvp returns the `attack` message to send.
        """
        coordinate = normalize(coordinate)
        if self.phase != Phase.GAME or not self.player_turn:
            self._push("Hold fire until it is your turn.", StatusLevel.WARNING)
            return None
        if not is_valid(coordinate):
            self._push(f"{coordinate} is not a valid target.", StatusLevel.WARNING)
            return None
        if coordinate in self.attack_history:
            self._push("Coordinate already targeted.", StatusLevel.WARNING)
            return None

        if isinstance(self.mode, SoloMode) and self.mode.game is not None:
            try:
                result = self.mode.game.player_attack(coordinate)
            except GameError as exc:
                self._push(str(exc), StatusLevel.WARNING)
                return None
            self.attack_history.add(coordinate)
            self._record_own_result(result)
            if result.victory:
                self._finish("victory", "All hostiles neutralized!")
                return None
            self.player_turn = False
            self._solo_opponent_turn()
            return None

        if isinstance(self.mode, PvpMode) and self.mode.game_id:
            self.attack_history.add(coordinate)
            self.attack_results[coordinate] = "pending"
            self.mode.pending_attack = coordinate
            self.player_turn = False
            return message("attack", {"gameId": self.mode.game_id, "coordinate": coordinate})
        return None

    def request_state(self) -> Optional[Message]:
        if isinstance(self.mode, PvpMode) and self.mode.game_id:
            return message("requestGameState", {"gameId": self.mode.game_id})
        return None

    def resume(self) -> Optional[Message]:
        if self.socket_id and self.token:
            return message("resumeSession", {"socketId": self.socket_id, "token": self.token})
        return None

    # -- SERVER EVENTS ---
    def apply(self, frame: Message) -> None:
        """Feed one server frame into the local view."""
        event = frame.get("type") if isinstance(frame, dict) else None
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logger.debug("Ignoring unknown server event %r", event)
            return
        payload = frame.get("payload") or {}
        handler(payload)

    def _on_player_registered(self, payload: dict) -> None:
        self.socket_id = payload.get("socketId")
        self.token = payload.get("token", self.token)

    def _on_player_list(self, payload: dict) -> None:
        self.players = [player for player in payload.get("players", []) if player.get("socketId") != self.socket_id]

    def _on_match_request(self, payload: dict) -> None:
        self.incoming_challenge = payload
        self._push(f"{payload.get('challengerName', 'A player')} requests a match.", StatusLevel.INFO)

    def _on_match_request_sent(self, payload: dict) -> None:
        self._push(f"Challenge sent to {payload.get('opponentName', 'opponent')}.", StatusLevel.INFO)

    def _on_match_rejected(self, payload: dict) -> None:
        self._push(f"{payload.get('name') or 'Opponent'} declined the match.", StatusLevel.WARNING)

    def _on_match_request_cancelled(self, payload: dict) -> None:
        self.incoming_challenge = None
        self._push(f"{payload.get('name') or 'Opponent'} withdrew the challenge.", StatusLevel.WARNING)

    def _on_match_started(self, payload: dict) -> None:
        self.mode = PvpMode(game_id=payload.get("gameId"))
        self.opponent_name = payload.get("opponentName")
        self.incoming_challenge = None
        self.status_feed = []
        self._enter_setup()

    def _on_player_ready(self, payload: dict) -> None:
        if payload.get("socketId") != self.socket_id:
            self._push(f"{self.opponent_name or 'Opponent'} ready for battle.", StatusLevel.INFO)

    def _on_setup_complete(self, payload: dict) -> None:
        self.phase = Phase.GAME
        self._push("Both forces deployed.", StatusLevel.INFO)

    def _on_turn_start(self, payload: dict) -> None:
        if not isinstance(self.mode, PvpMode):
            return
        self.mode.current_turn = payload.get("currentTurn")
        self.mode.order = list(payload.get("order", []))
        self.phase = Phase.GAME
        self.player_turn = self.mode.current_turn == self.socket_id
        if self.player_turn:
            self._push("Strike sequence authorized.", StatusLevel.SUCCESS)
        else:
            self._push("Hold position; awaiting opponent.", StatusLevel.INFO)

    def _on_attack_result(self, payload: dict) -> None:
        coordinate = payload.get("coordinate")
        result = payload.get("result") or {}
        if not is_valid(coordinate):
            return
        if payload.get("attacker") == self.socket_id:
            if isinstance(self.mode, PvpMode) and self.mode.pending_attack == coordinate:
                self.mode.pending_attack = None
            self.attack_history.add(coordinate)
            self._record_own_result(
                AttackResult(
                    coordinate,
                    hit=bool(result.get("hit")),
                    destroyed_unit=result.get("destroyedUnit"),
                    victory=bool(result.get("victory")),
                )
            )
        else:
            self.opponent_attack_history.add(coordinate)
            self._record_incoming_result(resolve_attack(self.player_board, coordinate))

    def _on_game_over(self, payload: dict) -> None:
        victory = payload.get("winner") == self.socket_id
        if victory:
            self._finish("victory", f"You have neutralized {self.opponent_name or 'the opponent'}.")
        else:
            self._finish("defeat", f"{payload.get('winnerName') or 'Opponent'} secured the battlefield.")

    def _on_opponent_left(self, payload: dict) -> None:
        self._finish("interrupted", "Opponent disconnected. Mission aborted.", StatusLevel.WARNING)

    def _on_opponent_disconnected(self, payload: dict) -> None:
        grace = payload.get("graceSeconds")
        self._push(f"Opponent link lost. Holding position for {grace} seconds.", StatusLevel.WARNING)

    def _on_opponent_reconnected(self, payload: dict) -> None:
        self._push("Opponent link restored.", StatusLevel.INFO)

    def _on_game_state(self, payload: dict) -> None:
        if not isinstance(self.mode, PvpMode) or payload.get("id") != self.mode.game_id:
            return
        self.mode.current_turn = payload.get("currentTurn")
        self.mode.order = list(payload.get("order", []))
        if payload.get("state") == "combat":
            self.phase = Phase.GAME
            self.player_turn = self.mode.current_turn == self.socket_id and self.mode.pending_attack is None

    def _on_match_error(self, payload: dict) -> None:
        """The server refused our last action: undo the optimistic pending shot, nothing else changes."""
        if isinstance(self.mode, PvpMode) and self.mode.pending_attack is not None:
            pending = self.mode.pending_attack
            self.mode.pending_attack = None
            self.attack_history.discard(pending)
            self.attack_results.pop(pending, None)
            self.player_turn = self.mode.current_turn == self.socket_id
        self._push(payload.get("message") or "Command error encountered.", StatusLevel.DANGER)

    def _on_saved(self, payload: dict) -> None:
        self._push("Mission state stored successfully.", StatusLevel.SUCCESS)

    # -- PERSISTENCE ---
    def to_save(self) -> Optional[dict]:
        """Blob for the save endpoint, or None if there is nothing to save yet."""
        if self.phase not in (Phase.GAME, Phase.OVER):
            self._push("Begin the mission before saving.", StatusLevel.WARNING)
            return None
        if isinstance(self.mode, SoloMode) and self.mode.game is not None:
            data = self.mode.game.to_save()
            data["statusLog"] = [entry.to_dict() for entry in self.status_feed]
            return data
        if isinstance(self.mode, PvpMode):
            return {"mode": GameMode.PVP.value, "gameId": self.mode.game_id}
        return None

    def load_save(self, data: dict) -> None:
        """Restore a solo game from a save blob. A pvp blob only points at the session to rejoin."""
        mode = data.get("mode") if isinstance(data, dict) else None
        if mode != GameMode.SOLO:
            self._push("Reconnect to multiplayer session via Tactical Link.", StatusLevel.INFO)
            return
        try:
            game = SoloGame.from_save(data, self.rng)
            status_feed = _status_feed_from_save(data.get("statusLog", []))
        except GameError as exc:
            self._push(f"Save could not be restored: {exc}", StatusLevel.DANGER)
            return
        self.mode = SoloMode(difficulty=game.difficulty, game=game)
        self.opponent_name = OPPONENT_NAME
        self.player_board = game.player_board
        self.attack_history = set(game.player_shots)
        self.attack_results = {
            coord: "hit" if (game.opponent_board.cells[coord].hit and game.opponent_board.cells[coord].occupant) else "miss"
            for coord in game.player_shots
        }
        self.opponent_attack_history = set(game.opponent.shots)
        self.status_feed = status_feed
        self.player_turn = game.player_turn
        self.phase = Phase.GAME if game.status == Status.IN_PROGRESS else Phase.OVER

    # -- PRIVATE HELPERS ---
    def _reset_boards(self) -> None:
        self.placement = Placement()
        self.player_board = Board.empty()
        self.attack_results: dict[Coordinate, str] = {}
        self.attack_history: set[Coordinate] = set()
        self.opponent_attack_history: set[Coordinate] = set()
        self.player_turn = False
        self.outcome = None

    def _enter_setup(self) -> None:
        self._reset_boards()
        self.phase = Phase.SETUP

    def _solo_opponent_turn(self) -> None:
        if not isinstance(self.mode, SoloMode) or self.mode.game is None:
            raise GameStateError("No solo game in progress.")
        game = self.mode.game
        result = game.opponent_turn()
        self.opponent_attack_history.add(result.coordinate)
        self._push(f"Incoming strike at {result.coordinate}!", StatusLevel.WARNING)
        self._record_incoming_result(result)
        if result.victory:
            self._finish("defeat", "Enemy forces overwhelmed your sector.")
        else:
            self.player_turn = True

    def _record_own_result(self, result: AttackResult) -> None:
        self.attack_results[result.coordinate] = "hit" if result.hit else "miss"
        if result.hit:
            self._push(f"Direct hit at {result.coordinate}!", StatusLevel.SUCCESS)
            if result.destroyed_unit:
                self._push(f"Enemy {result.destroyed_unit} destroyed!", StatusLevel.SUCCESS)
        else:
            self._push(f"Attack unsuccessful at {result.coordinate}.", StatusLevel.INFO)

    def _record_incoming_result(self, result: AttackResult) -> None:
        if result.hit:
            self._push("Enemy artillery reports a hit!", StatusLevel.DANGER)
            if result.destroyed_unit:
                self._push(f"Your {result.destroyed_unit} has been destroyed!", StatusLevel.DANGER)
        else:
            self._push("Enemy attack unsuccessful!", StatusLevel.SUCCESS)

    def _finish(self, outcome: str, text: str, level: Optional[StatusLevel] = None) -> None:
        self.phase = Phase.OVER
        self.outcome = outcome
        self.player_turn = False
        self._push(text, level or (StatusLevel.SUCCESS if outcome == "victory" else StatusLevel.DANGER))

    def _push(self, text: str, level: StatusLevel = StatusLevel.INFO) -> None:
        self.status_feed.append(StatusMessage(text, level))
