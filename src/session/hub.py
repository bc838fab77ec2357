"""
Session hub: dispatches protocol messages from every connection to the registry and the matches.

Handlers are plain synchronous methods. They validate, mutate, and queue saves and outgoing messages in an Outbox;
the hub only awaits once a handler has returned. A handler therefore never yields halfway through a mutation, and one
that raises leaves no queued messages behind: the offender gets a `matchError`, nobody else hears about it.
"""

import asyncio
import logging
import random
import secrets
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from src.api.models import (
    AttackRequest,
    CreateMatchRequest,
    Envelope,
    GameStateRequest,
    RegisterPlayerRequest,
    RespondMatchRequest,
    ResumeSessionRequest,
    SaveMatchRequest,
    SubmitBoardRequest,
)
from src.combat.board import Board
from src.core.exceptions import (
    GameError,
    GameStateError,
    InvalidBoardError,
    InvalidRequestError,
    MatchRequestError,
    PlayerUnavailableError,
    StaleSessionError,
    UnknownGameError,
)
from src.core.shared_types import EndReason, GameMode, MatchState, PlayerStatus
from src.session.match import Match, PlayerId
from src.session.registry import MatchRequest, PlayerRegistry

logger = logging.getLogger(__name__)

ConnectionId = str
ModelT = TypeVar("ModelT", bound=BaseModel)
SaveHandler = Callable[[str, dict], Awaitable[None]]


class Connection(Protocol):
    """Anything that can push a JSON message to one client (a FastAPI WebSocket satisfies this)."""

    async def send_json(self, data: Any) -> None: ...


@dataclass
class Outbox:
    """
    Messages queued by a handler. `None` as recipient means every connection.

    Queued saves are awaited before any message goes out, so a failed write sends nothing.
    """

    messages: list[tuple[Optional[PlayerId], str, dict]] = field(default_factory=list)
    saves: list[tuple[str, dict]] = field(default_factory=list)

    def to(self, player_id: PlayerId, event: str, payload: Optional[dict] = None) -> None:
        self.messages.append((player_id, event, payload or {}))

    def to_match(self, match: Match, event: str, payload: Optional[dict] = None) -> None:
        for player_id in match.players:
            self.to(player_id, event, payload)

    def broadcast(self, event: str, payload: Optional[dict] = None) -> None:
        self.messages.append((None, event, payload or {}))

    def save(self, player_name: str, state: dict) -> None:
        self.saves.append((player_name, state))


HandlerFn = Callable[[PlayerId, ConnectionId, dict, Outbox], None]


class SessionHub:
    def __init__(
        self,
        registry: Optional[PlayerRegistry] = None,
        rng: Optional[random.Random] = None,
        reconnect_grace_seconds: float = 30.0,
        save_handler: Optional[SaveHandler] = None,
    ) -> None:
        self.registry = registry or PlayerRegistry()
        self.rng = rng or random.Random()
        self.reconnect_grace_seconds = reconnect_grace_seconds
        self.save_handler = save_handler
        self.matches: dict[str, Match] = {}
        self._connections: dict[ConnectionId, Connection] = {}
        self._player_by_conn: dict[ConnectionId, PlayerId] = {}
        self._conn_by_player: dict[PlayerId, ConnectionId] = {}
        self._grace_tasks: dict[PlayerId, asyncio.Task] = {}
        self._handlers: dict[str, HandlerFn] = {
            "registerPlayer": self._on_register_player,
            "requestPlayerList": self._on_request_player_list,
            "createMatch": self._on_create_match,
            "respondMatchRequest": self._on_respond_match_request,
            "cancelMatch": self._on_cancel_match,
            "submitBoard": self._on_submit_board,
            "attack": self._on_attack,
            "requestGameState": self._on_request_game_state,
            "resumeSession": self._on_resume_session,
            "saveMatch": self._on_save_match,
        }

    # -- connection lifecycle ---
    def connect(self, connection: Connection) -> ConnectionId:
        """A new socket. Its connection id doubles as the player id unless it later resumes an older session."""
        conn_id = uuid4().hex
        self._connections[conn_id] = connection
        self._player_by_conn[conn_id] = conn_id
        self._conn_by_player[conn_id] = conn_id
        logger.debug("Connection %s opened", conn_id)
        return conn_id

    async def disconnect(self, conn_id: ConnectionId) -> None:
        """
        A socket went away.
        ----
        Pending challenges are cancelled right away. A player inside a live match is only marked disconnected and
        gets `reconnect_grace_seconds` to resume; everyone else leaves the roster.
        """
        outbox = Outbox()
        self._connections.pop(conn_id, None)
        player_id = self._player_by_conn.pop(conn_id, conn_id)
        if self._conn_by_player.get(player_id) == conn_id:
            del self._conn_by_player[player_id]

        entry = self.registry.get(player_id)
        if entry is None:
            return
        self._cancel_requests(player_id, outbox)

        match = self._live_match(entry.current_game_id)
        if match is not None:
            match.mark_disconnected(player_id)
            self.registry.set_status(player_id, PlayerStatus.DISCONNECTED)
            opponent = match.opponent_of(player_id)
            outbox.to(
                opponent.player_id,
                "opponentDisconnected",
                {"socketId": player_id, "graceSeconds": self.reconnect_grace_seconds},
            )
            task = asyncio.create_task(self._grace_period(player_id))
            task.add_done_callback(self._log_grace_failure)
            self._grace_tasks[player_id] = task
            logger.info("Player %s dropped from match %s, holding slot", player_id, match.id)
        else:
            self.registry.unregister(player_id)
        outbox.broadcast("playerList", {"players": self.registry.list_players()})
        await self._flush(outbox)

    async def expire_session(self, player_id: PlayerId) -> None:
        """Grace window is over: the absent player loses the match (combat) or the match is called off (setup)."""
        outbox = Outbox()
        self._grace_tasks.pop(player_id, None)
        entry = self.registry.get(player_id)
        if entry is None or entry.status != PlayerStatus.DISCONNECTED:
            return

        match = self._live_match(entry.current_game_id)
        if match is not None:
            opponent = match.opponent_of(player_id)
            if match.state == MatchState.COMBAT:
                winner = match.forfeit(player_id, EndReason.DISCONNECT)
                outbox.to_match(match, "gameOver", self._game_over_payload(match, winner))
            else:
                match.abort(EndReason.DISCONNECT)
                outbox.to(opponent.player_id, "opponentLeft", {"socketId": player_id})
            self._release_players(match)
            logger.info("Player %s did not come back, match %s closed", player_id, match.id)

        self.registry.unregister(player_id)
        outbox.broadcast("playerList", {"players": self.registry.list_players()})
        await self._flush(outbox)

    async def handle(self, conn_id: ConnectionId, message: object) -> None:
        """Dispatch one inbound frame. Rejections and unexpected failures are reported to this connection only."""
        player_id = self._player_by_conn.get(conn_id, conn_id)
        outbox = Outbox()
        event = "unknown"
        try:
            envelope = self._parse(Envelope, message)
            event = envelope.type
            handler = self._handlers.get(event)
            if handler is None:
                raise InvalidRequestError(f"Unknown message type: {event!r}")
            handler(player_id, conn_id, envelope.payload, outbox)
            for player_name, state in outbox.saves:
                await self.save_handler(player_name, state)
        except GameError as exc:
            logger.info("Rejected %s from %s: %s", event, player_id, exc)
            await self._send_to_conn(conn_id, "matchError", {"code": exc.code, "message": str(exc)})
            return
        except Exception:
            logger.exception("Handler for %s failed (player %s)", event, player_id)
            await self._send_to_conn(
                conn_id, "matchError", {"code": "internal", "message": "Command error encountered."}
            )
            return
        await self._flush(outbox)

    # -- stats ---
    @property
    def active_players(self) -> int:
        return len(self.registry)

    @property
    def active_games(self) -> int:
        return sum(1 for match in self.matches.values() if not match.is_terminated)

    # -- HANDLERS ---
    def _on_register_player(
        self, player_id: PlayerId, conn_id: ConnectionId, payload: dict, outbox: Outbox
    ) -> None:
        request = self._parse(RegisterPlayerRequest, payload)
        entry = self.registry.register(player_id, request.name)
        outbox.to(
            player_id,
            "playerRegistered",
            {"socketId": player_id, "name": entry.name, "token": entry.token},
        )
        outbox.broadcast("playerList", {"players": self.registry.list_players()})

    def _on_request_player_list(
        self, player_id: PlayerId, conn_id: ConnectionId, payload: dict, outbox: Outbox
    ) -> None:
        outbox.to(player_id, "playerList", {"players": self.registry.list_players()})

    def _on_create_match(
        self, player_id: PlayerId, conn_id: ConnectionId, payload: dict, outbox: Outbox
    ) -> None:
        request = self._parse(CreateMatchRequest, payload)
        match_request = self.registry.create_request(player_id, request.opponent_id)
        challenger = self.registry.require(player_id)
        opponent = self.registry.require(match_request.opponent_id)
        outbox.to(
            opponent.player_id,
            "matchRequest",
            {"challengerId": challenger.player_id, "challengerName": challenger.name},
        )
        outbox.to(
            player_id,
            "matchRequestSent",
            {"opponentId": opponent.player_id, "opponentName": opponent.name},
        )
        outbox.broadcast("playerList", {"players": self.registry.list_players()})

    def _on_respond_match_request(
        self, player_id: PlayerId, conn_id: ConnectionId, payload: dict, outbox: Outbox
    ) -> None:
        request = self._parse(RespondMatchRequest, payload)
        responder = self.registry.require(player_id)
        pending = self.registry.incoming_request(player_id)
        if pending is None:
            raise MatchRequestError("No pending challenge to respond to.")
        challenger = self.registry.get(pending.challenger_id)
        if challenger is None:
            raise PlayerUnavailableError("Challenger is no longer online.")

        self.registry.resolve_request(player_id)
        if not request.accept:
            outbox.to(challenger.player_id, "matchRejected", {"socketId": player_id, "name": responder.name})
        else:
            # both players leave the lobby, so any other challenge involving them is void
            self._cancel_requests(challenger.player_id, outbox)
            self._cancel_requests(player_id, outbox)
            match = Match.create(
                (challenger.player_id, challenger.name), (responder.player_id, responder.name)
            )
            self.matches[match.id] = match
            for slot, opponent in ((challenger, responder), (responder, challenger)):
                self.registry.set_status(slot.player_id, PlayerStatus.IN_GAME, match.id)
                outbox.to(slot.player_id, "matchStarted", {"gameId": match.id, "opponentName": opponent.name})
            logger.info("Match %s started: %s vs %s", match.id, challenger.player_id, player_id)
        outbox.broadcast("playerList", {"players": self.registry.list_players()})

    def _on_cancel_match(
        self, player_id: PlayerId, conn_id: ConnectionId, payload: dict, outbox: Outbox
    ) -> None:
        """Withdraw a challenge, call off a match in setup, or surrender a match in combat."""
        entry = self.registry.require(player_id)
        match = self._live_match(entry.current_game_id)
        if match is None:
            if not self._cancel_requests(player_id, outbox):
                raise MatchRequestError("Nothing to cancel.")
        elif match.state == MatchState.COMBAT:
            winner = match.forfeit(player_id)
            outbox.to_match(match, "gameOver", self._game_over_payload(match, winner))
            self._release_players(match)
        else:
            match.abort()
            opponent = match.opponent_of(player_id)
            outbox.to(opponent.player_id, "opponentLeft", {"socketId": player_id})
            self._release_players(match)
            logger.info("Match %s aborted during setup by %s", match.id, player_id)
        outbox.broadcast("playerList", {"players": self.registry.list_players()})

    def _on_submit_board(
        self, player_id: PlayerId, conn_id: ConnectionId, payload: dict, outbox: Outbox
    ) -> None:
        request = self._parse(SubmitBoardRequest, payload)
        match = self._require_match(request.game_id, player_id)
        board = Board.from_dict(request.board)
        piece_names = sorted(piece["name"] for piece in request.pieces)
        if piece_names != sorted(unit.name for unit in board.units):
            raise InvalidBoardError("Deployed pieces do not match the board.")

        both_ready = match.submit_board(player_id, board)
        outbox.to_match(match, "playerReady", {"socketId": player_id})
        if both_ready:
            order = match.start_combat(self.rng)
            outbox.to_match(match, "setupComplete", {"gameId": match.id})
            outbox.to_match(match, "turnStart", {"currentTurn": match.current_turn, "order": order})
            logger.info("Match %s entering combat, order %s", match.id, order)

    def _on_attack(
        self, player_id: PlayerId, conn_id: ConnectionId, payload: dict, outbox: Outbox
    ) -> None:
        request = self._parse(AttackRequest, payload)
        match = self._require_match(request.game_id, player_id)
        result = match.attack(player_id, request.coordinate)
        outbox.to_match(
            match,
            "attackResult",
            {"attacker": player_id, "coordinate": request.coordinate, "result": result.to_payload()},
        )
        if match.is_terminated:
            outbox.to_match(match, "gameOver", self._game_over_payload(match, player_id))
            self._release_players(match)
            outbox.broadcast("playerList", {"players": self.registry.list_players()})
            logger.info("Match %s won by %s", match.id, player_id)
        else:
            outbox.to_match(match, "turnStart", {"currentTurn": match.current_turn, "order": list(match.order)})

    def _on_request_game_state(
        self, player_id: PlayerId, conn_id: ConnectionId, payload: dict, outbox: Outbox
    ) -> None:
        request = self._parse(GameStateRequest, payload)
        match = self._find_match(request.game_id, player_id)
        outbox.to(player_id, "gameState", match.to_dict())

    def _on_resume_session(
        self, player_id: PlayerId, conn_id: ConnectionId, payload: dict, outbox: Outbox
    ) -> None:
        """Re-bind this new connection to a player that dropped out of a match within its grace window."""
        request = self._parse(ResumeSessionRequest, payload)
        if self.registry.get(player_id) is not None:
            raise StaleSessionError("This connection is already registered.")
        entry = self.registry.get(request.socket_id)
        if entry is None or not secrets.compare_digest(entry.token, request.token):
            raise StaleSessionError("Unknown or expired session.")
        if entry.status != PlayerStatus.DISCONNECTED:
            raise StaleSessionError("Session is still connected.")

        task = self._grace_tasks.pop(entry.player_id, None)
        if task is not None:
            task.cancel()
        self._player_by_conn[conn_id] = entry.player_id
        self._conn_by_player[entry.player_id] = conn_id
        self._conn_by_player.pop(conn_id, None)

        match = self._live_match(entry.current_game_id)
        outbox.to(
            entry.player_id,
            "playerRegistered",
            {"socketId": entry.player_id, "name": entry.name, "token": entry.token},
        )
        if match is None:
            self.registry.set_status(entry.player_id, PlayerStatus.ONLINE)
        else:
            self.registry.set_status(entry.player_id, PlayerStatus.IN_GAME, match.id)
            match.mark_connected(entry.player_id)
            opponent = match.opponent_of(entry.player_id)
            outbox.to(opponent.player_id, "opponentReconnected", {"socketId": entry.player_id})
            outbox.to(entry.player_id, "gameState", match.to_dict())
        outbox.broadcast("playerList", {"players": self.registry.list_players()})
        logger.info("Player %s resumed on connection %s", entry.player_id, conn_id)

    def _on_save_match(
        self, player_id: PlayerId, conn_id: ConnectionId, payload: dict, outbox: Outbox
    ) -> None:
        request = self._parse(SaveMatchRequest, payload)
        if self.save_handler is None:
            raise GameStateError("Saving is not available.")
        match = self._find_match(request.game_id, player_id)
        outbox.save(
            request.player_name,
            {"mode": GameMode.PVP_ONLINE.value, "game": match.to_dict(board_owner=player_id)},
        )
        outbox.to(player_id, "saved", {"success": True})

    # -- PRIVATE HELPERS ---
    @staticmethod
    def _parse(model: type[ModelT], data: object) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            fields = ", ".join(".".join(str(part) for part in error["loc"]) or "payload" for error in exc.errors())
            raise InvalidRequestError(f"Malformed payload ({fields}).") from exc

    def _find_match(self, game_id: str, player_id: PlayerId) -> Match:
        match = self.matches.get(game_id)
        if match is None:
            raise UnknownGameError("Game no longer exists.")
        if player_id not in match.players:
            raise PlayerUnavailableError("Player not in game.")
        return match

    def _require_match(self, game_id: str, player_id: PlayerId) -> Match:
        """Like `_find_match`, but the match must still be running."""
        match = self._find_match(game_id, player_id)
        if match.is_terminated:
            raise UnknownGameError("Game is already over.")
        return match

    def _live_match(self, game_id: Optional[str]) -> Optional[Match]:
        match = self.matches.get(game_id) if game_id else None
        if match is None or match.is_terminated:
            return None
        return match

    def _cancel_requests(self, player_id: PlayerId, outbox: Outbox) -> list[MatchRequest]:
        cancelled = self.registry.cancel_requests(player_id)
        entry = self.registry.get(player_id)
        name = entry.name if entry else None
        for request in cancelled:
            other = request.opponent_id if request.challenger_id == player_id else request.challenger_id
            outbox.to(other, "matchRequestCancelled", {"socketId": player_id, "name": name})
        return cancelled

    def _release_players(self, match: Match) -> None:
        """Match over: everyone still connected goes back to the lobby."""
        for player_id, slot in match.players.items():
            if slot.connected:
                self.registry.set_status(player_id, PlayerStatus.ONLINE)

    def _game_over_payload(self, match: Match, winner: PlayerId) -> dict:
        return {
            "gameId": match.id,
            "winner": winner,
            "winnerName": match.players[winner].name,
            "reason": match.end_reason.value if match.end_reason else None,
        }

    async def _grace_period(self, player_id: PlayerId) -> None:
        await asyncio.sleep(self.reconnect_grace_seconds)
        await self.expire_session(player_id)

    @staticmethod
    def _log_grace_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Grace period expiry failed", exc_info=exc)

    async def _flush(self, outbox: Outbox) -> None:
        for recipient, event, payload in outbox.messages:
            if recipient is None:
                for conn_id in list(self._connections):
                    await self._send_to_conn(conn_id, event, payload)
            else:
                conn_id = self._conn_by_player.get(recipient)
                if conn_id is not None:
                    await self._send_to_conn(conn_id, event, payload)

    async def _send_to_conn(self, conn_id: ConnectionId, event: str, payload: dict) -> None:
        connection = self._connections.get(conn_id)
        if connection is None:
            return
        try:
            await connection.send_json({"type": event, "payload": payload})
        except Exception:
            # the socket loop notices the dead connection and calls `disconnect`
            logger.warning("Could not deliver %s to connection %s", event, conn_id, exc_info=True)
