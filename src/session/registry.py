"""
Directory of online players and outstanding challenges.

The PlayerRegistry is the single owner of both tables. Connection handlers never touch the dictionaries directly;
each public method applies one complete change, so on the event loop every request is atomic.
"""

import logging
import secrets
from dataclasses import dataclass, field
from typing import Optional

from src.core.exceptions import MatchRequestError, PlayerUnavailableError
from src.core.shared_types import PlayerStatus

logger = logging.getLogger(__name__)

PlayerId = str


@dataclass
class PlayerEntry:
    player_id: PlayerId
    name: str
    token: str = field(default_factory=lambda: secrets.token_urlsafe(16))
    status: PlayerStatus = PlayerStatus.ONLINE
    current_game_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {"socketId": self.player_id, "name": self.name, "status": self.status.value}


@dataclass
class MatchRequest:
    challenger_id: PlayerId
    opponent_id: PlayerId


class PlayerRegistry:
    def __init__(self, max_name_length: int = 30) -> None:
        self.max_name_length = max_name_length
        self._players: dict[PlayerId, PlayerEntry] = {}
        # keyed by challenger: one outgoing request per player
        self._requests: dict[PlayerId, MatchRequest] = {}

    # -- roster ---
    def register(self, player_id: PlayerId, name: object) -> PlayerEntry:
        """(Re-)register a connection under a display name. Blank or non-string names become 'Player'."""
        safe_name = name.strip()[: self.max_name_length] if isinstance(name, str) else ""
        entry = self._players.get(player_id)
        if entry is None:
            entry = PlayerEntry(player_id, safe_name or "Player")
            self._players[player_id] = entry
            logger.info("Player %s registered as %r", player_id, entry.name)
        else:
            entry.name = safe_name or entry.name
        return entry

    def unregister(self, player_id: PlayerId) -> Optional[PlayerEntry]:
        entry = self._players.pop(player_id, None)
        if entry is not None:
            logger.info("Player %s (%r) left the roster", player_id, entry.name)
        return entry

    def get(self, player_id: PlayerId) -> Optional[PlayerEntry]:
        return self._players.get(player_id)

    def require(self, player_id: PlayerId) -> PlayerEntry:
        entry = self._players.get(player_id)
        if entry is None:
            raise PlayerUnavailableError("Register before taking part in a match.")
        return entry

    def list_players(self) -> list[dict]:
        return [entry.to_dict() for entry in self._players.values()]

    def __len__(self) -> int:
        return len(self._players)

    def set_status(
        self, player_id: PlayerId, status: PlayerStatus, game_id: Optional[str] = None
    ) -> None:
        entry = self._players.get(player_id)
        if entry is None:
            return
        entry.status = status
        if status in (PlayerStatus.IN_GAME, PlayerStatus.ONLINE):
            entry.current_game_id = game_id

    # -- pending challenges ---
    def create_request(self, challenger_id: PlayerId, opponent_id: PlayerId) -> MatchRequest:
        """
        Challenge another player.
        ----
        Rejected when: challenging yourself, either side unknown or busy,
        the challenger already has an outgoing request, or the opponent already has an incoming one.
        """
        challenger = self.require(challenger_id)
        opponent = self._players.get(opponent_id)
        if challenger_id == opponent_id:
            raise MatchRequestError("You cannot challenge yourself.")
        if opponent is None:
            raise PlayerUnavailableError("Opponent unavailable.")
        if challenger_id in self._requests:
            raise MatchRequestError("You already have a pending challenge.")
        if self.incoming_request(opponent_id) is not None:
            raise MatchRequestError("Opponent already has a pending challenge.")
        if not (_is_available(challenger) and _is_available(opponent)):
            raise PlayerUnavailableError("Either player is busy.")

        request = MatchRequest(challenger_id, opponent_id)
        self._requests[challenger_id] = request
        challenger.status = PlayerStatus.PENDING
        opponent.status = PlayerStatus.PENDING
        logger.info("Match request %s -> %s", challenger_id, opponent_id)
        return request

    def incoming_request(self, opponent_id: PlayerId) -> Optional[MatchRequest]:
        return next(
            (request for request in self._requests.values() if request.opponent_id == opponent_id),
            None,
        )

    def outgoing_request(self, challenger_id: PlayerId) -> Optional[MatchRequest]:
        return self._requests.get(challenger_id)

    def resolve_request(self, opponent_id: PlayerId) -> MatchRequest:
        """Remove the request addressed to `opponent_id` (accepted or rejected). Both sides go back online."""
        request = self.incoming_request(opponent_id)
        if request is None:
            raise MatchRequestError("No pending challenge to respond to.")
        self._drop(request)
        return request

    def cancel_requests(self, player_id: PlayerId) -> list[MatchRequest]:
        """Drop every request this player takes part in, either direction."""
        cancelled = [
            request
            for request in list(self._requests.values())
            if player_id in (request.challenger_id, request.opponent_id)
        ]
        for request in cancelled:
            self._drop(request)
            logger.info("Match request %s -> %s cancelled", request.challenger_id, request.opponent_id)
        return cancelled

    @property
    def pending_count(self) -> int:
        return len(self._requests)

    def _involved(self, player_id: PlayerId) -> bool:
        return any(
            player_id in (request.challenger_id, request.opponent_id)
            for request in self._requests.values()
        )

    def _drop(self, request: MatchRequest) -> None:
        self._requests.pop(request.challenger_id, None)
        for player_id in (request.challenger_id, request.opponent_id):
            entry = self._players.get(player_id)
            if entry is not None and entry.status == PlayerStatus.PENDING and not self._involved(player_id):
                entry.status = PlayerStatus.ONLINE


def _is_available(entry: PlayerEntry) -> bool:
    return entry.status in (PlayerStatus.ONLINE, PlayerStatus.PENDING)
