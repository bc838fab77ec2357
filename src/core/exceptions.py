"""
Custom exceptions shared by all layers.

Every exception carries a short `code` so the session hub and the API layer can report a named error back to the
client that caused it without leaking internals.
"""


class GameError(Exception):
    """Top-level exception for anything the game refuses to do."""

    code = "game_error"


class InvalidRequestError(GameError):
    code = "invalid_request"


class InvalidCoordinateError(GameError):
    code = "invalid_coordinate"


class PlacementError(GameError):
    code = "placement"


class InvalidBoardError(GameError):
    """A submitted board payload breaks the roster or the cell/unit bookkeeping."""

    code = "invalid_board"


class GameStateError(GameError):
    code = "game_state"


class NotYourTurnError(GameError):
    code = "not_your_turn"


class AlreadyTargetedError(GameError):
    code = "already_targeted"


class UnknownGameError(GameError):
    code = "unknown_game"


class PlayerUnavailableError(GameError):
    code = "player_unavailable"


class MatchRequestError(GameError):
    code = "match_request"


class StaleSessionError(GameError):
    """Resume attempt for a session that is unknown, still connected, or past its grace window."""

    code = "stale_session"


class RepositoryError(GameError):
    code = "repository"
