"""
Type definitions used across layers
"""

from enum import StrEnum


class Orientation(StrEnum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class Difficulty(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HARD = "hard"


class GameMode(StrEnum):
    SOLO = "solo"
    PVP = "pvp"
    PVP_ONLINE = "pvp-online"


class Status(StrEnum):
    """Status of a solo game."""

    SETUP = "setup"
    IN_PROGRESS = "in progress"
    VICTORY = "victory"
    DEFEAT = "defeat"


class PlayerStatus(StrEnum):
    """Where a registered player is in the lobby."""

    ONLINE = "online"
    PENDING = "pending"
    IN_GAME = "in_game"
    DISCONNECTED = "disconnected"


class MatchState(StrEnum):
    SETUP = "setup"
    COMBAT = "combat"
    TERMINATED = "terminated"


class EndReason(StrEnum):
    VICTORY = "victory"
    FORFEIT = "forfeit"
    DISCONNECT = "disconnect"
    ABORTED = "aborted"


class PlacementWarning(StrEnum):
    """User-facing reasons a deployment attempt was refused. These are reported, never raised."""

    CAP_REACHED = "cap_reached"
    UNKNOWN_UNIT = "unknown_unit"
    DUPLICATE_UNIT = "duplicate_unit"
    INVALID_PLACEMENT = "invalid_placement"
    INVALID_ORIENTATION = "invalid_orientation"
    LOCKED = "locked"


class StatusLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    DANGER = "danger"
