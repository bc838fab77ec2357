"""Request and Response models: the JSON shapes of the session protocol and of the save endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.combat.coordinates import is_valid, normalize
from src.core.exceptions import InvalidRequestError


class ProtocolModel(BaseModel):
    """Wire names are camelCase (`gameId`), Python attributes stay snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- SESSION PROTOCOL: CLIENT -> SERVER ---
class Envelope(BaseModel):
    """Every frame on the socket: {"type": "<event>", "payload": {...}}"""

    type: str
    payload: dict[str, Any] = Field(default_factory=dict)


class RegisterPlayerRequest(ProtocolModel):
    name: str = ""


class CreateMatchRequest(ProtocolModel):
    opponent_id: str


class RespondMatchRequest(ProtocolModel):
    accept: bool


class SubmitBoardRequest(ProtocolModel):
    game_id: str
    board: dict[str, Any]
    pieces: list[dict[str, Any]]

    @field_validator("pieces")
    @classmethod
    def validate_pieces(cls, value: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if any(not isinstance(piece.get("name"), str) for piece in value):
            raise InvalidRequestError("Every deployed piece needs a name.")
        return value


class AttackRequest(ProtocolModel):
    game_id: str
    coordinate: str

    @field_validator("coordinate")
    @classmethod
    def validate_coordinate(cls, value: str) -> str:
        coordinate = normalize(value)
        if not is_valid(coordinate):
            raise InvalidRequestError(
                f"Cannot interpret coordinate: {value!r} as a grid coordinate."
            )
        return coordinate


class GameStateRequest(ProtocolModel):
    game_id: str


class ResumeSessionRequest(ProtocolModel):
    socket_id: str
    token: str


class SaveMatchRequest(ProtocolModel):
    game_id: str
    player_name: str


# --- SAVE ENDPOINTS ---
class SavePayload(BaseModel):
    """Opaque save blob. Only `mode` is required, everything else is stored as sent."""

    model_config = ConfigDict(extra="allow")

    mode: str

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, value: str) -> str:
        if not value.strip():
            raise InvalidRequestError("Save payload needs a mode.")
        return value


class SaveResponse(BaseModel):
    success: bool


class StatusResponse(ProtocolModel):
    mode: str
    active_players: int
    games: int
