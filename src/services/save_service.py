"""Orchestration of communication from API router / session hub to the persistence layer (and the reverse direction)."""

import logging
from typing import Any, Optional

from src.api.models import SavePayload
from src.core.exceptions import InvalidRequestError
from src.core.models import SaveModel
from src.db.repository import SaveRepository

logger = logging.getLogger(__name__)


class SaveService:
    """Save / load / delete of the opaque game blobs, keyed by player name."""

    def __init__(self, repository: SaveRepository) -> None:
        self.repo = repository

    def load(self, player_name: str) -> Optional[dict[str, Any]]:
        """The stored blob plus its `updatedAt` stamp, or None if the player has no save."""
        save = self.repo.get_save(self._clean_name(player_name))
        if save is None:
            return None
        return self._to_response(save)

    def store(self, player_name: str, payload: SavePayload | dict[str, Any]) -> dict[str, Any]:
        """Overwrite the player's save with a new blob."""
        if not isinstance(payload, SavePayload):
            payload = SavePayload.model_validate(payload)
        stored = self.repo.upsert_save(
            SaveModel(player_name=self._clean_name(player_name), state=payload.model_dump())
        )
        logger.info("Stored %s save for %r", stored.state.get("mode"), stored.player_name)
        return self._to_response(stored)

    def delete(self, player_name: str) -> None:
        removed = self.repo.delete_save(self._clean_name(player_name))
        if removed is not None:
            logger.info("Deleted save for %r", removed.player_name)

    def count(self) -> int:
        return self.repo.count_saves()

    # -- Internal helpers --
    @staticmethod
    def _clean_name(player_name: str) -> str:
        name = player_name.strip()
        if not name:
            raise InvalidRequestError("Player name is required.")
        return name

    @staticmethod
    def _to_response(save: SaveModel) -> dict[str, Any]:
        response = dict(save.state)
        response["updatedAt"] = save.updated_at.isoformat() if save.updated_at else None
        return response
