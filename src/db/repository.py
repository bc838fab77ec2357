"""Protocol repository (implemented with SQLAlchemy, tests use an in-memory dictionary)"""

from typing import Protocol

from src.core.models import SaveModel


class SaveRepository(Protocol):
    """Persistence layer orchestration"""

    def get_save(self, player_name: str) -> SaveModel | None:
        """Get a player's save, if a record exists."""
        ...

    def upsert_save(self, save: SaveModel) -> SaveModel:
        """Store the save, replacing any earlier one for the same player."""
        ...

    def delete_save(self, player_name: str) -> SaveModel | None:
        """Remove a player's save."""
        ...

    def count_saves(self) -> int:
        """Number of stored saves."""
        ...
