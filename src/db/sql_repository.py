"""Implementation of (Save)Repository using SQLAlchemy"""

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.exceptions import RepositoryError
from src.core.models import SaveModel
from src.db.schema import DBSave, utc_now


class SQLSaveRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_save(self, player_name: str) -> SaveModel | None:
        """Get a player's save, if a record exists."""
        save_db = self._fetch_save(player_name)
        if save_db:
            return self._to_model(save_db)
        return None

    def upsert_save(self, save: SaveModel) -> SaveModel:
        """Store the save, replacing any earlier one for the same player."""
        save_db = self._fetch_save(save.player_name)
        if save_db is None:
            save_db = DBSave(
                player_name=save.player_name,
                mode=str(save.state.get("mode", "")),
                state=save.state,
            )
            self.db.add(save_db)
        else:
            save_db.mode = str(save.state.get("mode", ""))
            save_db.state = save.state
            save_db.updated_at = utc_now()
        self._commit()
        self.db.refresh(save_db)
        return self._to_model(save_db)

    def delete_save(self, player_name: str) -> SaveModel | None:
        """Remove a player's save."""
        save_db = self._fetch_save(player_name)
        if not save_db:
            return None
        save_model = self._to_model(save_db)
        self.db.delete(save_db)
        self._commit()
        return save_model

    def count_saves(self) -> int:
        return self.db.scalar(select(func.count()).select_from(DBSave)) or 0

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError("Could not write the save.") from exc

    def _fetch_save(self, player_name: str) -> DBSave | None:
        query = select(DBSave).where(DBSave.player_name == player_name)
        return self.db.scalar(query)

    def _to_model(self, save_db: DBSave) -> SaveModel:
        """Convert SQLAlchemy model to data transfer model."""
        return SaveModel(
            player_name=save_db.player_name,
            state=dict(save_db.state),
            updated_at=save_db.updated_at,
        )
