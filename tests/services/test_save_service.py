"""Unit tests for src/services/save_service.py"""

from datetime import datetime, timezone
from typing import Generator

import pytest

from src.api.models import SavePayload
from src.core.exceptions import InvalidRequestError
from src.core.models import SaveModel
from src.services.save_service import SaveService

# --- MOCK DEPENDENCIES ----
MOCK_TIMESTAMP = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


class MockRepository:
    """Mock the SaveRepository using a dictionary of save models."""

    def __init__(self) -> None:
        self._saves: dict[str, SaveModel] = {}

    def get_save(self, player_name: str) -> SaveModel | None:
        return self._saves.get(player_name)

    def upsert_save(self, save: SaveModel) -> SaveModel:
        stored = SaveModel(save.player_name, dict(save.state), MOCK_TIMESTAMP)
        self._saves[save.player_name] = stored
        return stored

    def delete_save(self, player_name: str) -> SaveModel | None:
        return self._saves.pop(player_name, None)

    def count_saves(self) -> int:
        return len(self._saves)

    def clear(self) -> None:
        """Clear the repository (useful in between tests)"""
        self._saves.clear()


@pytest.fixture
def mock_repository() -> Generator[MockRepository, None, None]:
    """Ensures to clear the repository between tests"""
    repo = MockRepository()
    try:
        yield repo
    finally:
        repo.clear()


# --- SERVICE - STORE ---
def test_store_and_load(mock_repository: MockRepository) -> None:
    service = SaveService(mock_repository)
    response = service.store("Alice", {"mode": "solo", "difficulty": "hard"})
    assert response == {"mode": "solo", "difficulty": "hard", "updatedAt": MOCK_TIMESTAMP.isoformat()}
    assert service.load("Alice") == response
    assert service.count() == 1


def test_store_accepts_validated_payload(mock_repository: MockRepository) -> None:
    service = SaveService(mock_repository)
    service.store("Alice", SavePayload.model_validate({"mode": "pvp", "gameId": "g"}))
    assert mock_repository.get_save("Alice").state == {"mode": "pvp", "gameId": "g"}


def test_store_overwrites(mock_repository: MockRepository) -> None:
    service = SaveService(mock_repository)
    service.store("Alice", {"mode": "solo", "round": 1})
    service.store("Alice", {"mode": "solo", "round": 2})
    assert service.load("Alice")["round"] == 2
    assert service.count() == 1


def test_player_name_is_trimmed(mock_repository: MockRepository) -> None:
    service = SaveService(mock_repository)
    service.store("  Alice ", {"mode": "solo"})
    assert service.load("Alice") is not None


@pytest.mark.parametrize("name", ["", "   "])
def test_blank_player_name(mock_repository: MockRepository, name: str) -> None:
    service = SaveService(mock_repository)
    with pytest.raises(InvalidRequestError):
        service.store(name, {"mode": "solo"})
    with pytest.raises(InvalidRequestError):
        service.load(name)


def test_store_rejects_payload_without_mode(mock_repository: MockRepository) -> None:
    service = SaveService(mock_repository)
    with pytest.raises(InvalidRequestError):
        service.store("Alice", {"mode": ""})
    assert service.count() == 0


# --- SERVICE - LOAD / DELETE ---
def test_load_unknown_player(mock_repository: MockRepository) -> None:
    assert SaveService(mock_repository).load("Nobody") is None


def test_delete(mock_repository: MockRepository) -> None:
    service = SaveService(mock_repository)
    service.store("Alice", {"mode": "solo"})
    service.delete("Alice")
    assert service.load("Alice") is None
    # deleting twice is fine
    service.delete("Alice")
