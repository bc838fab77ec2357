"""Unit tests for src/session/registry.py"""

import pytest

from src.core.exceptions import MatchRequestError, PlayerUnavailableError
from src.core.shared_types import PlayerStatus
from src.session.registry import PlayerRegistry


@pytest.fixture
def registry() -> PlayerRegistry:
    registry = PlayerRegistry(max_name_length=10)
    for player_id, name in [("a", "Alice"), ("b", "Bob"), ("c", "Carol")]:
        registry.register(player_id, name)
    return registry


@pytest.mark.parametrize(
    "raw, expected",
    [("  Dave  ", "Dave"), ("", "Player"), ("   ", "Player"), (None, "Player"), (42, "Player"), ("x" * 20, "x" * 10)],
)
def test_register_sanitizes_names(raw: object, expected: str) -> None:
    registry = PlayerRegistry(max_name_length=10)
    entry = registry.register("d", raw)
    assert entry.name == expected
    assert entry.status == PlayerStatus.ONLINE
    assert entry.token


def test_re_register_keeps_identity(registry: PlayerRegistry) -> None:
    token = registry.require("a").token
    entry = registry.register("a", "Alicia")
    assert entry.name == "Alicia"
    assert entry.token == token
    assert len(registry) == 3


def test_unregister(registry: PlayerRegistry) -> None:
    assert registry.unregister("a") is not None
    assert registry.unregister("a") is None
    with pytest.raises(PlayerUnavailableError):
        registry.require("a")
    assert [player["name"] for player in registry.list_players()] == ["Bob", "Carol"]


def test_create_request(registry: PlayerRegistry) -> None:
    request = registry.create_request("a", "b")
    assert (request.challenger_id, request.opponent_id) == ("a", "b")
    assert registry.require("a").status == PlayerStatus.PENDING
    assert registry.require("b").status == PlayerStatus.PENDING
    assert registry.outgoing_request("a") is request
    assert registry.incoming_request("b") is request
    assert registry.pending_count == 1


@pytest.mark.parametrize(
    "challenger, opponent, error",
    [
        ("a", "a", MatchRequestError),
        ("a", "zz", PlayerUnavailableError),
        ("zz", "a", PlayerUnavailableError),
    ],
)
def test_create_request_rejections(
    registry: PlayerRegistry, challenger: str, opponent: str, error: type
) -> None:
    with pytest.raises(error):
        registry.create_request(challenger, opponent)
    assert registry.pending_count == 0


def test_one_outgoing_and_one_incoming_per_player(registry: PlayerRegistry) -> None:
    registry.create_request("a", "b")
    with pytest.raises(MatchRequestError):
        registry.create_request("a", "c")
    with pytest.raises(MatchRequestError):
        registry.create_request("c", "b")
    # a pending player may still receive a challenge
    registry.create_request("c", "a")
    assert registry.pending_count == 2


def test_busy_players_cannot_be_challenged(registry: PlayerRegistry) -> None:
    registry.set_status("b", PlayerStatus.IN_GAME, "game-1")
    assert registry.require("b").current_game_id == "game-1"
    with pytest.raises(PlayerUnavailableError):
        registry.create_request("a", "b")


def test_resolve_request(registry: PlayerRegistry) -> None:
    registry.create_request("a", "b")
    with pytest.raises(MatchRequestError):
        registry.resolve_request("a")
    request = registry.resolve_request("b")
    assert request.challenger_id == "a"
    assert registry.pending_count == 0
    assert registry.require("a").status == PlayerStatus.ONLINE
    assert registry.require("b").status == PlayerStatus.ONLINE


def test_cancel_keeps_pending_status_of_other_requests(registry: PlayerRegistry) -> None:
    registry.create_request("a", "b")
    registry.create_request("c", "a")
    cancelled = registry.cancel_requests("b")
    assert [(r.challenger_id, r.opponent_id) for r in cancelled] == [("a", "b")]
    # a is still challenged by c
    assert registry.require("a").status == PlayerStatus.PENDING
    assert registry.require("b").status == PlayerStatus.ONLINE

    assert len(registry.cancel_requests("a")) == 1
    assert registry.pending_count == 0
    assert all(player["status"] == "online" for player in registry.list_players())
