"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

import random
from typing import Callable, Generator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.combat.board import Board
from src.combat.placement import random_board
from src.combat.units import UNITS_BY_NAME
from src.db.schema import Base

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


@pytest.fixture
def db_session_shared() -> Generator[Session, None, None]:
    """Connection to a test database. Mock real setup with multiple sessions connecting to the same engine / database tables."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# --- GAME FIXTURES ---
# Fixed layout, one unit per row starting in column 1:
#   A1-A4 Tank Convoy, B1-B2 Recon Vehicle, C1-C2 Fighter Jet,
#   D1-D5 Missile Launcher, E1-E3 Supply Truck, F1 Drone
FIXED_LAYOUT: dict[str, list[str]] = {
    "Tank Convoy": ["A1", "A2", "A3", "A4"],
    "Recon Vehicle": ["B1", "B2"],
    "Fighter Jet": ["C1", "C2"],
    "Missile Launcher": ["D1", "D2", "D3", "D4", "D5"],
    "Supply Truck": ["E1", "E2", "E3"],
    "Drone": ["F1"],
}


def build_fixed_board() -> Board:
    board = Board.empty()
    for name, coordinates in FIXED_LAYOUT.items():
        board.place(UNITS_BY_NAME[name], coordinates)
    return board


@pytest.fixture
def fixed_board() -> Board:
    return build_fixed_board()


@pytest.fixture
def board_factory() -> Callable[[], Board]:
    """Fresh, independent copies of the fixed layout."""
    return build_fixed_board


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def random_layout(rng: random.Random) -> Board:
    return random_board(rng)
