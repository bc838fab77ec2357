"""
Boundary layer data model(s).

These objects can be used to communicate with the Service.
Both the API layer (higher) and the db layer (lower) send to/receive from the Service using the model(s) defined here.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

# Type aliases to make SaveModel easier to read
PlayerName = str
SaveState = dict[str, Any]


@dataclass
class SaveModel:
    """Transport-safe representation of a saved game blob, keyed by player name."""

    player_name: PlayerName
    state: SaveState = field(default_factory=dict)
    updated_at: Optional[datetime] = None
