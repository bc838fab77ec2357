"""
Runtime configuration.

Values are read from `GRIDOPS_*` environment variables once, validated by pydantic, and shared through `get_settings`.
Game rules (grid size, roster) are not configurable and live with the combat modules.
"""

import os
from functools import lru_cache

from pydantic import BaseModel, Field

ENV_PREFIX = "GRIDOPS_"


class Settings(BaseModel):
    environment: str = "production"
    database_url: str = "sqlite:///./gridops.db"
    host: str = "0.0.0.0"
    port: int = Field(default=4000, ge=1, le=65535)
    log_level: str = "INFO"
    # seconds a disconnected player may take to resume before the match is torn down
    reconnect_grace_seconds: float = Field(default=30.0, ge=0)
    max_name_length: int = Field(default=30, ge=1)
    cors_origins: list[str] = ["*"]

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from the environment, ignoring variables that are not set."""
        environ = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            values[name] = raw.split(",") if name == "cors_origins" else raw
        return cls.model_validate(values)


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
