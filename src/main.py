"""Entrypoint: `python -m src.main` serves the API and the session socket with uvicorn."""

import uvicorn

from src.core.config import get_settings
from src.core.logging_config import configure_logging


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run("src.api.app:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
