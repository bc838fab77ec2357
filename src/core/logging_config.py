"""Logging setup, called once by the entrypoint / app factory."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # uvicorn installs its own handlers; keep its access log but align the level
    logging.getLogger("uvicorn").setLevel(level.upper())
