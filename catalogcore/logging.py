"""Logging setup shared by the portal entry point and tooling."""

import logging


def setup_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Silence noisy libraries
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
