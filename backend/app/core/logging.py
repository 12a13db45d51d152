from __future__ import annotations

import logging


def setup_logging(*, environment: str, level: str | None = None) -> None:
    """Configure root logging once per process.

    Development logs at DEBUG, everything else at INFO unless ``level`` is set.
    Calling it again is a no-op when handlers already exist.
    """

    root = logging.getLogger()
    if root.handlers:
        return

    env = (environment or "development").strip().lower()
    resolved = level or ("DEBUG" if env == "development" else "INFO")

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    )
    logging.basicConfig(level=resolved, handlers=[handler])

    logging.getLogger("uvicorn.access").setLevel(resolved)
    # SQL echo stays off unless explicitly raised.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
