"""Module entrypoint for running the quotation API server."""

from __future__ import annotations

import logging
import os

from .config import LOG_LEVEL, env_int
from .server import DependencyError, run

logger = logging.getLogger("quotation_generator")


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    configure_logging()
    host = os.getenv("QUOTATION_HOST", "0.0.0.0")
    port = env_int("QUOTATION_PORT", 8080, minimum=1)
    try:
        run(host, port)
    except DependencyError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
