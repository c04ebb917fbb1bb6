"""Module entrypoint for running the service API server."""

from __future__ import annotations

import logging
import sys

from .config import Settings
from .errors import ConfigError, DependencyError
from .logging_config import setup_logging
from .server import run

logger = logging.getLogger("briolete_services")


def main() -> None:
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(1) from exc

    setup_logging(development=settings.is_development)
    try:
        run(settings)
    except DependencyError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
