"""Error types and JSON error payloads returned by the API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

logger = logging.getLogger(__name__)

ErrorResponse = Tuple[int, Dict[str, Any]]

DEFAULT_ERROR_MESSAGE = "Error procesando la solicitud"


class ConfigError(RuntimeError):
    """Raised at startup when required configuration is missing."""


class DependencyError(RuntimeError):
    """Raised when a required runtime dependency is missing."""


class StoreError(RuntimeError):
    """Raised when a call to the hosted database or bucket fails."""


class FontLoadError(RuntimeError):
    """Raised when the invoice fonts cannot be loaded."""

    def __init__(self, message: str, expected: Tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.expected = expected


class FormError(ValueError):
    """Raised when a request body cannot be parsed as a form."""


def error_response(message: str, status: int = 400) -> ErrorResponse:
    return status, {"error": message}


def handle_error(
    exc: BaseException,
    default_message: str = DEFAULT_ERROR_MESSAGE,
    development: bool = False,
) -> ErrorResponse:
    """Build a 500 payload; the exception text is only exposed in development."""
    logger.error("%s: %s", default_message, exc, exc_info=exc)
    message = (str(exc) or default_message) if development else default_message
    return 500, {"error": message}
