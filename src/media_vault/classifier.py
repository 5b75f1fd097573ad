"""Classification of failed requests into remediation paths."""

from __future__ import annotations

from enum import Enum

import httpx

from media_vault.exceptions import (
    ApplicationError,
    MediaVaultError,
    NetworkUnreachableError,
    UnauthorizedError,
)

GENERIC_ERROR_MESSAGE = "An error occurred"


class ErrorKind(str, Enum):
    NETWORK_UNREACHABLE = "network_unreachable"
    UNAUTHORIZED = "unauthorized"
    APPLICATION_ERROR = "application_error"


class ResponseErrorClassifier:
    """Decides what kind of failure a request ended in.

    ``response`` is None when the transport raised before any response arrived.
    """

    unauthorized_statuses = frozenset({401})

    def classify(
        self,
        response: httpx.Response | None,
        error: Exception | None = None,
    ) -> ErrorKind:
        if response is None:
            if error is not None and not isinstance(error, httpx.TransportError):
                return ErrorKind.APPLICATION_ERROR
            return ErrorKind.NETWORK_UNREACHABLE
        if response.status_code in self.unauthorized_statuses:
            return ErrorKind.UNAUTHORIZED
        return ErrorKind.APPLICATION_ERROR

    @staticmethod
    def extract_message(response: httpx.Response) -> str | None:
        """Pull a human-readable message out of an error body.

        JSON bodies yield ``message``, then ``error``, then a generic fallback.
        Plain-text bodies yield their text. Empty bodies yield None.
        """
        if not response.content:
            return None
        try:
            data = response.json()
        except ValueError:
            return response.text.strip() or None

        if isinstance(data, dict):
            for field in ("message", "error"):
                value = data.get(field)
                if isinstance(value, str) and value:
                    return value
            return GENERIC_ERROR_MESSAGE
        return None

    def to_error(self, response: httpx.Response) -> MediaVaultError:
        """Build the normalized exception for a failed response."""
        message = self.extract_message(response) or f"API error (HTTP {response.status_code})"
        if self.classify(response) is ErrorKind.UNAUTHORIZED:
            return UnauthorizedError(message, status_code=response.status_code)
        return ApplicationError(message, status_code=response.status_code)

    @staticmethod
    def network_error() -> NetworkUnreachableError:
        return NetworkUnreachableError()
