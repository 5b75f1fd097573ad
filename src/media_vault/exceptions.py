"""Exception hierarchy raised by the Media Vault client."""

from __future__ import annotations


NETWORK_UNREACHABLE_MESSAGE = "Server is unreachable. Please check your connection."


class MediaVaultError(RuntimeError):
    """Base error carrying a normalized message and a stable error code."""

    code = "RUNTIME_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> dict[str, object]:
        return {"code": self.code, "message": self.message, "status_code": self.status_code}


class NetworkUnreachableError(MediaVaultError):
    """No response was received at all."""

    code = "NETWORK_UNREACHABLE"

    def __init__(self, message: str = NETWORK_UNREACHABLE_MESSAGE) -> None:
        super().__init__(message)


class UnauthorizedError(MediaVaultError):
    """The server rejected the credential and no further recovery is attempted."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized", *, status_code: int | None = 401) -> None:
        super().__init__(message, status_code=status_code)


class SessionExpiredError(UnauthorizedError):
    """Refresh failed or was impossible; local credentials have been cleared."""

    code = "SESSION_EXPIRED"


class RefreshError(MediaVaultError):
    """The refresh-token endpoint did not return new credentials."""

    code = "REFRESH_FAILED"


class TokenStorageError(MediaVaultError):
    """Credentials could not be durably persisted."""

    code = "STORAGE_ERROR"


class ApplicationError(MediaVaultError):
    """Any other HTTP failure, with the server's message when it sent one."""

    code = "APPLICATION_ERROR"
