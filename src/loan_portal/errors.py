from __future__ import annotations


class AppError(Exception):
    """Base error for expected failures."""

    def __init__(self, message: str, *, http_status: int = 400):
        super().__init__(message)
        self.message = message
        self.http_status = http_status


# ----------------------------
# Remote API classification
# ----------------------------


class NetworkError(AppError):
    """No response was received from the remote API."""

    def __init__(self, message: str = "service unreachable"):
        super().__init__(message, http_status=503)


class UnauthorizedError(AppError):
    """Remote API answered 401/403. Recovered by the identity context, never displayed."""

    def __init__(self, message: str = "unauthorized", *, remote_status: int = 401):
        super().__init__(message, http_status=401)
        self.remote_status = remote_status


class ValidationError(AppError):
    """4xx with a structured message meant for the user."""

    def __init__(self, message: str, *, remote_status: int = 400):
        super().__init__(message, http_status=400)
        self.remote_status = remote_status


class ServerError(AppError):
    def __init__(self, message: str = "server error", *, remote_status: int = 500):
        super().__init__(message, http_status=502)
        self.remote_status = remote_status


# ----------------------------
# Portal-local
# ----------------------------


class ForbiddenError(AppError):
    def __init__(self, message: str = "forbidden"):
        super().__init__(message, http_status=403)


class NotFoundError(AppError):
    def __init__(self, message: str = "not found"):
        super().__init__(message, http_status=404)


class CatalogUnavailableError(AppError):
    def __init__(self, message: str = "bank catalog unavailable, try again later"):
        super().__init__(message, http_status=503)


class ConfirmationRequiredError(AppError):
    def __init__(self, message: str = "deletion must be confirmed"):
        super().__init__(message, http_status=409)


class DuplicateCredentialError(AppError):
    def __init__(self, message: str = "credentials for this bank are already registered"):
        super().__init__(message, http_status=409)


class SessionSupersededError(AppError):
    """A login/register finished after the session was logged out or replaced."""

    def __init__(self, message: str = "session changed while the request was in flight"):
        super().__init__(message, http_status=409)
