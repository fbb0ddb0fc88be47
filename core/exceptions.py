"""
Error taxonomy of the authentication service.

Services raise these; the handlers registered in main.py turn them into the
standard error envelope. Nothing below the router layer raises HTTPException.
"""

from starlette import status


class AuthServiceError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal Server Error"
    default_message = "An internal server error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Bad Request"
    default_message = "Invalid request"


class InvalidCredentials(AuthServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"
    # Same text for unknown principal and wrong secret
    default_message = "Invalid credentials"

    def __init__(self):
        super().__init__(self.default_message)


class InvalidRefresh(AuthServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"
    default_message = "Invalid refresh token"


class RefreshExpired(AuthServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"
    default_message = "Refresh token expired"


class NotAuthenticated(AuthServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"
    default_message = "Not authenticated"


class TooManyAttempts(AuthServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "Too Many Requests"

    def __init__(self, retry_after_seconds: int, message: str | None = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            message or f"Too many attempts. Retry in {retry_after_seconds} seconds"
        )


class TransientStorageError(AuthServiceError):
    """Store unavailable or deadline exceeded. The cause is logged, never returned."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal Server Error"
    default_message = "A server error occurred"


class TokenVerificationError(Exception):
    """An access token could not be verified."""


class InvalidSignature(TokenVerificationError):
    pass


class MalformedToken(TokenVerificationError):
    pass
