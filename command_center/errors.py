class AuthError(Exception):
    """Base class for admin authentication failures.

    Messages are safe to return to clients and never say *why* a credential
    was rejected.
    """

    message = "Unauthorized"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidCredentials(AuthError):
    message = "Invalid password"


class InvalidResetToken(AuthError):
    message = "Invalid or expired token"


class WeakPassword(AuthError):
    message = "Password must be at least 8 characters"


class ConfigurationError(Exception):
    """A required secret or setting is missing; operator-facing."""
