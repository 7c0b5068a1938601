"""Exceptions raised by the service layer and rendered by the app's error handlers."""


class SocialError(Exception):
    """Base exception for domain errors."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(SocialError):
    """Raised when a field is missing or malformed."""

    status_code = 400


class AuthorizationError(SocialError):
    """Raised when the privacy or block rules deny an operation."""

    status_code = 400


class AuthError(SocialError):
    """Raised on bad credentials or when the actor does not own the resource."""

    status_code = 401


class NotFoundError(SocialError):
    """Raised when an account, post, comment or follow request is missing."""

    status_code = 404


class ConflictError(SocialError):
    """Raised when the operation was already performed."""

    status_code = 409


class InternalError(SocialError):
    """Raised when persistence or mail delivery fails."""

    status_code = 500
