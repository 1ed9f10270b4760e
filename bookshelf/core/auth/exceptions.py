"""Custom exception classes for the auth module."""

from .models import AuthErrorKind

DUPLICATE_ACCOUNT_MESSAGE = "User with this email already exists , Please try with another email"


class AuthError(Exception):
    """Base class for authentication-related errors."""

    kind: AuthErrorKind = AuthErrorKind.UNEXPECTED

    def __init__(self, message: str = "Authentication error occurred."):
        self.message = message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Raised when a form is missing a required field or has a malformed one."""

    kind = AuthErrorKind.VALIDATION

    def __init__(self, message: str = "Invalid input."):
        super().__init__(message)


class ProviderError(AuthError):
    """Raised when the identity provider rejects a request. Carries the provider's message."""

    kind = AuthErrorKind.PROVIDER

    def __init__(self, message: str = "Identity provider request failed."):
        super().__init__(message)


class DuplicateAccountError(AuthError):
    """Raised when signing up with an email that already has an account."""

    kind = AuthErrorKind.DUPLICATE_ACCOUNT

    def __init__(self, message: str = DUPLICATE_ACCOUNT_MESSAGE):
        super().__init__(message)


class CodeExchangeError(AuthError):
    """Raised when an auth code is invalid, expired or was already used."""

    kind = AuthErrorKind.CODE_EXCHANGE

    def __init__(self, message: str = "Auth code could not be exchanged for a session."):
        super().__init__(message)


class IdentityFetchError(AuthError):
    """Raised when there is no current user for the session."""

    kind = AuthErrorKind.IDENTITY_FETCH

    def __init__(self, message: str = "No authenticated user."):
        super().__init__(message)


class ProfileWriteError(AuthError):
    """Raised when the local profile row cannot be written."""

    kind = AuthErrorKind.PROFILE_WRITE

    def __init__(self, message: str = "Failed to write user profile."):
        super().__init__(message)


class UnexpectedError(AuthError):
    kind = AuthErrorKind.UNEXPECTED

    def __init__(self, message: str = "Unexpected authentication failure."):
        super().__init__(message)
