from typing import Any

from fastapi import status


###############################################################################
## Define all exception classes
###############################################################################
class AppError(Exception):
    """Base class for all application exceptions."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors or []


class DBError(AppError):
    """Custom DB exception for uniform error handling."""


class ConfigurationError(AppError):
    """Raised when a required setting (database, Supabase keys, ...) is missing."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE, errors)
