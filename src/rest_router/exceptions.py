"""
Exception classes for the REST router.

All exceptions inherit from RestRouterError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class RestRouterError(Exception):
    """Base exception for all REST router errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(RestRouterError):
    """Raised when a configuration file cannot be loaded or is invalid."""

    pass


class PersistenceError(RestRouterError):
    """Raised when site persistence fails (file I/O, HMAC validation)."""

    pass


class TamperingError(PersistenceError):
    """Raised when HMAC validation fails, indicating data tampering."""

    pass


class DuplicateSiteError(PersistenceError):
    """Raised when a site with the same URL and API kind is already stored."""

    pass
