"""
Enumeration types for the REST router.

These enums provide type-safe constants for fetch error classification,
nonce states and logging levels.
"""

from enum import Enum


class FetchErrorType(Enum):
    """Classification of a failed fetch attempt."""

    URL_PARSE_ERROR = "url_parse_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    TLS_ERROR = "tls_error"
    NOT_AUTHENTICATED = "not_authenticated"
    NOT_FOUND = "not_found"
    HTTP_ERROR = "http_error"
    SERVER_ERROR = "server_error"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


class NonceStatus(Enum):
    """Tag of the per-site nonce variant."""

    UNKNOWN = "unknown"
    AVAILABLE = "available"
    FAILED_REQUEST = "failed_request"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}
