"""
Data models for the REST router.

This module defines the site descriptor, the three-state nonce variant and
the two-variant fetch outcome returned by every request.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

from .enums import FetchErrorType, NonceStatus


@dataclass
class Site:
    """A remote installation reachable through the hosted or self-hosted API."""

    url: str
    local_id: int = 0  # Store key, 0 until first persisted
    site_id: int = 0  # Numeric id on the hosted API
    is_using_hosted_api: bool = False
    rest_url: Optional[str] = None  # None means "undiscovered"
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and self.password is not None


@dataclass(frozen=True)
class UnknownNonce:
    """No nonce has been requested for the site yet."""

    @property
    def status(self) -> NonceStatus:
        return NonceStatus.UNKNOWN

    @property
    def value(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class AvailableNonce:
    """A valid nonce token."""

    token: str

    @property
    def status(self) -> NonceStatus:
        return NonceStatus.AVAILABLE

    @property
    def value(self) -> Optional[str]:
        return self.token


@dataclass(frozen=True)
class FailedNonceRequest:
    """The last nonce request failed at `time_of_response` (epoch seconds)."""

    time_of_response: float

    @property
    def status(self) -> NonceStatus:
        return NonceStatus.FAILED_REQUEST

    @property
    def value(self) -> Optional[str]:
        return None


Nonce = Union[UnknownNonce, AvailableNonce, FailedNonceRequest]


@dataclass
class FetchError:
    """Details of a failed fetch attempt."""

    error_type: FetchErrorType
    message: str
    status_code: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "status_code": self.status_code,
        }


@dataclass
class FetchSuccess:
    """Successful fetch; `result` is the decoded JSON body, if any."""

    result: Optional[Any] = None


@dataclass
class FetchFailure:
    """Failed fetch carrying the error classification."""

    error: FetchError

    @property
    def status_code(self) -> Optional[int]:
        return self.error.status_code


FetchOutcome = Union[FetchSuccess, FetchFailure]
