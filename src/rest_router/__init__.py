"""
REST Router - request routing for hosted and self-hosted JSON APIs.

This package routes relative API paths for a site to either the hosted
JSON API or the site's own API, handling REST base discovery, nonce
acquisition and one-shot recovery from stale nonces and REST URLs.
"""

__version__ = "0.1.0"

from rest_router.exceptions import (
    RestRouterError,
    ConfigurationError,
    PersistenceError,
    TamperingError,
    DuplicateSiteError,
)
from rest_router.enums import (
    FetchErrorType,
    NonceStatus,
    LogLevel,
)
from rest_router.config import (
    HttpConfig,
    HostedApiConfig,
    NonceConfig,
    PersistenceConfig,
    LoggingConfig,
    RouterConfig,
)
from rest_router.models import (
    Site,
    Nonce,
    UnknownNonce,
    AvailableNonce,
    FailedNonceRequest,
    FetchError,
    FetchSuccess,
    FetchFailure,
    FetchOutcome,
)
from rest_router.url_utils import (
    slash_join,
    parse_path_and_params,
    scope_hosted_path,
)
from rest_router.audit_logger import (
    AuditLogger,
    LogEntry,
)
from rest_router.fetch_clients import (
    HostedFetchClient,
    SelfHostedFetchClient,
)
from rest_router.nonce_client import NonceClient
from rest_router.discovery_client import DiscoveryClient
from rest_router.site_store import SiteStore
from rest_router.router import RequestRouter

__all__ = [
    # Exceptions
    "RestRouterError",
    "ConfigurationError",
    "PersistenceError",
    "TamperingError",
    "DuplicateSiteError",
    # Enums
    "FetchErrorType",
    "NonceStatus",
    "LogLevel",
    # Configuration
    "HttpConfig",
    "HostedApiConfig",
    "NonceConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "RouterConfig",
    # Models
    "Site",
    "Nonce",
    "UnknownNonce",
    "AvailableNonce",
    "FailedNonceRequest",
    "FetchError",
    "FetchSuccess",
    "FetchFailure",
    "FetchOutcome",
    # URL helpers
    "slash_join",
    "parse_path_and_params",
    "scope_hosted_path",
    # Logging
    "AuditLogger",
    "LogEntry",
    # Clients
    "HostedFetchClient",
    "SelfHostedFetchClient",
    "NonceClient",
    "DiscoveryClient",
    # Persistence
    "SiteStore",
    # Router
    "RequestRouter",
]
