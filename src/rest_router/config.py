"""
Configuration dataclasses for the REST router.

This module defines the configuration structures for the HTTP transport,
the hosted API, nonce handling, site persistence and logging.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_HOSTED_ORIGIN = "https://public-api.wordpress.com"


@dataclass
class HttpConfig:
    """Transport settings shared by all HTTP clients."""

    timeout_seconds: float = 30.0
    user_agent: str = "rest-router"
    cache_ttl_seconds: float = 60.0
    cache_max_entries: int = 256


@dataclass
class HostedApiConfig:
    """Hosted JSON API settings."""

    origin: str = DEFAULT_HOSTED_ORIGIN
    access_token: Optional[str] = None


@dataclass
class NonceConfig:
    """Nonce acquisition settings."""

    failure_suppression_seconds: float = 5 * 60
    login_path: str = "wp-login.php"
    nonce_path: str = "wp-admin/admin-ajax.php?action=rest-nonce"


@dataclass
class PersistenceConfig:
    """Site persistence configuration."""

    site_file_path: Path
    hmac_secret: str


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class RouterConfig:
    """Main configuration combining all sub-configurations."""

    persistence: PersistenceConfig
    http: HttpConfig = field(default_factory=HttpConfig)
    hosted_api: HostedApiConfig = field(default_factory=HostedApiConfig)
    nonce: NonceConfig = field(default_factory=NonceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
