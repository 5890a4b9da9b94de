"""
Command-line interface for the REST router.

This module provides the main CLI entry point with commands for:
- request: Execute an API request for a stored site
- site: Manage stored sites (add, list, remove)
- config: Configuration management
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Optional

import httpx
from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger, level_from_name
from .config import (
    DEFAULT_HOSTED_ORIGIN,
    HostedApiConfig,
    HttpConfig,
    LoggingConfig,
    NonceConfig,
    PersistenceConfig,
    RouterConfig,
)
from .exceptions import ConfigurationError, PersistenceError
from .models import FetchSuccess, Site
from .router import RequestRouter
from .site_store import SiteStore


DEFAULT_CONFIG_DIR = Path.home() / ".rest_router"
ENV_ACCESS_TOKEN = "REST_ROUTER_ACCESS_TOKEN"
ENV_HMAC_SECRET = "REST_ROUTER_HMAC_SECRET"


def create_default_config(hmac_secret: Optional[str] = None) -> RouterConfig:
    """
    Create a default configuration.

    Args:
        hmac_secret: Secret for the site file; falls back to the environment

    Returns:
        RouterConfig with default settings
    """
    return RouterConfig(
        persistence=PersistenceConfig(
            site_file_path=DEFAULT_CONFIG_DIR / "sites.json",
            hmac_secret=hmac_secret or os.environ.get(ENV_HMAC_SECRET, "change-me-in-production"),
        ),
        hosted_api=HostedApiConfig(access_token=os.environ.get(ENV_ACCESS_TOKEN)),
    )


def load_config_from_file(config_path: Path) -> RouterConfig:
    """
    Load configuration from a JSON file.

    Missing secrets are taken from the environment (REST_ROUTER_HMAC_SECRET,
    REST_ROUTER_ACCESS_TOKEN).

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            code="not_found",
            message=f"Configuration file not found: {config_path}",
            details={"config_path": str(config_path)},
        )
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            code="parse_error",
            message=f"Failed to read configuration: {e}",
            details={"config_path": str(config_path)},
        )

    try:
        http_data = data.get("http", {})
        http = HttpConfig(
            timeout_seconds=float(http_data.get("timeout_seconds", 30.0)),
            user_agent=http_data.get("user_agent", "rest-router"),
            cache_ttl_seconds=float(http_data.get("cache_ttl_seconds", 60.0)),
            cache_max_entries=int(http_data.get("cache_max_entries", 256)),
        )

        hosted_data = data.get("hosted_api", {})
        hosted_api = HostedApiConfig(
            origin=hosted_data.get("origin", DEFAULT_HOSTED_ORIGIN),
            access_token=hosted_data.get("access_token") or os.environ.get(ENV_ACCESS_TOKEN),
        )

        nonce_data = data.get("nonce", {})
        nonce = NonceConfig(
            failure_suppression_seconds=float(
                nonce_data.get("failure_suppression_seconds", 5 * 60)
            ),
            login_path=nonce_data.get("login_path", NonceConfig.login_path),
            nonce_path=nonce_data.get("nonce_path", NonceConfig.nonce_path),
        )

        persistence_data = data.get("persistence", {})
        site_file_path = persistence_data.get("site_file_path")
        hmac_secret = persistence_data.get("hmac_secret") or os.environ.get(ENV_HMAC_SECRET)
        if not hmac_secret:
            raise ConfigurationError(
                code="missing_secret",
                message="persistence.hmac_secret is not set",
                details={"config_path": str(config_path)},
            )
        persistence = PersistenceConfig(
            site_file_path=Path(site_file_path) if site_file_path else DEFAULT_CONFIG_DIR / "sites.json",
            hmac_secret=hmac_secret,
        )

        logging_data = data.get("logging", {})
        logging = LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        )
        level_from_name(logging.level)
        if logging.output_format not in ("json", "text", "both"):
            raise ValueError(f"Invalid output_format: {logging.output_format}")
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigurationError(
            code="invalid_value",
            message=f"Invalid configuration: {e}",
            details={"config_path": str(config_path)},
        )

    return RouterConfig(
        persistence=persistence,
        http=http,
        hosted_api=hosted_api,
        nonce=nonce,
        logging=logging,
    )


def save_config_to_file(config: RouterConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    The hosted access token is never written; it belongs in the environment.

    Returns:
        True if successful, False otherwise
    """
    data = {
        "http": {
            "timeout_seconds": config.http.timeout_seconds,
            "user_agent": config.http.user_agent,
            "cache_ttl_seconds": config.http.cache_ttl_seconds,
            "cache_max_entries": config.http.cache_max_entries,
        },
        "hosted_api": {
            "origin": config.hosted_api.origin,
        },
        "nonce": {
            "failure_suppression_seconds": config.nonce.failure_suppression_seconds,
            "login_path": config.nonce.login_path,
            "nonce_path": config.nonce.nonce_path,
        },
        "persistence": {
            "site_file_path": str(config.persistence.site_file_path),
            "hmac_secret": config.persistence.hmac_secret,
        },
        "logging": {
            "level": config.logging.level,
            "output_format": config.logging.output_format,
        },
    }

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        return True
    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def _config_path(args: argparse.Namespace) -> Path:
    path = getattr(args, "config", None) or getattr(args, "path", None)
    return Path(path) if path else DEFAULT_CONFIG_DIR / "config.json"


def _load_config(args: argparse.Namespace) -> RouterConfig:
    config_path = _config_path(args)
    if config_path.exists():
        return load_config_from_file(config_path)
    return create_default_config()


def _create_logger(config: RouterConfig) -> AuditLogger:
    return AuditLogger(
        output_format=config.logging.output_format,
        min_level=level_from_name(config.logging.level),
        max_entries=0,
    )


async def run_request(
    config: RouterConfig,
    site: Site,
    path: str,
    enable_caching: bool,
    site_store: SiteStore,
    logger: Optional[AuditLogger] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """Execute one request and print the outcome as JSON."""
    logger = logger or _create_logger(config)
    async with RequestRouter.create(
        config, site_store, logger=logger, transport=transport
    ) as router:
        outcome = await router.execute(site, path, enable_caching=enable_caching)

    if isinstance(outcome, FetchSuccess):
        print(json.dumps(outcome.result, indent=2, ensure_ascii=False))
        return 0

    logger.log_error(
        "cli",
        "Request failed",
        request_url=path,
        response_status_code=outcome.status_code,
        additional_data={"local_id": site.local_id, "error_type": outcome.error.error_type.value},
    )
    print(json.dumps(outcome.error.to_dict(), indent=2), file=sys.stderr)
    return 1


def cmd_request(args: argparse.Namespace) -> int:
    """Handle the 'request' command."""
    config = _load_config(args)
    store = SiteStore(config.persistence.site_file_path, config.persistence.hmac_secret)

    site = store.get(args.local_id)
    if site is None:
        print(f"Error: No site with id {args.local_id}", file=sys.stderr)
        return 1

    return asyncio.run(run_request(
        config=config,
        site=site,
        path=args.path,
        enable_caching=not args.no_cache,
        site_store=store,
    ))


def cmd_site(args: argparse.Namespace) -> int:
    """Handle the 'site' command."""
    config = _load_config(args)
    store = SiteStore(config.persistence.site_file_path, config.persistence.hmac_secret)

    if args.action == "add":
        if not args.url:
            print("Error: site add requires a URL", file=sys.stderr)
            return 1
        site = store.upsert(Site(
            url=args.url,
            site_id=args.site_id,
            is_using_hosted_api=args.hosted,
            username=args.username,
            password=args.password,
        ))
        print(f"Site stored with id {site.local_id}")
        return 0

    elif args.action == "list":
        for site in store.all():
            kind = "hosted" if site.is_using_hosted_api else "self-hosted"
            rest_url = site.rest_url or "-"
            print(f"{site.local_id}\t{kind}\t{site.url}\t{rest_url}")
        return 0

    elif args.action == "remove":
        if args.local_id is None or not store.remove(args.local_id):
            print(f"Error: No site with id {args.local_id}", file=sys.stderr)
            return 1
        print(f"Site {args.local_id} removed")
        return 0

    return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = _config_path(args)

    if args.action == "show":
        config = load_config_from_file(config_path)
        print(f"Configuration from: {config_path}")
        print(f"  Hosted origin: {config.hosted_api.origin}")
        print(f"  Access token: {'set' if config.hosted_api.access_token else 'not set'}")
        print(f"  Site file: {config.persistence.site_file_path}")
        print(f"  Nonce failure window: {config.nonce.failure_suppression_seconds}s")
        print(f"  Log level: {config.logging.level}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        if save_config_to_file(create_default_config(), config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        load_config_from_file(config_path)
        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="rest-router",
        description="Route JSON API requests to hosted and self-hosted sites",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'request' command
    request_parser = subparsers.add_parser(
        "request",
        help="Execute an API request for a stored site",
    )
    request_parser.add_argument("local_id", type=int, help="Stored site id")
    request_parser.add_argument(
        "path",
        help="API path with query string (e.g., /wp/v2/posts?per_page=5)",
    )
    request_parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Bypass the response cache",
    )
    request_parser.add_argument("--config", "-c", help="Path to configuration file")
    request_parser.set_defaults(func=cmd_request)

    # 'site' command
    site_parser = subparsers.add_parser("site", help="Manage stored sites")
    site_parser.add_argument("action", choices=["add", "list", "remove"])
    site_parser.add_argument("url", nargs="?", help="Site URL (for add)")
    site_parser.add_argument("--local-id", type=int, help="Stored site id (for remove)")
    site_parser.add_argument(
        "--hosted",
        action="store_true",
        help="Site is reached through the hosted API",
    )
    site_parser.add_argument("--site-id", type=int, default=0, help="Hosted site id")
    site_parser.add_argument("--username", help="Self-hosted login name")
    site_parser.add_argument("--password", help="Self-hosted password")
    site_parser.add_argument("--config", "-c", help="Path to configuration file")
    site_parser.set_defaults(func=cmd_site)

    # 'config' command
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument("action", choices=["show", "init", "validate"])
    config_parser.add_argument("--path", "-p", help="Path to configuration file")
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except (ConfigurationError, PersistenceError) as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
