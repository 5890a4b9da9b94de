"""
Request Router for the hosted and self-hosted JSON APIs.

Routes a relative API path for a site either to the hosted API (scoped to
the site's numeric id) or to the site's own API. The self-hosted path
discovers and caches the REST base URL, attaches a nonce, and recovers
once from a stale nonce (401) or a stale REST base URL (404).
"""

import time
from typing import Callable, Optional, Protocol

import httpx

from .audit_logger import AuditLogger
from .config import RouterConfig
from .discovery_client import DiscoveryClient
from .enums import FetchErrorType
from .exceptions import DuplicateSiteError, PersistenceError
from .fetch_clients import HostedFetchClient, SelfHostedFetchClient, build_http_client
from .models import (
    AvailableNonce,
    FailedNonceRequest,
    FetchError,
    FetchFailure,
    FetchOutcome,
    FetchSuccess,
    Nonce,
    Site,
)
from .nonce_client import NonceClient
from .site_store import SiteStore
from .url_utils import parse_path_and_params, scope_hosted_path, slash_join


DEFAULT_REST_PATH = "wp-json/"


class HostedFetcher(Protocol):
    async def fetch(
        self, url: str, params: dict[str, str], enable_caching: bool = True
    ) -> FetchOutcome: ...


class SelfHostedFetcher(Protocol):
    async def fetch(
        self,
        url: str,
        params: dict[str, str],
        nonce: Optional[str],
        enable_caching: bool = True,
    ) -> FetchOutcome: ...


class NonceSource(Protocol):
    def get(self, site: Site) -> Optional[Nonce]: ...

    async def request(self, site: Site) -> Optional[Nonce]: ...


class RestUrlDiscoverer(Protocol):
    async def discover(self, base_url: str) -> Optional[str]: ...


class RequestRouter:
    """
    Executes API requests for a site and always returns a FetchOutcome.

    Collaborators are injected so the routing policy can be exercised
    without a network. The site instance passed to execute() is mutated
    in place when its REST base URL is discovered or cleared, and every
    such change is handed to persist_site.
    """

    COMPONENT = "router"

    def __init__(
        self,
        hosted_client: HostedFetcher,
        self_hosted_client: SelfHostedFetcher,
        nonce_client: NonceSource,
        discovery_client: RestUrlDiscoverer,
        persist_site: Callable[[Site], object],
        hosted_origin: str = "https://public-api.wordpress.com",
        nonce_failure_window_seconds: float = 5 * 60,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._hosted_client = hosted_client
        self._self_hosted_client = self_hosted_client
        self._nonce_client = nonce_client
        self._discovery_client = discovery_client
        self._persist_site = persist_site
        self._hosted_origin = hosted_origin
        self._nonce_failure_window = nonce_failure_window_seconds
        self._logger = logger
        self._clock = clock
        self._http_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def create(
        cls,
        config: RouterConfig,
        site_store: SiteStore,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "RequestRouter":
        """
        Build a router backed by httpx clients sharing one connection pool.

        Sharing the client means login cookies from nonce requests are sent
        with the self-hosted fetches. `transport` replaces the network layer.
        """
        http_client = build_http_client(config.http, transport)
        router = cls(
            hosted_client=HostedFetchClient(
                config.hosted_api, config.http, client=http_client, logger=logger
            ),
            self_hosted_client=SelfHostedFetchClient(
                config.http, client=http_client, logger=logger
            ),
            nonce_client=NonceClient(
                config.nonce, config.http, client=http_client, logger=logger
            ),
            discovery_client=DiscoveryClient(
                config.http, client=http_client, logger=logger
            ),
            persist_site=site_store.upsert,
            hosted_origin=config.hosted_api.origin,
            nonce_failure_window_seconds=config.nonce.failure_suppression_seconds,
            logger=logger,
        )
        router._http_client = http_client
        return router

    async def __aenter__(self) -> "RequestRouter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def http_client(self) -> Optional[httpx.AsyncClient]:
        """The shared client built by create(), until aclose()."""
        return self._http_client

    async def aclose(self) -> None:
        """Close the shared HTTP client created by create()."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def execute(
        self,
        site: Site,
        path_with_params: str,
        enable_caching: bool = True,
    ) -> FetchOutcome:
        """
        Execute a GET request for the site.

        Args:
            site: The site to call; may be mutated (rest_url)
            path_with_params: Relative path with an encoded query string
            enable_caching: Whether cached successful payloads may be used

        Returns:
            FetchSuccess or FetchFailure; never raises for routing failures
        """
        path, params = parse_path_and_params(path_with_params)
        if path is None:
            return self._url_parse_error(path_with_params)

        if site.is_using_hosted_api:
            return await self._execute_hosted(site, path, params, enable_caching)
        return await self._execute_self_hosted(site, path, params, enable_caching)

    async def _execute_hosted(
        self,
        site: Site,
        path: str,
        params: dict[str, str],
        enable_caching: bool,
    ) -> FetchOutcome:
        url = slash_join(self._hosted_origin, scope_hosted_path(path, site.site_id))
        return await self._hosted_client.fetch(url, params, enable_caching)

    async def _execute_self_hosted(
        self,
        site: Site,
        path: str,
        params: dict[str, str],
        enable_caching: bool,
    ) -> FetchOutcome:
        using_saved_rest_url = site.rest_url is not None
        if not using_saved_rest_url:
            await self._discover_rest_url(site)
        full_rest_url = slash_join(site.rest_url, path)

        nonce = self._nonce_client.get(site)
        using_saved_nonce = isinstance(nonce, AvailableNonce)
        if not (using_saved_nonce or self._failed_recently(nonce)):
            nonce = await self._nonce_client.request(site)

        nonce_value = nonce.value if nonce is not None else None
        response = await self._self_hosted_client.fetch(
            full_rest_url, params, nonce_value, enable_caching
        )
        if isinstance(response, FetchSuccess):
            return response

        if response.status_code == 401:
            if using_saved_nonce:
                fresh = await self._nonce_client.request(site)
                fresh_value = fresh.value if fresh is not None else None
                if fresh_value is not None and fresh_value != nonce_value:
                    self._log_info("Retrying with refreshed nonce", {"url": full_rest_url})
                    return await self._self_hosted_client.fetch(
                        full_rest_url, params, fresh_value, enable_caching
                    )
            return response

        if response.status_code == 404:
            site.rest_url = None
            self._persist_safely(site)
            if using_saved_rest_url:
                # Cached REST base was stale; the retry goes through discovery
                self._log_info("Cached REST URL not found, rediscovering", {"site_url": site.url})
                return await self._execute_self_hosted(site, path, params, enable_caching)
            return response

        return response

    async def _discover_rest_url(self, site: Site) -> None:
        discovered = await self._discovery_client.discover(site.url)
        if discovered is None:
            discovered = slash_join(site.url, DEFAULT_REST_PATH)
            self._log_info("Discovery failed, using default REST URL", {"rest_url": discovered})
        site.rest_url = discovered
        self._persist_safely(site)

    def _failed_recently(self, nonce: Optional[Nonce]) -> bool:
        if not isinstance(nonce, FailedNonceRequest):
            return False
        return nonce.time_of_response + self._nonce_failure_window > self._clock()

    def _persist_safely(self, site: Site) -> None:
        try:
            self._persist_site(site)
        except DuplicateSiteError as e:
            # The in-memory site still carries the value; rediscovery may be needed later
            if self._logger:
                self._logger.debug(self.COMPONENT, "Error when persisting site", {"error": str(e)})
        except PersistenceError as e:
            if self._logger:
                self._logger.warn(self.COMPONENT, "Error when persisting site", {"error": str(e)})

    def _url_parse_error(self, path_with_params: str) -> FetchFailure:
        return FetchFailure(FetchError(
            error_type=FetchErrorType.URL_PARSE_ERROR,
            message=f"Failed to parse URI from {path_with_params}",
        ))

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info(self.COMPONENT, message, data)
