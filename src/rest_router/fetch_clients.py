"""
Fetch clients for the hosted and self-hosted JSON APIs.

Both clients perform a single GET over a shared httpx.AsyncClient and map
every transport result, including exceptions, into a FetchOutcome.
Successful payloads may be served from a short-lived in-memory cache.
"""

import time
from typing import Any, Callable, Optional

import httpx

from .audit_logger import AuditLogger
from .config import HostedApiConfig, HttpConfig
from .enums import FetchErrorType
from .models import FetchError, FetchFailure, FetchOutcome, FetchSuccess


def build_http_client(
    config: HttpConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create the AsyncClient shared by the fetch, nonce and discovery clients."""
    return httpx.AsyncClient(
        transport=transport,
        verify=True,
        timeout=httpx.Timeout(config.timeout_seconds),
        follow_redirects=True,
        headers={"User-Agent": config.user_agent},
    )


def classify_status(status_code: int) -> FetchErrorType:
    """Map a non-2xx HTTP status to an error type."""
    if status_code == 401:
        return FetchErrorType.NOT_AUTHENTICATED
    if status_code == 404:
        return FetchErrorType.NOT_FOUND
    if status_code >= 500:
        return FetchErrorType.SERVER_ERROR
    return FetchErrorType.HTTP_ERROR


def outcome_from_response(response: httpx.Response) -> FetchOutcome:
    """Map an HTTP response to a FetchOutcome."""
    status_code = response.status_code

    if 200 <= status_code < 300:
        if not response.content or not response.content.strip():
            return FetchSuccess(result=None)
        try:
            return FetchSuccess(result=response.json())
        except ValueError as e:
            return FetchFailure(FetchError(
                error_type=FetchErrorType.INVALID_RESPONSE,
                message=f"Failed to parse JSON response: {e}",
                status_code=status_code,
            ))

    return FetchFailure(FetchError(
        error_type=classify_status(status_code),
        message=f"Unexpected HTTP status: {status_code}",
        status_code=status_code,
    ))


def outcome_from_exception(error: Exception, timeout: float) -> FetchFailure:
    """Map a transport exception to a FetchFailure without status code."""
    if isinstance(error, httpx.TimeoutException):
        return FetchFailure(FetchError(
            error_type=FetchErrorType.TIMEOUT,
            message=f"Request timed out after {timeout}s",
        ))
    if isinstance(error, httpx.ConnectError):
        error_msg = str(error)
        if "ssl" in error_msg.lower() or "certificate" in error_msg.lower():
            return FetchFailure(FetchError(
                error_type=FetchErrorType.TLS_ERROR,
                message=f"TLS connection error: {error_msg}",
            ))
        return FetchFailure(FetchError(
            error_type=FetchErrorType.NETWORK_ERROR,
            message=f"Connection error: {error_msg}",
        ))
    if isinstance(error, httpx.HTTPError):
        return FetchFailure(FetchError(
            error_type=FetchErrorType.NETWORK_ERROR,
            message=f"Transport error: {error}",
        ))
    return FetchFailure(FetchError(
        error_type=FetchErrorType.UNKNOWN,
        message=f"Unexpected error: {error}",
    ))


class _CachedPayload:
    __slots__ = ("result", "expires_at")

    def __init__(self, result: Any, expires_at: float) -> None:
        self.result = result
        self.expires_at = expires_at


class BaseFetchClient:
    """
    Shared GET-and-map logic for both API flavours.

    Subclasses decide which headers to send. The client owns its
    httpx.AsyncClient only when one is not passed in.
    """

    COMPONENT = "fetch"

    def __init__(
        self,
        http_config: Optional[HttpConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._http_config = http_config or HttpConfig()
        self._client = client
        self._owns_client = client is None
        self._logger = logger
        self._clock = clock
        self._cache: dict[tuple, _CachedPayload] = {}

    async def __aenter__(self):
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_http_client(self._http_config)
            self._owns_client = True
        return self._client

    @staticmethod
    def _cache_key(url: str, params: dict[str, str]) -> tuple:
        return (url, tuple(sorted(params.items())))

    def _cached(self, key: tuple) -> Optional[_CachedPayload]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._cache[key]
            return None
        return entry

    def _store(self, key: tuple, result: Any) -> None:
        """Cache a payload, dropping expired entries and then the oldest ones."""
        now = self._clock()
        expired = [k for k, entry in self._cache.items() if entry.expires_at <= now]
        for k in expired:
            del self._cache[k]

        self._cache.pop(key, None)
        max_entries = self._http_config.cache_max_entries
        while self._cache and len(self._cache) >= max_entries:
            # dicts keep insertion order, so the first key is the oldest
            del self._cache[next(iter(self._cache))]

        if max_entries > 0:
            self._cache[key] = _CachedPayload(result, now + self._http_config.cache_ttl_seconds)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    async def _get(
        self,
        url: str,
        params: dict[str, str],
        headers: dict[str, str],
        enable_caching: bool,
    ) -> FetchOutcome:
        key = self._cache_key(url, params)
        if enable_caching:
            cached = self._cached(key)
            if cached is not None:
                return FetchSuccess(result=cached.result)

        client = self._ensure_client()
        try:
            response = await client.get(url, params=params, headers=headers)
        except Exception as e:
            outcome = outcome_from_exception(e, self._http_config.timeout_seconds)
            if self._logger:
                self._logger.warn(
                    self.COMPONENT,
                    "Request failed",
                    {"url": url, "error_type": outcome.error.error_type.value},
                )
            return outcome

        outcome = outcome_from_response(response)
        if isinstance(outcome, FetchSuccess):
            if enable_caching and self._http_config.cache_ttl_seconds > 0:
                self._store(key, outcome.result)
        elif self._logger:
            self._logger.debug(
                self.COMPONENT,
                "Request returned an error status",
                {"url": url, "status_code": outcome.status_code},
            )
        return outcome

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


class HostedFetchClient(BaseFetchClient):
    """Fetches from the hosted JSON API, authorizing with a bearer token."""

    COMPONENT = "hosted_fetch"

    def __init__(
        self,
        hosted_config: Optional[HostedApiConfig] = None,
        http_config: Optional[HttpConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(http_config, client, logger, clock)
        self._hosted_config = hosted_config or HostedApiConfig()

    async def fetch(
        self,
        url: str,
        params: dict[str, str],
        enable_caching: bool = True,
    ) -> FetchOutcome:
        headers = {"Accept": "application/json"}
        if self._hosted_config.access_token:
            headers["Authorization"] = f"Bearer {self._hosted_config.access_token}"
        return await self._get(url, params, headers, enable_caching)


class SelfHostedFetchClient(BaseFetchClient):
    """Fetches from a site's own JSON API, sending the nonce when present."""

    COMPONENT = "self_hosted_fetch"

    async def fetch(
        self,
        url: str,
        params: dict[str, str],
        nonce: Optional[str],
        enable_caching: bool = True,
    ) -> FetchOutcome:
        headers = {"Accept": "application/json"}
        if nonce is not None:
            headers["X-WP-Nonce"] = nonce
        return await self._get(url, params, headers, enable_caching)
