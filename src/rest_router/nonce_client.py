"""
Nonce client for self-hosted sites.

Holds the per-site nonce state for the process lifetime and refreshes it by
logging in to the site and reading the REST nonce from admin-ajax.
"""

import re
import time
from typing import Callable, Optional

import httpx

from .audit_logger import AuditLogger
from .config import HttpConfig, NonceConfig
from .fetch_clients import build_http_client
from .models import AvailableNonce, FailedNonceRequest, Nonce, Site, UnknownNonce
from .url_utils import normalize_site_url, slash_join


class NonceClient:
    """
    Per-site nonce cache with a network refresh primitive.

    get() never touches the network; request() always does (when the site
    has credentials) and overwrites the cached state with the result.
    Concurrent refreshes for one site are not deduplicated; last write wins.
    """

    COMPONENT = "nonce"

    # A nonce is a short alphanumeric token; "0" or an HTML page is a failure
    NONCE_PATTERN = re.compile(r"^[0-9a-zA-Z]{2,}$")

    def __init__(
        self,
        nonce_config: Optional[NonceConfig] = None,
        http_config: Optional[HttpConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._nonce_config = nonce_config or NonceConfig()
        self._http_config = http_config or HttpConfig()
        self._client = client
        self._owns_client = client is None
        self._logger = logger
        self._clock = clock
        self._nonces: dict[str, Nonce] = {}

    @staticmethod
    def _key(site: Site) -> str:
        return normalize_site_url(site.url)

    def get(self, site: Site) -> Nonce:
        """Return the cached nonce state; UnknownNonce if never requested."""
        return self._nonces.get(self._key(site), UnknownNonce())

    def set(self, site: Site, nonce: Nonce) -> None:
        self._nonces[self._key(site)] = nonce

    def clear(self, site: Site) -> None:
        self._nonces.pop(self._key(site), None)

    async def request(self, site: Site) -> Optional[Nonce]:
        """
        Request a fresh nonce for the site and cache the result.

        Returns:
            AvailableNonce or FailedNonceRequest; None when the site has no
            credentials to log in with (the cache is left untouched).
        """
        if not site.has_credentials:
            if self._logger:
                self._logger.debug(
                    self.COMPONENT,
                    "No credentials for nonce request",
                    {"site_url": site.url},
                )
            return None

        login_url = slash_join(site.url, self._nonce_config.login_path)
        nonce_url = slash_join(site.url, self._nonce_config.nonce_path)

        if self._client is None:
            self._client = build_http_client(self._http_config)
            self._owns_client = True

        try:
            response = await self._client.post(
                login_url,
                data={
                    "log": site.username,
                    "pwd": site.password,
                    "redirect_to": nonce_url,
                },
            )
            body = response.text.strip() if response.status_code == 200 else ""
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            if self._logger:
                self._logger.warn(
                    self.COMPONENT,
                    "Nonce request failed",
                    {"site_url": site.url, "error": str(e)},
                )
            body = ""

        if self.NONCE_PATTERN.match(body):
            nonce: Nonce = AvailableNonce(body)
        else:
            nonce = FailedNonceRequest(self._clock())
            if self._logger:
                self._logger.info(
                    self.COMPONENT,
                    "No nonce obtained",
                    {"site_url": site.url},
                )

        self.set(site, nonce)
        return nonce

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
