"""
REST API root discovery for self-hosted sites.

A site advertises its JSON API root in a Link header with the
"https://api.w.org/" relation on its home page.
"""

from typing import Optional

import httpx

from .audit_logger import AuditLogger
from .config import HttpConfig
from .fetch_clients import build_http_client


API_LINK_RELATION = "https://api.w.org/"


class DiscoveryClient:
    """Finds the REST base URL of a site; never raises."""

    COMPONENT = "discovery"

    def __init__(
        self,
        http_config: Optional[HttpConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._http_config = http_config or HttpConfig()
        self._client = client
        self._owns_client = client is None
        self._logger = logger

    async def discover(self, base_url: str) -> Optional[str]:
        """
        Look up the API root advertised by base_url.

        Args:
            base_url: The site's home URL

        Returns:
            The absolute API root URL, or None if it could not be found
        """
        if self._client is None:
            self._client = build_http_client(self._http_config)
            self._owns_client = True

        try:
            response = await self._client.get(base_url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            if self._logger:
                self._logger.warn(
                    self.COMPONENT,
                    "Discovery request failed",
                    {"base_url": base_url, "error": str(e)},
                )
            return None

        if not response.is_success:
            return None

        link = response.links.get(API_LINK_RELATION)
        url = link.get("url") if link else None
        if not url:
            return None

        # Relative link targets resolve against the final (post-redirect) URL
        return str(response.url.join(url))

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
