"""
Site Store module for durable site records.

This module provides HMAC-protected JSON storage for sites, including the
discovered REST base URL, so discovery does not have to be repeated across
process restarts.
"""

import hashlib
import hmac
import json
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .exceptions import DuplicateSiteError, PersistenceError, TamperingError
from .models import Site
from .url_utils import normalize_site_url


class SiteStore:
    """
    Persistent site repository with HMAC protection.

    Records are keyed by local_id. A URL may be stored at most once per
    API kind (hosted or self-hosted).
    """

    VERSION = 1

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        """
        Initialize the site store.

        Args:
            file_path: Path to the site file (JSON format)
            hmac_secret: Secret key for HMAC computation
        """
        self._file_path = file_path
        self._hmac_secret = hmac_secret.encode("utf-8")
        self._sites: dict[int, Site] = {}
        self._loaded = False

    def load(self) -> dict[int, Site]:
        """
        Load sites from file and validate HMAC.

        Returns:
            Mapping of local_id to Site (empty if the file does not exist)

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If file cannot be read or parsed
        """
        self._loaded = True
        if not self._file_path.exists():
            self._sites = {}
            return dict(self._sites)

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse site file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read site file: {e}",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        data_for_hmac = {
            "version": raw_data.get("version"),
            "sites": raw_data.get("sites", {}),
            "last_updated": raw_data.get("last_updated"),
        }
        computed_hmac = self.compute_hmac(data_for_hmac)

        if not hmac.compare_digest(stored_hmac, computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - site data may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        try:
            self._sites = {
                int(local_id): Site(
                    url=site_data["url"],
                    local_id=int(local_id),
                    site_id=site_data.get("site_id", 0),
                    is_using_hosted_api=site_data.get("is_using_hosted_api", False),
                    rest_url=site_data.get("rest_url"),
                    username=site_data.get("username"),
                    password=site_data.get("password"),
                )
                for local_id, site_data in raw_data.get("sites", {}).items()
            }
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Invalid site record: {e}",
                details={"file_path": str(self._file_path)},
            )

        return dict(self._sites)

    def save(self) -> None:
        """
        Write all sites to file with HMAC protection.

        Raises:
            PersistenceError: If file cannot be written
        """
        now = datetime.now(timezone.utc).isoformat()

        sites_dict = {
            str(local_id): {
                "url": site.url,
                "site_id": site.site_id,
                "is_using_hosted_api": site.is_using_hosted_api,
                "rest_url": site.rest_url,
                "username": site.username,
                "password": site.password,
            }
            for local_id, site in sorted(self._sites.items())
        }

        data_for_hmac = {
            "version": self.VERSION,
            "sites": sites_dict,
            "last_updated": now,
        }
        output_data = dict(data_for_hmac, hmac=self.compute_hmac(data_for_hmac))

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(output_data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write site file: {e}",
                details={"file_path": str(self._file_path)},
            )

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def get(self, local_id: int) -> Optional[Site]:
        """Return a copy of the stored site, or None."""
        self._ensure_loaded()
        site = self._sites.get(local_id)
        return replace(site) if site is not None else None

    def get_by_url(self, url: str, is_using_hosted_api: Optional[bool] = None) -> Optional[Site]:
        self._ensure_loaded()
        key = normalize_site_url(url)
        for site in self._sites.values():
            if normalize_site_url(site.url) != key:
                continue
            if is_using_hosted_api is None or site.is_using_hosted_api == is_using_hosted_api:
                return replace(site)
        return None

    def all(self) -> list[Site]:
        self._ensure_loaded()
        return [replace(site) for _, site in sorted(self._sites.items())]

    def upsert(self, site: Site) -> Site:
        """
        Insert or update a site and write the file.

        A site with local_id 0 is assigned the next free id, which is also
        set on the passed instance.

        Raises:
            DuplicateSiteError: If another record has the same URL and API kind
            PersistenceError: If the file cannot be written
        """
        self._ensure_loaded()

        key = normalize_site_url(site.url)
        for existing in self._sites.values():
            if (
                existing.local_id != site.local_id
                and existing.is_using_hosted_api == site.is_using_hosted_api
                and normalize_site_url(existing.url) == key
            ):
                raise DuplicateSiteError(
                    code="duplicate_site",
                    message=f"Site already stored: {site.url}",
                    details={"url": site.url, "existing_local_id": existing.local_id},
                )

        if site.local_id == 0:
            site.local_id = max(self._sites, default=0) + 1

        self._sites[site.local_id] = replace(site)
        self.save()
        return replace(site)

    def remove(self, local_id: int) -> bool:
        """Remove a site; returns False if it was not stored."""
        self._ensure_loaded()
        if self._sites.pop(local_id, None) is None:
            return False
        self.save()
        return True

    def compute_hmac(self, data: dict) -> str:
        """
        Compute HMAC-SHA256 over serialized data.

        Args:
            data: Dictionary to compute HMAC over

        Returns:
            Hexadecimal HMAC string
        """
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    @property
    def file_path(self) -> Path:
        """Get the site file path."""
        return self._file_path
