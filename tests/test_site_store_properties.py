"""
Property-based tests for the Site Store module.

Uses Hypothesis to check persistence round trips, HMAC tamper detection
and duplicate detection.
"""

import json
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from rest_router.exceptions import DuplicateSiteError, PersistenceError, TamperingError
from rest_router.models import Site
from rest_router.site_store import SiteStore


SECRET = "0123456789abcdef0123456789abcdef"


@st.composite
def site_strategy(draw) -> Site:
    """Generate sites with distinct-looking hosts."""
    host = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"),
        min_size=1,
        max_size=15,
    ))
    hosted = draw(st.booleans())
    return Site(
        url=f"https://{host}.example",
        site_id=draw(st.integers(min_value=0, max_value=10**9)) if hosted else 0,
        is_using_hosted_api=hosted,
        rest_url=draw(st.one_of(st.none(), st.just(f"https://{host}.example/wp-json/"))),
        username=draw(st.one_of(st.none(), st.just("admin"))),
        password=draw(st.one_of(st.none(), st.just("pw"))),
    )


class TestRoundTrip:
    """
    Sites written by one store instance are read back unchanged by another.
    """

    @given(sites=st.lists(site_strategy(), min_size=0, max_size=6, unique_by=lambda s: s.url))
    @settings(max_examples=50)
    def test_upsert_then_reload(self, sites: list) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "sites.json"
            store = SiteStore(file_path, SECRET)

            stored = [store.upsert(site) for site in sites]

            reloaded = SiteStore(file_path, SECRET)
            assert reloaded.all() == stored
            assert [site.local_id for site in stored] == list(range(1, len(sites) + 1))

    def test_update_keeps_id(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SiteStore(Path(tmpdir) / "sites.json", SECRET)
            site = Site(url="https://example.org")
            store.upsert(site)

            site.rest_url = "https://example.org/wp-json/"
            store.upsert(site)

            assert site.local_id == 1
            assert store.get(1).rest_url == "https://example.org/wp-json/"
            assert len(store.all()) == 1

    def test_get_returns_copy(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SiteStore(Path(tmpdir) / "sites.json", SECRET)
            store.upsert(Site(url="https://example.org"))

            copy = store.get(1)
            copy.rest_url = "https://changed/"

            assert store.get(1).rest_url is None

    def test_missing_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SiteStore(Path(tmpdir) / "none.json", SECRET)

            assert store.load() == {}
            assert store.get(1) is None

    def test_remove(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "sites.json"
            store = SiteStore(file_path, SECRET)
            store.upsert(Site(url="https://example.org"))

            assert store.remove(1) is True
            assert store.remove(1) is False
            assert SiteStore(file_path, SECRET).all() == []


class TestDuplicates:
    """A URL is stored at most once per API kind."""

    def test_duplicate_url_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SiteStore(Path(tmpdir) / "sites.json", SECRET)
            store.upsert(Site(url="https://example.org"))

            with pytest.raises(DuplicateSiteError):
                store.upsert(Site(url="https://EXAMPLE.org/"))

    def test_same_url_other_api_kind_allowed(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SiteStore(Path(tmpdir) / "sites.json", SECRET)
            store.upsert(Site(url="https://example.org"))
            store.upsert(Site(url="https://example.org", site_id=5, is_using_hosted_api=True))

            assert store.get_by_url("https://example.org", is_using_hosted_api=True).site_id == 5
            assert store.get_by_url("https://example.org", is_using_hosted_api=False).local_id == 1


class TestTamperDetection:
    """
    Modifying the stored data invalidates the HMAC.
    """

    @given(new_url=st.text(alphabet="abcdefghij", min_size=1, max_size=10))
    @settings(max_examples=30)
    def test_modified_record_detected(self, new_url: str) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "sites.json"
            SiteStore(file_path, SECRET).upsert(Site(url="https://example.org"))

            raw = json.loads(file_path.read_text(encoding="utf-8"))
            raw["sites"]["1"]["url"] = f"https://{new_url}.evil"
            file_path.write_text(json.dumps(raw), encoding="utf-8")

            with pytest.raises(TamperingError):
                SiteStore(file_path, SECRET).load()

    def test_wrong_secret_detected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "sites.json"
            SiteStore(file_path, SECRET).upsert(Site(url="https://example.org"))

            with pytest.raises(TamperingError):
                SiteStore(file_path, "another-secret-value").load()

    def test_corrupt_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "sites.json"
            file_path.write_text("{not json", encoding="utf-8")

            with pytest.raises(PersistenceError):
                SiteStore(file_path, SECRET).load()
