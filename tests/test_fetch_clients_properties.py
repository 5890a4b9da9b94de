"""
Tests for the hosted and self-hosted fetch clients.

Responses are produced by httpx.MockTransport; every status code and
transport failure must map to exactly one FetchOutcome.
"""

import asyncio

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from rest_router.config import HostedApiConfig, HttpConfig
from rest_router.enums import FetchErrorType
from rest_router.fetch_clients import (
    HostedFetchClient,
    SelfHostedFetchClient,
    classify_status,
)
from rest_router.models import FetchFailure, FetchSuccess


class Clock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def self_hosted_fetch(handler, calls: int = 1, nonce="n0nce", enable_caching=True, clock=None):
    """Run `calls` identical fetches; returns (outcomes, seen requests)."""
    seen: list[httpx.Request] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(recording_handler)) as http:
            client = SelfHostedFetchClient(client=http, clock=clock or Clock())
            return [
                await client.fetch(
                    "https://example.org/wp-json/wp/v2/posts",
                    {"per_page": "2"},
                    nonce,
                    enable_caching,
                )
                for _ in range(calls)
            ]

    return asyncio.run(go()), seen


class TestResponseMapping:
    def test_json_success(self) -> None:
        outcomes, seen = self_hosted_fetch(
            lambda request: httpx.Response(200, json=[{"id": 1}])
        )

        assert outcomes == [FetchSuccess([{"id": 1}])]
        assert seen[0].headers["X-WP-Nonce"] == "n0nce"
        assert seen[0].url.params["per_page"] == "2"

    def test_empty_body_success(self) -> None:
        outcomes, _ = self_hosted_fetch(lambda request: httpx.Response(204))

        assert outcomes == [FetchSuccess(None)]

    def test_non_json_body(self) -> None:
        outcomes, _ = self_hosted_fetch(lambda request: httpx.Response(200, text="<html>"))

        assert isinstance(outcomes[0], FetchFailure)
        assert outcomes[0].error.error_type == FetchErrorType.INVALID_RESPONSE

    def test_no_nonce_header_without_nonce(self) -> None:
        _, seen = self_hosted_fetch(lambda request: httpx.Response(200, json={}), nonce=None)

        assert "X-WP-Nonce" not in seen[0].headers

    @given(status_code=st.integers(min_value=400, max_value=599))
    @settings(max_examples=100)
    def test_error_status_keeps_code(self, status_code: int) -> None:
        outcomes, _ = self_hosted_fetch(lambda request: httpx.Response(status_code))

        assert isinstance(outcomes[0], FetchFailure)
        assert outcomes[0].status_code == status_code
        assert outcomes[0].error.error_type == classify_status(status_code)

    def test_status_classification(self) -> None:
        assert classify_status(401) == FetchErrorType.NOT_AUTHENTICATED
        assert classify_status(404) == FetchErrorType.NOT_FOUND
        assert classify_status(403) == FetchErrorType.HTTP_ERROR
        assert classify_status(503) == FetchErrorType.SERVER_ERROR

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        outcomes, _ = self_hosted_fetch(handler)

        assert outcomes[0].error.error_type == FetchErrorType.TIMEOUT
        assert outcomes[0].status_code is None

    def test_connect_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        outcomes, _ = self_hosted_fetch(handler)

        assert outcomes[0].error.error_type == FetchErrorType.NETWORK_ERROR

    def test_tls_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("[SSL: CERTIFICATE_VERIFY_FAILED]", request=request)

        outcomes, _ = self_hosted_fetch(handler)

        assert outcomes[0].error.error_type == FetchErrorType.TLS_ERROR


class TestResponseCache:
    def test_cached_payload_served_without_network(self) -> None:
        outcomes, seen = self_hosted_fetch(
            lambda request: httpx.Response(200, json={"n": 1}),
            calls=3,
        )

        assert outcomes == [FetchSuccess({"n": 1})] * 3
        assert len(seen) == 1

    def test_caching_disabled(self) -> None:
        _, seen = self_hosted_fetch(
            lambda request: httpx.Response(200, json={"n": 1}),
            calls=3,
            enable_caching=False,
        )

        assert len(seen) == 3

    def test_errors_are_not_cached(self) -> None:
        _, seen = self_hosted_fetch(lambda request: httpx.Response(500), calls=2)

        assert len(seen) == 2

    def test_entries_expire(self) -> None:
        clock = Clock()
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"n": len(seen)})

        async def go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                client = SelfHostedFetchClient(
                    HttpConfig(cache_ttl_seconds=10.0), client=http, clock=clock
                )
                url = "https://example.org/wp-json/x"
                first = await client.fetch(url, {}, None)
                clock.now = 5.0
                second = await client.fetch(url, {}, None)
                clock.now = 11.0
                third = await client.fetch(url, {}, None)
                return first, second, third

        first, second, third = asyncio.run(go())

        assert first == FetchSuccess({"n": 1})
        assert second == FetchSuccess({"n": 1})
        assert third == FetchSuccess({"n": 2})


class TestHostedClient:
    def test_bearer_token_sent(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        async def go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                client = HostedFetchClient(
                    HostedApiConfig(access_token="tok"), client=http
                )
                return await client.fetch(
                    "https://public-api.wordpress.com/wp/v2/sites/1/posts", {}
                )

        outcome = asyncio.run(go())

        assert outcome == FetchSuccess({"ok": True})
        assert seen[0].headers["Authorization"] == "Bearer tok"

    def test_no_token_no_header(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(401)

        async def go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                return await HostedFetchClient(client=http).fetch(
                    "https://public-api.wordpress.com/wp/v2/sites/1/posts", {}
                )

        outcome = asyncio.run(go())

        assert outcome.status_code == 401
        assert "Authorization" not in seen[0].headers


class TestCacheBounds:
    """The response cache cannot grow past its limits."""

    def _fetch_pages(self, pages: int, http_config: HttpConfig, clock: Clock, step: float):
        async def go():
            async with httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(200, json={}))
            ) as http:
                client = SelfHostedFetchClient(http_config, client=http, clock=clock)
                for page in range(pages):
                    await client.fetch("https://example.org/wp-json/x", {"page": str(page)}, None)
                    clock.now += step
                return client.cache_size

        return asyncio.run(go())

    def test_expired_entries_dropped_on_write(self) -> None:
        size = self._fetch_pages(
            500,
            HttpConfig(cache_ttl_seconds=1.0, cache_max_entries=10_000),
            Clock(),
            step=10.0,
        )

        assert size == 1

    @given(
        max_entries=st.integers(min_value=0, max_value=20),
        pages=st.integers(min_value=0, max_value=60),
    )
    @settings(max_examples=50)
    def test_size_never_exceeds_maximum(self, max_entries: int, pages: int) -> None:
        size = self._fetch_pages(
            pages,
            HttpConfig(cache_ttl_seconds=3600.0, cache_max_entries=max_entries),
            Clock(),
            step=0.0,
        )

        assert size == min(pages, max_entries)

    def test_oldest_entry_evicted_first(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"page": request.url.params["page"]})

        async def go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                client = SelfHostedFetchClient(
                    HttpConfig(cache_ttl_seconds=3600.0, cache_max_entries=2),
                    client=http,
                    clock=Clock(),
                )
                url = "https://example.org/wp-json/x"
                for page in ("1", "2", "3", "3", "2", "1"):
                    await client.fetch(url, {"page": page}, None)

        asyncio.run(go())

        # 1, 2, 3 miss; 3 and 2 hit; 1 was evicted when 3 arrived
        assert [request.url.params["page"] for request in seen] == ["1", "2", "3", "1"]
