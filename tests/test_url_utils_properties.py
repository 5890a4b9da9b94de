"""
Property-based tests for URL helpers.

Uses Hypothesis to check slash joining, path/query parsing and hosted
path scoping.
"""

from urllib.parse import quote

from hypothesis import given, settings
from hypothesis import strategies as st

from rest_router.url_utils import (
    normalize_site_url,
    parse_path_and_params,
    scope_hosted_path,
    slash_join,
)


segment = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789-_."),
    min_size=1,
    max_size=12,
)


class TestSlashJoin:
    """Exactly one slash separates the two parts."""

    def test_documented_examples(self) -> None:
        assert slash_join("begin/", "/end") == "begin/end"
        assert slash_join("begin", "end") == "begin/end"
        assert slash_join("begin/", "end") == "begin/end"
        assert slash_join("begin", "/end") == "begin/end"

    @given(
        begin=segment,
        end=segment,
        trailing=st.booleans(),
        leading=st.booleans(),
    )
    @settings(max_examples=100)
    def test_single_separator(self, begin: str, end: str, trailing: bool, leading: bool) -> None:
        left = begin + ("/" if trailing else "")
        right = ("/" if leading else "") + end

        assert slash_join(left, right) == f"{begin}/{end}"


class TestParsePathAndParams:
    """Query strings are decoded; malformed input yields no path."""

    def test_path_and_params(self) -> None:
        path, params = parse_path_and_params("/wp/v2/posts?context=edit&per_page=10")

        assert path == "/wp/v2/posts"
        assert params == {"context": "edit", "per_page": "10"}

    def test_first_value_wins_and_blanks_kept(self) -> None:
        path, params = parse_path_and_params("/x?a=1&a=2&b=")

        assert path == "/x"
        assert params == {"a": "1", "b": ""}

    def test_no_query(self) -> None:
        assert parse_path_and_params("/wp/v2/types") == ("/wp/v2/types", {})

    @given(
        key=segment,
        value=st.text(min_size=0, max_size=30).filter(lambda s: "\x00" not in s),
    )
    @settings(max_examples=100)
    def test_encoded_values_are_decoded(self, key: str, value: str) -> None:
        path, params = parse_path_and_params(f"/p?{key}={quote(value, safe='')}")

        assert path == "/p"
        assert params == {key: value}

    @given(bad=st.sampled_from([
        "/wp/v2/posts?search=%zz",
        "/wp/v2/%",
        "/p?x=%4",
        "/p?x=%ff",
        "/with space",
        "/tab\tchar",
        "/new\nline",
    ]))
    @settings(max_examples=20)
    def test_malformed_input(self, bad: str) -> None:
        path, params = parse_path_and_params(bad)

        assert path is None
        assert params == {}


class TestScopeHostedPath:
    """Hosted API prefixes are scoped to the site id."""

    def test_wp_v2(self) -> None:
        assert scope_hosted_path("/wp/v2/posts", 77) == "/wp/v2/sites/77/posts"

    def test_oembed(self) -> None:
        assert scope_hosted_path("/oembed/1.0/proxy", 9) == "/oembed/1.0/sites/9/proxy"

    def test_without_leading_slash(self) -> None:
        assert scope_hosted_path("wp/v2/media", 3) == "wp/v2/sites/3/media"

    def test_other_namespaces_untouched(self) -> None:
        assert scope_hosted_path("/rest/v1.1/me", 3) == "/rest/v1.1/me"
        assert scope_hosted_path("/wp/v22/posts", 3) == "/wp/v22/posts"

    @given(site_id=st.integers(min_value=1, max_value=10**12), rest=segment)
    @settings(max_examples=100)
    def test_scoping_inserts_site_segment(self, site_id: int, rest: str) -> None:
        assert scope_hosted_path(f"/wp/v2/{rest}", site_id) == f"/wp/v2/sites/{site_id}/{rest}"


class TestNormalizeSiteUrl:
    def test_case_and_trailing_slash(self) -> None:
        assert normalize_site_url("HTTPS://Example.ORG/blog/") == "https://example.org/blog"
