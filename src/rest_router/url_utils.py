"""
URL helpers for request routing.

Path/query splitting with malformed-input detection, idempotent slash
joining, and site scoping of hosted API paths.
"""

import re
from typing import Optional
from urllib.parse import parse_qsl, urlsplit


# A '%' not followed by two hex digits
_INVALID_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_FORBIDDEN_CHARS = re.compile(r"[\s\x00-\x1f\x7f]")

_HOSTED_SCOPED_PREFIXES = ("wp/v2", "oembed/1.0")


def slash_join(begin: str, end: str) -> str:
    """
    Join two URL parts with exactly one slash between them.

    slash_join("begin/", "/end") and slash_join("begin", "end") both
    return "begin/end".
    """
    no_slash_begin = begin[:-1] if begin.endswith("/") else begin
    no_slash_end = end[1:] if end.startswith("/") else end
    return f"{no_slash_begin}/{no_slash_end}"


def parse_path_and_params(path_with_params: str) -> tuple[Optional[str], dict[str, str]]:
    """
    Split a relative request into its path and decoded query parameters.

    Args:
        path_with_params: e.g. "/wp/v2/posts?context=edit&per_page=10"

    Returns:
        (path, params); path is None when the input cannot be parsed.
        Repeated keys keep their first value, blank values are kept.
    """
    if path_with_params is None:
        return None, {}

    if _INVALID_ESCAPE.search(path_with_params) or _FORBIDDEN_CHARS.search(path_with_params):
        return None, {}

    try:
        parts = urlsplit(path_with_params)
        pairs = parse_qsl(parts.query, keep_blank_values=True, errors="strict")
    except (ValueError, UnicodeDecodeError):
        return None, {}

    params: dict[str, str] = {}
    for key, value in pairs:
        params.setdefault(key, value)

    return parts.path, params


def scope_hosted_path(path: str, site_id: int) -> str:
    """
    Scope a hosted API path to a single site.

    "/wp/v2/posts" -> "/wp/v2/sites/{site_id}/posts",
    "/oembed/1.0/proxy" -> "/oembed/1.0/sites/{site_id}/proxy".
    """
    leading = "/" if path.startswith("/") else ""
    bare = path[len(leading):]
    for prefix in _HOSTED_SCOPED_PREFIXES:
        if bare == prefix or bare.startswith(prefix + "/"):
            return f"{leading}{prefix}/sites/{site_id}{bare[len(prefix):]}"
    return path


def normalize_site_url(url: str) -> str:
    """Key form of a site URL: lowercase scheme and host, no trailing slash."""
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/")
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}{path}"
