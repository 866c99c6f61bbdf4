"""Percent-encoding and query helpers shared by the signature schemes."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Optional
from urllib.parse import parse_qsl, quote, unquote, urlsplit

_WHITESPACE = re.compile(r"\s+")


def rfc3986_encode(value: str) -> str:
    """Percent-encode everything except RFC 3986 unreserved characters.

    ``A-Z a-z 0-9 - . _ ~`` pass through; every other byte of the UTF-8
    encoding becomes ``%XX`` with uppercase hex digits.

    Example::

        >>> rfc3986_encode("a b&c=d/é")
        'a%20b%26c%3Dd%2F%C3%A9'
    """
    return quote(value, safe="~")


def form_decode(value: str) -> str:
    """Decode an ``application/x-www-form-urlencoded`` component (``+`` is a space)."""
    return unquote(value.replace("+", " "))


def parse_query(query: str) -> list[tuple[str, str]]:
    """Split and decode a raw query string, keeping order, repeats and blank values."""
    return parse_qsl(query, keep_blank_values=True)


def url_query(url: str) -> list[tuple[str, str]]:
    return parse_query(urlsplit(url).query)


def group_query(pairs: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    """Group decoded pairs by key, preserving first-seen key order."""
    grouped: dict[str, list[str]] = {}
    for key, value in pairs:
        grouped.setdefault(key, []).append(value)
    return grouped


def trim_header_value(value: str) -> str:
    """Strip a header value and collapse internal whitespace runs to one space."""
    return _WHITESPACE.sub(" ", value.strip())


def select_headers(
    headers: Iterable[tuple[str, str]],
    names: Iterable[str],
) -> dict[str, str]:
    """Pick the first value of each header in *names* (case-insensitive).

    Returns:
        A dict keyed by the lowercase header name, in the order of *names*,
        containing only the headers that were present.
    """
    wanted = [n.lower() for n in names]
    found: dict[str, str] = {}
    for name, value in headers:
        lowered = name.lower()
        if lowered in wanted and lowered not in found:
            found[lowered] = value
    return {n: found[n] for n in wanted if n in found}


def header_lookup(headers: Mapping[str, str], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None
