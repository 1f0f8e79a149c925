"""Conversions between metadata maps and URL-query strings."""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping
from urllib.parse import quote_plus, unquote_plus

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def copy_meta(src: Mapping[str, str], dst: MutableMapping[str, str] | None) -> None:
    """Copy every entry of ``src`` into ``dst``; nothing happens if ``dst`` is None."""
    if dst is None:
        return
    dst.update(src)


def _unescape(text: str) -> str:
    if _BAD_ESCAPE.search(text):
        raise ValueError(f"invalid URL escape in {text!r}")
    return unquote_plus(text)


def _parse_query(query: str) -> dict[str, str]:
    result: dict[str, str] = {}
    for part in query.split("&"):
        if not part:
            continue
        key, _, value = part.partition("=")
        if ";" in key:
            raise ValueError("invalid semicolon separator in query")
        result.setdefault(_unescape(key), _unescape(value))
    return result


def convert_meta_to_map(meta: str) -> dict[str, str]:
    """Parse a query string into a map, keeping the first value of each key.

    An unparsable string yields an empty map.
    """
    if not meta:
        return {}
    try:
        return _parse_query(meta)
    except ValueError:
        return {}


def convert_map_to_string(meta: Mapping[str, str]) -> str:
    """Encode a map as a query string with keys in sorted order."""
    return "&".join(
        f"{quote_plus(key)}={quote_plus(meta[key])}" for key in sorted(meta)
    )