"""
Magnet link helpers.
Resolves the stable info-hash identifier of a magnet submission.
"""

import base64
import binascii
import re
import urllib.parse

from .exceptions import InvalidReleaseUrlError

BTIH_PREFIX = "urn:btih:"

_HEX_HASH = re.compile(r"^[0-9a-fA-F]{40}$")
_BASE32_HASH = re.compile(r"^[a-zA-Z2-7]{32}$")


def is_magnet(url: str | None) -> bool:
    return bool(url) and url.strip().lower().startswith("magnet:")


def _magnet_params(url: str) -> dict[str, list[str]]:
    parsed = urllib.parse.urlparse(url.strip())
    return urllib.parse.parse_qs(parsed.query)


def resolve_magnet_hash(url: str) -> str:
    """
    Extract the info hash from a magnet link as 40 uppercase hex characters.

    Both hex and base32 encoded ``btih`` values are accepted; tracker and
    display-name parameters are ignored.

    Raises:
        InvalidReleaseUrlError: if the link carries no valid btih hash.
    """
    if not is_magnet(url):
        raise InvalidReleaseUrlError(url, f"Not a magnet link: {url}")

    for topic in _magnet_params(url).get("xt", []):
        if not topic.lower().startswith(BTIH_PREFIX):
            continue

        value = topic[len(BTIH_PREFIX):]
        if _HEX_HASH.match(value):
            return value.upper()
        if _BASE32_HASH.match(value):
            try:
                return base64.b32decode(value.upper()).hex().upper()
            except binascii.Error:
                continue

    raise InvalidReleaseUrlError(url, f"Magnet link has no valid btih hash: {url}")


def magnet_display_name(url: str, default: str = "Unknown Torrent") -> str:
    """Return the ``dn`` parameter of a magnet link."""
    try:
        params = _magnet_params(url)
        if "dn" in params:
            return params["dn"][0]
    except ValueError:
        pass
    return default
