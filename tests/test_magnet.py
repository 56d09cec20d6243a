"""
Tests for magnet link helpers.
"""

import base64

import pytest

from torrent_queue.exceptions import InvalidReleaseUrlError
from torrent_queue.magnet import is_magnet, magnet_display_name, resolve_magnet_hash

HEX_HASH = "CBC2F069FE8BB2F544EAE707D75BCD3DE9DCF951"


class TestIsMagnet:
    """Tests for is_magnet."""

    def test_magnet(self):
        assert is_magnet(f"magnet:?xt=urn:btih:{HEX_HASH}")

    def test_case_insensitive_scheme(self):
        assert is_magnet(f"MAGNET:?xt=urn:btih:{HEX_HASH}")

    @pytest.mark.parametrize("url", [None, "", "http://tracker.example/file.torrent"])
    def test_not_magnet(self, url):
        assert not is_magnet(url)


class TestResolveMagnetHash:
    """Tests for resolve_magnet_hash."""

    def test_hex_hash_is_uppercased(self):
        url = f"magnet:?xt=urn:btih:{HEX_HASH.lower()}&tr=udp://abc.com:123&dn=Droned"
        assert resolve_magnet_hash(url) == HEX_HASH

    def test_base32_hash(self):
        encoded = base64.b32encode(bytes.fromhex(HEX_HASH)).decode("ascii")
        url = f"magnet:?xt=urn:btih:{encoded.lower()}&dn=Droned"
        assert resolve_magnet_hash(url) == HEX_HASH

    def test_first_btih_topic_wins(self):
        other = "A" * 40
        url = f"magnet:?xt=urn:sha1:abc&xt=urn:btih:{HEX_HASH}&xt=urn:btih:{other}"
        assert resolve_magnet_hash(url) == HEX_HASH

    def test_missing_hash(self):
        with pytest.raises(InvalidReleaseUrlError):
            resolve_magnet_hash("magnet:?dn=Droned&tr=udp://abc.com:123")

    def test_malformed_hash(self):
        with pytest.raises(InvalidReleaseUrlError):
            resolve_magnet_hash("magnet:?xt=urn:btih:nothex")

    def test_not_a_magnet(self):
        with pytest.raises(InvalidReleaseUrlError) as exc_info:
            resolve_magnet_hash("http://tracker.example/file.torrent")
        assert exc_info.value.url == "http://tracker.example/file.torrent"


class TestMagnetDisplayName:
    """Tests for magnet_display_name."""

    def test_display_name(self):
        url = f"magnet:?xt=urn:btih:{HEX_HASH}&dn=Droned.1998"
        assert magnet_display_name(url) == "Droned.1998"

    def test_default(self):
        assert magnet_display_name(f"magnet:?xt=urn:btih:{HEX_HASH}") == "Unknown Torrent"
