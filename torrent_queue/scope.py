"""
Scope Filter
Restricts the reconciled queue to torrents that live under this client's
configured directory or category, and resolves where new downloads go.

Paths come from the daemon, which may run on another OS than we do, so they
are compared as strings: separators are unified, duplicate and trailing
separators collapsed, and Windows drive paths compared case-insensitively.
"""

import re
from typing import Optional

from .models import ScopeConfig

_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:")
_REPEATED_SLASHES = re.compile(r"/{2,}")


def is_windows_path(path: str) -> bool:
    return bool(_WINDOWS_DRIVE.match(path)) or "\\" in path


def normalize_path(path: str) -> str:
    """Unify separators to ``/`` and collapse duplicate and trailing ones."""
    if not path:
        return ""
    unified = _REPEATED_SLASHES.sub("/", path.strip().replace("\\", "/"))
    stripped = unified.rstrip("/")
    if not stripped and unified.startswith("/"):
        return "/"
    return stripped


def native_path(path: str) -> str:
    """Render a normalized path with the separator style of its own OS."""
    normalized = normalize_path(path)
    if is_windows_path(path):
        return normalized.replace("/", "\\")
    return normalized


def _segments(path: str) -> list[str]:
    normalized = normalize_path(path)
    if normalized == "/":
        return [""]
    if is_windows_path(path):
        normalized = normalized.lower()
    return normalized.split("/")


def is_within(directory: str, path: str) -> bool:
    """True when ``path`` is ``directory`` or any of its subdirectories."""
    if not directory or not path:
        return False
    parent = _segments(directory)
    child = _segments(path)
    return child[:len(parent)] == parent


def has_category_segment(path: str, category: str) -> bool:
    """True when ``category`` is one of the path's directory names."""
    if not path or not category:
        return False
    return category in normalize_path(path).split("/")


def in_scope(download_dir: str, scope: ScopeConfig) -> bool:
    """Apply the configured directory, else the configured category, else accept."""
    if scope.directory:
        return is_within(scope.directory, download_dir)
    if scope.category:
        return has_category_segment(download_dir, scope.category)
    return True


def resolve_download_directory(scope: ScopeConfig, default_dir: Optional[str]) -> Optional[str]:
    """
    Directory to hand to the daemon for a new download.

    The configured directory wins; a category becomes a subfolder of the
    daemon's default download directory. None leaves the choice to the daemon.
    """
    if scope.directory:
        return scope.directory
    if scope.category and default_dir:
        root = default_dir.rstrip("/\\")
        return f"{root}/{scope.category}"
    return None


def build_output_path(download_dir: str, name: str) -> str:
    """Content path of a torrent: its download directory joined with its name."""
    base = native_path(download_dir)
    separator = "\\" if is_windows_path(download_dir) else "/"
    if not base:
        return name
    if base.endswith(separator):
        return f"{base}{name}"
    return f"{base}{separator}{name}"
