"""Filesystem sandbox utilities for safe path resolution."""

import posixpath
from pathlib import Path


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the configured sandbox."""


def contains_dot_dot(url_path: str) -> bool:
    """Return True when any segment of the URL path is exactly '..'."""
    return ".." in url_path.replace("\\", "/").split("/")


def clean_url_path(url_path: str) -> str:
    """Normalize a URL path to an absolute path without '.' or '//' parts."""
    if not url_path.startswith("/"):
        url_path = "/" + url_path
    cleaned = posixpath.normpath(url_path)
    # normpath keeps a leading '//' intact
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def canonical_url_path(url_path: str) -> str:
    """Clean a URL path but keep its trailing slash."""
    cleaned = clean_url_path(url_path)
    if url_path.endswith("/") and cleaned != "/":
        cleaned += "/"
    return cleaned


def resolve_sandbox_path(directory: str, url_path: str) -> Path:
    """Resolve a cleaned URL path inside the configured root directory."""
    if "\x00" in url_path:
        raise ForbiddenPath

    directory_root = Path(directory).resolve()
    relative_part = clean_url_path(url_path).lstrip("/")
    if ".." in Path(relative_part).parts:
        raise ForbiddenPath

    target = (directory_root / relative_part).resolve()
    if not (target == directory_root or directory_root in target.parents):
        raise ForbiddenPath

    return target
