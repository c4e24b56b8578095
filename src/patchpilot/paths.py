"""Path extraction and safety checks for diff targets."""

from __future__ import annotations

import posixpath
import re

from .models import ParsedPatch

DEV_NULL = "/dev/null"
MAX_PATH_LENGTH = 1000

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")
_ESCAPED_EOL = re.compile(r"\\r|\\n")
_DRIVE_OR_UNC = re.compile(r"^([A-Za-z]:|[\\/]{2})")


def sanitize_path(raw: str | None) -> str:
    """Strip control characters and escaped EOLs, and use forward slashes."""
    if not raw:
        return ""
    cleaned = _CONTROL_CHARS.sub("", raw)
    cleaned = _ESCAPED_EOL.sub("", cleaned)
    return cleaned.replace("\\", "/").strip()


def is_safe_path(path: str | None) -> bool:
    """Return True when ``path`` stays inside the workspace root."""
    if not path or not isinstance(path, str):
        return False
    if "\0" in path or len(path) > MAX_PATH_LENGTH:
        return False
    if path.startswith("/") or _DRIVE_OR_UNC.match(path):
        return False
    if _CONTROL_CHARS.search(path):
        return False
    normalised = posixpath.normpath(path.replace("\\", "/"))
    if any(segment == ".." for segment in normalised.split("/")):
        return False
    return normalised not in {"", "."}


def strip_diff_prefix(entry: str | None, prefix: str) -> str | None:
    """Translate a ``---``/``+++`` operand into a workspace-relative path."""
    if entry is None:
        return None
    candidate = sanitize_path(entry)
    if not candidate or candidate == DEV_NULL:
        return None
    if candidate.startswith(prefix):
        candidate = candidate[len(prefix):]
    return candidate or None


def extract_file_path(patch: ParsedPatch) -> str | None:
    """Return the target path of ``patch``, preferring the new file name."""
    return strip_diff_prefix(patch.new_file_name, "b/") or strip_diff_prefix(patch.old_file_name, "a/")


__all__ = [
    "DEV_NULL",
    "extract_file_path",
    "is_safe_path",
    "sanitize_path",
    "strip_diff_prefix",
]
