"""Exception types raised by the patch engine."""

from __future__ import annotations

from typing import Any, Mapping


class PatchError(RuntimeError):
    """Raised when diff text cannot be normalised or parsed."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class WorkspaceError(RuntimeError):
    """Raised when a patch target cannot be resolved inside the workspace."""


class ConfigError(RuntimeError):
    """Raised when ``patchpilot.yaml`` cannot be read or validated."""


__all__ = ["ConfigError", "PatchError", "WorkspaceError"]
