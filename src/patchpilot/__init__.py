"""Normalise and apply AI-generated unified diffs."""

from .config import PatchPilotSettings, load_settings
from .errors import ConfigError, PatchError, WorkspaceError
from .models import ApplyOptions, ApplyResult, ApplyStatus, FileInfo
from .orchestrator import ParsedDiff, PatchApplier
from .workspace import LocalWorkspace

__all__ = [
    "ApplyOptions",
    "ApplyResult",
    "ApplyStatus",
    "ConfigError",
    "FileInfo",
    "LocalWorkspace",
    "ParsedDiff",
    "PatchApplier",
    "PatchError",
    "PatchPilotSettings",
    "WorkspaceError",
    "load_settings",
]
