"""File-system collaborator used by the apply orchestrator."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Protocol

from .errors import PatchError, WorkspaceError
from .paths import is_safe_path, sanitize_path

LOGGER = logging.getLogger(__name__)

Prompt = Callable[[str], bool]

_SKIPPED_DIRECTORIES = {".git", ".hg", ".svn", "node_modules", ".venv", "venv", "env", "__pycache__", ".tox"}


@dataclass(slots=True)
class FileSnapshot:
    content: str
    mtime: float


class Workspace(Protocol):
    """Where patch targets are resolved, read and written."""

    def resolve(self, rel_path: str) -> Path | None:
        ...

    def path_for(self, rel_path: str) -> Path:
        ...

    def read(self, path: Path) -> FileSnapshot:
        ...

    def write(self, path: Path, content: str) -> None:
        ...

    def delete(self, path: Path) -> None:
        ...

    def stat(self, path: Path) -> float:
        ...


class LocalWorkspace:
    """Workspace rooted at a directory on the local disk."""

    def __init__(self, root: Path, *, strict_file_search: bool = False) -> None:
        self.root = Path(root).resolve()
        self.strict_file_search = strict_file_search

    def _checked(self, rel_path: str) -> str:
        cleaned = sanitize_path(rel_path)
        if not is_safe_path(cleaned):
            raise PatchError(f"Unsafe file path in patch: {rel_path!r}", details={"path": rel_path})
        return cleaned

    def path_for(self, rel_path: str) -> Path:
        """Return the in-workspace location for ``rel_path`` without requiring it to exist."""
        return self.root / self._checked(rel_path)

    def resolve(self, rel_path: str) -> Path | None:
        """Locate an existing file for ``rel_path``.

        Falls back to a unique suffix or basename match elsewhere in the tree
        unless strict file search is enabled.
        """
        direct = self.path_for(rel_path)
        if direct.is_file():
            return direct
        if self.strict_file_search:
            return None

        cleaned = self._checked(rel_path)
        candidates = self._search(cleaned)
        if not candidates:
            return None
        if len(candidates) > 1:
            listing = ", ".join(path.relative_to(self.root).as_posix() for path in candidates)
            raise WorkspaceError(f"Multiple files match {cleaned}: {listing}")
        LOGGER.info("Resolved %s to %s", cleaned, candidates[0].relative_to(self.root).as_posix())
        return candidates[0]

    def _search(self, rel_path: str) -> List[Path]:
        basename = rel_path.rsplit("/", 1)[-1]
        suffix = "/" + rel_path
        by_suffix: List[Path] = []
        by_name: List[Path] = []
        for current, directories, files in os.walk(self.root):
            directories[:] = sorted(name for name in directories if name not in _SKIPPED_DIRECTORIES)
            if basename not in files:
                continue
            candidate = Path(current) / basename
            relative = "/" + candidate.relative_to(self.root).as_posix()
            if relative.endswith(suffix):
                by_suffix.append(candidate)
            by_name.append(candidate)
        return by_suffix or by_name

    def read(self, path: Path) -> FileSnapshot:
        with path.open("r", encoding="utf-8", newline="") as handle:
            content = handle.read()
        return FileSnapshot(content=content, mtime=self.stat(path))

    def write(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as handle:
            handle.write(content)

    def delete(self, path: Path) -> None:
        path.unlink()

    def stat(self, path: Path) -> float:
        return path.stat().st_mtime


__all__ = ["FileSnapshot", "LocalWorkspace", "Prompt", "Workspace"]
