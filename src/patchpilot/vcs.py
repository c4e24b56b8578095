"""Minimal git helpers used to stage files after a successful apply."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Iterable, List, Sequence


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""


class GitRepository:
    """Lightweight wrapper around ``git`` commands."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not (self.root / ".git").exists():
            raise GitError(f"Not a git repository: {self.root}")

    @classmethod
    def discover(cls, start: Path | str | None = None) -> "GitRepository":
        """Locate the nearest git repository starting from ``start``."""

        path = Path(start or Path.cwd()).resolve()
        for candidate in (path, *path.parents):
            if (candidate / ".git").exists():
                return cls(candidate)
        raise GitError(f"Unable to locate a git repository from {path}")

    def _run_git(self, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        command = ["git", *args]
        try:
            process = subprocess.run(
                command,
                cwd=self.root,
                capture_output=True,
                text=False,
                check=False,
            )
        except OSError as error:
            raise GitError(f"git {' '.join(args)} failed: {error}") from error
        stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
        stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
        result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
        if check and result.returncode != 0:
            message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
            raise GitError(f"git {' '.join(args)} failed: {message}")
        return result

    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Execute ``git`` with ``args`` relative to the repository root."""

        return self._run_git(list(args), check=check)

    def stage(self, paths: Iterable[Path]) -> List[Path]:
        """Add ``paths`` to the index and return them relative to the repository root."""

        relative: List[Path] = []
        for path in paths:
            resolved = Path(path).resolve()
            try:
                relative.append(resolved.relative_to(self.root))
            except ValueError as error:
                raise GitError(f"Path {resolved} is outside the repository {self.root}") from error
        if relative:
            self._run_git(["add", "--", *(item.as_posix() for item in relative)])
        return relative


__all__ = ["GitError", "GitRepository"]
