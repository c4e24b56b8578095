from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from patchpilot.config import PatchPilotSettings  # noqa: E402
from patchpilot.workspace import LocalWorkspace  # noqa: E402


@pytest.fixture()
def workspace(tmp_path: Path) -> LocalWorkspace:
    return LocalWorkspace(tmp_path)


@pytest.fixture()
def settings() -> PatchPilotSettings:
    return PatchPilotSettings()


@pytest.fixture()
def git_repo(tmp_path: Path) -> Path:
    """Create an empty git repository with a committer identity."""

    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    def run_git(*cmd: str) -> None:
        subprocess.run(
            ["git", *cmd],
            cwd=repo_root,
            check=True,
            capture_output=True,
            text=True,
        )

    run_git("init")
    run_git("config", "user.email", "patchpilot@example.com")
    run_git("config", "user.name", "PatchPilot")
    return repo_root
