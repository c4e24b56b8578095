"""Detect target files that changed between reading and writing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar

from .errors import PatchError, WorkspaceError
from .models import ApplyOptions
from .workspace import Prompt, Workspace

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_EXPECTED_ERRORS = (OSError, UnicodeDecodeError, PatchError, WorkspaceError)


@dataclass(slots=True)
class ModificationCheck:
    modified: bool
    proceed: bool
    original_mtime: float
    current_mtime: Optional[float] = None


def check_modification(
    path: Path,
    original_mtime: float,
    workspace: Workspace,
    options: ApplyOptions,
    prompt: Prompt | None = None,
) -> ModificationCheck:
    """Compare ``path``'s mtime against ``original_mtime``.

    A changed file proceeds only when prompting is allowed and the prompt
    confirms. Errors while re-statting are treated as advisory.
    """
    if not options.mtime_check:
        return ModificationCheck(modified=False, proceed=True, original_mtime=original_mtime)

    try:
        current_mtime = workspace.stat(path)
    except OSError as error:
        LOGGER.warning("Error checking file modification for %s: %s", path, error)
        return ModificationCheck(modified=False, proceed=True, original_mtime=original_mtime)

    if current_mtime == original_mtime:
        return ModificationCheck(
            modified=False, proceed=True, original_mtime=original_mtime, current_mtime=current_mtime
        )

    proceed = False
    if options.mtime_prompt and prompt is not None:
        proceed = bool(prompt(f"File {path.name} has been modified since it was read. Proceed anyway?"))
    LOGGER.info("%s changed on disk since it was read; proceed=%s", path, proceed)
    return ModificationCheck(modified=True, proceed=proceed, original_mtime=original_mtime, current_mtime=current_mtime)


def with_modification_check(
    path: Path,
    operation: Callable[[float], T],
    workspace: Workspace,
    options: ApplyOptions,
    prompt: Prompt | None = None,
    *,
    needs_check: Callable[[T], bool] | None = None,
) -> T | None:
    """Run ``operation`` with the file's current mtime, then re-check it.

    Returns ``None`` when the file changed meanwhile and the change was not
    accepted. When ``needs_check`` returns False for the operation's result
    (nothing will be written) the result is returned without re-checking.
    """
    try:
        original_mtime = workspace.stat(path)
        result = operation(original_mtime)
        if needs_check is not None and not needs_check(result):
            return result
        check = check_modification(path, original_mtime, workspace, options, prompt)
    except _EXPECTED_ERRORS as error:
        LOGGER.warning("Operation with modification check failed on %s: %s", path, error)
        raise
    except Exception:
        LOGGER.exception("Error performing operation with modification check on %s", path)
        raise
    if check.modified and not check.proceed:
        return None
    return result


__all__ = ["ModificationCheck", "check_modification", "with_modification_check"]
