"""Sequence normalisation, correction and hunk placement across a patch set."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence, Tuple

from .config import PatchPilotSettings
from .errors import PatchError, WorkspaceError
from .guard import with_modification_check
from .models import (
    ApplyOptions,
    ApplyResult,
    ApplyStatus,
    CorrectionReport,
    FileInfo,
    ParsedPatch,
)
from .patch.corrector import correct_hunk_headers
from .patch.diagnostics import describe_failure
from .patch.normalizer import detect_line_ending, normalize_diff, normalize_line_endings
from .patch.parser import parse_patch
from .patch.strategies import ContentPatchResult, apply_hunks
from .paths import extract_file_path
from .telemetry import emit_event
from .vcs import GitError
from .workspace import Prompt, Workspace

LOGGER = logging.getLogger(__name__)

Stager = Callable[[Sequence[Path]], Any]

FILE_NOT_FOUND = "File not found in workspace"
FILE_EXISTS = "File already exists in workspace"
USER_CANCELLED = "User cancelled after preview"
MODIFIED_EXTERNALLY = "File modified externally, update aborted"
UNRESOLVABLE_TARGET = "could not determine target file"
UNKNOWN_FILE = "<unknown>"


@dataclass(slots=True)
class ParsedDiff:
    """Patches ready to preview or apply, with the header fixes made on the way."""

    patches: List[ParsedPatch]
    corrections: CorrectionReport = field(default_factory=CorrectionReport)


@dataclass(slots=True)
class _PlannedWrite:
    path: Path
    content: str
    strategy: str
    delete: bool = False


def _failed(file: str, reason: str, **kwargs: Any) -> ApplyResult:
    return ApplyResult(file=file, status=ApplyStatus.FAILED, reason=reason, **kwargs)


def _hunk_failure(file: str, outcome: ContentPatchResult) -> ApplyResult:
    if outcome.diagnostics is None:
        return _failed(file, "patch could not be applied")
    return _failed(file, describe_failure(outcome.diagnostics), diagnostics=outcome.diagnostics)


class PatchApplier:
    """Apply unified diffs to files in a :class:`~patchpilot.workspace.Workspace`.

    Files are processed one after another in the order they appear in the
    patch set, and results are reported in that same order. A failure on one
    file never stops the others and never leaves a partially patched file.
    """

    def __init__(
        self,
        workspace: Workspace,
        *,
        settings: PatchPilotSettings | None = None,
        prompt: Prompt | None = None,
        stager: Stager | None = None,
    ) -> None:
        self.workspace = workspace
        self.settings = settings or PatchPilotSettings()
        self.prompt = prompt
        self.stager = stager

    # ------------------------------------------------------------------ events
    def _emit(self, event: str, **fields: Any) -> None:
        emit_event(event, enabled=self.settings.enable_telemetry, **fields)

    # ----------------------------------------------------------------- parsing
    def parse(self, text: str, *, fallback_path: str | None = None) -> ParsedDiff:
        """Normalise, parse and (when enabled) correct ``text``."""
        normalised = normalize_diff(text, fallback_path=fallback_path)
        self._emit("patch_content", characters=len(normalised), lines=normalised.count("\n"))
        patches = parse_patch(normalised)

        if not self.settings.auto_correct_hunk_headers:
            self._emit("hunk_correction_skipped_disabled", files=len(patches))
            return ParsedDiff(patches=patches)

        correction = correct_hunk_headers(patches)
        report = correction.correction_details
        if report.corrections_made:
            LOGGER.info("Corrected %d hunk header(s)", len(report.corrections))
            self._emit(
                "hunk_correction_applied",
                count=len(report.corrections),
                corrections=[item.render() for item in report.corrections],
            )
        return ParsedDiff(patches=correction.corrected_patches, corrections=report)

    # ----------------------------------------------------------------- preview
    def preview(self, patches: Sequence[ParsedPatch], *, corrections: CorrectionReport | None = None) -> List[FileInfo]:
        """Describe what applying ``patches`` would touch, without writing anything."""
        corrected = {item.file_path for item in (corrections.corrections if corrections else [])}
        existence: Dict[Tuple[str, bool], bool] = {}
        infos: List[FileInfo] = []

        for patch in patches:
            rel_path = extract_file_path(patch)
            if rel_path is None:
                exists = False
            elif (rel_path, patch.is_new_file) in existence:
                exists = existence[(rel_path, patch.is_new_file)]
            else:
                exists = self._exists(rel_path, patch)
                existence[(rel_path, patch.is_new_file)] = exists
            infos.append(
                FileInfo(
                    file_path=rel_path or UNKNOWN_FILE,
                    exists=exists,
                    hunks=len(patch.hunks),
                    changes=patch.change_stats(),
                    is_new_file=patch.is_new_file,
                    hunk_headers_corrected=(rel_path or UNKNOWN_FILE) in corrected,
                )
            )
        return infos

    def _exists(self, rel_path: str, patch: ParsedPatch) -> bool:
        try:
            return self._target(rel_path, patch) is not None
        except (PatchError, WorkspaceError) as error:
            LOGGER.warning("Cannot resolve %s: %s", rel_path, error)
            return False

    def preview_text(self, text: str, *, fallback_path: str | None = None) -> List[FileInfo]:
        parsed = self.parse(text, fallback_path=fallback_path)
        return self.preview(parsed.patches, corrections=parsed.corrections)

    @staticmethod
    def can_apply(infos: Sequence[FileInfo]) -> bool:
        """Apply is offered unless every target is missing."""
        return any(info.exists or info.is_new_file for info in infos)

    # ------------------------------------------------------------------- apply
    def apply_text(
        self, text: str, options: ApplyOptions | None = None, *, fallback_path: str | None = None
    ) -> List[ApplyResult]:
        parsed = self.parse(text, fallback_path=fallback_path)
        return self.apply(parsed.patches, options)

    def apply(self, patches: Sequence[ParsedPatch], options: ApplyOptions | None = None) -> List[ApplyResult]:
        """Apply every patch and return one result per patch, in input order."""
        resolved = (options or ApplyOptions()).resolve(self.settings)
        self._emit(
            "apply_patch_start",
            files=len(patches),
            fuzz=resolved.fuzz,
            preview=resolved.preview,
            auto_stage=resolved.auto_stage,
            mtime_check=resolved.mtime_check,
        )

        results: List[ApplyResult] = []
        written: List[Path] = []
        for patch in patches:
            result, path = self._apply_patch(patch, resolved)
            results.append(result)
            if path is not None:
                written.append(path)
            if result.applied:
                LOGGER.info("Applied %s using %s strategy", result.file, result.strategy)
            else:
                LOGGER.warning("Failed to apply %s: %s", result.file, result.reason)

        if resolved.auto_stage and written:
            self._stage(written)

        self._emit(
            "apply_patch_complete",
            applied=sum(1 for item in results if item.applied),
            failed=sum(1 for item in results if not item.applied),
            results=[item.to_dict() for item in results],
        )
        return results

    def _stage(self, paths: Sequence[Path]) -> None:
        if self.stager is None:
            LOGGER.info("Auto-stage requested but no stager is configured")
            return
        try:
            self.stager(paths)
        except (GitError, OSError) as error:
            LOGGER.warning("Failed to stage patched files: %s", error)

    def _apply_patch(self, patch: ParsedPatch, options: ApplyOptions) -> Tuple[ApplyResult, Path | None]:
        rel_path = extract_file_path(patch)
        if rel_path is None:
            return _failed(UNKNOWN_FILE, UNRESOLVABLE_TARGET), None

        try:
            path = self._target(rel_path, patch)
            if path is None:
                if not patch.is_new_file:
                    return _failed(rel_path, FILE_NOT_FOUND), None
                planned = self._plan_new_file(rel_path, patch, options)
            else:
                planned = with_modification_check(
                    path,
                    lambda _mtime: self._plan_update(rel_path, path, patch, options),
                    self.workspace,
                    options,
                    self.prompt,
                    needs_check=lambda plan: not isinstance(plan, ApplyResult),
                )
                if planned is None:
                    return _failed(rel_path, MODIFIED_EXTERNALLY), None

            if isinstance(planned, ApplyResult):
                return planned, None
            if planned.delete:
                self.workspace.delete(planned.path)
            else:
                self.workspace.write(planned.path, planned.content)
        except (PatchError, WorkspaceError, OSError, UnicodeDecodeError) as error:
            return _failed(rel_path, str(error)), None

        return ApplyResult(file=rel_path, status=ApplyStatus.APPLIED, strategy=planned.strategy), planned.path

    def _target(self, rel_path: str, patch: ParsedPatch) -> Path | None:
        # New files land at their exact path, never at a fallback match.
        if patch.is_new_file:
            direct = self.workspace.path_for(rel_path)
            return direct if direct.is_file() else None
        return self.workspace.resolve(rel_path)

    def _confirm(self, rel_path: str, patch: ParsedPatch, options: ApplyOptions) -> bool:
        if not options.preview or self.prompt is None:
            return True
        stats = patch.change_stats()
        return bool(
            self.prompt(
                f"Apply {len(patch.hunks)} hunk(s) to {rel_path} "
                f"(+{stats.additions}/-{stats.deletions})?"
            )
        )

    def _plan_update(
        self, rel_path: str, path: Path, patch: ParsedPatch, options: ApplyOptions
    ) -> _PlannedWrite | ApplyResult:
        snapshot = self.workspace.read(path)
        if patch.is_new_file and snapshot.content.strip():
            return _failed(rel_path, FILE_EXISTS)
        line_ending = detect_line_ending(snapshot.content)
        outcome = apply_hunks(normalize_line_endings(snapshot.content), patch.hunks, options.fuzz or 0)
        if not outcome.success:
            return _hunk_failure(rel_path, outcome)
        if not self._confirm(rel_path, patch, options):
            return _failed(rel_path, USER_CANCELLED)

        content = outcome.content
        if line_ending == "\r\n":
            content = content.replace("\n", "\r\n")
        return _PlannedWrite(
            path=path,
            content=content,
            strategy=outcome.strategy or "strict",
            delete=patch.is_deleted_file and content == "",
        )

    def _plan_new_file(self, rel_path: str, patch: ParsedPatch, options: ApplyOptions) -> _PlannedWrite | ApplyResult:
        path = self.workspace.path_for(rel_path)
        outcome = apply_hunks("", patch.hunks, options.fuzz or 0)
        if not outcome.success:
            return _hunk_failure(rel_path, outcome)
        if not self._confirm(rel_path, patch, options):
            return _failed(rel_path, USER_CANCELLED)
        LOGGER.info("Creating %s", rel_path)
        return _PlannedWrite(path=path, content=outcome.content, strategy=outcome.strategy or "strict")


__all__ = [
    "FILE_NOT_FOUND",
    "MODIFIED_EXTERNALLY",
    "UNRESOLVABLE_TARGET",
    "USER_CANCELLED",
    "ParsedDiff",
    "PatchApplier",
    "Stager",
]
