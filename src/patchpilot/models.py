"""Typed records exchanged between the normaliser, strategies and orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from .config import PatchPilotSettings

NO_NEWLINE_MARKER = "\\ No newline at end of file"

FuzzFactor = Literal[0, 1, 2, 3]


def _is_marker(line: str) -> bool:
    return line.startswith("\\")


@dataclass(slots=True)
class Hunk:
    """Contiguous change region of a unified diff.

    ``lines`` keeps the raw hunk body: each entry starts with ``' '``
    (context), ``'+'`` (addition) or ``'-'`` (deletion), or is the
    ``\\ No newline at end of file`` marker.
    """

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: List[str] = field(default_factory=list)

    def copy(self) -> "Hunk":
        """Return an independent copy that owns a fresh ``lines`` list."""
        return Hunk(
            old_start=self.old_start,
            old_lines=self.old_lines,
            new_start=self.new_start,
            new_lines=self.new_lines,
            lines=list(self.lines),
        )

    def count_lines(self) -> Tuple[int, int]:
        """Tally ``(old, new)`` line counts from the hunk body."""
        old_count = 0
        new_count = 0
        for line in self.lines:
            if _is_marker(line):
                continue
            if line.startswith("+"):
                new_count += 1
            elif line.startswith("-"):
                old_count += 1
            else:
                old_count += 1
                new_count += 1
        return old_count, new_count

    def old_side(self) -> List[str]:
        """Text of the context and deletion lines, in order."""
        return [line[1:] for line in self.lines if not _is_marker(line) and not line.startswith("+")]

    def new_side(self) -> List[str]:
        """Text of the context and addition lines, in order."""
        return [line[1:] for line in self.lines if not _is_marker(line) and not line.startswith("-")]

    def context_count(self) -> int:
        return sum(1 for line in self.lines if not _is_marker(line) and line[:1] not in {"+", "-"})

    def additions(self) -> int:
        return sum(1 for line in self.lines if line.startswith("+"))

    def deletions(self) -> int:
        return sum(1 for line in self.lines if line.startswith("-"))


@dataclass(slots=True)
class ParsedPatch:
    """Single file section of a unified diff."""

    old_file_name: str | None = None
    new_file_name: str | None = None
    hunks: List[Hunk] = field(default_factory=list)
    is_new_file: bool = False
    is_deleted_file: bool = False

    def copy(self) -> "ParsedPatch":
        return ParsedPatch(
            old_file_name=self.old_file_name,
            new_file_name=self.new_file_name,
            hunks=[hunk.copy() for hunk in self.hunks],
            is_new_file=self.is_new_file,
            is_deleted_file=self.is_deleted_file,
        )

    def change_stats(self) -> "ChangeStats":
        additions = sum(hunk.additions() for hunk in self.hunks)
        deletions = sum(hunk.deletions() for hunk in self.hunks)
        return ChangeStats(additions=additions, deletions=deletions)


class ApplyStatus(str, Enum):
    """Outcome of applying a patch to one file."""

    APPLIED = "applied"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Heuristic classification of why no strategy matched a hunk."""

    ALREADY_APPLIED = "already-applied"
    WHITESPACE = "whitespace"
    STRUCTURAL = "structural"


@dataclass(slots=True)
class StrategyAttempt:
    """Record of a single strategy failing on a hunk."""

    strategy: str
    hunk_index: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"strategy": self.strategy, "hunk_index": self.hunk_index, "reason": self.reason}


@dataclass(slots=True)
class FailureDiagnostics:
    """Why a file could not be patched: the failing hunk and every attempt on it."""

    hunk_index: int
    attempts: Tuple[StrategyAttempt, ...]
    kind: FailureKind

    @property
    def strategies_tried(self) -> Tuple[str, ...]:
        return tuple(attempt.strategy for attempt in self.attempts)

    @property
    def whitespace_only(self) -> bool:
        return self.kind is FailureKind.WHITESPACE

    def to_dict(self) -> dict[str, Any]:
        return {
            "hunk_index": self.hunk_index,
            "kind": self.kind.value,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }


@dataclass(slots=True)
class ApplyResult:
    """Per-file status reported after an apply invocation."""

    file: str
    status: ApplyStatus
    reason: str | None = None
    strategy: str | None = None
    diagnostics: FailureDiagnostics | None = None

    @property
    def applied(self) -> bool:
        return self.status is ApplyStatus.APPLIED

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"file": self.file, "status": self.status.value}
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.strategy is not None:
            payload["strategy"] = self.strategy
        if self.diagnostics is not None:
            payload["diagnostics"] = self.diagnostics.to_dict()
        return payload


@dataclass(slots=True)
class ChangeStats:
    additions: int = 0
    deletions: int = 0


@dataclass(slots=True)
class FileInfo:
    """Preview data for a file touched by a patch; produced before any write."""

    file_path: str
    exists: bool
    hunks: int
    changes: ChangeStats
    is_new_file: bool = False
    hunk_headers_corrected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "exists": self.exists,
            "hunks": self.hunks,
            "changes": {"additions": self.changes.additions, "deletions": self.changes.deletions},
            "is_new_file": self.is_new_file,
            "hunk_headers_corrected": self.hunk_headers_corrected,
        }


@dataclass(slots=True)
class HunkCorrection:
    """Discrepancy between a hunk's declared and actual line counts."""

    hunk_index: int
    file_path: str
    original_old: int
    corrected_old: int
    original_new: int
    corrected_new: int

    def render(self) -> str:
        return (
            f"{self.file_path} [Hunk {self.hunk_index}]: "
            f"Old lines {self.original_old} -> {self.corrected_old}, "
            f"New lines {self.original_new} -> {self.corrected_new}"
        )


@dataclass(slots=True)
class CorrectionReport:
    corrections_made: bool = False
    corrections: List[HunkCorrection] = field(default_factory=list)


@dataclass(slots=True)
class CorrectionResult:
    corrected_patches: List[ParsedPatch]
    correction_details: CorrectionReport


class ApplyOptions(BaseModel):
    """Caller-supplied switches for one apply invocation.

    ``None`` means "use the configured default"; call :meth:`resolve` to
    fill those in from :class:`~patchpilot.config.PatchPilotSettings`.
    """

    model_config = ConfigDict(extra="forbid")

    preview: bool = True
    auto_stage: Optional[bool] = None
    fuzz: Optional[FuzzFactor] = None
    mtime_check: Optional[bool] = None
    mtime_prompt: bool = True

    def resolve(self, settings: "PatchPilotSettings") -> "ApplyOptions":
        """Return a copy with every configurable field populated."""
        return self.model_copy(
            update={
                "auto_stage": settings.auto_stage if self.auto_stage is None else self.auto_stage,
                "fuzz": settings.fuzz_factor if self.fuzz is None else self.fuzz,
                "mtime_check": settings.mtime_check if self.mtime_check is None else self.mtime_check,
            }
        )


__all__ = [
    "NO_NEWLINE_MARKER",
    "ApplyOptions",
    "ApplyResult",
    "ApplyStatus",
    "ChangeStats",
    "CorrectionReport",
    "CorrectionResult",
    "FailureDiagnostics",
    "FailureKind",
    "FileInfo",
    "FuzzFactor",
    "Hunk",
    "HunkCorrection",
    "ParsedPatch",
    "StrategyAttempt",
]
