"""Explain why a hunk could not be placed in a file."""

from __future__ import annotations

from typing import List, Sequence

from ..models import FailureDiagnostics, FailureKind, Hunk

_KIND_DESCRIPTIONS = {
    FailureKind.ALREADY_APPLIED: "the change appears to be applied already",
    FailureKind.WHITESPACE: "the file differs from the hunk only in whitespace",
    FailureKind.STRUCTURAL: "the file no longer matches the hunk context",
}


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to one space and strip both ends."""
    return " ".join(text.split())


def find_sequence(lines: Sequence[str], needle: Sequence[str]) -> List[int]:
    """Return every index where ``needle`` occurs contiguously in ``lines``."""
    if not needle or len(needle) > len(lines):
        return []
    width = len(needle)
    first = needle[0]
    return [
        index
        for index in range(len(lines) - width + 1)
        if lines[index] == first and list(lines[index : index + width]) == list(needle)
    ]


def classify_failure(lines: Sequence[str], hunk: Hunk) -> FailureKind:
    """Guess why ``hunk`` matched nowhere in ``lines``."""
    old_side = hunk.old_side()
    new_side = hunk.new_side()
    if new_side and new_side != old_side and find_sequence(lines, new_side):
        return FailureKind.ALREADY_APPLIED

    if old_side and find_sequence(lines, old_side):
        # Present verbatim, just further away than the fuzz factor allows.
        return FailureKind.STRUCTURAL

    loose_lines = [collapse_whitespace(line) for line in lines]
    loose_old = [collapse_whitespace(line) for line in old_side]
    if loose_old and find_sequence(loose_lines, loose_old):
        return FailureKind.WHITESPACE

    removed = [collapse_whitespace(line[1:]) for line in hunk.lines if line.startswith("-")]
    added = [collapse_whitespace(line[1:]) for line in hunk.lines if line.startswith("+")]
    if removed and removed == added:
        return FailureKind.WHITESPACE
    return FailureKind.STRUCTURAL


def describe_failure(diagnostics: FailureDiagnostics) -> str:
    """Render a one-line failure reason for an :class:`~patchpilot.models.ApplyResult`."""
    tried = ", ".join(diagnostics.strategies_tried) or "none"
    return (
        f"Hunk {diagnostics.hunk_index + 1} could not be applied "
        f"(tried: {tried}): {_KIND_DESCRIPTIONS[diagnostics.kind]}"
    )


__all__ = ["classify_failure", "collapse_whitespace", "describe_failure", "find_sequence"]
