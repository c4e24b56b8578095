"""Hunk placement strategies, ordered from exact to most tolerant.

Each hunk is offered to :data:`STRATEGY_CHAIN` in turn and the first strategy
that locates it wins. Strategies only *locate* a hunk; splicing happens in
:func:`apply_hunks` on a private copy of the file so a failed file is never
partially rewritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..models import FailureDiagnostics, Hunk, StrategyAttempt
from .diagnostics import classify_failure, collapse_whitespace, find_sequence

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class HunkMatch:
    """Location of a hunk in a line buffer and the lines that replace it."""

    position: int
    length: int
    replacement: List[str]
    strategy: str


@dataclass(slots=True)
class StrategyOutcome:
    success: bool
    content: str | None = None


@dataclass(slots=True)
class ContentPatchResult:
    """Result of folding every hunk of one file through the strategy chain."""

    success: bool
    content: str
    strategy: str | None = None
    hunk_strategies: Tuple[str, ...] = ()
    diagnostics: FailureDiagnostics | None = None


def split_content(content: str) -> Tuple[List[str], bool]:
    """Split file text into lines and report whether it ends with a newline."""
    if content == "":
        return [], True
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
        return lines, True
    return lines, False


def join_content(lines: Sequence[str], eof_newline: bool) -> str:
    if not lines:
        return ""
    return "\n".join(lines) + ("\n" if eof_newline else "")


def expected_position(hunk: Hunk, delta: int = 0) -> int:
    """0-based buffer index where ``hunk`` should start once ``delta`` lines shifted."""
    base = hunk.old_start - 1 if hunk.old_side() else hunk.old_start
    return max(base + delta, 0)


def _body(hunk: Hunk) -> List[str]:
    return [line for line in hunk.lines if not line.startswith("\\")]


def _is_context(entry: str) -> bool:
    return not entry.startswith(("+", "-"))


def _old_of(entries: Sequence[str]) -> List[str]:
    return [entry[1:] for entry in entries if not entry.startswith("+")]


def _new_of(entries: Sequence[str]) -> List[str]:
    return [entry[1:] for entry in entries if not entry.startswith("-")]


class _Strategy:
    """Common surface shared by the placement strategies."""

    name = ""

    def match(self, lines: Sequence[str], hunk: Hunk, *, expected: int, fuzz: int) -> HunkMatch | None:
        raise NotImplementedError

    def failure_reason(self, hunk: Hunk, *, expected: int, fuzz: int) -> str:
        raise NotImplementedError

    def try_apply(self, file_content: str, hunk: Hunk, fuzz: int) -> StrategyOutcome:
        """Apply a single hunk to ``file_content`` with this strategy alone."""
        lines, eof_newline = split_content(file_content)
        found = self.match(lines, hunk, expected=expected_position(hunk), fuzz=fuzz)
        if found is None:
            return StrategyOutcome(success=False)
        updated, eof_newline = _splice(lines, eof_newline, hunk, found)
        return StrategyOutcome(success=True, content=join_content(updated, eof_newline))


class StrictStrategy(_Strategy):
    """Exact match of every context and deletion line at the expected line."""

    name = "strict"

    def match(self, lines: Sequence[str], hunk: Hunk, *, expected: int, fuzz: int) -> HunkMatch | None:
        old_side = hunk.old_side()
        if expected > len(lines):
            return None
        if list(lines[expected : expected + len(old_side)]) != old_side:
            return None
        return HunkMatch(expected, len(old_side), hunk.new_side(), self.name)

    def failure_reason(self, hunk: Hunk, *, expected: int, fuzz: int) -> str:
        return f"content does not match at line {expected + 1}"


class ShiftedStrategy(_Strategy):
    """Exact match within ``fuzz`` lines of the expected line.

    Trailing blank context lines may be dropped when the file ends early or
    its blank lines drifted.
    """

    name = "shifted"

    def match(self, lines: Sequence[str], hunk: Hunk, *, expected: int, fuzz: int) -> HunkMatch | None:
        if hunk.context_count() == 0:
            return None
        body = _body(hunk)
        variants = [body]
        trimmed = list(body)
        while trimmed and _is_context(trimmed[-1]) and not trimmed[-1][1:].strip():
            trimmed = trimmed[:-1]
            variants.append(list(trimmed))

        for offset in _offsets(fuzz):
            position = expected + offset
            if position < 0 or position > len(lines):
                continue
            for entries in variants:
                old_side = _old_of(entries)
                if not old_side:
                    continue
                if list(lines[position : position + len(old_side)]) == old_side:
                    if offset:
                        LOGGER.debug("Hunk located %+d line(s) from line %d", offset, expected + 1)
                    return HunkMatch(position, len(old_side), _new_of(entries), self.name)
        return None

    def failure_reason(self, hunk: Hunk, *, expected: int, fuzz: int) -> str:
        if hunk.context_count() == 0:
            return "hunks without context are only applied at their declared line"
        return f"no exact match within {fuzz} line(s) of line {expected + 1}"


class GreedyStrategy(_Strategy):
    """Whitespace-insensitive match with up to ``fuzz`` context lines trimmed.

    Context lines keep the file's own text in the replacement, so a loose
    match never rewrites lines it did not change.
    """

    name = "greedy"

    def match(self, lines: Sequence[str], hunk: Hunk, *, expected: int, fuzz: int) -> HunkMatch | None:
        if hunk.context_count() == 0:
            return None
        body = _body(hunk)
        leading, trailing = _context_edges(body)
        loose_lines = [collapse_whitespace(line) for line in lines]

        for trim in range(fuzz + 1):
            for lead_trim in range(trim + 1):
                trail_trim = trim - lead_trim
                if lead_trim > leading or trail_trim > trailing:
                    continue
                entries = body[lead_trim : len(body) - trail_trim]
                old_side = _old_of(entries)
                if not old_side:
                    continue
                anchor = expected + lead_trim
                position = self._locate(loose_lines, old_side, anchor, search=fuzz > 0)
                if position is None:
                    continue
                return HunkMatch(position, len(old_side), _keep_file_context(lines, position, entries), self.name)
        return None

    @staticmethod
    def _locate(loose_lines: Sequence[str], old_side: Sequence[str], anchor: int, *, search: bool) -> int | None:
        loose_old = [collapse_whitespace(line) for line in old_side]
        if not search:
            window = list(loose_lines[anchor : anchor + len(loose_old)])
            return anchor if window == loose_old else None
        candidates = find_sequence(loose_lines, loose_old)
        if not candidates:
            return None
        candidates.sort(key=lambda index: abs(index - anchor))
        if len(candidates) > 1 and abs(candidates[0] - anchor) == abs(candidates[1] - anchor):
            LOGGER.debug("Ambiguous whitespace-insensitive match around line %d", anchor + 1)
            return None
        return candidates[0]

    def failure_reason(self, hunk: Hunk, *, expected: int, fuzz: int) -> str:
        if hunk.context_count() == 0:
            return "hunks without context are only applied at their declared line"
        return f"no unique whitespace-insensitive match near line {expected + 1}"


STRATEGY_CHAIN: Tuple[_Strategy, ...] = (StrictStrategy(), ShiftedStrategy(), GreedyStrategy())
_RANK = {strategy.name: rank for rank, strategy in enumerate(STRATEGY_CHAIN)}


def _offsets(fuzz: int) -> List[int]:
    offsets = [0]
    for distance in range(1, fuzz + 1):
        offsets.extend((-distance, distance))
    return offsets


def _context_edges(body: Sequence[str]) -> Tuple[int, int]:
    """Count the leading and trailing context lines around the first and last change."""
    changes = [index for index, entry in enumerate(body) if not _is_context(entry)]
    if not changes:
        return len(body), 0
    return changes[0], len(body) - changes[-1] - 1


def _keep_file_context(lines: Sequence[str], position: int, entries: Sequence[str]) -> List[str]:
    replacement: List[str] = []
    cursor = position
    for entry in entries:
        if entry.startswith("+"):
            replacement.append(entry[1:])
        elif entry.startswith("-"):
            cursor += 1
        else:
            replacement.append(lines[cursor])
            cursor += 1
    return replacement


def _eof_newline_after(hunk: Hunk, current: bool) -> bool:
    """Resolve the end-of-file newline from ``\\ No newline`` markers."""
    marker_after_new = False
    marker_after_old = False
    previous = ""
    for line in hunk.lines:
        if line.startswith("\\"):
            if previous.startswith("-"):
                marker_after_old = True
            elif previous:
                marker_after_new = True
        previous = line
    if marker_after_new:
        return False
    if marker_after_old:
        return True
    return current


def _splice(lines: Sequence[str], eof_newline: bool, hunk: Hunk, found: HunkMatch) -> Tuple[List[str], bool]:
    updated = list(lines)
    updated[found.position : found.position + found.length] = found.replacement
    if found.position + len(found.replacement) >= len(updated):
        eof_newline = _eof_newline_after(hunk, eof_newline)
    return updated, eof_newline


def most_relaxed(names: Sequence[str]) -> str | None:
    """Return the most tolerant strategy among ``names``."""
    if not names:
        return None
    return max(names, key=lambda name: _RANK[name])


def apply_hunks(content: str, hunks: Sequence[Hunk], fuzz: int) -> ContentPatchResult:
    """Apply ``hunks`` in ascending ``old_start`` order; all or nothing."""
    lines, eof_newline = split_content(content)
    ordered = sorted(enumerate(hunks), key=lambda item: item[1].old_start)
    delta = 0
    used: List[str] = []

    for index, hunk in ordered:
        expected = expected_position(hunk, delta)
        attempts: List[StrategyAttempt] = []
        found: HunkMatch | None = None
        for strategy in STRATEGY_CHAIN:
            found = strategy.match(lines, hunk, expected=expected, fuzz=fuzz)
            if found is not None:
                break
            attempts.append(
                StrategyAttempt(strategy.name, index, strategy.failure_reason(hunk, expected=expected, fuzz=fuzz))
            )

        if found is None:
            diagnostics = FailureDiagnostics(
                hunk_index=index,
                attempts=tuple(attempts),
                kind=classify_failure(lines, hunk),
            )
            LOGGER.debug("Hunk %d failed every strategy (%s)", index + 1, diagnostics.kind.value)
            return ContentPatchResult(success=False, content=content, diagnostics=diagnostics)

        lines, eof_newline = _splice(lines, eof_newline, hunk, found)
        delta += len(found.replacement) - found.length
        used.append(found.strategy)

    return ContentPatchResult(
        success=True,
        content=join_content(lines, eof_newline),
        strategy=most_relaxed(used),
        hunk_strategies=tuple(used),
    )


__all__ = [
    "STRATEGY_CHAIN",
    "ContentPatchResult",
    "GreedyStrategy",
    "HunkMatch",
    "ShiftedStrategy",
    "StrategyOutcome",
    "StrictStrategy",
    "apply_hunks",
    "expected_position",
    "join_content",
    "most_relaxed",
    "split_content",
]
