"""Parse normalised unified diff text into per-file patches."""

from __future__ import annotations

import re
from typing import List

from ..errors import PatchError
from ..models import Hunk, ParsedPatch
from ..paths import DEV_NULL

_DIFF_HEADER = re.compile(r"^diff --git (\S+) (\S+)$")
_HUNK_HEADER = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)
_BINARY_MARKERS = ("GIT binary patch", "Binary files ")


def _default_count(value: str | None) -> int:
    """Return the number of lines represented in a hunk header."""
    return int(value) if value is not None else 1


def _file_name(line: str) -> str:
    """Extract the file operand from a ``---``/``+++`` line, dropping timestamps."""
    return line[4:].split("\t", 1)[0].strip()


def _starts_file_header(lines: List[str], index: int) -> bool:
    return lines[index].startswith("--- ") and index + 1 < len(lines) and lines[index + 1].startswith("+++ ")


def parse_patch(text: str) -> List[ParsedPatch]:
    """Split ``text`` into :class:`ParsedPatch` records.

    Declared hunk counts are recorded but not trusted: a hunk body runs until
    the next hunk or file header, so miscounted headers still parse and can be
    repaired by the corrector.
    """
    lines = (text or "").split("\n")
    patches: List[ParsedPatch] = []
    current: ParsedPatch | None = None
    index = 0

    def start_patch() -> ParsedPatch:
        patch = ParsedPatch()
        patches.append(patch)
        return patch

    while index < len(lines):
        line = lines[index]

        if line.startswith(_BINARY_MARKERS):
            raise PatchError("Binary patches are not supported.", details={"line": index + 1})

        if line.startswith("diff --git "):
            current = start_patch()
            match = _DIFF_HEADER.match(line)
            if match:
                current.old_file_name = match.group(1)
                current.new_file_name = match.group(2)
            index += 1
            continue

        if line.startswith("new file mode") and current is not None:
            current.is_new_file = True
            index += 1
            continue

        if line.startswith("deleted file mode") and current is not None:
            current.is_deleted_file = True
            index += 1
            continue

        if _starts_file_header(lines, index):
            if current is None or current.hunks:
                current = start_patch()
            current.old_file_name = _file_name(line)
            current.new_file_name = _file_name(lines[index + 1])
            if current.old_file_name == DEV_NULL:
                current.is_new_file = True
            if current.new_file_name == DEV_NULL:
                current.is_deleted_file = True
            index += 2
            continue

        if line.startswith("@@"):
            match = _HUNK_HEADER.match(line)
            if not match:
                raise PatchError(f"Malformed hunk header: {line}", details={"line": index + 1})
            if current is None:
                current = start_patch()
            hunk = Hunk(
                old_start=int(match.group("old_start")),
                old_lines=_default_count(match.group("old_count")),
                new_start=int(match.group("new_start")),
                new_lines=_default_count(match.group("new_count")),
            )
            index += 1
            while index < len(lines):
                candidate = lines[index]
                if candidate.startswith("diff --git ") or candidate.startswith("@@"):
                    break
                if _starts_file_header(lines, index):
                    break
                if candidate.startswith(("+", "-", " ", "\\")):
                    hunk.lines.append(candidate)
                elif candidate == "":
                    # Blank context that lost its space; trailing blanks end the hunk.
                    remainder = lines[index + 1:]
                    if any(entry.startswith((" ", "+", "-", "\\")) for entry in _until_boundary(remainder)):
                        hunk.lines.append(" ")
                    else:
                        break
                else:
                    break
                index += 1
            current.hunks.append(hunk)
            continue

        index += 1

    patches = [patch for patch in patches if patch.hunks or patch.old_file_name or patch.new_file_name]
    if not patches:
        raise PatchError("No valid patches found in the provided text.")
    return patches


def _until_boundary(lines: List[str]) -> List[str]:
    """Return the lines preceding the next hunk or file header."""
    collected: List[str] = []
    for position, line in enumerate(lines):
        if line.startswith(("diff --git ", "@@")) or _starts_file_header(lines, position):
            break
        collected.append(line)
    return collected


__all__ = ["parse_patch"]
