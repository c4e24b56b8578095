"""Repair common malformations in AI-generated unified diffs before parsing."""

from __future__ import annotations

import re
from typing import List, Sequence

from ..errors import PatchError
from ..paths import DEV_NULL, sanitize_path, strip_diff_prefix

_FENCE = re.compile(r"^```[A-Za-z0-9_.+-]*\s*$")
_DIFF_GIT = re.compile(r"^diff --git (\S+) (\S+)")
_STRICT_HUNK_HEADER = re.compile(r"@@ -\d+,\d+ \+\d+,\d+ @@")
_BODY_PREFIXES = ("+", "-", " ", "\\")


def normalize_line_endings(text: str) -> str:
    """Convert CRLF/CR sequences to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def detect_line_ending(text: str) -> str:
    """Return the line terminator a file uses, ``"\\r\\n"`` or ``"\\n"``."""
    return "\r\n" if "\r\n" in text else "\n"


def _split(text: str) -> List[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _join(lines: Sequence[str]) -> str:
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def _operand(line: str) -> str:
    """Return the path operand of a ``---``/``+++`` line without timestamps."""
    return line[4:].split("\t", 1)[0].strip()


def _is_file_header(lines: Sequence[str], index: int, *, in_hunk: bool = False) -> bool:
    """Return True when ``lines[index]`` is a ``---``/``+++`` file header.

    Outside a hunk a lone ``---`` or ``+++`` line followed by a hunk header is
    accepted so the missing half can be synthesised. Inside a hunk body only a
    complete ``---``/``+++`` pair starts a new file; anything else is the
    deletion or addition of a line beginning with ``--`` or ``++``.
    """
    line = lines[index]
    following = lines[index + 1] if index + 1 < len(lines) else ""
    if in_hunk:
        return line.startswith("--- ") and following.startswith("+++ ")
    previous = lines[index - 1] if index > 0 else ""
    if line.startswith("--- "):
        return following.startswith("+++ ") or following.startswith("@@")
    if line.startswith("+++ "):
        return previous.startswith("--- ") or following.startswith("@@")
    return False


def _is_section_boundary(lines: Sequence[str], index: int, *, in_hunk: bool = False) -> bool:
    line = lines[index]
    return (
        line.startswith("diff --git ")
        or line.startswith("@@")
        or _is_file_header(lines, index, in_hunk=in_hunk)
    )


def strip_code_fences(text: str) -> str:
    """Drop markdown fence lines (```` ``` ```` / ```` ```diff ````) around a diff."""
    return _join([line for line in _split(text) if not _FENCE.match(line)])


def _has_following_body(lines: Sequence[str], index: int) -> bool:
    """Return True when more hunk body lines follow ``index`` in the same hunk."""
    cursor = index + 1
    while cursor < len(lines) and lines[cursor] == "":
        cursor += 1
    if cursor >= len(lines):
        return False
    return not _is_section_boundary(lines, cursor, in_hunk=True)


def auto_fix_spaces(text: str) -> str:
    """Re-insert the leading space on context lines that lost it.

    Only lines inside a hunk body are touched, and only when they cannot be
    read as an addition, deletion, marker or header. Blank lines followed by
    more body lines become blank context lines.
    """
    lines = _split(text)
    fixed: List[str] = []
    in_hunk = False
    for index, line in enumerate(lines):
        if line.startswith("diff --git ") or _is_file_header(lines, index, in_hunk=in_hunk):
            in_hunk = False
            fixed.append(line)
            continue
        if line.startswith("@@"):
            in_hunk = True
            fixed.append(line)
            continue
        if in_hunk:
            if line == "":
                if _has_following_body(lines, index):
                    line = " "
            elif not line.startswith(_BODY_PREFIXES):
                line = " " + line
        fixed.append(line)
    return _join(fixed)


def _git_header(old_path: str, new_path: str) -> str:
    return f"diff --git a/{old_path} b/{new_path}"


def add_missing_headers(text: str, *, fallback_path: str | None = None) -> str:
    """Synthesise ``diff --git``/``---``/``+++`` headers where they are missing.

    Hunks that appear before any file header are attributed to
    ``fallback_path``; when none is given a :class:`PatchError` is raised
    instead of guessing a target.
    """
    lines = _split(text)
    output: List[str] = []
    git_path: str | None = None
    git_pending = False
    current_path: str | None = None
    in_hunk = False
    index = 0

    while index < len(lines):
        line = lines[index]

        if line.startswith("diff --git "):
            match = _DIFF_GIT.match(line)
            git_path = strip_diff_prefix(match.group(2), "b/") if match else None
            git_pending = True
            current_path = git_path
            in_hunk = False
            output.append(line)
            index += 1
            continue

        if _is_file_header(lines, index, in_hunk=in_hunk):
            following = lines[index + 1] if index + 1 < len(lines) else ""
            if line.startswith("--- ") and following.startswith("+++ "):
                minus_line, plus_line = line, following
                consumed = 2
            elif line.startswith("--- "):
                path = strip_diff_prefix(_operand(line), "a/")
                if path is None:
                    raise PatchError(f"Unable to infer target file for header: {line}")
                minus_line, plus_line = line, f"+++ b/{path}"
                consumed = 1
            else:
                path = strip_diff_prefix(_operand(line), "b/")
                if path is None:
                    raise PatchError(f"Unable to infer target file for header: {line}")
                minus_line, plus_line = f"--- a/{path}", line
                consumed = 1

            old_path = strip_diff_prefix(_operand(minus_line), "a/")
            new_path = strip_diff_prefix(_operand(plus_line), "b/")
            if not git_pending:
                output.append(_git_header(old_path or new_path or DEV_NULL, new_path or old_path or DEV_NULL))
            output.append(minus_line)
            output.append(plus_line)
            git_pending = False
            current_path = new_path or old_path
            in_hunk = False
            index += consumed
            continue

        if line.startswith("@@"):
            if git_pending:
                if git_path is None:
                    raise PatchError(f"Unable to infer target file for hunk: {line}")
                output.append(f"--- a/{git_path}")
                output.append(f"+++ b/{git_path}")
                git_pending = False
            elif current_path is None:
                path = sanitize_path(fallback_path)
                if not path:
                    raise PatchError(
                        "Unable to infer target file for hunk without file headers.",
                        details={"hunk_header": line, "line": index + 1},
                    )
                output.extend([_git_header(path, path), f"--- a/{path}", f"+++ b/{path}"])
                current_path = path
            in_hunk = True

        output.append(line)
        index += 1

    return _join(output)


def normalize_diff(raw_text: str, *, fallback_path: str | None = None) -> str:
    """Return ``raw_text`` repaired into a parseable unified diff."""
    normalised = normalize_line_endings(raw_text or "")
    normalised = strip_code_fences(normalised)
    normalised = auto_fix_spaces(normalised)
    normalised = add_missing_headers(normalised, fallback_path=fallback_path)
    lines = _split(normalised)
    while lines and lines[0] == "":
        lines.pop(0)
    while lines and lines[-1] == "":
        lines.pop()
    return _join(lines)


def is_unified_diff(text: str) -> bool:
    """Heuristically decide whether ``text`` contains a unified diff."""
    if not text or not text.strip():
        return False
    if "diff --git" in text or "--- " in text or "+++ " in text:
        return True
    if _STRICT_HUNK_HEADER.search(text):
        return True
    plus_minus = [line for line in text.split("\n") if line.strip().startswith(("+", "-"))]
    return len(plus_minus) >= 2


def _has_file_header(text: str) -> bool:
    return any(
        line.startswith(("--- ", "+++ ", "diff --git ")) for line in normalize_line_endings(text).split("\n")
    )


def recover_diff_headers(document_text: str, selection_start_line: int, selected_text: str) -> str:
    """Prepend the file headers found above a selected hunk fragment.

    ``selection_start_line`` is the 0-based document line where the selection
    begins. The nearest ``---``/``+++`` pair (and its ``diff --git`` line when
    present) above that line is copied in front of ``selected_text``.
    """
    if _has_file_header(selected_text) or not is_unified_diff(selected_text):
        return selected_text

    document_lines = normalize_line_endings(document_text).split("\n")
    start = min(max(selection_start_line, 0), len(document_lines))
    headers: List[str] = []

    for index in range(start - 1, -1, -1):
        line = document_lines[index]
        if line.startswith("+++ "):
            headers.append(line)
            if index > 0 and document_lines[index - 1].startswith("--- "):
                headers.insert(0, document_lines[index - 1])
                git_line = _find_git_header(document_lines, index - 2)
                if git_line is not None:
                    headers.insert(0, git_line)
            break
        if line.startswith("--- "):
            headers.append(line)
            git_line = _find_git_header(document_lines, index - 1)
            if git_line is not None:
                headers.insert(0, git_line)
            break
        if line.startswith("diff --git "):
            match = _DIFF_GIT.match(line)
            if match:
                headers = [line, f"--- {match.group(1)}", f"+++ {match.group(2)}"]
            break

    if not headers:
        return selected_text
    return "\n".join(headers) + "\n" + selected_text


def _find_git_header(lines: Sequence[str], index: int) -> str | None:
    """Walk up through extended header lines looking for ``diff --git``."""
    while index >= 0:
        line = lines[index]
        if line.startswith("diff --git "):
            return line
        if line.startswith(("@@", " ", "+", "-")) or not line.strip():
            return None
        index -= 1
    return None


__all__ = [
    "add_missing_headers",
    "auto_fix_spaces",
    "detect_line_ending",
    "is_unified_diff",
    "normalize_diff",
    "normalize_line_endings",
    "recover_diff_headers",
    "strip_code_fences",
]
