from __future__ import annotations

import textwrap

import pytest

from patchpilot.errors import PatchError
from patchpilot.patch.parser import parse_patch
from patchpilot.paths import extract_file_path

TWO_FILES = textwrap.dedent(
    """\
    diff --git a/src/one.py b/src/one.py
    --- a/src/one.py
    +++ b/src/one.py
    @@ -1,3 +1,3 @@
     import os
    -x = 1
    +x = 2
     print(x)
    @@ -10 +10,2 @@
     tail
    +more
    diff --git a/README.md b/README.md
    --- a/README.md\t2024-01-01 10:00:00
    +++ b/README.md\t2024-01-02 10:00:00
    @@ -1 +1 @@
    -Old title
    +New title
    """
)


def test_parse_splits_files_and_hunks() -> None:
    patches = parse_patch(TWO_FILES)

    assert [extract_file_path(patch) for patch in patches] == ["src/one.py", "README.md"]
    first, second = patches
    assert len(first.hunks) == 2
    assert first.hunks[0].lines == [" import os", "-x = 1", "+x = 2", " print(x)"]
    assert (first.hunks[1].old_start, first.hunks[1].old_lines) == (10, 1)
    assert (first.hunks[1].new_start, first.hunks[1].new_lines) == (10, 2)
    assert second.old_file_name == "a/README.md"
    assert second.new_file_name == "b/README.md"


def test_parse_keeps_miscounted_hunk_bodies() -> None:
    text = "--- a/f.txt\n+++ b/f.txt\n@@ -1,5 +1,7 @@\n a\n b\n c\n"

    (patch,) = parse_patch(text)

    hunk = patch.hunks[0]
    assert hunk.lines == [" a", " b", " c"]
    assert (hunk.old_lines, hunk.new_lines) == (5, 7)


def test_parse_treats_dash_dash_dash_body_line_as_deletion() -> None:
    text = "--- a/n.md\n+++ b/n.md\n@@ -1,3 +1,2 @@\n title\n--- rule\n body\n"

    (patch,) = parse_patch(text)

    assert patch.hunks[0].lines == [" title", "--- rule", " body"]


def test_parse_keeps_no_newline_marker() -> None:
    text = "--- a/f\n+++ b/f\n@@ -1 +1 @@\n-a\n\\ No newline at end of file\n+b\n"

    (patch,) = parse_patch(text)

    assert patch.hunks[0].lines == ["-a", "\\ No newline at end of file", "+b"]


def test_parse_flags_new_and_deleted_files() -> None:
    text = textwrap.dedent(
        """\
        diff --git a/new.txt b/new.txt
        new file mode 100644
        --- /dev/null
        +++ b/new.txt
        @@ -0,0 +1,2 @@
        +one
        +two
        diff --git a/gone.txt b/gone.txt
        deleted file mode 100644
        --- a/gone.txt
        +++ /dev/null
        @@ -1 +0,0 @@
        -bye
        """
    )

    created, deleted = parse_patch(text)

    assert created.is_new_file and not created.is_deleted_file
    assert extract_file_path(created) == "new.txt"
    assert deleted.is_deleted_file and not deleted.is_new_file
    assert extract_file_path(deleted) == "gone.txt"


def test_parse_rejects_binary_patches() -> None:
    text = "diff --git a/img.png b/img.png\nBinary files a/img.png and b/img.png differ\n"

    with pytest.raises(PatchError, match="Binary"):
        parse_patch(text)


def test_parse_rejects_malformed_hunk_header() -> None:
    with pytest.raises(PatchError, match="Malformed hunk header"):
        parse_patch("--- a/f\n+++ b/f\n@@ -x +1 @@\n-a\n")


def test_parse_without_any_patch_raises() -> None:
    with pytest.raises(PatchError) as excinfo:
        parse_patch("no diff in here\n")

    assert str(excinfo.value) == "No valid patches found in the provided text."
