"""Recompute hunk header line counts from hunk bodies."""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..models import CorrectionReport, CorrectionResult, HunkCorrection, ParsedPatch
from ..paths import extract_file_path

LOGGER = logging.getLogger(__name__)

UNKNOWN_PATH = "<unknown>"


def correct_hunk_headers(patches: Sequence[ParsedPatch]) -> CorrectionResult:
    """Return copies of ``patches`` whose hunk counts match their bodies.

    The input is left untouched. Every returned hunk owns its own ``lines``
    list, even when hunks in the input shared one.
    """
    corrected_patches: List[ParsedPatch] = []
    corrections: List[HunkCorrection] = []

    for patch in patches:
        corrected = patch.copy()
        location = extract_file_path(patch) or UNKNOWN_PATH
        for index, hunk in enumerate(corrected.hunks):
            seen_old, seen_new = hunk.count_lines()
            if seen_old == hunk.old_lines and seen_new == hunk.new_lines:
                continue
            corrections.append(
                HunkCorrection(
                    hunk_index=index,
                    file_path=location,
                    original_old=hunk.old_lines,
                    corrected_old=seen_old,
                    original_new=hunk.new_lines,
                    corrected_new=seen_new,
                )
            )
            hunk.old_lines = seen_old
            hunk.new_lines = seen_new
        corrected_patches.append(corrected)

    for correction in corrections:
        LOGGER.info("Corrected hunk header: %s", correction.render())

    return CorrectionResult(
        corrected_patches=corrected_patches,
        correction_details=CorrectionReport(corrections_made=bool(corrections), corrections=corrections),
    )


__all__ = ["UNKNOWN_PATH", "correct_hunk_headers"]
