"""Diff normalisation, parsing, header correction and hunk placement."""

from .corrector import correct_hunk_headers
from .diagnostics import classify_failure, describe_failure
from .normalizer import normalize_diff, recover_diff_headers
from .parser import parse_patch
from .strategies import STRATEGY_CHAIN, ContentPatchResult, apply_hunks

__all__ = [
    "STRATEGY_CHAIN",
    "ContentPatchResult",
    "apply_hunks",
    "classify_failure",
    "correct_hunk_headers",
    "describe_failure",
    "normalize_diff",
    "parse_patch",
    "recover_diff_headers",
]
