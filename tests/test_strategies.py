from __future__ import annotations

from patchpilot.models import FailureKind, Hunk
from patchpilot.patch.strategies import (
    STRATEGY_CHAIN,
    GreedyStrategy,
    ShiftedStrategy,
    StrictStrategy,
    apply_hunks,
)

CONTENT = "one\ntwo\nthree\nfour\nfive\n"


def _replace_three() -> Hunk:
    return Hunk(old_start=2, old_lines=3, new_start=2, new_lines=3, lines=[" two", "-three", "+THREE", " four"])


def test_chain_order_is_fixed() -> None:
    assert [strategy.name for strategy in STRATEGY_CHAIN] == ["strict", "shifted", "greedy"]


def test_exact_offset_applies_with_strict() -> None:
    result = apply_hunks(CONTENT, [_replace_three()], fuzz=2)

    assert result.success
    assert result.strategy == "strict"
    assert result.hunk_strategies == ("strict",)
    assert result.content == "one\ntwo\nTHREE\nfour\nfive\n"


def test_two_line_drift_applies_with_shifted_when_fuzz_allows() -> None:
    drifted = "x\ny\n" + CONTENT

    result = apply_hunks(drifted, [_replace_three()], fuzz=2)

    assert result.success
    assert result.strategy == "shifted"
    assert result.content == "x\ny\none\ntwo\nTHREE\nfour\nfive\n"


def test_two_line_drift_fails_every_strategy_without_fuzz() -> None:
    drifted = "x\ny\n" + CONTENT

    result = apply_hunks(drifted, [_replace_three()], fuzz=0)

    assert not result.success
    assert result.content == drifted
    diagnostics = result.diagnostics
    assert diagnostics is not None
    assert diagnostics.hunk_index == 0
    assert diagnostics.strategies_tried == ("strict", "shifted", "greedy")
    assert diagnostics.kind is FailureKind.STRUCTURAL


def test_whitespace_differences_fall_through_to_greedy() -> None:
    content = "alpha\n  beta  \ngamma\n"
    hunk = Hunk(old_start=1, old_lines=3, new_start=1, new_lines=3, lines=[" alpha", "-beta", "+BETA", " gamma"])

    result = apply_hunks(content, [hunk], fuzz=1)

    assert result.success
    assert result.strategy == "greedy"
    assert result.content == "alpha\nBETA\ngamma\n"


def test_greedy_keeps_file_text_for_context_lines() -> None:
    content = "alpha  \nbeta\ngamma\n"
    hunk = Hunk(old_start=1, old_lines=3, new_start=1, new_lines=3, lines=[" alpha", "-beta", "+BETA", " gamma"])

    result = apply_hunks(content, [hunk], fuzz=1)

    assert result.strategy == "greedy"
    assert result.content == "alpha  \nBETA\ngamma\n"


def test_greedy_trims_mismatched_edge_context() -> None:
    content = "header changed\nbody\ntail\n"
    hunk = Hunk(old_start=1, old_lines=3, new_start=1, new_lines=3, lines=[" header", "-body", "+BODY", " tail"])

    assert apply_hunks(content, [hunk], fuzz=0).success is False

    result = apply_hunks(content, [hunk], fuzz=1)

    assert result.success
    assert result.strategy == "greedy"
    assert result.content == "header changed\nBODY\ntail\n"


def test_greedy_refuses_equidistant_matches() -> None:
    lines = ["a", "b", "z", "z", "a", "b"]
    hunk = Hunk(old_start=3, old_lines=2, new_start=3, new_lines=2, lines=[" a", "-b", "+B"])

    assert GreedyStrategy().match(lines, hunk, expected=2, fuzz=1) is None
    found = GreedyStrategy().match(lines, hunk, expected=1, fuzz=1)
    assert found is not None and found.position == 0


def test_shifted_tolerates_trailing_blank_context_past_end_of_file() -> None:
    hunk = Hunk(old_start=1, old_lines=3, new_start=1, new_lines=3, lines=[" a", "-b", "+c", " "])

    result = apply_hunks("a\nb\n", [hunk], fuzz=0)

    assert result.success
    assert result.strategy == "shifted"
    assert result.content == "a\nc\n"


def test_strict_success_never_reaches_later_strategies(monkeypatch) -> None:
    def explode(self, *args, **kwargs):
        raise AssertionError(f"{self.name} consulted after strict matched")

    monkeypatch.setattr(ShiftedStrategy, "match", explode)
    monkeypatch.setattr(GreedyStrategy, "match", explode)

    result = apply_hunks(CONTENT, [_replace_three()], fuzz=3)

    assert result.hunk_strategies == ("strict",)


def test_zero_context_hunk_is_only_tried_at_declared_line() -> None:
    hunk = Hunk(old_start=2, old_lines=1, new_start=2, new_lines=1, lines=["-two", "+TWO"])

    assert apply_hunks("one\ntwo\n", [hunk], fuzz=3).content == "one\nTWO\n"
    assert ShiftedStrategy().match(["zero", "one", "two"], hunk, expected=1, fuzz=3) is None
    assert apply_hunks("zero\none\ntwo\n", [hunk], fuzz=3).success is False


def test_pure_insertion_goes_after_old_start() -> None:
    hunk = Hunk(old_start=1, old_lines=0, new_start=2, new_lines=1, lines=["+inserted"])

    result = apply_hunks("one\ntwo\n", [hunk], fuzz=0)

    assert result.content == "one\ninserted\ntwo\n"


def test_hunks_are_applied_in_offset_order_with_running_delta() -> None:
    content = "".join(f"l{number}\n" for number in range(1, 11))
    early = Hunk(old_start=2, old_lines=1, new_start=2, new_lines=2, lines=[" l2", "+after2"])
    late = Hunk(old_start=8, old_lines=2, new_start=9, new_lines=1, lines=[" l8", "-l9"])

    result = apply_hunks(content, [late, early], fuzz=0)

    assert result.success
    assert result.content.split("\n")[:-1] == [
        "l1", "l2", "after2", "l3", "l4", "l5", "l6", "l7", "l8", "l10",
    ]
    assert result.hunk_strategies == ("strict", "strict")


def test_failed_hunk_leaves_content_untouched() -> None:
    good = _replace_three()
    bad = Hunk(old_start=5, old_lines=1, new_start=5, new_lines=1, lines=["-missing", "+whatever"])

    result = apply_hunks(CONTENT, [good, bad], fuzz=3)

    assert not result.success
    assert result.content == CONTENT
    assert result.diagnostics is not None
    assert result.diagnostics.hunk_index == 1


def test_most_relaxed_strategy_is_reported() -> None:
    content = "x\ny\none\ntwo\nthree\nfour\nfive\n"
    shifted = _replace_three()
    strict = Hunk(old_start=1, old_lines=1, new_start=1, new_lines=1, lines=["-x", "+X"])

    result = apply_hunks(content, [shifted, strict], fuzz=2)

    assert result.hunk_strategies == ("strict", "shifted")
    assert result.strategy == "shifted"


def test_no_newline_marker_after_addition_drops_final_newline() -> None:
    hunk = Hunk(old_start=2, old_lines=1, new_start=2, new_lines=1, lines=["-b", "+c", "\\ No newline at end of file"])

    assert apply_hunks("a\nb\n", [hunk], fuzz=0).content == "a\nc"


def test_no_newline_marker_after_deletion_restores_final_newline() -> None:
    hunk = Hunk(old_start=2, old_lines=1, new_start=2, new_lines=1, lines=["-b", "\\ No newline at end of file", "+b"])

    assert apply_hunks("a\nb", [hunk], fuzz=0).content == "a\nb\n"


def test_single_strategy_try_apply() -> None:
    hunk = Hunk(old_start=1, old_lines=1, new_start=1, new_lines=1, lines=["-one", "+uno"])

    outcome = StrictStrategy().try_apply("one\ntwo\n", hunk, 0)
    assert outcome.success and outcome.content == "uno\ntwo\n"

    missed = StrictStrategy().try_apply("zero\none\n", hunk, 0)
    assert not missed.success and missed.content is None
