from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import pytest

from patchpilot.errors import PatchError
from patchpilot.guard import check_modification, with_modification_check
from patchpilot.models import ApplyOptions

TARGET = Path("target.txt")


class StatSequence:
    """Workspace stand-in whose ``stat`` replays a fixed list of mtimes."""

    def __init__(self, *mtimes: float | Exception) -> None:
        self._mtimes = list(mtimes)
        self.calls = 0

    def stat(self, path: Path) -> float:
        self.calls += 1
        value = self._mtimes.pop(0)
        if isinstance(value, Exception):
            raise value
        return value


class RecordingPrompt:
    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.messages: List[str] = []

    def __call__(self, message: str) -> bool:
        self.messages.append(message)
        return self.answer


def _options(**overrides) -> ApplyOptions:
    values = {"mtime_check": True, "mtime_prompt": True}
    values.update(overrides)
    return ApplyOptions(**values)


def test_disabled_check_always_proceeds() -> None:
    workspace = StatSequence()

    check = check_modification(TARGET, 1.0, workspace, _options(mtime_check=False))

    assert check.proceed and not check.modified
    assert workspace.calls == 0


def test_unchanged_file_proceeds_without_prompt() -> None:
    prompt = RecordingPrompt(False)

    check = check_modification(TARGET, 1.0, StatSequence(1.0), _options(), prompt)

    assert check.proceed and not check.modified
    assert check.current_mtime == 1.0
    assert prompt.messages == []


@pytest.mark.parametrize("answer", [True, False])
def test_changed_file_asks_the_prompt(answer: bool) -> None:
    prompt = RecordingPrompt(answer)

    check = check_modification(TARGET, 1.0, StatSequence(2.0), _options(), prompt)

    assert check.modified
    assert check.proceed is answer
    assert "target.txt" in prompt.messages[0]


def test_changed_file_is_refused_when_prompting_is_off() -> None:
    prompt = RecordingPrompt(True)

    check = check_modification(TARGET, 1.0, StatSequence(2.0), _options(mtime_prompt=False), prompt)

    assert check.modified and not check.proceed
    assert prompt.messages == []


def test_stat_errors_are_logged_and_ignored(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="patchpilot.guard"):
        check = check_modification(TARGET, 1.0, StatSequence(OSError("gone")), _options())

    assert check.proceed and not check.modified
    assert "Error checking file modification" in caplog.text


def test_with_modification_check_returns_operation_result() -> None:
    seen: List[float] = []

    def operation(mtime: float) -> str:
        seen.append(mtime)
        return "done"

    assert with_modification_check(TARGET, operation, StatSequence(5.0, 5.0), _options()) == "done"
    assert seen == [5.0]


def test_with_modification_check_discards_result_when_refused() -> None:
    result = with_modification_check(
        TARGET, lambda mtime: "done", StatSequence(5.0, 6.0), _options(), RecordingPrompt(False)
    )

    assert result is None


def test_results_that_will_not_be_written_skip_the_recheck() -> None:
    workspace = StatSequence(5.0)
    prompt = RecordingPrompt(False)

    result = with_modification_check(
        TARGET, lambda mtime: "nothing to write", workspace, _options(), prompt, needs_check=lambda value: False
    )

    assert result == "nothing to write"
    assert workspace.calls == 1
    assert prompt.messages == []


def test_expected_operation_errors_are_logged_without_traceback(caplog) -> None:
    def operation(mtime: float) -> str:
        raise PatchError("Unsafe file path in patch: '../x'")

    with caplog.at_level(logging.WARNING, logger="patchpilot.guard"):
        with pytest.raises(PatchError):
            with_modification_check(TARGET, operation, StatSequence(5.0), _options())

    (record,) = [record for record in caplog.records if record.name == "patchpilot.guard"]
    assert record.levelno == logging.WARNING
    assert record.exc_info is None
    assert "Unsafe file path" in record.getMessage()


def test_with_modification_check_reraises_operation_errors(caplog) -> None:
    def operation(mtime: float) -> str:
        raise ValueError("boom")

    with caplog.at_level(logging.ERROR, logger="patchpilot.guard"):
        with pytest.raises(ValueError, match="boom"):
            with_modification_check(TARGET, operation, StatSequence(5.0), _options())

    assert "Error performing operation" in caplog.text
