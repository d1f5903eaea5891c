"""Tests for ordered strategy execution."""

from __future__ import annotations

from printer_provisioner.errors import ToolInvocationError
from printer_provisioner.lib.command import CmdResult
from printer_provisioner.lib.strategies import Strategy, run_strategies


def _result(code: int) -> CmdResult:
    return CmdResult(["tool"], code, "", "" if code == 0 else "failed")


def test_stops_at_first_success() -> None:
    tried = []

    def attempt(name, code):
        def _run():
            tried.append(name)
            return _result(code)

        return _run

    run = run_strategies(
        [Strategy("a", attempt("a", 1)), Strategy("b", attempt("b", 0)), Strategy("c", attempt("c", 0))],
        label="test",
    )

    assert tried == ["a", "b"]
    assert run.succeeded and run.winner == "b"
    assert [a.succeeded for a in run.attempts] == [False, True]


def test_recheck_turns_reported_failure_into_success() -> None:
    run = run_strategies([Strategy("a", lambda: _result(3))], label="test", recheck=lambda: True)

    assert run.succeeded
    assert run.winner == "a"
    assert "recovered" in run.attempts[0].reason


def test_raised_tool_errors_count_as_failures() -> None:
    def boom():
        raise ToolInvocationError(["x.exe"], -1, "not found")

    run = run_strategies(
        [Strategy("a", boom), Strategy("b", lambda: _result(2))],
        label="test",
        recheck=lambda: False,
    )

    assert not run.succeeded
    assert run.winner is None
    assert [a.name for a in run.attempts] == ["a", "b"]
    assert "exit code 2" in run.last_reason


def test_empty_strategy_list() -> None:
    run = run_strategies([], label="test")
    assert not run.succeeded
    assert run.last_reason == "no strategies configured"


def test_failing_recheck_counts_as_not_met() -> None:
    tried = []

    def attempt(name, code):
        def _run():
            tried.append(name)
            return _result(code)

        return _run

    def recheck():
        raise ToolInvocationError(["powershell.exe"], 1, "unparseable JSON output")

    run = run_strategies(
        [Strategy("a", attempt("a", 1)), Strategy("b", attempt("b", 0))],
        label="test",
        recheck=recheck,
    )

    assert tried == ["a", "b"]
    assert run.winner == "b"
