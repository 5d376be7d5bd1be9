"""Tests for spawny/orchestrator.py - racing chains"""
import asyncio
import os
import signal
import time
from unittest.mock import patch

import pytest

from spawny.errors import OrchestratorError
from spawny.log import set_level
from spawny.models import Chain, CommandSpec, Outcome
from spawny.orchestrator import Orchestrator


def _read_lines(path):
    if not os.path.exists(path):
        return []
    with open(path) as f:
        return f.read().split()


def _run(chains, settings, before=None):
    async def scenario():
        orchestrator = Orchestrator(chains, settings)
        if before is not None:
            before(orchestrator)
        result = await orchestrator.run()
        return orchestrator, result
    return asyncio.run(scenario())


class TestFirstFinishWins:
    """The first chain to report decides the run"""

    def test_fast_chain_wins_and_slow_chain_is_terminated(self, settings):
        fast = Chain(1, (CommandSpec("sleep", ("0.2",)),))
        slow = Chain(2, (CommandSpec("sleep", ("30",)),))
        started = time.monotonic()
        orchestrator, result = _run([fast, slow], settings)

        assert time.monotonic() - started < 10
        assert result.winner.index == 1
        assert result.winner.outcome is Outcome.SUCCEEDED
        assert result.exit_code == 0
        slow_report = result.reports[1]
        assert slow_report.outcome is Outcome.CANCELLED
        assert slow_report.terminated is True
        assert slow_report.returncode == -signal.SIGTERM

    def test_sleep_then_echo_scenario(self, settings):
        chains = [
            Chain(1, (CommandSpec("sleep", ("5",)),)),
            Chain(2, (CommandSpec("sleep", ("1",)), CommandSpec("echo", ("done",)))),
        ]
        _, result = _run(chains, settings)

        assert result.winner.index == 2
        assert result.winner.outcome is Outcome.SUCCEEDED
        assert result.reports[0].outcome is Outcome.CANCELLED
        assert result.reports[0].terminated is True
        assert result.exit_code == 0

    def test_failed_chain_wins_the_race(self, settings):
        chains = [
            Chain(1, (CommandSpec("false"),)),
            Chain(2, (CommandSpec("sleep", ("30",)),)),
        ]
        _, result = _run(chains, settings)

        assert result.winner.index == 1
        assert result.winner.outcome is Outcome.FAILED
        assert result.exit_code == 1
        assert result.reports[1].outcome is Outcome.CANCELLED

    def test_cancelled_chain_does_not_start_next_step(self, marker_cmd, settings):
        chains = [
            Chain(1, (CommandSpec("true"),)),
            Chain(2, (CommandSpec("sleep", ("30",)), marker_cmd("after"))),
        ]
        _, result = _run(chains, settings)

        assert result.reports[1].outcome is Outcome.CANCELLED
        assert result.reports[1].step == 0
        assert _read_lines(marker_cmd.log_path) == []

    def test_reports_sorted_by_chain(self, settings):
        chains = [Chain(i, (CommandSpec("sleep", ("30" if i != 3 else "0",)),)) for i in (1, 2, 3)]
        orchestrator, result = _run(chains, settings)

        assert [r.index for r in result.reports] == [1, 2, 3]
        assert result.winner.index == 3
        assert set(orchestrator.runners) == {1, 2, 3}
        assert orchestrator.cancelled


class TestSingleChain:
    """A single chain behaves like running its commands directly"""

    def test_single_command_exit_code(self, python_cmd, settings):
        _, result = _run([Chain(1, (python_cmd("import sys; sys.exit(7)"),))], settings)
        assert result.winner.outcome is Outcome.FAILED
        assert result.exit_code == 7

    def test_single_command_success(self, settings):
        _, result = _run([Chain(1, (CommandSpec("true"),))], settings)
        assert result.exit_code == 0
        assert len(result.reports) == 1

    def test_false_then_unreachable(self, marker_cmd, settings):
        _, result = _run([Chain(1, (CommandSpec("false"), marker_cmd("unreachable")))], settings)
        assert result.winner.outcome is Outcome.FAILED
        assert result.exit_code != 0
        assert _read_lines(marker_cmd.log_path) == []


class TestConcurrentChains:
    """Parallel chains run concurrently and each keeps its own order"""

    def test_chains_overlap_and_stay_ordered(self, python_cmd, tmp_dir, settings):
        def step(chain, name, delay):
            path = os.path.join(tmp_dir, f"chain{chain}.log")
            return python_cmd(
                "import time\n"
                f"open({path!r}, 'a').write('{name}-start\\n')\n"
                f"time.sleep({delay})\n"
                f"open({path!r}, 'a').write('{name}-end\\n')\n"
            )

        chains = [
            Chain(1, (step(1, "A", 0.5), step(1, "B", 0.1))),
            Chain(2, (step(2, "X", 0.3), step(2, "Y", 0.3), step(2, "Z", 30))),
        ]
        started = time.monotonic()
        _, result = _run(chains, settings)

        assert result.winner.index == 1
        assert time.monotonic() - started < 10
        assert _read_lines(os.path.join(tmp_dir, "chain1.log")) == ["A-start", "A-end", "B-start", "B-end"]
        chain2 = _read_lines(os.path.join(tmp_dir, "chain2.log"))
        assert chain2[:2] == ["X-start", "X-end"]
        assert "Z-end" not in chain2


class TestCancel:
    """The shared cancellation primitive"""

    def test_cancel_is_idempotent(self, settings):
        terminated = []
        original = asyncio.subprocess.Process.terminate

        def spy(proc):
            terminated.append(proc.pid)
            original(proc)

        def before(orchestrator):
            loop = asyncio.get_running_loop()
            loop.call_later(0.3, orchestrator.cancel, "first interrupt", signal.SIGINT)
            loop.call_later(0.35, orchestrator.cancel, "second interrupt", signal.SIGINT)

        chains = [Chain(1, (CommandSpec("sleep", ("30",)),)), Chain(2, (CommandSpec("sleep", ("30",)),))]
        with patch.object(asyncio.subprocess.Process, "terminate", spy):
            orchestrator, result = _run(chains, settings, before)

        assert len(terminated) == 2
        assert len(set(terminated)) == 2
        assert orchestrator.cancel_reason == "first interrupt"
        assert result.winner.outcome is Outcome.CANCELLED
        assert result.signum == signal.SIGINT
        assert result.exit_code == 128 + signal.SIGINT

    def test_cancel_returns_false_when_already_cancelled(self, settings):
        results = []

        def before(orchestrator):
            loop = asyncio.get_running_loop()
            loop.call_later(0.2, lambda: results.extend([orchestrator.cancel("a"), orchestrator.cancel("b")]))

        _run([Chain(1, (CommandSpec("sleep", ("30",)),))], settings, before)
        assert results == [True, False]

    def test_cancel_before_run(self, marker_cmd, settings):
        orchestrator = Orchestrator([Chain(1, (marker_cmd("A"),))], settings)
        assert orchestrator.cancel("early", signal.SIGTERM) is True
        assert orchestrator.cancel("again") is False
        result = asyncio.run(orchestrator.run())

        assert result.winner.outcome is Outcome.CANCELLED
        assert result.exit_code == 128 + signal.SIGTERM
        assert _read_lines(marker_cmd.log_path) == []

    def test_signal_after_winner_does_not_change_result(self, settings):
        def before(orchestrator):
            loop = asyncio.get_running_loop()
            loop.call_later(0.5, orchestrator.cancel, "late interrupt", signal.SIGINT)

        chains = [
            Chain(1, (CommandSpec("true"),)),
            Chain(2, (CommandSpec("sleep", ("1",)),)),
        ]
        orchestrator, result = _run(chains, settings, before)
        assert result.winner.index == 1
        assert result.signum is None
        assert result.exit_code == 0


class TestOrchestratorErrors:
    """Fatal orchestrator errors"""

    def test_no_chains(self, settings):
        with pytest.raises(OrchestratorError):
            asyncio.run(Orchestrator([], settings).run())

    def test_duplicate_chain_index(self, settings):
        chains = [Chain(1, (CommandSpec("true"),)), Chain(1, (CommandSpec("true"),))]
        with pytest.raises(OrchestratorError, match="duplicate"):
            asyncio.run(Orchestrator(chains, settings).run())


class TestLogging:
    """Debug output names each chain's commands"""

    def test_chain_display_logged_at_debug(self, settings, capsys):
        chain = Chain(1, (CommandSpec("true"), CommandSpec("echo", ("a b",))))
        set_level("DEBUG")
        try:
            _run([chain], settings)
        finally:
            set_level("INFO")
        err = capsys.readouterr().err
        assert "[CHAIN 1] true ; echo 'a b'" in err
