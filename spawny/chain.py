"""
Spawny Chain Runner - Execute the commands of one chain sequentially.

Each step races the child's exit against the shared cancellation event.
Whatever happens, the runner pushes exactly one ChainReport onto the
orchestrator's report queue.
"""
import asyncio
import time
from typing import Callable, Optional

from spawny.config import Settings
from spawny.errors import LaunchError
from spawny.log import get_logger
from spawny.models import Chain, ChainReport, ChainState, CommandSpec, Outcome, exit_code_for

logger = get_logger(__name__)


class ChainRunner:
    """Runs one chain until it succeeds, fails or is cancelled"""

    def __init__(
        self,
        chain: Chain,
        cancel_event: asyncio.Event,
        reports: asyncio.Queue,
        settings: Optional[Settings] = None
    ):
        self.chain = chain
        self.cancel_event = cancel_event
        self.reports = reports
        self.settings = settings or Settings()
        self.state = ChainState()
        self.report: Optional[ChainReport] = None

    @property
    def tag(self) -> str:
        return f"[CHAIN {self.chain.index}]"

    async def run(self) -> ChainReport:
        """Run all steps and report the terminal outcome"""
        self.state.started_at = time.monotonic()
        try:
            await self._run_steps()
        except asyncio.CancelledError:
            # Task cancelled from outside: don't leave the child behind
            self.state.outcome = Outcome.CANCELLED
            await self._terminate()
            raise
        except Exception as e:
            logger.exception("%s Unexpected error: %s", self.tag, e)
            self.state.outcome = Outcome.FAILED
            self.state.error = str(e)
            self.state.exit_code = 1
            await self._terminate()
        finally:
            self._finish()
        return self.report

    async def _run_steps(self):
        total = len(self.chain)
        for step, command in enumerate(self.chain.commands):
            self.state.step = step

            if self.cancel_event.is_set():
                logger.debug("%s Cancelled before step %d/%d", self.tag, step + 1, total)
                self.state.outcome = Outcome.CANCELLED
                return

            try:
                await self._launch(command)
            except LaunchError as e:
                logger.debug("%s LAUNCH FAILED | step %d/%d | %s", self.tag, step + 1, total, e)
                self.state.outcome = Outcome.FAILED
                self.state.error = str(e)
                self.state.exit_code = e.exit_code
                return

            returncode = await self._wait(command)
            if returncode is None:
                self.state.outcome = Outcome.CANCELLED
                return

            if returncode != 0:
                logger.debug("%s STEP FAILED | step %d/%d | %s | code=%s",
                             self.tag, step + 1, total, command.program, returncode)
                self.state.outcome = Outcome.FAILED
                self.state.exit_code = exit_code_for(returncode)
                return

            logger.debug("%s STEP DONE | step %d/%d | %s", self.tag, step + 1, total, command.program)

        self.state.outcome = Outcome.SUCCEEDED

    async def _launch(self, command: CommandSpec):
        """Start the child with inherited stdin/stdout/stderr"""
        logger.info("%s Executing %s with args %s", self.tag, command.program, list(command.args))
        try:
            self.state.process = await asyncio.create_subprocess_exec(*command.argv)
        except OSError as e:
            raise LaunchError.from_os_error(command.program, e) from e
        logger.debug("%s Started %s (pid=%s)", self.tag, command.program, self.state.pid)

    async def _wait(self, command: CommandSpec) -> Optional[int]:
        """
        Wait for the current child to exit or for cancellation.

        Returns:
            The child's return code, or None if the step was cancelled
        """
        proc = self.state.process
        exit_waiter = asyncio.ensure_future(proc.wait())
        cancel_waiter = asyncio.ensure_future(self.cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {exit_waiter, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_waiter.cancel()
            if not exit_waiter.done():
                exit_waiter.cancel()

        if exit_waiter in done:
            self.state.returncode = exit_waiter.result()
            self.state.process = None
            return self.state.returncode

        logger.debug("%s Cancellation during %s (pid=%s)", self.tag, command.program, proc.pid)
        await self._terminate()
        return None

    async def _terminate(self):
        """SIGTERM the current child, escalate to SIGKILL after the grace period"""
        proc = self.state.process
        if proc is None:
            return
        try:
            if proc.returncode is None:
                self._send(proc, proc.terminate, "SIGTERM")
                try:
                    await asyncio.wait_for(proc.wait(), timeout=self.settings.grace_period)
                except asyncio.TimeoutError:
                    logger.warning("%s pid=%s still running %.1fs after SIGTERM, sending SIGKILL",
                                   self.tag, proc.pid, self.settings.grace_period)
                    self._send(proc, proc.kill, "SIGKILL")
                    try:
                        await asyncio.wait_for(proc.wait(), timeout=self.settings.kill_timeout)
                    except asyncio.TimeoutError:
                        logger.error("%s pid=%s did not exit after SIGKILL", self.tag, proc.pid)
            self.state.returncode = proc.returncode
        finally:
            self.state.process = None

    def _send(self, proc: asyncio.subprocess.Process, action: Callable[[], None], name: str):
        try:
            action()
        except ProcessLookupError:
            # Child exited between the check and the signal
            logger.debug("%s pid=%s already exited, %s not sent", self.tag, proc.pid, name)
            return
        self.state.terminated = True
        logger.debug("%s %s SENT | pid=%s", self.tag, name, proc.pid)

    def _finish(self):
        if self.report is not None:
            return
        state = self.state
        state.finished_at = time.monotonic()
        if not state.outcome.terminal:
            state.outcome = Outcome.CANCELLED

        self.report = ChainReport(
            index=self.chain.index,
            outcome=state.outcome,
            step=state.step,
            total_steps=len(self.chain),
            command=self.chain.commands[state.step],
            returncode=state.returncode,
            error=state.error,
            terminated=state.terminated,
            duration=state.finished_at - (state.started_at or state.finished_at),
            exit_code=state.exit_code,
        )
        self.reports.put_nowait(self.report)
