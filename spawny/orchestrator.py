"""
Spawny Orchestrator - Race parallel chains and tear down the losers.

The Orchestrator starts one ChainRunner task per chain. Runners push their
single terminal report onto a shared queue; the first report read is the race
winner. The orchestrator then raises the shared cancellation event, drains the
remaining reports and returns a RunResult.
"""
import asyncio
from typing import Dict, List, Optional, Sequence

from spawny.chain import ChainRunner
from spawny.config import Settings
from spawny.errors import OrchestratorError
from spawny.log import get_logger
from spawny.models import Chain, ChainReport, Outcome, RunResult

logger = get_logger(__name__)


class Orchestrator:
    """Runs chains concurrently; the first chain to finish ends the run"""

    def __init__(self, chains: Sequence[Chain], settings: Optional[Settings] = None):
        self.chains = list(chains)
        self.settings = settings or Settings()
        self.runners: Dict[int, ChainRunner] = {}
        self.winner: Optional[ChainReport] = None
        self.cancel_reason: Optional[str] = None
        self.signum: Optional[int] = None
        # Created in run(): asyncio primitives belong to the running loop
        self._cancel_event: Optional[asyncio.Event] = None
        self._reports: Optional[asyncio.Queue] = None
        self._pending_cancel: Optional[tuple] = None

    @property
    def cancelled(self) -> bool:
        """Overall termination flag; once True no chain starts a new child"""
        return self._cancel_event is not None and self._cancel_event.is_set()

    def cancel(self, reason: str, signum: Optional[int] = None) -> bool:
        """
        Raise the shared cancellation signal.

        Used both when the race is decided and by the signal bridge.
        Idempotent: only the first call has any effect.

        Returns:
            True if this call raised the signal, False if it was already raised
        """
        if self._cancel_event is None:
            # Not running yet: remember the request for run()
            if self._pending_cancel is None:
                self._pending_cancel = (reason, signum)
                return True
            return False

        if self._cancel_event.is_set():
            logger.debug("Cancel ignored (already cancelled: %s) | %s", self.cancel_reason, reason)
            return False

        self.cancel_reason = reason
        self.signum = signum
        logger.info("Terminating all chains: %s", reason)
        self._cancel_event.set()
        return True

    async def run(self) -> RunResult:
        """Run every chain, wait for the first to finish, cancel the rest"""
        if not self.chains:
            raise OrchestratorError("no chains to run")

        self._cancel_event = asyncio.Event()
        self._reports = asyncio.Queue()
        if self._pending_cancel is not None:
            self.cancel(*self._pending_cancel)

        tasks = self._start_runners()

        try:
            self.winner = await self._reports.get()
            self._announce_winner(self.winner)
            self.cancel(f"chain {self.winner.index} {self.winner.outcome.value}")

            reports = [self.winner]
            for _ in range(len(tasks) - 1):
                reports.append(await self._reports.get())
            await asyncio.gather(*tasks)
        except BaseException:
            self.cancel("orchestrator interrupted")
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        reports.sort(key=lambda r: r.index)
        return RunResult(winner=self.winner, reports=reports, signum=self.signum)

    def _start_runners(self) -> List[asyncio.Task]:
        tasks: List[asyncio.Task] = []
        try:
            for chain in self.chains:
                if chain.index in self.runners:
                    raise ValueError(f"duplicate chain index {chain.index}")
                logger.debug("[CHAIN %d] %s", chain.index, chain.display)
                runner = ChainRunner(chain, self._cancel_event, self._reports, self.settings)
                self.runners[chain.index] = runner
                tasks.append(asyncio.ensure_future(runner.run()))
        except Exception as e:
            self._cancel_event.set()
            for task in tasks:
                task.cancel()
            raise OrchestratorError(f"failed to start chain runners: {e}") from e

        logger.debug("Started %d chain(s)", len(tasks))
        return tasks

    def _announce_winner(self, report: ChainReport):
        """Diagnostics are only emitted for the chain that decided the run"""
        if report.outcome is Outcome.SUCCEEDED:
            logger.info("Chain %d completed successfully", report.index)
        elif report.outcome is Outcome.FAILED:
            logger.error("%s", report.description)
        else:
            logger.info("%s", report.description)
