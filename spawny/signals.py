"""
Spawny Signal Bridge - Map SIGINT/SIGTERM onto orchestrator cancellation
"""
import asyncio
import signal
from typing import Callable, Iterable, List, Optional

from spawny.log import get_logger

logger = get_logger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalBridge:
    """
    One-shot bridge from external termination signals to a cancel callback.

    Usage (inside a running event loop):

        with SignalBridge(orchestrator.cancel):
            result = await orchestrator.run()

    The first signal calls ``cancel(reason, signum)``; later signals only log.
    """

    def __init__(
        self,
        cancel: Callable[..., object],
        signals: Iterable[int] = DEFAULT_SIGNALS,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ):
        self.cancel = cancel
        self.signals = tuple(signals)
        self.loop = loop
        self.received: Optional[int] = None
        self._installed: List[int] = []

    def install(self):
        loop = self.loop or asyncio.get_running_loop()
        self.loop = loop
        for signum in self.signals:
            loop.add_signal_handler(signum, self._handle, signum)
            self._installed.append(signum)

    def uninstall(self):
        while self._installed:
            signum = self._installed.pop()
            self.loop.remove_signal_handler(signum)

    def __enter__(self) -> "SignalBridge":
        self.install()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.uninstall()
        return False

    def _handle(self, signum: int):
        name = signal.Signals(signum).name
        if self.received is not None:
            logger.debug("%s received again, shutdown already in progress", name)
            return
        self.received = signum
        logger.warning("%s received, shutting down", name)
        self.cancel(f"received {name}", signum)
