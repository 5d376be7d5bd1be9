"""
Spawny Models - Data classes for chains and run state
"""
import asyncio
import shlex
import signal
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class CommandSpec:
    """A single program invocation: program + arguments"""
    program: str
    args: Tuple[str, ...] = ()

    @property
    def argv(self) -> List[str]:
        return [self.program, *self.args]

    @property
    def display(self) -> str:
        return " ".join(shlex.quote(part) for part in self.argv)


@dataclass(frozen=True)
class Chain:
    """Commands executed one after another; index is the chain identity"""
    index: int
    commands: Tuple[CommandSpec, ...]

    def __post_init__(self):
        if not self.commands:
            raise ValueError(f"chain {self.index} has no commands")

    def __len__(self) -> int:
        return len(self.commands)

    @property
    def display(self) -> str:
        return " ; ".join(cmd.display for cmd in self.commands)


class Outcome(str, Enum):
    """Chain outcome; everything except RUNNING is terminal"""
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self is not Outcome.RUNNING


@dataclass
class ChainState:
    """Mutable run state of one chain, owned by its ChainRunner"""
    step: int = 0
    process: Optional[asyncio.subprocess.Process] = None
    outcome: Outcome = Outcome.RUNNING
    returncode: Optional[int] = None
    exit_code: int = 0  # shell-style status of the failing step
    error: str = ""
    terminated: bool = False  # SIGTERM/SIGKILL was sent to a child
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None


@dataclass(frozen=True)
class ChainReport:
    """Terminal report a ChainRunner sends to the orchestrator, exactly once"""
    index: int
    outcome: Outcome
    step: int  # 0-based index of the last step reached
    total_steps: int
    command: Optional[CommandSpec]
    returncode: Optional[int] = None
    error: str = ""
    terminated: bool = False
    duration: float = 0.0
    exit_code: int = 0

    @property
    def description(self) -> str:
        """One-line human readable explanation of the outcome"""
        name = self.command.program if self.command else "?"
        if self.outcome is Outcome.SUCCEEDED:
            return f"chain {self.index} succeeded"
        if self.outcome is Outcome.CANCELLED:
            return f"chain {self.index} cancelled at step {self.step + 1} ({name})"
        if self.error:
            return f"chain {self.index} failed at step {self.step + 1}: {self.error}"
        if self.returncode is not None and self.returncode < 0:
            sig = _signal_name(-self.returncode)
            return f"chain {self.index} failed at step {self.step + 1}: {name} killed by {sig}"
        return f"chain {self.index} failed at step {self.step + 1}: {name} exited with code {self.returncode}"


@dataclass
class RunResult:
    """Outcome of a whole run: the race winner plus every chain's report"""
    winner: ChainReport
    reports: List[ChainReport] = field(default_factory=list)
    signum: Optional[int] = None  # external signal that cancelled the run

    @property
    def exit_code(self) -> int:
        if self.winner.outcome is Outcome.SUCCEEDED:
            return 0
        if self.winner.outcome is Outcome.CANCELLED and self.signum:
            return 128 + self.signum
        return self.winner.exit_code or 1


def exit_code_for(returncode: Optional[int]) -> int:
    """Map a child return code to a shell-style exit status"""
    if returncode is None:
        return 1
    if returncode < 0:
        return 128 - returncode
    return returncode


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"
