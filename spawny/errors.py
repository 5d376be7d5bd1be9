"""
Spawny Errors - Exception types raised across the package.

Step-level failures (a child exiting non-zero, a cancelled step) are not
exceptions: they surface as a chain's terminal outcome.
"""
from dataclasses import dataclass


class SpawnyError(Exception):
    """Base class for spawny errors"""


class ParseError(SpawnyError):
    """Command line cannot be split into chains"""


class ConfigError(SpawnyError):
    """Configuration file or environment is invalid"""


class OrchestratorError(SpawnyError):
    """The orchestrator could not start the run"""


# Shell conventions for commands that never ran
EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


@dataclass(eq=False)
class LaunchError(SpawnyError):
    """
    A program could not be started.

    Carries the exit status a shell would report for the same failure, so a
    launch error can be treated exactly like a non-zero exit.
    """
    program: str
    reason: str
    exit_code: int = EXIT_NOT_FOUND

    def __str__(self) -> str:
        return f"cannot launch {self.program}: {self.reason}"

    @classmethod
    def from_os_error(cls, program: str, error: OSError) -> "LaunchError":
        if isinstance(error, FileNotFoundError):
            code = EXIT_NOT_FOUND
        else:
            code = EXIT_NOT_EXECUTABLE
        return cls(program=program, reason=error.strerror or str(error), exit_code=code)
