"""Shared fixtures for Spawny test suite."""
import os
import sys
import tempfile

import pytest

from spawny.config import Settings
from spawny.models import CommandSpec


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory, cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def settings():
    """Settings with short timeouts so escalation tests stay fast."""
    return Settings(grace_period=1.0, kill_timeout=2.0)


@pytest.fixture
def python_cmd():
    """Return a factory building a CommandSpec that runs Python code."""
    def factory(code: str) -> CommandSpec:
        return CommandSpec(program=sys.executable, args=("-c", code))
    return factory


@pytest.fixture
def marker_cmd(python_cmd, tmp_dir):
    """Return a factory for steps that append NAME-start/NAME-end to a log file.

    The step sleeps *delay* seconds between the two lines and exits with *code*.
    """
    log_path = os.path.join(tmp_dir, "steps.log")

    def factory(name: str, delay: float = 0.0, code: int = 0) -> CommandSpec:
        return python_cmd(
            "import sys, time\n"
            f"open({log_path!r}, 'a').write('{name}-start\\n')\n"
            f"time.sleep({delay})\n"
            f"open({log_path!r}, 'a').write('{name}-end\\n')\n"
            f"sys.exit({code})\n"
        )

    factory.log_path = log_path
    return factory

