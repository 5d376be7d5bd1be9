"""
Spawny - Spawn and manage multiple programs in parallel

Modules:
- models: Data classes (CommandSpec, Chain, ChainReport, RunResult)
- parser: Separator-based command line splitting
- chain: ChainRunner, sequential execution of one chain
- orchestrator: Orchestrator, races chains and cancels the losers
- signals: SignalBridge from SIGINT/SIGTERM to cancellation
- config: Settings loader (YAML file, environment, CLI flags)
- ui: Rich run summary table
"""

from .models import CommandSpec, Chain, Outcome, ChainReport, RunResult
from .parser import parse_chains
from .config import Settings, load_settings
from .chain import ChainRunner
from .orchestrator import Orchestrator
from .signals import SignalBridge

__version__ = "1.0.0"

__all__ = [
    "CommandSpec",
    "Chain",
    "Outcome",
    "ChainReport",
    "RunResult",
    "parse_chains",
    "Settings",
    "load_settings",
    "ChainRunner",
    "Orchestrator",
    "SignalBridge",
]
