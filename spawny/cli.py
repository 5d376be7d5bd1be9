"""
Spawny CLI - Command-line interface and argument parsing.

Installed as the `spawny` command via pip:
    pip install spawny
    spawny :: gedit :: meld
    spawny :: server --port 8000 :: sleep 2 :::: client
"""
import argparse
import asyncio
import sys
from typing import List, Optional, Sequence, Tuple

from spawny.config import load_settings, Settings
from spawny.errors import ConfigError, OrchestratorError, ParseError
from spawny.log import get_console, get_logger, set_level
from spawny.models import Chain, RunResult
from spawny.orchestrator import Orchestrator
from spawny.parser import parse_chains
from spawny.signals import SignalBridge
from spawny.ui import RunSummary

logger = get_logger(__name__)
console = get_console()

EXIT_USAGE = 2

USAGE = "%(prog)s [options] SEPARATOR PROG [ARGS...] [SEPARATOR PROG [ARGS...]]..."

EPILOG = """\
Programs and arguments are separated by the separator:
  <separator> <prog1> <args1...> <separator> <prog2> <args2> <separator> ... <progN> <argsN>

The separator doubled means that the following command is executed
sequentially when the previous command finishes successfully. With the
separator :: the sequential separator is :::: (or two separate :: tokens).

When a chain of commands (or a single command) running in parallel finishes,
all other programs are terminated and spawny exits with that chain's status.

Examples:
  # executes hello and world (the latter with parameter --doit) in parallel
  spawny -:- hello -:- world --doit
  # opens both editors and exits if one of the editors is closed
  spawny :: gedit :: meld
  # delayed execution of the client after the server started
  spawny :: server --some-param --another-param=x :: sleep 2 :::: client -param

The separator can be any string that is not special to the shell.
Options must come before the separator.
"""

# Options that consume the following token as their value
VALUE_OPTIONS = ("-c", "--config", "-g", "--grace-period", "--kill-timeout")
FLAG_OPTIONS = ("-h", "--help", "-V", "--version", "-q", "--quiet", "-v", "--verbose", "--summary")

# Single-letter options argparse lets the user bundle, e.g. -qv or -qg5
SHORT_FLAGS = "hqvV"
SHORT_VALUES = "cg"


def build_parser() -> argparse.ArgumentParser:
    from spawny import __version__
    parser = argparse.ArgumentParser(
        prog="spawny",
        usage=USAGE,
        description="Spawny - spawn and manage multiple programs in parallel",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--version', '-V', action='version', version=f'spawny {__version__}')
    parser.add_argument('--config', '-c', metavar='PATH',
                        help='YAML settings file (default: $SPAWNY_CONFIG)')
    parser.add_argument('--grace-period', '-g', metavar='SECONDS', type=float,
                        help='Seconds to wait after SIGTERM before SIGKILL (default: 5)')
    parser.add_argument('--kill-timeout', metavar='SECONDS', type=float,
                        help='Seconds to wait after SIGKILL (default: 5)')
    parser.add_argument('--quiet', '-q', action='store_true', help='Only log warnings and errors')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log debug details')
    parser.add_argument('--summary', action='store_true', default=None,
                        help='Print a summary table of all chains after the run')
    return parser


def _short_option_width(token: str) -> int:
    """
    Number of argv tokens a short-option cluster occupies, or 0 if the token
    is not one (e.g. the separator "-:-").

    -q, -qv -> 1; -g5, -qg5, -cpath -> 1; -g 5, -qg 5 -> 2
    """
    if len(token) < 2 or token[0] != "-" or token[1] == "-":
        return 0
    for pos, letter in enumerate(token[1:], start=1):
        if letter in SHORT_VALUES:
            return 1 if pos + 1 < len(token) else 2
        if letter not in SHORT_FLAGS:
            return 0
    return 1


def split_argv(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    """
    Split argv into spawny options and the separator-led command part.

    The first token that is not a spawny option is the separator, so a
    separator like "-:-" is never mistaken for an option.
    """
    i = 0
    while i < len(argv):
        token = argv[i]
        if token in FLAG_OPTIONS:
            i += 1
        elif token in VALUE_OPTIONS:
            i += 2
        elif any(token.startswith(opt + "=") for opt in VALUE_OPTIONS if opt.startswith("--")):
            i += 1
        else:
            width = _short_option_width(token)
            if not width:
                break
            i += width
    return list(argv[:i]), list(argv[i:])


async def run_chains(chains: List[Chain], settings: Settings) -> RunResult:
    """Run chains with SIGINT/SIGTERM mapped onto orchestrator cancellation"""
    orchestrator = Orchestrator(chains, settings)
    with SignalBridge(orchestrator.cancel):
        return await orchestrator.run()


def main(argv: Optional[Sequence[str]] = None):
    """Entry point for the `spawny` CLI command."""
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = build_parser()

    options, commands = split_argv(argv)
    args = parser.parse_args(options)

    if not commands:
        parser.print_usage(sys.stderr)
        console.error("spawny: error: the following arguments are required: SEPARATOR, PROG")
        sys.exit(EXIT_USAGE)

    overrides = {
        "grace_period": args.grace_period,
        "kill_timeout": args.kill_timeout,
        "summary": args.summary,
    }
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    elif args.quiet:
        overrides["log_level"] = "WARNING"

    try:
        settings = load_settings(args.config, overrides)
    except ConfigError as e:
        console.error("spawny: error: %s", e)
        sys.exit(EXIT_USAGE)
    set_level(settings.log_level)

    separator, tokens = commands[0], commands[1:]
    try:
        chains = parse_chains(separator, tokens)
    except ParseError as e:
        parser.print_usage(sys.stderr)
        console.error("spawny: error: %s", e)
        sys.exit(EXIT_USAGE)

    logger.debug("Parsed %d chain(s) with separator %r", len(chains), separator)

    try:
        result = asyncio.run(run_chains(chains, settings))
    except OrchestratorError as e:
        console.error("spawny: error: %s", e)
        sys.exit(1)

    if settings.summary:
        RunSummary(result).print()

    sys.exit(result.exit_code)


if __name__ == "__main__":
    main()
