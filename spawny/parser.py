"""
Spawny Parser - Split a separator-delimited command line into chains.

    spawny :: server --port 8000 :: sleep 2 :::: client --url http://...

A lone separator starts a new parallel chain. The doubled separator (either
one token "::::" or two consecutive "::" tokens) appends the next command to
the current chain, to run after the previous one exits successfully.
"""
from typing import List, Sequence

from spawny.errors import ParseError
from spawny.models import Chain, CommandSpec


def split_groups(separator: str, tokens: Sequence[str]) -> List[List[List[str]]]:
    """
    Split tokens into chains of command token groups.

    Args:
        separator: Parallel separator token
        tokens: Command tokens following the separator

    Returns:
        List of chains, each a list of non-empty token groups
    """
    if not separator:
        raise ParseError("separator must not be empty")

    sequential = separator * 2
    chains: List[List[List[str]]] = [[[]]]
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token == sequential:
            chains[-1].append([])
        elif token == separator:
            if i + 1 < len(tokens) and tokens[i + 1] == separator:
                chains[-1].append([])
                i += 1
            else:
                chains.append([[]])
        else:
            chains[-1][-1].append(token)
        i += 1

    # Empty groups come from leading, trailing or repeated separators
    result = []
    for groups in chains:
        groups = [g for g in groups if g]
        if groups:
            result.append(groups)
    return result


def parse_chains(separator: str, tokens: Sequence[str]) -> List[Chain]:
    """Parse tokens into Chain objects, indexed 1..N in order of appearance"""
    groups = split_groups(separator, tokens)
    if not groups:
        raise ParseError("no commands given")

    chains = []
    for index, chain_groups in enumerate(groups, start=1):
        commands = tuple(CommandSpec(program=g[0], args=tuple(g[1:])) for g in chain_groups)
        chains.append(Chain(index=index, commands=commands))
    return chains
