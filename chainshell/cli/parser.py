"""Tokenizer and parser turning an input line into a ``ParsedInvocation``."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple, Union

from loguru import logger

from .errors import ParseError
from .grammar import CommandSpec, FlagArity, SubcommandSpec, find_command, find_flag

FlagValue = Union[bool, str, None]


@dataclass(frozen=True)
class ParsedInvocation:
    """
    One parsed input line.

    Attributes:
        command: Matched top-level command
        subcommand: Matched subcommand, if any
        arguments: Positional tokens left after command, subcommand and flags
        flags: Recognized flags by name; ``True`` for boolean flags, the
            value token (or None when missing) for valued flags
    """

    command: CommandSpec
    subcommand: Optional[SubcommandSpec] = None
    arguments: Tuple[str, ...] = ()
    flags: Mapping[str, FlagValue] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def target(self) -> Union[CommandSpec, SubcommandSpec]:
        """The grammar entry whose parameters and flags apply."""
        return self.subcommand or self.command

    def has_flag(self, name: str) -> bool:
        return name in self.flags


def tokenize(line: str) -> List[str]:
    return line.split()


def parse_line(line: str) -> Optional[ParsedInvocation]:
    """
    Parse one line of input.

    Args:
        line: Raw input

    Returns:
        ParsedInvocation, or None for a blank line

    Raises:
        ParseError: If the first token is not a known command
    """
    tokens = tokenize(line)
    if not tokens:
        return None
    return parse_tokens(tokens)


def parse_tokens(tokens: List[str]) -> ParsedInvocation:
    command = find_command(tokens[0])
    if command is None:
        raise ParseError("unknown command")

    rest = tokens[1:]
    subcommand = None
    if command.subcommands and rest:
        # An unmatched second token stays positional
        subcommand = command.subcommand(rest[0])
        if subcommand is not None:
            rest = rest[1:]

    arguments, flags = _split_flags(rest)
    invocation = ParsedInvocation(
        command=command,
        subcommand=subcommand,
        arguments=tuple(arguments),
        flags=MappingProxyType(flags),
    )
    logger.debug(
        f"Parsed {command.name}"
        f"{' ' + subcommand.name if subcommand else ''}: "
        f"args={list(arguments)} flags={flags}"
    )
    return invocation


def _split_flags(tokens: List[str]) -> Tuple[List[str], dict]:
    arguments: List[str] = []
    flags: dict = {}
    index = 0
    while index < len(tokens):
        token = tokens[index]
        flag = find_flag(token)
        index += 1
        if flag is None:
            arguments.append(token)
            continue

        if flag.arity is FlagArity.BOOLEAN:
            flags[flag.name] = True
            continue

        value = None
        if index < len(tokens) and find_flag(tokens[index]) is None:
            value = tokens[index]
            index += 1
        flags[flag.name] = value

    return arguments, flags


__all__ = [
    "FlagValue",
    "ParsedInvocation",
    "tokenize",
    "parse_line",
    "parse_tokens",
]
