"""
Interactive Argument Resolver.

Binds every required parameter of a parsed invocation to a typed value,
reading missing values from the terminal. Resolution either completes or
raises; a partially bound invocation is never returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from loguru import logger

from ..blockchain.node import InvalidAddressError, WalletAddress
from .errors import ParseError
from .grammar import FlagArity, ParameterKind, SubcommandSpec
from .parser import ParsedInvocation

LineReader = Callable[[str], str]

MAX_UINT64 = 2**64 - 1
YES_ANSWERS = frozenset({"y", "yes"})
NO_ANSWERS = frozenset({"n", "no"})
CONFIRM_RETRY_PROMPT = "Please enter 'y' or 'n': "


class ResolutionAborted(Exception):
    """A required value was not supplied; the command prints its usage."""


class ConfirmationDeclined(Exception):
    """The user answered no to a destructive command."""


@dataclass(frozen=True)
class ResolvedInvocation:
    """
    Parsed invocation with every required value bound.

    Attributes:
        parsed: Source invocation
        values: Parameter name -> typed value
        options: Declared flag name -> typed value (bool for boolean flags)
    """

    parsed: ParsedInvocation
    values: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def key(self) -> tuple[str, Optional[str]]:
        sub = self.parsed.subcommand
        return self.parsed.command.name, sub.name if sub else None

    def __getitem__(self, name: str) -> Any:
        return self.values[name]


def parse_address(text: str) -> WalletAddress:
    try:
        return WalletAddress.from_hex(text)
    except InvalidAddressError as e:
        raise ParseError("invalid address") from e


def parse_unsigned(text: str, reason: str = "invalid value") -> int:
    text = text.strip()
    if not (text.isascii() and text.isdigit()):
        raise ParseError(reason)
    value = int(text)
    if value > MAX_UINT64:
        raise ParseError(reason)
    return value


_CONVERTERS: dict[ParameterKind, Callable[[str], Any]] = {
    ParameterKind.WALLET_ADDRESS: parse_address,
    ParameterKind.RECIPIENT_ADDRESS: parse_address,
    ParameterKind.WALLET_NAME: str,
    ParameterKind.UNSIGNED_INTEGER: parse_unsigned,
}


class ArgumentResolver:
    """
    Resolve missing arguments by prompting.

    Reads block the calling thread until a line arrives. An empty answer or
    end of input aborts resolution.
    """

    def __init__(self, read_line: LineReader = input):
        """
        Initialize resolver.

        Args:
            read_line: Prompting line reader; raises EOFError at end of input
        """
        self.read_line = read_line

    def resolve(self, parsed: ParsedInvocation) -> ResolvedInvocation:
        """
        Bind parameters and flags of ``parsed``.

        Raises:
            ResolutionAborted: A value is missing, or a subcommand is required
            ConfirmationDeclined: A destructive command was not confirmed
            ParseError: A value does not have the parameter's kind
        """
        if parsed.command.subcommands and parsed.subcommand is None:
            raise ResolutionAborted(parsed.command.name)

        target = parsed.target
        positional = list(parsed.arguments)
        values: dict[str, Any] = {}

        for parameter in target.parameters:
            raw = positional.pop(0) if positional else self._ask(parameter.prompt)
            values[parameter.name] = _CONVERTERS[parameter.kind](raw)

        if positional:
            logger.debug(f"Ignoring extra arguments: {positional}")

        options: dict[str, Any] = {}
        for flag in target.flags:
            if flag.arity is FlagArity.BOOLEAN:
                options[flag.name] = parsed.has_flag(flag.name)
                continue
            if not parsed.has_flag(flag.name):
                options[flag.name] = flag.default
                continue
            raw = parsed.flags[flag.name]
            if raw is None:
                raw = self._ask(flag.prompt or f"Enter {flag.name}: ")
            count = parse_unsigned(raw, reason=f"invalid {flag.name}")
            if count < 1:
                raise ParseError(f"invalid {flag.name}")
            options[flag.name] = count

        if isinstance(target, SubcommandSpec) and target.destructive:
            subject = next(iter(values.values()), "")
            prompt = f"Are you sure you want to {target.name} '{subject}'? [y/n]: "
            if not self.confirm(prompt):
                raise ConfirmationDeclined(target.name)

        return ResolvedInvocation(
            parsed=parsed,
            values=MappingProxyType(values),
            options=MappingProxyType(options),
        )

    def confirm(self, prompt: str) -> bool:
        """
        Ask a yes/no question until the answer is one of y, yes, n, no.

        Raises:
            ResolutionAborted: End of input before a valid answer
        """
        answer = self._read(prompt)
        while answer.lower() not in YES_ANSWERS | NO_ANSWERS:
            answer = self._read(CONFIRM_RETRY_PROMPT)
        return answer.lower() in YES_ANSWERS

    def _ask(self, prompt: str) -> str:
        answer = self._read(prompt)
        if not answer:
            raise ResolutionAborted(prompt)
        return answer

    def _read(self, prompt: str) -> str:
        try:
            return self.read_line(prompt).strip()
        except EOFError as e:
            raise ResolutionAborted(prompt) from e


__all__ = [
    "LineReader",
    "ResolutionAborted",
    "ConfirmationDeclined",
    "ResolvedInvocation",
    "ArgumentResolver",
    "parse_address",
    "parse_unsigned",
]
