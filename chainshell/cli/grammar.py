"""
Command Grammar.

Declarative table of the shell's commands, subcommands, positional
parameters and flags. The table is validated for alias uniqueness when
this module is imported.

Author: Chainshell Team
License: MIT
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple


class ParameterKind(Enum):
    """Semantic kind of a positional parameter or flag value."""

    WALLET_ADDRESS = "wallet address"
    WALLET_NAME = "wallet name"
    RECIPIENT_ADDRESS = "recipient address"
    UNSIGNED_INTEGER = "unsigned integer"


class FlagArity(Enum):
    BOOLEAN = "boolean"
    VALUED = "valued"


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    kind: ParameterKind
    prompt: str

    @property
    def usage(self) -> str:
        return f"[{self.name}]"


@dataclass(frozen=True)
class FlagSpec:
    """
    Optional flag.

    Valued flags carry the kind of their value, the prompt used when the
    flag is given without a value, and a default for when it is absent.
    """

    name: str
    aliases: Tuple[str, ...]
    arity: FlagArity = FlagArity.BOOLEAN
    kind: Optional[ParameterKind] = None
    prompt: Optional[str] = None
    default: Optional[int] = None

    @property
    def usage(self) -> str:
        return f"<{self.aliases[0]}>"


@dataclass(frozen=True)
class SubcommandSpec:
    name: str
    aliases: Tuple[str, ...]
    parameters: Tuple[ParameterSpec, ...] = ()
    flags: Tuple[FlagSpec, ...] = ()
    description: str = ""
    visible_in_help: bool = True
    destructive: bool = False

    @property
    def usage(self) -> str:
        parts = [self.name]
        parts.extend(p.usage for p in self.parameters)
        parts.extend(f.usage for f in self.flags)
        return " ".join(parts)


@dataclass(frozen=True)
class CommandSpec:
    name: str
    aliases: Tuple[str, ...]
    parameters: Tuple[ParameterSpec, ...] = ()
    flags: Tuple[FlagSpec, ...] = ()
    description: str = ""
    visible_in_help: bool = True
    subcommands: Tuple[SubcommandSpec, ...] = ()

    @property
    def usage_lines(self) -> Tuple[str, ...]:
        """One usage line per form of the command (one per subcommand)."""
        if self.subcommands:
            return tuple(
                self.subcommand_usage(sub) for sub in self.subcommands if sub.visible_in_help
            )
        parts = [self.name]
        parts.extend(p.usage for p in self.parameters)
        parts.extend(f.usage for f in self.flags)
        if self.description:
            parts.append(f"- {self.description}")
        return (" ".join(parts),)

    def subcommand_usage(self, sub: SubcommandSpec) -> str:
        return f"{self.name} {sub.usage} - {sub.description}"

    def subcommand(self, token: str) -> Optional[SubcommandSpec]:
        for sub in self.subcommands:
            if token in sub.aliases:
                return sub
        return None


class GrammarError(ValueError):
    """The grammar table violates alias uniqueness."""


# =============================================================================
# Parameters and flags
# =============================================================================

WALLET_ADDRESS = ParameterSpec("wallet address", ParameterKind.WALLET_ADDRESS, "Enter wallet address: ")
WALLET_NAME = ParameterSpec("wallet name", ParameterKind.WALLET_NAME, "Enter wallet name: ")
RECIPIENT_ADDRESS = ParameterSpec("recipient address", ParameterKind.RECIPIENT_ADDRESS, "Enter recipient address: ")
VALUE = ParameterSpec("value", ParameterKind.UNSIGNED_INTEGER, "Enter value to send: ")

KEYCHAIN_FLAG = FlagSpec("keychain", ("--keychain", "-kc"))
NUM_FLAG = FlagSpec(
    "num",
    ("--num", "-n"),
    arity=FlagArity.VALUED,
    kind=ParameterKind.UNSIGNED_INTEGER,
    prompt="How many blocks to mine: ",
    default=1,
)


# =============================================================================
# Commands
# =============================================================================

WALLET = CommandSpec(
    name="wallet",
    aliases=("wallet", "w"),
    description="Manage wallets.",
    subcommands=(
        SubcommandSpec("create", ("create", "c"), (WALLET_NAME,), (KEYCHAIN_FLAG,),
                       "Create a wallet, optionally stored in keychain."),
        SubcommandSpec("delete", ("delete", "d"), (WALLET_NAME,),
                       description="Delete a wallet from the keychain.", destructive=True),
        SubcommandSpec("list", ("list", "l"), description="List wallets stored in keychain."),
        SubcommandSpec("export", ("export", "e"), (WALLET_NAME,), description="Export wallet private key."),
        SubcommandSpec("balance", ("balance", "b"), (WALLET_ADDRESS,), description="Show wallet balance."),
        SubcommandSpec("send", ("send", "s"), (WALLET_NAME, RECIPIENT_ADDRESS, VALUE),
                       description="Send coins to another address."),
        SubcommandSpec("history", ("history", "h"), (WALLET_NAME,),
                       description="See wallet transaction history."),
    ),
)

MINE = CommandSpec(
    name="mine",
    aliases=("mine", "m"),
    parameters=(WALLET_ADDRESS,),
    flags=(NUM_FLAG,),
    description="Start mining blocks. Requires a wallet address, for block rewards.",
)

PEERS = CommandSpec("peers", ("peers", "p"), description="List known peers in the network.")
MEMPOOL = CommandSpec("mempool", ("mempool", "mp"), description="List transactions currently in the mempool.")
HELP = CommandSpec("help", ("help", "h"), description="List all available commands.")
EXIT = CommandSpec("exit", ("exit", "q", "quit"), description="Quit the shell.")

GRAMMAR: Tuple[CommandSpec, ...] = (WALLET, MINE, PEERS, MEMPOOL, HELP, EXIT)


# =============================================================================
# Lookup tables
# =============================================================================


def _index(specs: Iterable, scope: str) -> Dict[str, object]:
    table: Dict[str, object] = {}
    for spec in specs:
        for alias in spec.aliases:
            if alias in table:
                raise GrammarError(f"Alias {alias!r} is used twice in {scope}")
            table[alias] = spec
    return table


def validate_grammar(grammar: Tuple[CommandSpec, ...]) -> None:
    """
    Check alias uniqueness.

    Aliases are unique among top-level commands, among the subcommands of
    each command, and flag aliases are unique across the whole grammar.

    Raises:
        GrammarError: On the first duplicate found
    """
    _index(grammar, "commands")
    for command in grammar:
        _index(command.subcommands, f"{command.name} subcommands")
    _index(set(_all_flags(grammar)), "flags")


def _all_flags(grammar: Tuple[CommandSpec, ...]) -> Iterable[FlagSpec]:
    for command in grammar:
        yield from command.flags
        for sub in command.subcommands:
            yield from sub.flags


validate_grammar(GRAMMAR)

COMMANDS_BY_ALIAS: Dict[str, CommandSpec] = _index(GRAMMAR, "commands")  # type: ignore[assignment]
FLAGS_BY_ALIAS: Dict[str, FlagSpec] = _index(set(_all_flags(GRAMMAR)), "flags")  # type: ignore[assignment]


def find_command(token: str) -> Optional[CommandSpec]:
    return COMMANDS_BY_ALIAS.get(token)


def find_flag(token: str) -> Optional[FlagSpec]:
    return FLAGS_BY_ALIAS.get(token)


__all__ = [
    "ParameterKind",
    "FlagArity",
    "ParameterSpec",
    "FlagSpec",
    "SubcommandSpec",
    "CommandSpec",
    "GrammarError",
    "GRAMMAR",
    "WALLET",
    "MINE",
    "PEERS",
    "MEMPOOL",
    "HELP",
    "EXIT",
    "COMMANDS_BY_ALIAS",
    "FLAGS_BY_ALIAS",
    "validate_grammar",
    "find_command",
    "find_flag",
]
