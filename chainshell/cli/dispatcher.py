"""
Command Dispatcher.

Runs one input line through parse -> resolve -> handler and prints the
result. Handlers are looked up by ``(command, subcommand)`` and receive
typed values only. Every failure they surface is rendered through the
error mapper; nothing escapes to the read loop except session shutdown.

Author: Chainshell Team
License: MIT
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

from loguru import logger

from ..blockchain.node import NodeError, Wallet
from ..monitoring.logging_config import log_transaction_created, log_wallet_event
from .errors import (
    UNKNOWN_ERROR,
    DomainError,
    ErrorKind,
    ParseError,
    describe_error,
    translate_node_error,
)
from .grammar import GRAMMAR, CommandSpec
from .parser import parse_line
from .resolver import ArgumentResolver, ConfirmationDeclined, ResolutionAborted, ResolvedInvocation

if TYPE_CHECKING:
    from .session import Session

HandlerKey = Tuple[str, Optional[str]]
Handler = Callable[[ResolvedInvocation], Optional[str]]


def grammar_keys(grammar: Tuple[CommandSpec, ...] = GRAMMAR) -> list[HandlerKey]:
    """Every ``(command, subcommand)`` form the grammar accepts."""
    keys: list[HandlerKey] = []
    for command in grammar:
        if command.subcommands:
            keys.extend((command.name, sub.name) for sub in command.subcommands)
        else:
            keys.append((command.name, None))
    return keys


class Dispatcher:
    """
    Route resolved invocations to command handlers.

    Usage:
        dispatcher = Dispatcher(session)
        keep_running = dispatcher.handle_line("wallet balance 00...00")
    """

    def __init__(self, session: Session, resolver: Optional[ArgumentResolver] = None):
        """
        Initialize dispatcher.

        Args:
            session: Running session (node, keychain, output)
            resolver: Argument resolver; defaults to one reading from the session
        """
        self.session = session
        self.resolver = resolver or ArgumentResolver(session.read_line)
        self.formatter = session.formatter

        self.handlers: Dict[HandlerKey, Handler] = {
            ("wallet", "create"): self.wallet_create,
            ("wallet", "delete"): self.wallet_delete,
            ("wallet", "list"): self.wallet_list,
            ("wallet", "export"): self.wallet_export,
            ("wallet", "balance"): self.wallet_balance,
            ("wallet", "send"): self.wallet_send,
            ("wallet", "history"): self.wallet_history,
            ("mine", None): self.mine,
            ("peers", None): self.peers,
            ("mempool", None): self.mempool,
            ("help", None): self.help,
            ("exit", None): self.exit,
        }

        missing = set(grammar_keys()) - set(self.handlers)
        if missing:
            raise RuntimeError(f"No handler for commands: {sorted(missing, key=str)}")

    # =========================================================================
    # Line pipeline
    # =========================================================================

    def handle_line(self, line: str) -> bool:
        """
        Parse, resolve and dispatch one line.

        Returns:
            False once the session is quitting
        """
        try:
            parsed = parse_line(line)
        except ParseError as e:
            self.session.print(self.formatter.error(describe_error(e)))
            return True

        if parsed is None:
            return True

        try:
            resolved = self.resolver.resolve(parsed)
        except ResolutionAborted:
            self.session.print(self.formatter.usage(parsed.command, parsed.subcommand))
            return True
        except ConfirmationDeclined:
            logger.debug(f"{parsed.target.name} cancelled by user")
            return True
        except ParseError as e:
            self.session.print(self.formatter.error(describe_error(e)))
            return True

        output = self.dispatch(resolved)
        if output:
            self.session.print(output)
        return not self.session.quitting

    def dispatch(self, resolved: ResolvedInvocation) -> Optional[str]:
        """
        Run the handler for ``resolved`` and map its failures.

        Returns:
            Display text, or None when there is nothing to print
        """
        handler = self.handlers[resolved.key]
        try:
            return handler(resolved)
        except DomainError as e:
            logger.info(f"{resolved.key} failed: {e}")
            return self.formatter.error(describe_error(e))
        except NodeError as e:
            logger.warning(f"{resolved.key} failed in node: {type(e).__name__}: {e}")
            return self.formatter.error(describe_error(translate_node_error(e)))
        except Exception as e:
            logger.exception(f"{resolved.key} failed unexpectedly: {e}")
            return self.formatter.error(UNKNOWN_ERROR)

    # =========================================================================
    # Wallet handlers
    # =========================================================================

    def _load_wallet(self, name: str) -> Wallet:
        wallet = self.session.keychain.load_key_pair(name)
        if wallet is None:
            raise DomainError(ErrorKind.WALLET_NOT_FOUND, name)
        return wallet

    def wallet_create(self, resolved: ResolvedInvocation) -> str:
        name = resolved["wallet name"]
        stored = resolved.options["keychain"]
        wallet = self.session.keychain.create_wallet(name, persist=stored)
        if wallet is None:
            raise DomainError(ErrorKind.KEYCHAIN_UNAVAILABLE, name)

        log_wallet_event("created", name, stored=stored)
        return self.formatter.wallet_created(wallet, stored)

    def wallet_delete(self, resolved: ResolvedInvocation) -> str:
        name = resolved["wallet name"]
        if not self.session.keychain.delete_keys(name):
            raise DomainError(ErrorKind.WALLET_NOT_FOUND, name)

        log_wallet_event("deleted", name)
        return self.formatter.wallet_deleted(name)

    def wallet_list(self, resolved: ResolvedInvocation) -> str:
        entries = []
        for name in self.session.keychain.list_available_names():
            wallet = self.session.keychain.load_key_pair(name)
            entries.append((name, wallet.address if wallet else None))
        return self.formatter.wallet_list(entries)

    def wallet_export(self, resolved: ResolvedInvocation) -> str:
        return self.formatter.wallet_export(self._load_wallet(resolved["wallet name"]))

    def wallet_balance(self, resolved: ResolvedInvocation) -> str:
        address = resolved["wallet address"]
        return self.formatter.balance(address, self.session.node.balance(address))

    def wallet_send(self, resolved: ResolvedInvocation) -> str:
        wallet = self._load_wallet(resolved["wallet name"])
        recipient = resolved["recipient address"]
        tx = self.session.node.create_transaction(wallet, recipient, resolved["value"])

        log_transaction_created(tx.txid, tx.value, recipient.hex)
        return self.formatter.transaction_sent(tx)

    def wallet_history(self, resolved: ResolvedInvocation) -> str:
        name = resolved["wallet name"]
        wallet = self._load_wallet(name)
        return self.formatter.history(name, self.session.node.payments(wallet))

    # =========================================================================
    # Node handlers
    # =========================================================================

    def mine(self, resolved: ResolvedInvocation) -> str:
        address = resolved["wallet address"]
        count = resolved.options["num"]
        self.session.print(f"Mining {count} block(s) for {address.short}...")
        report = self.session.coordinator.mine(address, count)
        return self.formatter.mining_report(report)

    def peers(self, resolved: ResolvedInvocation) -> str:
        return self.formatter.peers(self.session.node.peers())

    def mempool(self, resolved: ResolvedInvocation) -> str:
        return self.formatter.mempool(self.session.node.mempool())

    def help(self, resolved: ResolvedInvocation) -> str:
        return self.formatter.help()

    def exit(self, resolved: ResolvedInvocation) -> None:
        self.session.begin_quit()
        return None


__all__ = [
    "HandlerKey",
    "Handler",
    "grammar_keys",
    "Dispatcher",
]
