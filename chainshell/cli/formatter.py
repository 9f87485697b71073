"""
Output Formatter.

Pure functions from domain values to display strings. Colors go through
``Style``, which returns text unchanged when ``NO_COLOR`` is set or color
is disabled in configuration.

Author: Chainshell Team
License: MIT
"""

from __future__ import annotations

import os
from typing import Iterable, List, Mapping, Optional, Sequence

import click

from ..blockchain.events import EventType, NodeEvent
from ..blockchain.node import (
    Block,
    ChainSummary,
    Payment,
    PaymentDirection,
    PeerAddress,
    Transaction,
    Wallet,
    WalletAddress,
)
from .grammar import GRAMMAR, CommandSpec, SubcommandSpec
from .mining import MiningReport

USAGE_INDENT = "    > "


def color_enabled(configured: bool = True, environ: Optional[Mapping[str, str]] = None) -> bool:
    """Colors are on unless disabled in config or ``NO_COLOR`` is set to any value."""
    environ = os.environ if environ is None else environ
    return configured and "NO_COLOR" not in environ


class Style:
    """Terminal styling; a no-op when disabled."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def _apply(self, text: str, **styles) -> str:
        if not self.enabled:
            return text
        return click.style(text, **styles)

    def success(self, text: str) -> str:
        return self._apply(text, fg="green")

    def warning(self, text: str) -> str:
        return self._apply(text, fg="yellow")

    def error(self, text: str) -> str:
        return self._apply(text, fg="red", bold=True)

    def accent(self, text: str) -> str:
        return self._apply(text, fg="cyan")

    def muted(self, text: str) -> str:
        return self._apply(text, dim=True)

    def bold(self, text: str) -> str:
        return self._apply(text, bold=True)


class Formatter:
    """Build the text printed for every command result and node event."""

    def __init__(self, style: Optional[Style] = None):
        self.style = style or Style(enabled=color_enabled())

    # =========================================================================
    # Errors and usage
    # =========================================================================

    def error(self, message: str) -> str:
        return self.style.error(f"Error: {message}")

    def warning(self, message: str) -> str:
        return self.style.warning(f"Warning: {message}")

    def usage(self, command: CommandSpec, subcommand: Optional[SubcommandSpec] = None) -> str:
        """Usage of one matched subcommand, or of every form of ``command``."""
        lines = [self.style.bold("Usage:")]
        if subcommand is not None:
            lines.append(USAGE_INDENT + command.subcommand_usage(subcommand))
        else:
            lines.extend(USAGE_INDENT + line for line in command.usage_lines)
        return "\n".join(lines)

    def help(self, grammar: Sequence[CommandSpec] = GRAMMAR) -> str:
        lines = [self.style.bold("Available commands:")]
        for command in grammar:
            if not command.visible_in_help:
                continue
            aliases = ", ".join(a for a in command.aliases if a != command.name)
            suffix = self.style.muted(f" (aliases: {aliases})") if aliases else ""
            lines.append(f"  {self.style.accent(command.name)}{suffix}")
            lines.extend(USAGE_INDENT + line for line in command.usage_lines)
        return "\n".join(lines)

    # =========================================================================
    # Session
    # =========================================================================

    def chain_summary(self, summary: ChainSummary) -> str:
        return (
            f"Local blockchain height: {summary.height}, "
            f"latest block: {self.style.accent(summary.latest_hash)}, "
            f"pending transactions: {summary.pending_transactions}"
        )

    def syncing(self) -> str:
        return self.style.muted("Syncing with the network...")

    def ready(self, peers: int) -> str:
        return self.style.success(f"Node is ready ({peers} peers). Type 'help' for commands.")

    def farewell(self) -> str:
        return "Goodbye!"

    # =========================================================================
    # Wallets
    # =========================================================================

    def wallet_created(self, wallet: Wallet, stored: bool) -> str:
        lines = [
            self.style.success(f"Created wallet '{wallet.name}'"),
            f"Public key: {wallet.public_key.hex()}",
            f"Address: {wallet.address.hex}",
        ]
        if stored:
            lines.append("Wallet stored in keychain")
        else:
            private = wallet.export_private_key()
            if private is not None:
                lines.append(f"Private key: {private.hex()}")
            lines.append(self.style.warning("Wallet is not stored; save the private key above"))
        return "\n".join(lines)

    def wallet_deleted(self, name: str) -> str:
        return self.style.success(f"Deleted wallet '{name}'")

    def wallet_list(self, entries: Iterable[tuple[str, Optional[WalletAddress]]]) -> str:
        entries = list(entries)
        if not entries:
            return "No wallets stored in keychain"
        lines = [self.style.bold("Wallets:")]
        for name, address in entries:
            shown = address.hex if address is not None else "?"
            lines.append(f"  {name}: {shown}")
        return "\n".join(lines)

    def wallet_export(self, wallet: Wallet) -> str:
        private = wallet.export_private_key()
        return "\n".join([
            f"Wallet '{wallet.name}'",
            f"Public key: {wallet.public_key.hex()}",
            f"Private key: {private.hex() if private is not None else 'unavailable'}",
            f"Address: {wallet.address.hex}",
        ])

    def balance(self, address: WalletAddress, value: int) -> str:
        return f"Balance of {address.short}: {self.style.bold(str(value))}"

    def transaction_sent(self, tx: Transaction) -> str:
        return "\n".join([
            self.style.success(f"Submitted transaction {tx.txid}"),
            f"  {tx.value} to {tx.recipient.hex}",
        ])

    def history(self, name: str, payments: Sequence[Payment]) -> str:
        if not payments:
            return f"No transaction history for '{name}'"
        lines = [self.style.bold(f"History of '{name}':")]
        for payment in payments:
            if payment.direction is PaymentDirection.SENT:
                arrow = self.style.warning("-")
                label = "to"
            else:
                arrow = self.style.success("+")
                label = "from"
            counterparty = payment.counterparty.hex if payment.counterparty else "block reward"
            pending = self.style.muted(" (pending)") if payment.pending else ""
            lines.append(f"  {arrow}{payment.value} {label} {counterparty}{pending}")
        return "\n".join(lines)

    # =========================================================================
    # Node queries
    # =========================================================================

    def peers(self, peers: Sequence[PeerAddress]) -> str:
        if not peers:
            return "No known peers"
        lines = [self.style.bold(f"Known peers ({len(peers)}):")]
        lines.extend(f"  {peer.url}" for peer in peers)
        return "\n".join(lines)

    def mempool(self, transactions: Sequence[Transaction]) -> str:
        if not transactions:
            return "Mempool is empty"
        lines = [self.style.bold(f"Mempool ({len(transactions)} transactions):")]
        for tx in transactions:
            sender = tx.sender.short if tx.sender else "coinbase"
            lines.append(f"  {tx.txid[:16]} {sender} -> {tx.recipient.short}: {tx.value}")
        return "\n".join(lines)

    def mining_report(self, report: MiningReport) -> str:
        lines: List[str] = []
        failures = {failure.attempt: failure for failure in report.failures}
        blocks = iter(report.blocks)
        for attempt in range(1, report.attempted + 1):
            prefix = f"[{attempt}/{report.requested}]"
            failure = failures.get(attempt)
            if failure is not None and failure.lost_race:
                lines.append(self.warning(f"{prefix} Someone else mined this block"))
            elif failure is not None:
                lines.append(self.warning(f"{prefix} Mining failed: {failure.reason}"))
            else:
                block = next(blocks)
                lines.append(self.style.success(f"{prefix} Mined block {block.height}: {block.hash}"))
        if report.interrupted:
            lines.append(self.warning(f"Mining stopped after {report.attempted} of {report.requested} attempts"))
        lines.append(
            f"Mined {len(report.blocks)} of {report.attempted} blocks in {report.elapsed:.2f}s"
        )
        return "\n".join(lines)

    # =========================================================================
    # Node events
    # =========================================================================

    def event(self, event: NodeEvent) -> Optional[str]:
        """Line shown for a node notification, or None if it is silent."""
        data = event.data
        kind = event.event_type

        if kind is EventType.CONNECTED:
            if data.get("success", True):
                return None
            return self.warning(f"Could not connect to the network: {data.get('error')}")
        if kind is EventType.PEER_ADDED:
            return self.style.muted(f"Peer added: {data['peer']}")
        if kind is EventType.PEER_REMOVED:
            return self.style.muted(f"Peer removed: {data['peer']}")
        if kind is EventType.TX_SENT:
            return self.style.muted(f"Sent {len(data['transactions'])} transactions to {data['peers']} peers")
        if kind is EventType.TX_RECEIVED:
            return self.style.accent(f"Received {data['count']} transactions")
        if kind is EventType.BLOCKS_SENT:
            return self.style.muted(f"Sent {_describe_blocks(data['blocks'])} to {data['peers']} peers")
        if kind is EventType.BLOCKS_RECEIVED:
            return self.style.accent(f"Received {data['count']} blocks")
        # TX_CREATED and BLOCK_MINED are reported by the command that caused them
        return None


def _describe_blocks(blocks: Sequence[Block]) -> str:
    if len(blocks) == 1:
        return f"block {blocks[0].height}"
    return f"{len(blocks)} blocks"


__all__ = [
    "USAGE_INDENT",
    "color_enabled",
    "Style",
    "Formatter",
]
