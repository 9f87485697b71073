"""
Tests for the output formatter.

Author: Chainshell Team
License: MIT
"""

from chainshell.blockchain import (
    Block,
    ChainSummary,
    EventType,
    NodeEvent,
    Payment,
    PaymentDirection,
    PeerAddress,
    WalletAddress,
)
from chainshell.cli.formatter import Formatter, Style, color_enabled
from chainshell.cli.grammar import MINE, WALLET
from chainshell.cli.mining import AttemptFailure, MiningReport

from conftest import MINER_ADDRESS


def plain():
    return Formatter(Style(enabled=False))


class TestStyle:
    """Test suite for NO_COLOR handling."""

    def test_no_color_disables(self):
        assert not color_enabled(True, {"NO_COLOR": ""})
        assert not color_enabled(True, {"NO_COLOR": "1"})
        assert color_enabled(True, {})
        assert not color_enabled(False, {})

    def test_no_color_from_environment(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert Formatter().style.enabled is False

    def test_enabled_style_emits_ansi(self):
        assert "\x1b[" in Style(enabled=True).error("x")
        assert Style(enabled=False).error("x") == "x"


class TestFormatter:
    """Test suite for display strings."""

    def test_error_and_usage(self):
        formatter = plain()
        assert formatter.error("Invalid value") == "Error: Invalid value"
        assert formatter.usage(MINE).splitlines()[1].startswith("    > mine [wallet address] <--num>")

    def test_balance_contains_value(self):
        address = WalletAddress.from_hex("0" * 64)
        assert plain().balance(address, 0).endswith(": 0")
        assert "1234" in plain().balance(address, 1234)

    def test_mining_report(self):
        block = Block(height=5, previous_hash="0" * 64, timestamp=0.0, nonce=1)
        report = MiningReport(
            requested=3,
            attempted=2,
            blocks=[block],
            failures=[AttemptFailure(attempt=1, reason="lost")],
            elapsed=0.5,
        )
        lines = plain().mining_report(report).splitlines()
        assert lines[0] == "Warning: [1/3] Someone else mined this block"
        assert lines[1] == f"[2/3] Mined block 5: {block.hash}"
        assert lines[2] == "Warning: Mining stopped after 2 of 3 attempts"
        assert lines[3] == "Mined 1 of 2 blocks in 0.50s"

    def test_mining_report_other_failure(self):
        report = MiningReport(
            requested=1,
            attempted=1,
            failures=[AttemptFailure(attempt=1, reason="disk full", lost_race=False)],
        )
        lines = plain().mining_report(report).splitlines()
        assert lines[0] == "Warning: [1/1] Mining failed: disk full"
        assert lines[1] == "Mined 0 of 1 blocks in 0.00s"

    def test_chain_summary_is_one_line(self):
        summary = ChainSummary(height=3, latest_hash="f" * 64, pending_transactions=2)
        text = plain().chain_summary(summary)
        assert text == f"Local blockchain height: 3, latest block: {'f' * 64}, pending transactions: 2"

    def test_usage_of_one_subcommand(self):
        balance = WALLET.subcommand("balance")
        lines = plain().usage(WALLET, balance).splitlines()
        assert lines == ["Usage:", "    > wallet balance [wallet address] - Show wallet balance."]
        assert len(plain().usage(WALLET).splitlines()) == 1 + len(WALLET.usage_lines)

    def test_history(self):
        counterparty = WalletAddress.from_hex(MINER_ADDRESS)
        payments = [
            Payment(PaymentDirection.RECEIVED, None, 10, "a" * 64),
            Payment(PaymentDirection.SENT, counterparty, 4, "b" * 64, pending=True),
        ]
        lines = plain().history("alice", payments).splitlines()
        assert lines[1] == "  +10 from block reward"
        assert lines[2] == f"  -4 to {MINER_ADDRESS} (pending)"

    def test_peers(self):
        assert plain().peers([]) == "No known peers"
        text = plain().peers([PeerAddress("h", 1), PeerAddress("k", 2)])
        assert text.splitlines() == ["Known peers (2):", "  ws://h:1", "  ws://k:2"]

    def test_events(self):
        formatter = plain()
        assert formatter.event(NodeEvent(EventType.CONNECTED, {"success": True})) is None
        assert formatter.event(NodeEvent(EventType.TX_CREATED, {"transactions": []})) is None
        assert formatter.event(NodeEvent(EventType.PEER_ADDED, {"peer": PeerAddress("h", 1)})) == "Peer added: ws://h:1"
        assert formatter.event(NodeEvent(EventType.BLOCKS_RECEIVED, {"count": 3})) == "Received 3 blocks"
