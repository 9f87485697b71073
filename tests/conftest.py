"""
Pytest configuration and shared fixtures for Chainshell tests.

This module provides reusable test fixtures for:
- Temporary data directories and configurations
- Event bus, block store, keychain and local node
- A scriptable fake node for mining and error paths
- Scripted terminal input and captured output
- Fully wired sessions

Author: Chainshell Team
License: MIT
"""

from typing import Iterable, List, Optional

import pytest

from chainshell.blockchain import (
    Block,
    BlockStore,
    EventBus,
    EventType,
    Keychain,
    LocalNode,
    Payment,
    PeerAddress,
    Transaction,
    WalletAddress,
)
from chainshell.cli.session import Session, open_session
from chainshell.config import LoggingConfig, NodeConfig, ShellConfig, StorageConfig


ZERO_ADDRESS = "0" * 64
MINER_ADDRESS = "ab" * 32


# ============================================================================
# Terminal Doubles
# ============================================================================


class ScriptedReader:
    """Line reader returning canned answers; EOF once they run out."""

    def __init__(self, answers: Iterable[str] = ()):
        self.answers = list(answers)
        self.prompts: List[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)


class FakeNode:
    """
    In-memory ``Node`` with scripted mining outcomes.

    ``mine_outcomes`` holds, per attempt, ``None`` for success or an
    exception to raise.
    """

    def __init__(self, events: Optional[EventBus] = None, mine_outcomes: Iterable = ()):
        self.events = events
        self.mine_outcomes = list(mine_outcomes)
        self.mine_calls: List[WalletAddress] = []
        self.balances: dict = {}
        self.transactions: List[Transaction] = []
        self.peer_list: List[PeerAddress] = [PeerAddress("127.0.0.1", 9000)]
        self.payment_list: List[Payment] = []
        self.create_error: Optional[Exception] = None
        self.connected = False
        self.closed = False
        self.height = 0

    def connect(self) -> None:
        self.connected = True
        if self.events is not None:
            self.events.emit(EventType.CONNECTED, success=True, error=None)

    def close(self) -> None:
        self.closed = True

    def mine_block(self, miner_address: WalletAddress) -> Block:
        self.mine_calls.append(miner_address)
        outcome = self.mine_outcomes.pop(0) if self.mine_outcomes else None
        if outcome is not None:
            raise outcome
        block = Block(height=self.height, previous_hash="0" * 64, timestamp=0.0, nonce=self.height)
        self.height += 1
        return block

    def create_transaction(self, sender, recipient_address, value):
        if self.create_error is not None:
            raise self.create_error
        tx = Transaction(
            sender_public_key=sender.public_key,
            recipient=recipient_address,
            value=value,
            timestamp=0.0,
        )
        self.transactions.append(tx)
        return tx

    def balance(self, address: WalletAddress) -> int:
        return self.balances.get(address.hex, 0)

    def mempool(self):
        return list(self.transactions)

    def peers(self):
        return list(self.peer_list)

    def current_height(self) -> int:
        return self.height

    def latest_block_hash(self) -> str:
        return "0" * 64

    def payments(self, wallet):
        return list(self.payment_list)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def data_dir(tmp_path):
    """Create a data directory."""
    path = tmp_path / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def shell_config(data_dir):
    """Configuration with trivial proof-of-work and no colors."""
    return ShellConfig(
        node=NodeConfig(difficulty_bits=0, block_reward=10),
        storage=StorageConfig(data_dir=data_dir),
        logging=LoggingConfig(log_level="DEBUG"),
        color=False,
    )


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def block_store():
    store = BlockStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def local_node(shell_config, block_store, events):
    return LocalNode(shell_config.node, block_store, events)


@pytest.fixture
def keychain(data_dir):
    return Keychain(data_dir / "keychain")


@pytest.fixture
def fake_node(events):
    return FakeNode(events=events)


@pytest.fixture
def miner_address():
    return WalletAddress.from_hex(MINER_ADDRESS)


# ============================================================================
# Session Fixtures
# ============================================================================


@pytest.fixture
def output():
    """Captured output lines."""
    return []


@pytest.fixture
def make_session(shell_config, fake_node, keychain, events, output):
    """Factory building a session over the fake node with scripted input."""

    def _make(answers: Iterable[str] = (), node=None, config: Optional[ShellConfig] = None) -> Session:
        return open_session(
            config or shell_config,
            out=output.append,
            read_line=ScriptedReader(answers),
            node=node or fake_node,
            keychain=keychain,
            events=events,
        )

    return _make


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
