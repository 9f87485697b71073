"""
Blockchain Collaborators for Chainshell.

Interfaces and reference implementations of everything the shell drives:

Components:
- Node / WalletStore: capability protocols consumed by the shell
- EventBus: ordered channel of node notifications
- LocalNode: in-process reference node (proof-of-work, mempool, peers)
- BlockStore: SQLite persistence for blocks and mempool
- Keychain: Ed25519 wallet storage

Author: Chainshell Team
License: MIT
"""

from .node import (
    Block,
    ChainSummary,
    InsufficientBalanceError,
    InvalidAddressError,
    InvalidValueError,
    MiningFailure,
    NetworkUnavailableError,
    Node,
    NodeError,
    Payment,
    PaymentDirection,
    PeerAddress,
    SourceEqualsDestinationError,
    StoreError,
    Transaction,
    TransactionError,
    UnverifiedTransactionError,
    Wallet,
    WalletAddress,
    WalletStore,
)
from .events import (
    EventBus,
    EventType,
    NodeEvent,
)
from .block_store import BlockStore
from .keychain import Keychain, KeyPairWallet
from .local_node import LocalNode

__all__ = [
    # Interfaces and values
    "Block",
    "ChainSummary",
    "Node",
    "Payment",
    "PaymentDirection",
    "PeerAddress",
    "Transaction",
    "Wallet",
    "WalletAddress",
    "WalletStore",
    # Failures
    "InsufficientBalanceError",
    "InvalidAddressError",
    "InvalidValueError",
    "MiningFailure",
    "NetworkUnavailableError",
    "NodeError",
    "SourceEqualsDestinationError",
    "StoreError",
    "TransactionError",
    "UnverifiedTransactionError",
    # Events
    "EventBus",
    "EventType",
    "NodeEvent",
    # Reference implementations
    "BlockStore",
    "Keychain",
    "KeyPairWallet",
    "LocalNode",
]
