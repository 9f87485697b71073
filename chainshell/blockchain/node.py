"""
Node Collaborator Interfaces

Value types and capability protocols for the blockchain node and the
wallet keychain consumed by the shell. Any object satisfying these
protocols can be driven by a session; ``LocalNode`` and ``Keychain`` are
the reference implementations shipped with the package.

Author: Chainshell Team
License: MIT
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Sequence, runtime_checkable


ADDRESS_LENGTH = 32


# =============================================================================
# Addresses
# =============================================================================


class InvalidAddressError(ValueError):
    """Raised when a string is not a 32-byte hex wallet address."""


@dataclass(frozen=True)
class WalletAddress:
    """32-byte wallet address, canonically 64 lowercase hex characters."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != ADDRESS_LENGTH:
            raise InvalidAddressError(
                f"address must be {ADDRESS_LENGTH} bytes, got {len(self.raw)}"
            )

    @classmethod
    def from_hex(cls, value: str) -> WalletAddress:
        """
        Parse a hex address.

        Args:
            value: Hex string (either case, no prefix)

        Returns:
            WalletAddress

        Raises:
            InvalidAddressError: If the text is not hex or not 32 bytes long
        """
        text = value.strip()
        try:
            raw = bytes.fromhex(text)
        except ValueError as e:
            raise InvalidAddressError(f"not a hex string: {value!r}") from e
        # bytes.fromhex tolerates inner whitespace
        if len(text) != ADDRESS_LENGTH * 2:
            raise InvalidAddressError(f"address must be {ADDRESS_LENGTH * 2} hex characters")
        return cls(raw)

    @classmethod
    def for_public_key(cls, public_key: bytes) -> WalletAddress:
        """Derive the address of a raw public key (SHA-256)."""
        return cls(hashlib.sha256(public_key).digest())

    @property
    def hex(self) -> str:
        return self.raw.hex()

    @property
    def short(self) -> str:
        """Abbreviated form used in history listings."""
        return f"{self.hex[:8]}…{self.hex[-8:]}"

    def __str__(self) -> str:
        return self.hex


# =============================================================================
# Ledger Value Types
# =============================================================================


@dataclass(frozen=True)
class PeerAddress:
    """Network address of a known peer."""

    host: str
    port: int

    @classmethod
    def parse(cls, url: str) -> PeerAddress:
        """Parse ``ws://host:port`` or ``host:port``."""
        location = url.split("://", 1)[-1].rstrip("/")
        host, _, port = location.rpartition(":")
        if not host or not port.isdigit():
            raise ValueError(f"Invalid peer address: {url}")
        return cls(host=host, port=int(port))

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class Transaction:
    """
    Signed value transfer.

    Coinbase transactions have no sender and an empty signature.
    """

    sender_public_key: bytes
    recipient: WalletAddress
    value: int
    timestamp: float
    signature: bytes = b""
    coinbase: bool = False

    @property
    def sender(self) -> WalletAddress | None:
        if self.coinbase:
            return None
        return WalletAddress.for_public_key(self.sender_public_key)

    def signing_payload(self) -> bytes:
        """Canonical bytes covered by the signature."""
        body = {
            "sender": self.sender_public_key.hex(),
            "recipient": self.recipient.hex,
            "value": self.value,
            "timestamp": self.timestamp,
            "coinbase": self.coinbase,
        }
        return json.dumps(body, sort_keys=True).encode()

    @property
    def txid(self) -> str:
        return hashlib.sha256(self.signing_payload() + self.signature).hexdigest()

    def to_dict(self) -> dict[str, Any]:
        return {
            "sender_public_key": self.sender_public_key.hex(),
            "recipient": self.recipient.hex,
            "value": self.value,
            "timestamp": self.timestamp,
            "signature": self.signature.hex(),
            "coinbase": self.coinbase,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        return cls(
            sender_public_key=bytes.fromhex(data["sender_public_key"]),
            recipient=WalletAddress.from_hex(data["recipient"]),
            value=int(data["value"]),
            timestamp=float(data["timestamp"]),
            signature=bytes.fromhex(data.get("signature", "")),
            coinbase=bool(data.get("coinbase", False)),
        )


@dataclass(frozen=True)
class Block:
    """Mined block."""

    height: int
    previous_hash: str
    timestamp: float
    nonce: int
    transactions: tuple[Transaction, ...] = field(default_factory=tuple)

    def header_bytes(self) -> bytes:
        header = {
            "height": self.height,
            "previous_hash": self.previous_hash,
            "timestamp": self.timestamp,
            "nonce": self.nonce,
            "transactions": [tx.txid for tx in self.transactions],
        }
        return json.dumps(header, sort_keys=True).encode()

    @property
    def hash(self) -> str:
        return hashlib.sha256(self.header_bytes()).hexdigest()

    def to_dict(self) -> dict[str, Any]:
        return {
            "height": self.height,
            "previous_hash": self.previous_hash,
            "timestamp": self.timestamp,
            "nonce": self.nonce,
            "transactions": [tx.to_dict() for tx in self.transactions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Block:
        return cls(
            height=int(data["height"]),
            previous_hash=data["previous_hash"],
            timestamp=float(data["timestamp"]),
            nonce=int(data["nonce"]),
            transactions=tuple(Transaction.from_dict(tx) for tx in data["transactions"]),
        )


class PaymentDirection(Enum):
    SENT = "sent"
    RECEIVED = "received"


@dataclass(frozen=True)
class Payment:
    """One line of a wallet's transaction history."""

    direction: PaymentDirection
    counterparty: WalletAddress | None
    value: int
    txid: str
    pending: bool = False


@dataclass(frozen=True)
class ChainSummary:
    """Startup summary of local node state."""

    height: int
    latest_hash: str
    pending_transactions: int


# =============================================================================
# Node Failures
# =============================================================================


class NodeError(Exception):
    """Base class for failures raised by a node collaborator."""


class TransactionError(NodeError):
    """Base class for rejected transactions."""


class InsufficientBalanceError(TransactionError):
    pass


class InvalidValueError(TransactionError):
    pass


class UnverifiedTransactionError(TransactionError):
    pass


class SourceEqualsDestinationError(TransactionError):
    pass


class MiningFailure(NodeError):
    """A mining attempt lost the race for the next block."""


class NetworkUnavailableError(NodeError):
    """The node could not reach the network."""


class StoreError(NodeError):
    """Persisted state could not be opened or written."""


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class Wallet(Protocol):
    name: str

    @property
    def public_key(self) -> bytes: ...

    @property
    def address(self) -> WalletAddress: ...

    def sign(self, payload: bytes) -> bytes: ...

    def export_private_key(self) -> bytes | None: ...


class WalletStore(Protocol):
    """Keychain capability contract."""

    def create_wallet(self, name: str, persist: bool) -> Wallet | None: ...

    def load_key_pair(self, name: str) -> Wallet | None: ...

    def list_available_names(self) -> Sequence[str]: ...

    def delete_keys(self, name: str) -> bool: ...


class Node(Protocol):
    """Blockchain node capability contract."""

    def connect(self) -> None:
        """Start peer discovery; publishes ``Connected`` exactly once."""
        ...

    def close(self) -> None: ...

    def mine_block(self, miner_address: WalletAddress) -> Block: ...

    def create_transaction(
        self,
        sender: Wallet,
        recipient_address: WalletAddress,
        value: int,
    ) -> Transaction: ...

    def balance(self, address: WalletAddress) -> int: ...

    def mempool(self) -> Sequence[Transaction]: ...

    def peers(self) -> Sequence[PeerAddress]: ...

    def current_height(self) -> int: ...

    def latest_block_hash(self) -> str: ...

    def payments(self, wallet: Wallet) -> Sequence[Payment]: ...


__all__ = [
    "ADDRESS_LENGTH",
    "InvalidAddressError",
    "WalletAddress",
    "PeerAddress",
    "Transaction",
    "Block",
    "PaymentDirection",
    "Payment",
    "ChainSummary",
    "NodeError",
    "TransactionError",
    "InsufficientBalanceError",
    "InvalidValueError",
    "UnverifiedTransactionError",
    "SourceEqualsDestinationError",
    "MiningFailure",
    "NetworkUnavailableError",
    "StoreError",
    "Wallet",
    "WalletStore",
    "Node",
]
