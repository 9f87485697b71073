"""
Local Reference Node

In-process implementation of the ``Node`` protocol used by the shell
when no external node is supplied.

Features:
- Account-model ledger rebuilt from the SQLite block store
- SHA-256 proof-of-work with configurable difficulty
- Ed25519-signed transactions and a persisted mempool
- Configured peer list announced on connect (no sockets)
- Blocks and transactions accepted from outside via ``receive_*``

Author: Chainshell Team
License: MIT
"""

from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import Dict, List, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import ed25519

from ..config import NodeConfig
from ..monitoring.logging_config import get_logger
from .block_store import BlockStore
from .events import EventBus, EventType
from .node import (
    Block,
    InsufficientBalanceError,
    InvalidValueError,
    MiningFailure,
    NetworkUnavailableError,
    Payment,
    PaymentDirection,
    PeerAddress,
    SourceEqualsDestinationError,
    Transaction,
    UnverifiedTransactionError,
    Wallet,
    WalletAddress,
)

logger = get_logger("node")

GENESIS_PREVIOUS_HASH = "0" * 64
MAX_VALUE = 2**64 - 1


def meets_difficulty(block_hash: str, difficulty_bits: int) -> bool:
    """Check that a hex hash has ``difficulty_bits`` leading zero bits."""
    if difficulty_bits == 0:
        return True
    return int(block_hash, 16) >> (256 - difficulty_bits) == 0


def verify_signature(tx: Transaction) -> bool:
    """Verify a transaction's Ed25519 signature."""
    if tx.coinbase:
        return True
    try:
        public_key = ed25519.Ed25519PublicKey.from_public_bytes(tx.sender_public_key)
        public_key.verify(tx.signature, tx.signing_payload())
    except (InvalidSignature, ValueError):
        return False
    return True


class LocalNode:
    """
    Single-process blockchain node.

    Usage:
        store = BlockStore(config.storage.block_store_path)
        node = LocalNode(config.node, store, events)

        threading.Thread(target=node.connect).start()
        block = node.mine_block(wallet.address)
    """

    def __init__(
        self,
        config: NodeConfig,
        store: BlockStore,
        events: EventBus,
    ):
        """
        Initialize node from persisted state.

        Args:
            config: Node configuration
            store: Opened block store
            events: Channel receiving node notifications
        """
        self.config = config
        self.store = store
        self.events = events

        self._lock = threading.RLock()
        self._blocks: List[Block] = store.load_blocks()
        self._mempool: List[Transaction] = store.load_mempool()
        self._balances: Dict[bytes, int] = {}
        for block in self._blocks:
            self._apply_block(block)

        self._peers: List[PeerAddress] = []
        self._connected = False
        self._closed = False

        logger.info(
            f"LocalNode initialized: type={config.node_type}, "
            f"height={len(self._blocks)}, mempool={len(self._mempool)}"
        )

    # -------------------------------------------------------------------------
    # Network
    # -------------------------------------------------------------------------

    def connect(self) -> None:
        """Announce configured peers, then publish ``CONNECTED``."""
        if self._connected:
            return

        try:
            for url in self.config.peers:
                peer = PeerAddress.parse(url)
                with self._lock:
                    self._peers.append(peer)
                self.events.emit(EventType.PEER_ADDED, peer=peer)
        except ValueError as e:
            self.events.emit(EventType.CONNECTED, success=False, error=str(e))
            raise NetworkUnavailableError(str(e)) from e

        self._connected = True
        logger.info(f"Node connected with {len(self._peers)} peers")
        self.events.emit(EventType.CONNECTED, success=True, error=None)

    def remove_peer(self, peer: PeerAddress) -> None:
        with self._lock:
            if peer not in self._peers:
                return
            self._peers.remove(peer)
        self.events.emit(EventType.PEER_REMOVED, peer=peer)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.store.close()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def peers(self) -> List[PeerAddress]:
        with self._lock:
            return list(self._peers)

    def mempool(self) -> List[Transaction]:
        with self._lock:
            return list(self._mempool)

    def current_height(self) -> int:
        with self._lock:
            return len(self._blocks)

    def latest_block_hash(self) -> str:
        with self._lock:
            return self._blocks[-1].hash if self._blocks else GENESIS_PREVIOUS_HASH

    def balance(self, address: WalletAddress) -> int:
        """Confirmed balance of an address."""
        with self._lock:
            return self._balances.get(address.raw, 0)

    def payments(self, wallet: Wallet) -> List[Payment]:
        """History of a wallet: confirmed first, then pending."""
        address = wallet.address
        with self._lock:
            confirmed = [tx for block in self._blocks for tx in block.transactions]
            pending = list(self._mempool)

        history: List[Payment] = []
        for txs, is_pending in ((confirmed, False), (pending, True)):
            for tx in txs:
                if tx.sender == address:
                    history.append(Payment(PaymentDirection.SENT, tx.recipient, tx.value, tx.txid, is_pending))
                elif tx.recipient == address:
                    history.append(Payment(PaymentDirection.RECEIVED, tx.sender, tx.value, tx.txid, is_pending))
        return history

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def create_transaction(
        self,
        sender: Wallet,
        recipient_address: WalletAddress,
        value: int,
    ) -> Transaction:
        """
        Create, sign and queue a transaction.

        Raises:
            InvalidValueError: value is zero or out of range
            SourceEqualsDestinationError: recipient is the sender
            InsufficientBalanceError: spendable balance below value
            UnverifiedTransactionError: signature does not verify
        """
        if value <= 0 or value > MAX_VALUE:
            raise InvalidValueError(f"invalid value: {value}")
        if recipient_address == sender.address:
            raise SourceEqualsDestinationError(sender.address.hex)

        unsigned = Transaction(
            sender_public_key=sender.public_key,
            recipient=recipient_address,
            value=value,
            timestamp=time.time(),
        )
        tx = replace(unsigned, signature=sender.sign(unsigned.signing_payload()))
        self._admit(tx)

        self.events.emit(EventType.TX_CREATED, transactions=[tx])
        peers = self.peers()
        if peers:
            self.events.emit(EventType.TX_SENT, transactions=[tx], peers=len(peers))
        logger.info(f"Transaction created: {tx.txid[:16]} value={value}")
        return tx

    def receive_transactions(self, transactions: List[Transaction]) -> int:
        """
        Accept transactions relayed by a peer.

        Returns:
            Number of transactions admitted to the mempool
        """
        admitted = 0
        for tx in transactions:
            try:
                self._admit(tx)
            except (InvalidValueError, InsufficientBalanceError, UnverifiedTransactionError) as e:
                logger.warning(f"Rejected relayed transaction {tx.txid[:16]}: {type(e).__name__}")
                continue
            admitted += 1
        if admitted:
            self.events.emit(EventType.TX_RECEIVED, count=admitted)
        return admitted

    def _admit(self, tx: Transaction) -> None:
        if not verify_signature(tx):
            raise UnverifiedTransactionError(tx.txid)
        if tx.value <= 0 or tx.value > MAX_VALUE:
            raise InvalidValueError(f"invalid value: {tx.value}")

        with self._lock:
            if any(pending.txid == tx.txid for pending in self._mempool):
                return
            if self._spendable(tx.sender) < tx.value:
                raise InsufficientBalanceError(
                    f"{tx.sender} cannot spend {tx.value}"
                )
            self._mempool.append(tx)
            self.store.replace_mempool(self._mempool)

    def _spendable(self, address: Optional[WalletAddress]) -> int:
        if address is None:
            return 0
        outgoing = sum(tx.value for tx in self._mempool if tx.sender == address)
        return self._balances.get(address.raw, 0) - outgoing

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def mine_block(self, miner_address: WalletAddress) -> Block:
        """
        Produce the next block.

        The candidate is built from the tip seen at the start of the search.
        If another block is appended meanwhile the attempt fails.

        Raises:
            MiningFailure: The tip moved before a nonce was found
        """
        with self._lock:
            height = len(self._blocks)
            previous_hash = self.latest_block_hash()
            candidates = list(self._mempool)

        coinbase = Transaction(
            sender_public_key=b"",
            recipient=miner_address,
            value=self.config.block_reward,
            timestamp=time.time(),
            coinbase=True,
        )
        transactions = (coinbase, *candidates)
        timestamp = time.time()

        logger.debug(f"Mining block {height} on {previous_hash[:16]} ({len(candidates)} txs)")
        nonce = 0
        while True:
            block = Block(
                height=height,
                previous_hash=previous_hash,
                timestamp=timestamp,
                nonce=nonce,
                transactions=transactions,
            )
            if meets_difficulty(block.hash, self.config.difficulty_bits):
                break
            nonce += 1
            # Stop early once a competing block arrives
            if nonce % 4096 == 0 and self.current_height() != height:
                raise MiningFailure(f"block {height} was produced by another node")

        with self._lock:
            if len(self._blocks) != height:
                raise MiningFailure(f"block {height} was produced by another node")
            self._append(block)

        self.events.emit(EventType.BLOCK_MINED, blocks=[block])
        peers = self.peers()
        if peers:
            self.events.emit(EventType.BLOCKS_SENT, blocks=[block], peers=len(peers))
        logger.info(f"Mined block {height}: {block.hash}")
        return block

    def receive_blocks(self, blocks: List[Block]) -> int:
        """
        Accept blocks produced elsewhere.

        Blocks that do not extend the current tip are ignored.

        Returns:
            Number of blocks appended
        """
        appended = 0
        with self._lock:
            for block in blocks:
                if block.height != len(self._blocks) or block.previous_hash != self.latest_block_hash():
                    logger.warning(f"Ignoring block {block.height}: does not extend tip")
                    continue
                if not meets_difficulty(block.hash, self.config.difficulty_bits):
                    logger.warning(f"Ignoring block {block.height}: insufficient work")
                    continue
                if not all(verify_signature(tx) for tx in block.transactions):
                    logger.warning(f"Ignoring block {block.height}: bad signature")
                    continue
                self._append(block)
                appended += 1
        if appended:
            self.events.emit(EventType.BLOCKS_RECEIVED, count=appended)
        return appended

    def _append(self, block: Block) -> None:
        """Append a validated block. Caller holds the lock."""
        self.store.append_block(block)
        self._blocks.append(block)
        self._apply_block(block)

        included = {tx.txid for tx in block.transactions}
        self._mempool = [tx for tx in self._mempool if tx.txid not in included]
        self.store.replace_mempool(self._mempool)

    def _apply_block(self, block: Block) -> None:
        for tx in block.transactions:
            sender = tx.sender
            if sender is not None:
                self._balances[sender.raw] = self._balances.get(sender.raw, 0) - tx.value
            self._balances[tx.recipient.raw] = self._balances.get(tx.recipient.raw, 0) + tx.value


__all__ = [
    "GENESIS_PREVIOUS_HASH",
    "meets_difficulty",
    "verify_signature",
    "LocalNode",
]
