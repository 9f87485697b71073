"""
Tests for the reference node, block store and keychain.

Author: Chainshell Team
License: MIT
"""

import json
import threading

import pytest

from chainshell.blockchain import (
    Block,
    BlockStore,
    EventBus,
    EventType,
    InsufficientBalanceError,
    InvalidValueError,
    Keychain,
    KeyPairWallet,
    LocalNode,
    MiningFailure,
    NetworkUnavailableError,
    PaymentDirection,
    PeerAddress,
    SourceEqualsDestinationError,
    StoreError,
    UnverifiedTransactionError,
    WalletAddress,
)
from chainshell.blockchain.local_node import GENESIS_PREVIOUS_HASH, meets_difficulty, verify_signature
from chainshell.config import NodeConfig


@pytest.fixture
def alice():
    return KeyPairWallet.generate("alice")


@pytest.fixture
def bob():
    return KeyPairWallet.generate("bob")


class TestWalletAddress:
    """Test suite for address parsing."""

    def test_round_trip_canonical_lowercase(self):
        address = WalletAddress.from_hex("AB" * 32)
        assert address.hex == "ab" * 32
        assert str(address) == "ab" * 32

    def test_rejects_wrong_length(self):
        with pytest.raises(ValueError):
            WalletAddress(b"\x00" * 31)

    def test_public_key_address_is_sha256(self, alice):
        assert len(alice.address.raw) == 32
        assert alice.address == WalletAddress.for_public_key(alice.public_key)

    def test_peer_address_parse(self):
        assert PeerAddress.parse("ws://10.0.0.1:9000") == PeerAddress("10.0.0.1", 9000)
        assert PeerAddress.parse("node:80").url == "ws://node:80"
        with pytest.raises(ValueError):
            PeerAddress.parse("nohost")


class TestLocalNodeMining:
    """Test suite for block production."""

    def test_mine_pays_reward(self, local_node, alice):
        block = local_node.mine_block(alice.address)

        assert block.height == 0
        assert block.previous_hash == GENESIS_PREVIOUS_HASH
        assert block.transactions[0].coinbase
        assert local_node.balance(alice.address) == 10
        assert local_node.current_height() == 1
        assert local_node.latest_block_hash() == block.hash

    def test_mined_block_meets_difficulty(self, block_store, events, alice):
        node = LocalNode(NodeConfig(difficulty_bits=8), block_store, events)
        block = node.mine_block(alice.address)
        assert meets_difficulty(block.hash, 8)
        assert block.hash.startswith("00")

    def test_mining_publishes_event(self, local_node, events, alice):
        received = []
        events.subscribe(EventType.BLOCK_MINED, received.append)
        local_node.mine_block(alice.address)
        events.drain()
        assert received[0].data["blocks"][0].height == 0

    def test_competing_block_fails_attempt(self, local_node, alice, mocker):
        """Test that a block appended during the search loses the race."""
        competitor = Block(height=0, previous_hash=GENESIS_PREVIOUS_HASH, timestamp=1.0, nonce=0)

        def competitor_arrives(block_hash, bits):
            if not local_node._blocks:
                local_node._blocks.append(competitor)
            return True

        mocker.patch("chainshell.blockchain.local_node.meets_difficulty", side_effect=competitor_arrives)
        with pytest.raises(MiningFailure, match="another node"):
            local_node.mine_block(alice.address)
        assert local_node.balance(alice.address) == 0


class TestLocalNodeTransactions:
    """Test suite for transaction validation."""

    def test_send_moves_funds_after_mining(self, local_node, alice, bob):
        local_node.mine_block(alice.address)
        tx = local_node.create_transaction(alice, bob.address, 4)

        assert local_node.mempool() == [tx]
        assert verify_signature(tx)

        local_node.mine_block(bob.address)
        assert local_node.balance(alice.address) == 6
        assert local_node.balance(bob.address) == 14
        assert local_node.mempool() == []

    def test_zero_value_is_invalid(self, local_node, alice, bob):
        local_node.mine_block(alice.address)
        with pytest.raises(InvalidValueError):
            local_node.create_transaction(alice, bob.address, 0)

    def test_insufficient_balance(self, local_node, alice, bob):
        with pytest.raises(InsufficientBalanceError):
            local_node.create_transaction(alice, bob.address, 1)

    def test_pending_outgoing_counts_against_balance(self, local_node, alice, bob):
        local_node.mine_block(alice.address)
        local_node.create_transaction(alice, bob.address, 7)
        with pytest.raises(InsufficientBalanceError):
            local_node.create_transaction(alice, bob.address, 7)

    def test_send_to_self(self, local_node, alice):
        local_node.mine_block(alice.address)
        with pytest.raises(SourceEqualsDestinationError):
            local_node.create_transaction(alice, alice.address, 1)

    def test_wrong_key_signature_unverified(self, local_node, alice, bob, mocker):
        """Test that a signature by another key is rejected."""
        local_node.mine_block(alice.address)
        mocker.patch.object(alice, "sign", side_effect=bob.sign)
        with pytest.raises(UnverifiedTransactionError):
            local_node.create_transaction(alice, bob.address, 1)

    def test_history(self, local_node, alice, bob):
        local_node.mine_block(alice.address)
        local_node.create_transaction(alice, bob.address, 3)

        history = local_node.payments(alice)
        assert history[0].direction is PaymentDirection.RECEIVED
        assert history[0].counterparty is None
        assert not history[0].pending
        assert history[1].direction is PaymentDirection.SENT
        assert history[1].counterparty == bob.address
        assert history[1].pending

        assert local_node.payments(bob)[0].direction is PaymentDirection.RECEIVED

    def test_events_for_created_and_sent(self, block_store, events, alice, bob):
        node = LocalNode(NodeConfig(difficulty_bits=0, peers=["ws://127.0.0.1:9000"]), block_store, events)
        node.connect()
        node.mine_block(alice.address)
        node.create_transaction(alice, bob.address, 1)

        kinds = []
        for event_type in EventType:
            events.subscribe(event_type, lambda e: kinds.append(e.event_type))
        events.drain()

        assert kinds.index(EventType.TX_CREATED) < kinds.index(EventType.TX_SENT)
        assert EventType.BLOCKS_SENT in kinds


class TestLocalNodeNetwork:
    """Test suite for connect and relayed data."""

    def test_connect_announces_peers_then_connected(self, block_store, events):
        node = LocalNode(NodeConfig(peers=["ws://a:1", "b:2"]), block_store, events)
        kinds = []
        for event_type in EventType:
            events.subscribe(event_type, lambda e: kinds.append(e.event_type))

        node.connect()
        node.connect()
        events.drain()

        assert kinds == [EventType.PEER_ADDED, EventType.PEER_ADDED, EventType.CONNECTED]
        assert [p.port for p in node.peers()] == [1, 2]

    def test_bad_peer_reports_failed_connect(self, events):
        config = NodeConfig.model_construct(peers=["broken"], node_type="peer", difficulty_bits=0, block_reward=10)
        node = LocalNode(config, BlockStore(":memory:"), events)
        flag = threading.Event()
        events.signal_on(EventType.CONNECTED, flag)

        with pytest.raises(NetworkUnavailableError):
            node.connect()

        assert flag.is_set()
        events.drain()
        connected = events.get_event_history(EventType.CONNECTED)[-1]
        assert connected.data["success"] is False

    def test_remove_peer(self, block_store, events):
        node = LocalNode(NodeConfig(peers=["a:1"]), block_store, events)
        node.connect()
        node.remove_peer(PeerAddress("a", 1))
        assert node.peers() == []
        events.drain()
        assert events.get_event_history(EventType.PEER_REMOVED)

    def test_receive_blocks_extends_tip(self, shell_config, alice, bob):
        producer = LocalNode(shell_config.node, BlockStore(":memory:"), EventBus())
        block = producer.mine_block(bob.address)

        receiver = LocalNode(shell_config.node, BlockStore(":memory:"), EventBus())
        assert receiver.receive_blocks([block]) == 1
        assert receiver.balance(bob.address) == 10
        assert receiver.receive_blocks([block]) == 0

    def test_receive_transactions(self, shell_config, alice, bob):
        producer = LocalNode(shell_config.node, BlockStore(":memory:"), EventBus())
        receiver = LocalNode(shell_config.node, BlockStore(":memory:"), EventBus())
        block = producer.mine_block(alice.address)
        receiver.receive_blocks([block])

        tx = producer.create_transaction(alice, bob.address, 2)
        assert receiver.receive_transactions([tx]) == 1
        assert receiver.mempool() == [tx]


class TestBlockStore:
    """Test suite for SQLite persistence."""

    def test_survives_reopen(self, data_dir, alice, bob):
        """Test that height, balances and mempool are preserved."""
        path = data_dir / "chain.sqlite"
        config = NodeConfig(difficulty_bits=0)

        node = LocalNode(config, BlockStore(path), EventBus())
        node.mine_block(alice.address)
        node.mine_block(alice.address)
        tx = node.create_transaction(alice, bob.address, 5)
        latest = node.latest_block_hash()
        node.close()

        reopened = LocalNode(config, BlockStore(path), EventBus())
        assert reopened.current_height() == 2
        assert reopened.latest_block_hash() == latest
        assert reopened.balance(alice.address) == 20
        assert [t.txid for t in reopened.mempool()] == [tx.txid]
        reopened.close()

    def test_payloads_are_json(self, block_store, alice):
        node = LocalNode(NodeConfig(difficulty_bits=0), block_store, EventBus())
        block = node.mine_block(alice.address)
        row = block_store._conn.execute("SELECT payload FROM blocks").fetchone()
        assert Block.from_dict(json.loads(row[0])) == block

    def test_write_failure_raises_store_error(self, alice):
        """Test that sqlite failures surface as StoreError."""
        store = BlockStore(":memory:")
        node = LocalNode(NodeConfig(difficulty_bits=0), store, EventBus())
        block = node.mine_block(alice.address)
        store.close()

        with pytest.raises(StoreError, match="Cannot append block"):
            store.append_block(block)
        with pytest.raises(StoreError, match="Cannot write mempool"):
            store.replace_mempool([])
        with pytest.raises(StoreError, match="Cannot read mempool"):
            store.load_mempool()


class TestKeychain:
    """Test suite for the file-backed keychain."""

    def test_persisted_wallet_reloads(self, data_dir):
        keychain = Keychain(data_dir / "keys")
        wallet = keychain.create_wallet("alice", persist=True)

        reopened = Keychain(data_dir / "keys")
        loaded = reopened.load_key_pair("alice")
        assert loaded.address == wallet.address
        assert loaded.export_private_key() == wallet.export_private_key()
        assert reopened.list_available_names() == ["alice"]

    def test_session_wallet_not_listed(self, keychain):
        wallet = keychain.create_wallet("temp", persist=False)
        assert keychain.load_key_pair("temp") is wallet
        assert keychain.list_available_names() == []

    def test_duplicate_name_rejected(self, keychain):
        assert keychain.create_wallet("alice", persist=True) is not None
        assert keychain.create_wallet("alice", persist=False) is None

    def test_delete(self, keychain):
        keychain.create_wallet("alice", persist=True)
        assert keychain.delete_keys("alice")
        assert keychain.load_key_pair("alice") is None
        assert not keychain.delete_keys("alice")

    def test_unknown_wallet(self, keychain):
        assert keychain.load_key_pair("ghost") is None

    @pytest.mark.parametrize("name", ["../../escape", "a/b", "..", ".", "", "with space", "back\\slash"])
    def test_invalid_names_rejected(self, keychain, data_dir, name):
        """Test that names unusable as key file names are refused."""
        assert keychain.create_wallet(name, persist=True) is None
        assert keychain.list_available_names() == []
        assert not (data_dir.parent / "escape.key").exists()

    def test_corrupt_key_file_is_not_loaded(self, keychain):
        keychain.create_wallet("alice", persist=True)
        (keychain.keychain_dir / "alice.key").write_bytes(b"short")
        assert keychain.load_key_pair("alice") is None
