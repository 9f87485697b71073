"""
Keychain

File-backed wallet key storage.

Wallets are Ed25519 key pairs. Persisted wallets are written as raw
private key files next to a JSON registry; wallets created without
persistence live in memory for the rest of the session.
"""

from __future__ import annotations

import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from ..monitoring.logging_config import get_logger
from .node import WalletAddress

logger = get_logger("keychain")

_WALLET_NAME = re.compile(r"[A-Za-z0-9_.-]+")


def is_valid_wallet_name(name: str) -> bool:
    """Names become key file names: no separators, no dot-only names."""
    return bool(_WALLET_NAME.fullmatch(name)) and name.strip(".") != ""


class KeyPairWallet:
    """Named Ed25519 wallet."""

    def __init__(self, name: str, private_key: ed25519.Ed25519PrivateKey, stored: bool = False):
        self.name = name
        self._private_key = private_key
        self.stored = stored

    @classmethod
    def generate(cls, name: str, stored: bool = False) -> KeyPairWallet:
        return cls(name, ed25519.Ed25519PrivateKey.generate(), stored=stored)

    @classmethod
    def from_private_bytes(cls, name: str, data: bytes, stored: bool = False) -> KeyPairWallet:
        return cls(name, ed25519.Ed25519PrivateKey.from_private_bytes(data), stored=stored)

    @property
    def public_key(self) -> bytes:
        return self._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @property
    def address(self) -> WalletAddress:
        return WalletAddress.for_public_key(self.public_key)

    def sign(self, payload: bytes) -> bytes:
        return self._private_key.sign(payload)

    def export_private_key(self) -> Optional[bytes]:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def __repr__(self) -> str:
        return f"KeyPairWallet(name={self.name!r}, address={self.address.short})"


class Keychain:
    """
    Wallet keychain backed by a directory.

    Features:
    - Persisted key files with a JSON registry
    - Session-only wallets
    - Deletion of persisted keys
    """

    def __init__(self, keychain_dir: Path):
        """
        Initialize keychain.

        Args:
            keychain_dir: Directory holding key files and ``registry.json``
        """
        self.keychain_dir = Path(keychain_dir)
        self.keychain_dir.mkdir(parents=True, exist_ok=True)

        self.registry_path = self.keychain_dir / "registry.json"
        self.registry = self._load_registry()
        self._session_wallets: Dict[str, KeyPairWallet] = {}

    def create_wallet(self, name: str, persist: bool) -> Optional[KeyPairWallet]:
        """
        Create a new wallet.

        Args:
            name: Wallet name
            persist: Store the key pair in the keychain directory

        Returns:
            The wallet, or None if the name is invalid or taken, or keys cannot be written
        """
        if not is_valid_wallet_name(name):
            logger.warning(f"Cannot create wallet {name!r}: invalid name")
            return None

        if name in self.registry or name in self._session_wallets:
            logger.warning(f"Cannot create wallet {name!r}: name unavailable")
            return None

        wallet = KeyPairWallet.generate(name, stored=persist)
        if not persist:
            self._session_wallets[name] = wallet
            logger.info(f"Created session wallet: {name}")
            return wallet

        key_path = self.keychain_dir / f"{name}.key"
        try:
            key_path.write_bytes(wallet.export_private_key())
            os.chmod(key_path, 0o600)
        except OSError as e:
            logger.error(f"Failed to write key file {key_path}: {e}")
            return None

        self.registry[name] = {
            "path": str(key_path),
            "address": wallet.address.hex,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self._save_registry()

        logger.info(f"Created keychain wallet: {name}")
        return wallet

    def load_key_pair(self, name: str) -> Optional[KeyPairWallet]:
        """Load a wallet by name, or None if unknown."""
        if name in self._session_wallets:
            return self._session_wallets[name]

        entry = self.registry.get(name)
        if entry is None:
            return None

        key_path = Path(entry["path"])
        if not key_path.exists():
            logger.error(f"Key file missing: {key_path}")
            return None

        try:
            return KeyPairWallet.from_private_bytes(name, key_path.read_bytes(), stored=True)
        except (OSError, ValueError) as e:
            logger.error(f"Cannot read key file {key_path}: {e}")
            return None

    def list_available_names(self) -> List[str]:
        """Names of persisted wallets."""
        return sorted(self.registry)

    def delete_keys(self, name: str) -> bool:
        """
        Delete a persisted wallet.

        Returns:
            True if deleted
        """
        if name not in self.registry:
            return False

        key_path = Path(self.registry[name]["path"])
        if key_path.exists():
            os.unlink(key_path)

        del self.registry[name]
        self._save_registry()

        logger.info(f"Deleted keychain wallet: {name}")
        return True

    def _load_registry(self) -> Dict[str, Dict[str, Any]]:
        if not self.registry_path.exists():
            return {}

        with open(self.registry_path) as f:
            return json.load(f)

    def _save_registry(self) -> None:
        with open(self.registry_path, "w") as f:
            json.dump(self.registry, f, indent=2)
