"""
Chainshell - Interactive Blockchain Node Shell

Command interpreter and session synchronization layer for a local
blockchain node: wallets, transactions, mining and peers from one prompt.
"""

from chainshell.config import ShellConfig, load_config

# Node collaborators
from chainshell.blockchain import (
    BlockStore,
    EventBus,
    EventType,
    Keychain,
    LocalNode,
    NodeEvent,
    WalletAddress,
)

# Shell
from chainshell.cli import (
    ArgumentResolver,
    Dispatcher,
    Session,
    Shell,
    parse_line,
    run_session,
)

__version__ = "0.1.0"

__all__ = [
    "ShellConfig",
    "load_config",
    "BlockStore",
    "EventBus",
    "EventType",
    "Keychain",
    "LocalNode",
    "NodeEvent",
    "WalletAddress",
    "ArgumentResolver",
    "Dispatcher",
    "Session",
    "Shell",
    "parse_line",
    "run_session",
]
