"""
Command Line Interface for Chainshell.

Interactive shell driving a blockchain node, plus the process entry
point.

Commands:
- chainshell: Interactive session (or one-shot with trailing words)
- chainshell config: Configuration management

Author: Chainshell Team
License: MIT
"""

from .commands import cli, main
from .dispatcher import Dispatcher
from .errors import DomainError, ErrorKind, ParseError, describe_error
from .grammar import GRAMMAR
from .parser import parse_line
from .resolver import ArgumentResolver
from .session import Session, Shell, run_session

__all__ = [
    "cli",
    "main",
    "Dispatcher",
    "DomainError",
    "ErrorKind",
    "ParseError",
    "describe_error",
    "GRAMMAR",
    "parse_line",
    "ArgumentResolver",
    "Session",
    "Shell",
    "run_session",
]
