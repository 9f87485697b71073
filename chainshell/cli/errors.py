"""
Error Taxonomy and Mapper.

Every failure a command handler can surface is a ``DomainError`` of one
of the ``ErrorKind`` values. ``describe_error`` turns it into the line
shown to the user.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from ..blockchain.node import (
    InsufficientBalanceError,
    InvalidValueError,
    NetworkUnavailableError,
    NodeError,
    SourceEqualsDestinationError,
    UnverifiedTransactionError,
)


class ErrorKind(Enum):
    """Closed set of user-visible failure kinds."""

    INSUFFICIENT_BALANCE = "insufficient_balance"
    INVALID_VALUE = "invalid_value"
    UNVERIFIED_TRANSACTION = "unverified_transaction"
    SOURCE_EQUALS_DESTINATION = "source_equals_destination"
    WALLET_NOT_FOUND = "wallet_not_found"
    NETWORK_UNAVAILABLE = "network_unavailable"
    KEYCHAIN_UNAVAILABLE = "keychain_unavailable"
    PARSE_ERROR = "parse_error"


class DomainError(Exception):
    """
    Failure reported by a command handler.

    Attributes:
        kind: Failure kind
        detail: Optional subject of the failure (wallet name, parse reason)
    """

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class ParseError(DomainError):
    """Input line could not be turned into an invocation."""

    def __init__(self, reason: str):
        super().__init__(ErrorKind.PARSE_ERROR, reason)

    @property
    def reason(self) -> str:
        return self.detail or ""


class StartupError(Exception):
    """Unrecoverable failure while booting the session."""


class SessionInterrupted(BaseException):
    """
    Raised on the foreground thread when SIGINT requests shutdown.

    Like ``KeyboardInterrupt`` it derives from ``BaseException`` and passes
    through ``except Exception`` blocks.
    """


UNKNOWN_ERROR = "Unknown error"

_MESSAGES = {
    ErrorKind.INSUFFICIENT_BALANCE: "Insufficient balance",
    ErrorKind.INVALID_VALUE: "Invalid value",
    ErrorKind.UNVERIFIED_TRANSACTION: "Unable to verify transaction",
    ErrorKind.SOURCE_EQUALS_DESTINATION: "You can't send to yourself",
    ErrorKind.WALLET_NOT_FOUND: "Wallet not found",
    ErrorKind.NETWORK_UNAVAILABLE: "Network unavailable",
    ErrorKind.KEYCHAIN_UNAVAILABLE: "Could not create wallet",
}

_DETAILED_MESSAGES = {
    ErrorKind.WALLET_NOT_FOUND: "Could not load wallet named '{detail}'",
    ErrorKind.KEYCHAIN_UNAVAILABLE: "Could not create wallet '{detail}'",
}

# Node exceptions and the kind each one surfaces as
_NODE_ERROR_KINDS = {
    InsufficientBalanceError: ErrorKind.INSUFFICIENT_BALANCE,
    InvalidValueError: ErrorKind.INVALID_VALUE,
    UnverifiedTransactionError: ErrorKind.UNVERIFIED_TRANSACTION,
    SourceEqualsDestinationError: ErrorKind.SOURCE_EQUALS_DESTINATION,
    NetworkUnavailableError: ErrorKind.NETWORK_UNAVAILABLE,
}


def describe_error(error: BaseException) -> str:
    """
    Map a failure to its display message.

    Args:
        error: Usually a DomainError; anything else yields "Unknown error"

    Returns:
        Non-empty message
    """
    if not isinstance(error, DomainError):
        return UNKNOWN_ERROR

    if error.kind is ErrorKind.PARSE_ERROR:
        reason = error.detail or "invalid input"
        return reason[:1].upper() + reason[1:]

    if error.detail and error.kind in _DETAILED_MESSAGES:
        return _DETAILED_MESSAGES[error.kind].format(detail=error.detail)

    return _MESSAGES.get(error.kind, UNKNOWN_ERROR)


def translate_node_error(error: NodeError) -> BaseException:
    """
    Translate a node exception into its ``DomainError``.

    Unrecognized node errors are returned unchanged; ``describe_error``
    reports them as "Unknown error".
    """
    for exc_type, kind in _NODE_ERROR_KINDS.items():
        if isinstance(error, exc_type):
            return DomainError(kind, None)
    return error


__all__ = [
    "ErrorKind",
    "DomainError",
    "ParseError",
    "StartupError",
    "SessionInterrupted",
    "UNKNOWN_ERROR",
    "describe_error",
    "translate_node_error",
]
