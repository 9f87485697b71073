"""
Logging Configuration for Chainshell.

Provides structured logging with loguru integration. The interactive
terminal belongs to the user, so logs go to a rotating file; a stderr
sink is added only in verbose mode.

Author: Chainshell Team
License: MIT
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def configure_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    rotation: str = "10 MB",
    retention: str = "14 days",
    verbose: bool = False,
    format_string: Optional[str] = None,
    serialize: bool = False,
) -> None:
    """
    Configure logging for Chainshell.

    Args:
        log_level: Logging level for the file sink
        log_file: Optional log file path
        rotation: Log rotation size/time
        retention: Log retention period
        verbose: Also log DEBUG and above to stderr
        format_string: Custom format string
        serialize: Whether to serialize logs as JSON
    """
    # Remove default handler
    logger.remove()

    if format_string is None:
        if serialize:
            format_string = "{message}"
        else:
            format_string = (
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{extra[component]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                "<level>{message}</level>"
            )

    logger.configure(extra={"component": "chainshell"})

    if verbose:
        logger.add(
            sys.stderr,
            format=format_string,
            level="DEBUG",
            colorize=not serialize,
            serialize=serialize,
        )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            str(log_file),
            format=format_string,
            level=log_level.upper(),
            rotation=rotation,
            retention=retention,
            compression="zip",
            serialize=serialize,
            enqueue=True,
        )


def get_logger(name: str):
    """
    Get logger instance for component.

    Args:
        name: Component name
    """
    return logger.bind(component=name)


class LogContext:
    """Context manager for structured logging."""

    def __init__(self, **kwargs):
        """
        Initialize log context.

        Args:
            **kwargs: Context key-value pairs
        """
        self.context = kwargs
        self.token = None

    def __enter__(self):
        self.token = logger.contextualize(**self.context)
        self.token.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token:
            self.token.__exit__(exc_type, exc_val, exc_tb)


def log_session_phase(old: str, new: str):
    """Log a session phase transition."""
    logger.debug(f"Session phase: {old} -> {new}")


def log_sync_complete(success: bool, peers: int, waited: float):
    """Log release of the sync barrier."""
    with LogContext(phase="sync"):
        if success:
            logger.success(f"Network sync complete: peers={peers}, waited={waited:.2f}s")
        else:
            logger.warning(f"Network sync failed after {waited:.2f}s")


def log_block_mined(height: int, block_hash: str, attempt: int, count: int):
    """Log a successful mining attempt."""
    logger.success(f"Mined block {height} ({block_hash[:16]}...) attempt {attempt}/{count}")


def log_mining_attempt_failed(attempt: int, count: int, reason: str):
    """Log a lost mining race."""
    logger.warning(f"Mining attempt {attempt}/{count} failed: {reason}")


def log_transaction_created(txid: str, value: int, recipient: str):
    """Log transaction submission."""
    with LogContext(phase="transaction"):
        logger.info(f"Transaction {txid[:16]}... value={value} to={recipient[:16]}...")


def log_wallet_event(action: str, name: str, stored: Optional[bool] = None):
    """Log a keychain change."""
    with LogContext(phase="wallet", operation=action):
        suffix = "" if stored is None else f", stored={stored}"
        logger.info(f"Wallet {action}: name={name}{suffix}")


def log_error(message: str, exception: Optional[Exception] = None):
    """Log error with optional exception."""
    if exception:
        logger.exception(f"{message}: {exception}")
    else:
        logger.error(message)
