"""
Monitoring and Observability for Chainshell.

Provides structured logging for the interactive session and the local
node. Log lines go to a rotating file so they never interleave with
prompts; ``--verbose`` adds a stderr sink.

Author: Chainshell Team
License: MIT
"""

from .logging_config import LogContext, configure_logging, get_logger

__all__ = [
    "LogContext",
    "configure_logging",
    "get_logger",
]
