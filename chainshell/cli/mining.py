"""
Mining Loop Coordinator.

Runs count-bounded sequences of mining attempts on a dedicated worker
thread while the caller blocks for the whole run. A failed attempt is
recorded in the report and the run continues. Attempts never overlap:
the worker pool has a single thread and every attempt also takes the
coordinator lock.

Author: Chainshell Team
License: MIT
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional

from ..blockchain.node import Block, MiningFailure, Node, WalletAddress
from ..monitoring.logging_config import LogContext, get_logger, log_block_mined, log_mining_attempt_failed

logger = get_logger("miner")


@dataclass
class AttemptFailure:
    attempt: int
    reason: str
    lost_race: bool = True


@dataclass
class MiningReport:
    """Outcome of one mining run."""

    requested: int
    attempted: int = 0
    blocks: List[Block] = field(default_factory=list)
    failures: List[AttemptFailure] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def interrupted(self) -> bool:
        return self.attempted < self.requested


class MiningCoordinator:
    """
    Serialize mining attempts against one node.

    Usage:
        coordinator = MiningCoordinator(node)
        report = coordinator.mine(address, count=3)
        coordinator.shutdown()
    """

    def __init__(self, node: Node):
        self.node = node
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="miner")
        self._attempt_lock = threading.Lock()
        self._stop = threading.Event()

    def mine(self, miner_address: WalletAddress, count: int = 1) -> MiningReport:
        """
        Run ``count`` attempts and block until all have resolved.

        Args:
            miner_address: Address receiving block rewards
            count: Number of attempts (>= 1)

        Returns:
            MiningReport with mined blocks and per-attempt failures
        """
        if count < 1:
            raise ValueError(f"count must be >= 1, got {count}")

        future = self._executor.submit(self._run, miner_address, count)
        return future.result()

    def request_stop(self) -> None:
        """Skip attempts that have not started yet. A running attempt finishes."""
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def shutdown(self, wait: bool = True) -> None:
        self._stop.set()
        self._executor.shutdown(wait=wait)

    def _run(self, miner_address: WalletAddress, count: int) -> MiningReport:
        report = MiningReport(requested=count)
        started = time.monotonic()

        with LogContext(phase="mining", miner=miner_address.short):
            for attempt in range(1, count + 1):
                if self._stop.is_set():
                    logger.info(f"Mining stopped before attempt {attempt}/{count}")
                    break

                report.attempted += 1
                block = self._attempt(miner_address, attempt, count, report)
                if block is not None:
                    report.blocks.append(block)

        report.elapsed = time.monotonic() - started
        return report

    def _attempt(
        self,
        miner_address: WalletAddress,
        attempt: int,
        count: int,
        report: MiningReport,
    ) -> Optional[Block]:
        with self._attempt_lock:
            try:
                block = self.node.mine_block(miner_address)
            except MiningFailure as e:
                log_mining_attempt_failed(attempt, count, str(e))
                report.failures.append(AttemptFailure(attempt=attempt, reason=str(e)))
                return None
            except Exception as e:
                logger.exception(f"Mining attempt {attempt}/{count} failed: {e}")
                reason = str(e) or type(e).__name__
                report.failures.append(AttemptFailure(attempt=attempt, reason=reason, lost_race=False))
                return None

        log_block_mined(block.height, block.hash, attempt, count)
        return block


__all__ = [
    "AttemptFailure",
    "MiningReport",
    "MiningCoordinator",
]
