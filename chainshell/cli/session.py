"""
Session Bootstrap and Read Loop.

Builds the explicit ``Session`` value shared by every component, blocks
startup on the network sync barrier, runs the read -> dispatch loop and
shuts down in order on quit, end of input or SIGINT.

Lifecycle:
    BOOTING -> AWAITING_SYNC -> READY -> (READ_LOOP <-> DISPATCHING)
    -> QUITTING -> TERMINATED

Author: Chainshell Team
License: MIT
"""

from __future__ import annotations

import signal
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Tuple

import click
from loguru import logger

from ..blockchain.block_store import BlockStore
from ..blockchain.events import EventBus, EventType, NodeEvent
from ..blockchain.keychain import Keychain
from ..blockchain.local_node import LocalNode
from ..blockchain.node import ChainSummary, Node, StoreError, WalletStore
from ..config import ShellConfig
from ..monitoring.logging_config import log_error, log_session_phase, log_sync_complete
from .dispatcher import Dispatcher
from .errors import DomainError, ErrorKind, SessionInterrupted, StartupError, describe_error
from .formatter import Formatter, Style, color_enabled
from .mining import MiningCoordinator
from .resolver import LineReader

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1
EXIT_INTERRUPTED = 130


class SessionPhase(Enum):
    BOOTING = "booting"
    AWAITING_SYNC = "awaiting_sync"
    READY = "ready"
    READ_LOOP = "read_loop"
    DISPATCHING = "dispatching"
    QUITTING = "quitting"
    TERMINATED = "terminated"


_TRANSITIONS = {
    SessionPhase.BOOTING: {SessionPhase.AWAITING_SYNC, SessionPhase.QUITTING},
    SessionPhase.AWAITING_SYNC: {SessionPhase.READY, SessionPhase.QUITTING},
    SessionPhase.READY: {SessionPhase.READ_LOOP, SessionPhase.DISPATCHING, SessionPhase.QUITTING},
    SessionPhase.READ_LOOP: {SessionPhase.DISPATCHING, SessionPhase.QUITTING},
    SessionPhase.DISPATCHING: {SessionPhase.READ_LOOP, SessionPhase.QUITTING},
    SessionPhase.QUITTING: {SessionPhase.TERMINATED},
    SessionPhase.TERMINATED: set(),
}


# =============================================================================
# Sync Barrier
# =============================================================================


class SyncBarrier:
    """
    One-shot gate released by the first ``CONNECTED`` event.

    The release happens on the publishing thread, so the foreground can
    block in ``wait`` without draining the event bus.
    """

    def __init__(self, events: EventBus):
        self._released = threading.Event()
        events.signal_on(EventType.CONNECTED, self._released)

    @property
    def released(self) -> bool:
        return self._released.is_set()

    def release(self) -> None:
        self._released.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until released.

        Args:
            timeout: Seconds to wait, or None to wait forever

        Returns:
            True if released, False on timeout
        """
        return self._released.wait(timeout)


# =============================================================================
# Session
# =============================================================================


@dataclass
class Session:
    """
    State of one interactive session.

    Attributes:
        config: Loaded configuration
        node: Node collaborator
        keychain: Wallet store
        events: Node event channel, drained on the foreground thread
        coordinator: Serializes mining attempts
        formatter: Builds display text
        out: Line writer
        read_line: Prompting line reader
        interrupted: Set once SIGINT was received
    """

    config: ShellConfig
    node: Node
    keychain: WalletStore
    events: EventBus
    coordinator: MiningCoordinator
    formatter: Formatter
    out: Callable[[str], Any] = click.echo
    read_line: LineReader = input
    interrupted: threading.Event = field(default_factory=threading.Event)
    _phase: SessionPhase = SessionPhase.BOOTING
    _phase_lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _unlogged_transition: Optional[Tuple[SessionPhase, SessionPhase]] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        for event_type in EventType:
            self.events.subscribe(event_type, self._show_event)

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def quitting(self) -> bool:
        return self._phase in (SessionPhase.QUITTING, SessionPhase.TERMINATED)

    def set_phase(self, phase: SessionPhase) -> None:
        """
        Move to ``phase``.

        Raises:
            RuntimeError: If the transition is not allowed
        """
        with self._phase_lock:
            if phase not in _TRANSITIONS[self._phase]:
                raise RuntimeError(f"Illegal session transition {self._phase.value} -> {phase.value}")
            old, self._phase = self._phase, phase
        log_session_phase(old.value, phase.value)

    def begin_quit(self) -> None:
        with self._phase_lock:
            if not self.quitting:
                self.set_phase(SessionPhase.QUITTING)

    def interrupt(self) -> None:
        """
        Record SIGINT.

        Runs inside the signal handler, so it neither prints nor logs; the
        phase change is logged later by ``log_deferred_transition``.
        """
        self.interrupted.set()
        self.coordinator.request_stop()
        with self._phase_lock:
            if not self.quitting:
                self._unlogged_transition = (self._phase, SessionPhase.QUITTING)
                self._phase = SessionPhase.QUITTING

    def log_deferred_transition(self) -> None:
        with self._phase_lock:
            transition, self._unlogged_transition = self._unlogged_transition, None
        if transition is not None:
            log_session_phase(transition[0].value, transition[1].value)

    def print(self, text: str) -> None:
        if self._phase is SessionPhase.TERMINATED:
            return
        self.out(text)

    def drain_events(self) -> int:
        return self.events.drain()

    def _show_event(self, event: NodeEvent) -> None:
        line = self.formatter.event(event)
        if line is not None:
            self.print(line)


def chain_summary(node: Node) -> ChainSummary:
    return ChainSummary(
        height=node.current_height(),
        latest_hash=node.latest_block_hash(),
        pending_transactions=len(node.mempool()),
    )


def open_session(
    config: ShellConfig,
    out: Callable[[str], Any] = click.echo,
    read_line: LineReader = input,
    node: Optional[Node] = None,
    keychain: Optional[WalletStore] = None,
    events: Optional[EventBus] = None,
) -> Session:
    """
    Open persisted state and print the chain summary.

    Args:
        config: Loaded configuration
        out: Line writer
        read_line: Prompting line reader
        node: Node to drive; defaults to a ``LocalNode`` over the block store
        keychain: Wallet store; defaults to the configured keychain directory
        events: Event channel the node publishes to

    Raises:
        StartupError: Block store or keychain cannot be opened
    """
    events = events or EventBus()

    if node is None:
        try:
            store = BlockStore(config.storage.block_store_path)
            node = LocalNode(config.node, store, events)
        except (StoreError, OSError, ValueError) as e:
            raise StartupError(f"Could not open block store: {e}") from e

    if keychain is None:
        try:
            keychain = Keychain(config.storage.keychain_path)
        except (OSError, ValueError) as e:
            raise StartupError(f"Could not open keychain: {e}") from e

    formatter = Formatter(Style(enabled=color_enabled(config.color)))
    session = Session(
        config=config,
        node=node,
        keychain=keychain,
        events=events,
        coordinator=MiningCoordinator(node),
        formatter=formatter,
        out=out,
        read_line=read_line,
    )
    session.print(formatter.chain_summary(chain_summary(node)))
    return session


def await_sync(session: Session, timeout: Optional[float] = None) -> None:
    """
    Start the node's connect on a background thread and block until synced.

    Raises:
        StartupError: ``timeout`` elapsed before the node connected
    """
    barrier = SyncBarrier(session.events)
    session.set_phase(SessionPhase.AWAITING_SYNC)
    session.print(session.formatter.syncing())

    started = time.monotonic()
    threading.Thread(
        target=_connect, args=(session.node, session.events, barrier), name="connect", daemon=True
    ).start()

    if not barrier.wait(timeout):
        logger.error(f"Network sync timed out after {timeout}s")
        raise StartupError(describe_error(DomainError(ErrorKind.NETWORK_UNAVAILABLE)))

    session.drain_events()
    connected = session.events.get_event_history(EventType.CONNECTED, limit=1)
    success = bool(connected and connected[-1].data.get("success", True))
    peers = len(session.node.peers())
    log_sync_complete(success, peers, time.monotonic() - started)

    session.set_phase(SessionPhase.READY)
    session.print(session.formatter.ready(peers))


def _connect(node: Node, events: EventBus, barrier: SyncBarrier) -> None:
    """Run ``node.connect`` and make sure the barrier is released even if it raises."""
    try:
        node.connect()
    except Exception as e:
        log_error("Node connect failed", e)
        if not barrier.released:
            events.emit(EventType.CONNECTED, success=False, error=str(e) or type(e).__name__)


def install_interrupt_handler(session: Session):
    """
    Route SIGINT to ``session``.

    The handler records the interrupt and unwinds the foreground thread
    with ``SessionInterrupted``. A second SIGINT while quitting is ignored.

    Returns:
        The previous handler, or None when not on the main thread
    """
    if threading.current_thread() is not threading.main_thread():
        return None

    def handler(signum, frame):
        if session.quitting:
            return
        session.interrupt()
        raise SessionInterrupted()

    return signal.signal(signal.SIGINT, handler)


def restore_interrupt_handler(previous) -> None:
    if previous is not None:
        signal.signal(signal.SIGINT, previous)


# =============================================================================
# Read Loop
# =============================================================================


class Shell:
    """Foreground read -> dispatch loop over one session."""

    def __init__(self, session: Session, dispatcher: Optional[Dispatcher] = None):
        self.session = session
        self.dispatcher = dispatcher or Dispatcher(session)

    def run(self) -> int:
        """Read lines until quit or end of input."""
        session = self.session
        session.set_phase(SessionPhase.READ_LOOP)

        while True:
            session.drain_events()
            try:
                line = session.read_line(session.config.prompt)
            except EOFError:
                session.print("")
                break

            session.set_phase(SessionPhase.DISPATCHING)
            keep_running = self.dispatcher.handle_line(line)
            session.drain_events()
            if not keep_running:
                break
            session.set_phase(SessionPhase.READ_LOOP)

        return EXIT_OK

    def run_once(self, words: Sequence[str]) -> int:
        """Dispatch a single command given on the command line."""
        self.session.set_phase(SessionPhase.DISPATCHING)
        self.dispatcher.handle_line(" ".join(words))
        self.session.drain_events()
        return EXIT_OK

    def shutdown(self) -> None:
        """Wait for a running mining attempt, close the node, say goodbye."""
        session = self.session
        if session.phase is SessionPhase.TERMINATED:
            return

        session.log_deferred_transition()
        session.begin_quit()
        session.coordinator.shutdown(wait=True)
        session.drain_events()
        session.node.close()
        session.print(session.formatter.farewell())
        session.set_phase(SessionPhase.TERMINATED)
        logger.info("Session terminated")


def run_session(
    config: ShellConfig,
    command: Sequence[str] = (),
    out: Callable[[str], Any] = click.echo,
    read_line: LineReader = input,
    **collaborators: Any,
) -> int:
    """
    Boot a session, run it and shut it down.

    Args:
        config: Loaded configuration
        command: Words of a one-shot command; empty for interactive mode
        out: Line writer
        read_line: Prompting line reader
        **collaborators: ``node``, ``keychain`` and ``events`` overrides

    Returns:
        Process exit status
    """
    try:
        session = open_session(config, out=out, read_line=read_line, **collaborators)
    except StartupError as e:
        log_error("Startup failed", e)
        out(Formatter(Style(enabled=color_enabled(config.color))).error(str(e)))
        return EXIT_STARTUP_FAILURE

    shell = Shell(session)
    previous = install_interrupt_handler(session)
    try:
        try:
            await_sync(session, config.node.sync_timeout)
        except StartupError as e:
            session.print(session.formatter.error(str(e)))
            return EXIT_STARTUP_FAILURE

        if command:
            return shell.run_once(command)
        return shell.run()
    except SessionInterrupted:
        logger.info("Session interrupted")
        return EXIT_INTERRUPTED
    finally:
        shell.shutdown()
        restore_interrupt_handler(previous)


__all__ = [
    "EXIT_OK",
    "EXIT_STARTUP_FAILURE",
    "EXIT_INTERRUPTED",
    "SessionPhase",
    "SyncBarrier",
    "Session",
    "chain_summary",
    "open_session",
    "await_sync",
    "install_interrupt_handler",
    "restore_interrupt_handler",
    "Shell",
    "run_session",
]
