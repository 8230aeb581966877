"""
Inter controller signal channel.

Purpose
The secondary controller can only do its work once the analyzer server is
ready. The primary pipeline tells it so through this channel.

Send blocks while the channel is full. It never drops a signal, because a lost
readiness signal can leave the secondary controller waiting forever. A caller
may pass a timeout, in which case ChannelFull is raised when it expires.

Ordering
Signals from one producer arrive in the order they were sent. There is no
ordering guarantee across producers.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Optional

from analyzer_operator.core.errors import ChannelClosed, ChannelFull
from analyzer_operator.core.settings import DEFAULT_SIGNAL_CAPACITY
from analyzer_operator.core.types import InstanceRef

logger = logging.getLogger(__name__)


class SignalKind(StrEnum):
    ready = "ready"
    removed = "removed"


@dataclass(frozen=True)
class Signal:
    """
    A small status event.

    kind
    What happened.

    reason
    Short human readable explanation.

    instance
    The analyzer instance the signal is about.
    """

    kind: SignalKind
    reason: str
    instance: Optional[InstanceRef] = None


class SignalChannel:
    """Bounded multi producer queue of Signal values."""

    def __init__(self, capacity: int = DEFAULT_SIGNAL_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("signal channel capacity must be at least 1")
        self._capacity = capacity
        self._queue: queue.Queue[Signal] = queue.Queue(maxsize=capacity)
        self._closed = threading.Event()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def pending(self) -> int:
        """Approximate number of queued signals."""
        return self._queue.qsize()

    def send(self, signal: Signal, timeout: float | None = None) -> None:
        """
        Enqueue a signal, blocking while the channel is full.

        timeout None waits as long as it takes.
        """
        if self._closed.is_set():
            raise ChannelClosed("signal channel is closed")
        try:
            self._queue.put(signal, block=True, timeout=timeout)
        except queue.Full:
            raise ChannelFull(f"signal channel full after {timeout}s, capacity {self._capacity}") from None
        logger.debug("signal sent kind=%s instance=%s", signal.kind, signal.instance)

    def receive(self, timeout: float | None = None) -> Signal | None:
        """Return the next signal, or None if nothing arrived within timeout."""
        try:
            return self._queue.get(block=True, timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[Signal]:
        """Return every signal queued right now without blocking."""
        drained: list[Signal] = []
        while True:
            try:
                drained.append(self._queue.get_nowait())
            except queue.Empty:
                return drained

    def close(self) -> None:
        """Reject further sends. Queued signals can still be received."""
        self._closed.set()


class SignalListener:
    """
    Receive side of the channel.

    Runs a daemon thread that hands each signal to handler, the entry point
    of the secondary controller. A failing handler is logged and the loop keeps
    going, so one bad signal does not stall the channel.
    """

    def __init__(
        self,
        channel: SignalChannel,
        handler: Callable[[Signal], None],
        poll_interval: float = 0.1,
    ) -> None:
        self._channel = channel
        self._handler = handler
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("listener already started")
        self._thread = threading.Thread(target=self._run, name="signal-listener", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.is_set():
            signal = self._channel.receive(timeout=self._poll_interval)
            if signal is None:
                continue
            try:
                self._handler(signal)
            except Exception:
                logger.exception("signal handler failed for %s", signal)
