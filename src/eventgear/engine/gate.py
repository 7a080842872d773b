# src/eventgear/engine/gate.py
"""Serialization of the TelemetryEngine update pipeline.

Every mutation of shared engine state (metrics, history, alarm counters)
happens while holding the RegistrationGate:

- Event registrations queue in arrival order (ticket lock) and run their
  whole pipeline before the next one starts.
- Timer ticks never queue: try_acquire() fails while anything holds the
  gate or waits for it, and the tick is skipped.
- The holder may re-enter (configuration setters called from a callback).
- Release happens in a finally block, so a pipeline that raises never
  leaves the gate closed.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class RegistrationGate:
    """Re-entrant FIFO mutex with a non-queuing try_acquire()."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._next_ticket = 0
        self._serving = 0
        self._owner: int | None = None
        self._depth = 0
        self._owner_ticketed = False

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Block until it is this caller's turn, then hold the gate.

        Waiters are admitted strictly in the order they called hold().
        """
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def acquire(self) -> None:
        me = threading.get_ident()
        with self._condition:
            if self._owner == me:
                self._depth += 1
                return
            ticket = self._next_ticket
            self._next_ticket += 1
            while self._serving != ticket or self._owner is not None:
                self._condition.wait()
            self._owner = me
            self._depth = 1
            self._owner_ticketed = True

    def try_acquire(self) -> bool:
        """Take the gate only if nobody holds it or is waiting for it.

        Never re-enters: a tick delivered while this thread holds the gate
        is refused like any other.
        """
        with self._condition:
            if self._owner is not None or self._next_ticket != self._serving:
                return False
            self._owner = threading.get_ident()
            self._depth = 1
            self._owner_ticketed = False
            return True

    def release(self) -> None:
        """Release one level of ownership.

        Raises:
            RuntimeError: If the calling thread does not hold the gate.
        """
        with self._condition:
            if self._owner != threading.get_ident():
                raise RuntimeError("Cannot release a RegistrationGate not held by this thread")
            self._depth -= 1
            if self._depth > 0:
                return
            self._owner = None
            if self._owner_ticketed:
                self._serving += 1
                self._owner_ticketed = False
            self._condition.notify_all()

    @property
    def busy(self) -> bool:
        """Whether the gate is held or has waiters."""
        with self._condition:
            return self._owner is not None or self._next_ticket != self._serving

    def held_by_current_thread(self) -> bool:
        with self._condition:
            return self._owner == threading.get_ident()
