"""
=============================================================================
CONNECTION TABLE
=============================================================================

A fixed number of slots, one per concurrent connection. When every slot
is taken, the next connection is refused on the spot: this is admission
control, not a queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     ConnectionTable (capacity 4)                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   slots:   [0: in use] [1: free] [2: in use] [3: free]               │
    │                                                                      │
    │   free:    deque([1, 3])    ← claim() pops left, release() appends  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Slots are preallocated and reused, and the free list makes claim and
release O(1). Both run under one lock: the acceptor claims while handler
threads release concurrently, and a scan racing a release could otherwise
hand the same slot out twice.

Ownership:
- the acceptor thread is the only caller of claim()
- each handler thread releases only its own slot
- shutdown only reads (snapshot()) and joins

=============================================================================
"""

import logging
import socket
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Optional


logger = logging.getLogger(__name__)


@dataclass
class Slot:
    """
    One entry of the connection table.

    Attributes:
        index: Position in the table (stable for the table's lifetime).
        table: Owning table, so a handler can release its own slot.
        in_use: True between claim() and release().
        socket: The accepted connection socket.
        thread: The handler thread serving the connection.
    """

    index: int
    table: "ConnectionTable" = field(repr=False, compare=False)
    in_use: bool = False
    socket: "Optional[socket.socket]" = field(default=None, repr=False)
    thread: Optional[threading.Thread] = field(default=None, repr=False)

    def release(self) -> None:
        self.table.release(self)


class ConnectionTable:
    """Fixed-capacity, thread-safe table of connection slots."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self._slots = [Slot(index=i, table=self) for i in range(capacity)]
        self._free = deque(range(capacity))
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def active(self) -> int:
        """Number of slots currently in use."""
        with self._lock:
            return len(self._slots) - len(self._free)

    @property
    def is_full(self) -> bool:
        with self._lock:
            return not self._free

    def claim(self, sock: socket.socket) -> Optional[Slot]:
        """
        Take a free slot for ``sock``.

        Returns:
            The claimed slot, or None if the table is full.
        """
        with self._lock:
            if not self._free:
                return None
            slot = self._slots[self._free.popleft()]
            slot.in_use = True
            slot.socket = sock
            slot.thread = None
            return slot

    def release(self, slot: Slot) -> None:
        """
        Return ``slot`` to the free list. Releasing a free slot is a no-op.

        The caller closes the socket; the table only forgets it.
        """
        with self._lock:
            if not slot.in_use:
                return
            slot.in_use = False
            slot.socket = None
            slot.thread = None
            self._free.append(slot.index)

        logger.debug(f"Slot {slot.index} released")

    def snapshot(self) -> list[Slot]:
        """
        Copies of the in-use slots, taken atomically.

        The copies keep their socket and thread references even if the
        live slot is released right afterwards, which is what shutdown
        needs to join a handler that is just exiting.
        """
        with self._lock:
            return [replace(slot) for slot in self._slots if slot.in_use]
