"""
Per-event serialization.

CONCURRENCY STRATEGY: In-process mutex keyed by event id
========================================================

Problem:
  The row store has no transactions. Admission reads currentSignups from the
  event row, decides, appends a registration, then writes currentSignups + 1.
  Two requests for the last spot both read N-1, both pass the capacity check,
  both append. Result: overbooking and a counter that no longer matches the
  registration rows.

Solution:
  Every read-check-write sequence on one event's counters runs while holding
  that event's asyncio.Lock. Requests for different events never wait on each
  other.

  This covers one process. Running several workers against one sheet needs a
  shared lock (e.g. Redis SET NX with expiry) in place of this registry;
  nothing else in the engine would change.
"""

import asyncio
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator

from eventdesk.core.metrics import event_lock_wait


class EventLockRegistry:

    def __init__(self):
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._waiters: defaultdict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, event_id: str) -> AsyncIterator[None]:
        lock = self._locks[event_id]
        self._waiters[event_id] += 1
        started = time.perf_counter()
        try:
            async with lock:
                event_lock_wait.observe(time.perf_counter() - started)
                yield
        finally:
            self._waiters[event_id] -= 1
            if self._waiters[event_id] == 0:
                # Nobody else holds a reference: drop it so the map stays small
                del self._waiters[event_id]
                self._locks.pop(event_id, None)
