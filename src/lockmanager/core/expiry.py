"""Expiry index for the in-memory lock table."""

from __future__ import annotations

import datetime as dt
import heapq
from typing import Iterator, List, Optional, Set, Tuple


_Entry = Tuple[dt.datetime, str, str]


class ExpiryIndex:
    """Min-heap of ``(expires_at, key, lock_id)`` ordered by absolute expiry.

    Discarded entries stay in the heap and are skipped when popped; the heap is
    rebuilt once they outnumber the live ones.
    """

    def __init__(self) -> None:
        self._heap: List[_Entry] = []
        self._live: Set[_Entry] = set()

    def __len__(self) -> int:
        return len(self._live)

    def push(self, expires_at: dt.datetime, key: str, lock_id: str) -> None:
        entry = (expires_at, key, lock_id)
        heapq.heappush(self._heap, entry)
        self._live.add(entry)

    def discard(self, expires_at: dt.datetime, key: str, lock_id: str) -> None:
        self._live.discard((expires_at, key, lock_id))
        if len(self._heap) > 2 * len(self._live) + 16:
            self._compact()

    def peek(self) -> Optional[dt.datetime]:
        """Earliest live expiry, or None when empty."""
        self._drop_stale_head()
        return self._heap[0][0] if self._heap else None

    def pop_expired(self, now: dt.datetime) -> Iterator[_Entry]:
        """Yield every live entry expiring at or before ``now``, earliest first."""
        while True:
            self._drop_stale_head()
            if not self._heap or self._heap[0][0] > now:
                return
            entry = heapq.heappop(self._heap)
            self._live.discard(entry)
            yield entry

    def _drop_stale_head(self) -> None:
        while self._heap and self._heap[0] not in self._live:
            heapq.heappop(self._heap)

    def _compact(self) -> None:
        self._heap = [entry for entry in self._heap if entry in self._live]
        heapq.heapify(self._heap)
