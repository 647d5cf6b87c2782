"""In-process rate limit store.

Per-process only: every worker keeps its own counters. Atomicity comes from a
lock per key, so unrelated identifiers never contend.
"""

import threading
import time
import weakref
from copy import deepcopy
from typing import Callable, Dict, Optional

from merchant_gateway.domain.models import RateLimitRecord
from merchant_gateway.infrastructure.rate_limit_store.base import AbstractRateLimitStore, Mutation, T


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Dict-backed store with a per-key lock table"""

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Args:
            clock: Time source returning UNIX time in seconds
        """
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        # An entry lives only while some caller holds a reference to its lock
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def now_ms(self) -> int:
        return round(self._clock() * 1000)

    def atomic_update(self, key: str, mutate: Mutation[T]) -> T:
        with self._lock_for(key):
            current = self._records.get(key)
            record, result = mutate(deepcopy(current), self.now_ms())
            if record is not None:
                self._records[key] = deepcopy(record)
            return result

    def get(self, key: str) -> Optional[RateLimitRecord]:
        with self._lock_for(key):
            return deepcopy(self._records.get(key))

    def delete(self, key: str) -> None:
        with self._lock_for(key):
            self._records.pop(key, None)

    def delete_stale(self, cutoff_ms: int, limit: int) -> int:
        candidates = sorted(
            (record.updated_at_ms, key)
            for key, record in list(self._records.items())
            if record.updated_at_ms < cutoff_ms
        )[:limit]

        deleted = 0
        for _, key in candidates:
            with self._lock_for(key):
                record = self._records.get(key)
                # Re-check: a live check may have refreshed it meanwhile
                if record is not None and record.updated_at_ms < cutoff_ms:
                    del self._records[key]
                    deleted += 1
        return deleted
