"""Rate limit store interface.

The limiter depends on this abstraction so the backing store (SQL database,
in-process dict, ...) can be swapped without touching the limiting logic.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple, TypeVar

from merchant_gateway.domain.models import RateLimitRecord

T = TypeVar("T")

# mutate(current_record_or_None, now_ms) -> (record_to_write_or_None, result)
Mutation = Callable[[Optional[RateLimitRecord], int], Tuple[Optional[RateLimitRecord], T]]


class AbstractRateLimitStore(ABC):
    """Keyed record store with atomic read-modify-write"""

    @abstractmethod
    def now_ms(self) -> int:
        """Current time in epoch ms as seen by the store"""
        raise NotImplementedError

    @abstractmethod
    def atomic_update(self, key: str, mutate: Mutation[T]) -> T:
        """
        Read the record for key, apply mutate and persist its output as one unit.

        No other update for the same key may interleave between the read and the
        write. When mutate returns None as the record, nothing is written.

        Raises:
            StoreError: On backend failure or exhausted contention retries
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> Optional[RateLimitRecord]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the record for key; deleting a missing key is a no-op"""
        raise NotImplementedError

    @abstractmethod
    def delete_stale(self, cutoff_ms: int, limit: int) -> int:
        """Delete up to limit records last updated before cutoff_ms, oldest first"""
        raise NotImplementedError
