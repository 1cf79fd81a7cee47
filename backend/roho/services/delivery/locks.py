"""
Per-order exclusive locks for the booking coordinator.

One process owns the lock table. Acquisition never awaits, so under asyncio a
check-and-set on the table cannot interleave with another request. A hold
older than the TTL is treated as abandoned and may be taken over.
"""
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class OrderLocked(Exception):
    """Another attempt currently holds the lock for this key"""

    def __init__(self, key: str, owner: str):
        super().__init__(f"{key} is locked by {owner}")
        self.key = key
        self.owner = owner


@dataclass
class LockHold:
    owner: str
    token: str
    acquired_at: float


class OrderLockTable:
    """Mutual exclusion keyed by order id"""

    def __init__(
        self,
        ttl_seconds: Optional[float] = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._holds: Dict[str, LockHold] = {}

    def __len__(self) -> int:
        return len(self._holds)

    def _is_stale(self, hold: LockHold) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - hold.acquired_at > self.ttl_seconds

    def is_locked(self, key: str) -> bool:
        hold = self._holds.get(key)
        return hold is not None and not self._is_stale(hold)

    def try_acquire(self, key: str, owner: str) -> Optional[str]:
        """
        Take the lock for `key` if it is free or stale.

        Returns:
            A release token, or None when a live hold exists
        """
        current = self._holds.get(key)
        if current is not None:
            if not self._is_stale(current):
                return None
            logger.warning(
                f"Taking over stale lock on {key} "
                f"(held {self._clock() - current.acquired_at:.1f}s, ttl {self.ttl_seconds}s)"
            )

        token = uuid.uuid4().hex
        self._holds[key] = LockHold(owner=owner, token=token, acquired_at=self._clock())
        return token

    def release(self, key: str, token: str) -> bool:
        """Release `key` only if `token` still owns it"""
        current = self._holds.get(key)
        if current is None or current.token != token:
            # Lock was taken over after going stale; leave the new holder alone
            return False
        del self._holds[key]
        return True

    @contextmanager
    def hold(self, key: str, owner: str) -> Iterator[str]:
        """
        Hold the lock for the duration of the block.

        Raises:
            OrderLocked: If a live hold already exists
        """
        token = self.try_acquire(key, owner)
        if token is None:
            raise OrderLocked(key, self._holds[key].owner)
        try:
            yield token
        finally:
            self.release(key, token)

    def sweep_stale(self) -> int:
        """Drop abandoned holds; returns how many were removed"""
        stale = [key for key, hold in self._holds.items() if self._is_stale(hold)]
        for key in stale:
            del self._holds[key]
        if stale:
            logger.warning(f"Swept {len(stale)} stale booking locks")
        return len(stale)
