# swim_makeup/core/locks.py
"""
Per-slot mutual exclusion for capacity changes.

Promotion, booking, decline, admin edits and the expiry sweep all mutate the
same slot counters. Each of them runs its read-check-write section inside
``slot_lock(slot_id)``. With REDIS_URL configured the lock is a Redis lock, so
every API worker and the scheduler process share it; otherwise an in-process
lock is used. Row locks and compare-and-set updates in the CRUD layer still
guard the database when neither lock is shared (e.g. two hosts without Redis).
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

from swim_makeup.core.config import settings
from swim_makeup.db.redis import get_redis_client

logger = logging.getLogger(__name__)

# slot_id -> (lock, number of holders and waiters); entries go once unused
_local_locks: Dict[str, Tuple[threading.Lock, int]] = {}
_registry_lock = threading.Lock()


def _checkout_local_lock(slot_id: str) -> threading.Lock:
    with _registry_lock:
        lock, users = _local_locks.get(slot_id, (None, 0))
        if lock is None:
            lock = threading.Lock()
        _local_locks[slot_id] = (lock, users + 1)
        return lock


def _return_local_lock(slot_id: str) -> None:
    with _registry_lock:
        lock, users = _local_locks[slot_id]
        if users > 1:
            _local_locks[slot_id] = (lock, users - 1)
        else:
            del _local_locks[slot_id]


@contextmanager
def slot_lock(slot_id: str) -> Iterator[None]:
    """Hold the capacity lock for one slot. Not re-entrant."""
    redis_client = get_redis_client()

    if redis_client is not None:
        lock = redis_client.lock(
            f"makeup:slot_lock:{slot_id}",
            timeout=settings.SLOT_LOCK_TIMEOUT_SECONDS,
            blocking_timeout=settings.SLOT_LOCK_TIMEOUT_SECONDS,
        )
        # Raises redis.exceptions.LockError if the lock cannot be acquired
        with lock:
            yield
        return

    local_lock = _checkout_local_lock(slot_id)
    try:
        acquired = local_lock.acquire(timeout=settings.SLOT_LOCK_TIMEOUT_SECONDS)
        if not acquired:
            logger.error(f"Timed out waiting for slot lock {slot_id}")
            raise TimeoutError(f"Could not acquire capacity lock for slot {slot_id}")
        try:
            yield
        finally:
            local_lock.release()
    finally:
        _return_local_lock(slot_id)
