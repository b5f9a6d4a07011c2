"""
Per-RFQ serialization point.

Finalization, ledger appends and quote writes for one RFQ all run under
the same re-entrant lock, so the read of the cumulative total and the
write that depends on it cannot interleave with another writer.

Locks are process-local: run a single API worker per database.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from config import settings
from exceptions import RFQBusyError

logger = structlog.get_logger(__name__)


class _LockEntry:
    """A lock plus the number of callers holding or waiting on it."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


_registry_guard = threading.Lock()
_locks: dict[str, _LockEntry] = {}


def _checkout(rfq_id: str) -> _LockEntry:
    with _registry_guard:
        entry = _locks.get(rfq_id)
        if entry is None:
            entry = _LockEntry()
            _locks[rfq_id] = entry
        entry.users += 1
        return entry


def _checkin(rfq_id: str, entry: _LockEntry) -> None:
    # Drop the entry once nobody holds or waits on it
    with _registry_guard:
        entry.users -= 1
        if entry.users == 0 and _locks.get(rfq_id) is entry:
            del _locks[rfq_id]


def active_lock_count() -> int:
    """Number of RFQs with a lock currently held or awaited."""
    with _registry_guard:
        return len(_locks)


@contextmanager
def rfq_lock(rfq_id: str, timeout: Optional[float] = None) -> Iterator[None]:
    """
    Hold the exclusive lock for an RFQ.

    Args:
        rfq_id: RFQ UUID
        timeout: Seconds to wait (defaults to settings.rfq_lock_timeout_seconds)

    Raises:
        RFQBusyError: If the lock is not acquired in time
    """
    wait = timeout if timeout is not None else settings.rfq_lock_timeout_seconds
    entry = _checkout(rfq_id)

    try:
        if not entry.lock.acquire(timeout=wait):
            logger.warning("rfq_lock_timeout", rfq_id=rfq_id, timeout_seconds=wait)
            raise RFQBusyError(rfq_id, wait)

        try:
            yield
        finally:
            entry.lock.release()
    finally:
        _checkin(rfq_id, entry)
