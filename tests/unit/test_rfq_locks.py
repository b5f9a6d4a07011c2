"""
Unit tests for the per-RFQ lock.

Run: pytest tests/unit/test_rfq_locks.py -v
"""

import threading

import pytest

from services.rfq_locks import active_lock_count, rfq_lock
from exceptions import RFQBusyError


class TestRFQLock:
    """Tests for rfq_lock()"""

    def test_reentrant_in_same_thread(self):
        """Should let the holder acquire the same RFQ lock again."""
        with rfq_lock("rfq-reentrant"):
            with rfq_lock("rfq-reentrant", timeout=0.1):
                pass

    def test_busy_when_held_elsewhere(self):
        """Should raise RFQBusyError after the timeout."""
        held = threading.Event()
        release = threading.Event()

        def holder():
            with rfq_lock("rfq-busy"):
                held.set()
                release.wait(timeout=5)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(timeout=5)
        try:
            with pytest.raises(RFQBusyError) as exc_info:
                with rfq_lock("rfq-busy", timeout=0.05):
                    pass
            assert exc_info.value.status_code == 409
        finally:
            release.set()
            thread.join(timeout=5)

    def test_different_rfqs_do_not_block(self):
        """Should lock each RFQ independently."""
        held = threading.Event()
        release = threading.Event()

        def holder():
            with rfq_lock("rfq-a"):
                held.set()
                release.wait(timeout=5)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(timeout=5)
        try:
            with rfq_lock("rfq-b", timeout=0.05):
                pass
        finally:
            release.set()
            thread.join(timeout=5)

    def test_released_after_error(self):
        """Should release the lock when the body raises."""
        with pytest.raises(RuntimeError):
            with rfq_lock("rfq-error"):
                raise RuntimeError("boom")

        acquired = []
        thread = threading.Thread(target=lambda: acquired.append(_try_lock("rfq-error")))
        thread.start()
        thread.join(timeout=5)
        assert acquired == [True]

    def test_idle_locks_are_dropped(self):
        """Should not keep a lock for an RFQ nobody is using."""
        before = active_lock_count()

        for n in range(50):
            with rfq_lock(f"rfq-idle-{n}"):
                assert active_lock_count() == before + 1

        assert active_lock_count() == before

    def test_lock_kept_while_another_thread_waits(self):
        """Should hand the lock to a waiting thread, then drop the entry."""
        before = active_lock_count()
        held = threading.Event()
        release = threading.Event()
        waiter_done = []

        def holder():
            with rfq_lock("rfq-shared"):
                held.set()
                release.wait(timeout=5)

        def waiter():
            waiter_done.append(_try_lock("rfq-shared", timeout=5))

        first = threading.Thread(target=holder)
        first.start()
        held.wait(timeout=5)
        second = threading.Thread(target=waiter)
        second.start()
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert waiter_done == [True]
        assert active_lock_count() == before

    def test_timeout_releases_entry(self):
        """Should drop the waiter's claim after a timeout."""
        held = threading.Event()
        release = threading.Event()
        before = active_lock_count()

        def holder():
            with rfq_lock("rfq-timeout"):
                held.set()
                release.wait(timeout=5)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(timeout=5)
        try:
            with pytest.raises(RFQBusyError):
                with rfq_lock("rfq-timeout", timeout=0.05):
                    pass
        finally:
            release.set()
            thread.join(timeout=5)

        assert active_lock_count() == before


def _try_lock(rfq_id: str, timeout: float = 0.5) -> bool:
    try:
        with rfq_lock(rfq_id, timeout=timeout):
            return True
    except RFQBusyError:
        return False
