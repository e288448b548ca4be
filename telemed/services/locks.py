import logging
from contextlib import contextmanager
from threading import Lock, RLock

from telemed.core import config
from telemed.core.errors import ConcurrencyConflictError

logger = logging.getLogger(__name__)


class SlotLockRegistry:
    """Hands out one lock per slot id so check-then-write sequences on a slot run one at a time.

    The in-process lock serializes requests handled by this worker. Inside it the
    store also takes the slot row with SELECT ... FOR UPDATE, which covers other
    workers on databases that support row locks.

    Locks are re-entrant, so a payment can hold its slot across the gateway call
    and the serial assignment that follows. A slot's lock is dropped from the
    registry once nobody holds or waits for it.
    """

    def __init__(self, timeout_seconds: float | None = None):
        self.timeout_seconds = timeout_seconds or config.SLOT_LOCK_TIMEOUT_SECONDS
        self._locks: dict[int, RLock] = {}
        self._users: dict[int, int] = {}
        self._registry_lock = Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def _check_out(self, slot_id: int):
        with self._registry_lock:
            lock = self._locks.get(slot_id)
            if lock is None:
                lock = RLock()
                self._locks[slot_id] = lock
            self._users[slot_id] = self._users.get(slot_id, 0) + 1
            return lock

    def _check_in(self, slot_id: int) -> None:
        with self._registry_lock:
            self._users[slot_id] -= 1
            if self._users[slot_id] == 0:
                del self._users[slot_id]
                del self._locks[slot_id]

    @contextmanager
    def hold(self, slot_id: int, operation: str):
        lock = self._check_out(slot_id)
        try:
            if not lock.acquire(timeout=self.timeout_seconds):
                logger.warning('%s timed out waiting for slot %s', operation, slot_id)
                raise ConcurrencyConflictError(
                    'This slot is busy with another booking. Please retry.',
                    operation=operation,
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._check_in(slot_id)


slot_locks = SlotLockRegistry()
