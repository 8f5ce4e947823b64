# ==========================================================
#                  ENTITY LOCK MANAGER
# ==========================================================
import threading
from contextlib import contextmanager
from logger import ledger_logger as logger


class EntityLockManager:
    """
    Per-entity mutual exclusion inside one worker process.

    Keys look like ("user", 42) or ("deposit", "HT-..."). Callers block
    until the entity is free; the database-level conditional updates in
    ledger.stores keep the invariants across processes.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}
        self._holders = {}

    def _lock_for(self, key):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
                self._holders[key] = 0
            self._holders[key] += 1
            return lock

    def _release(self, key):
        with self._guard:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    @contextmanager
    def hold(self, *key, timeout=-1):
        lock = self._lock_for(key)
        try:
            if not lock.acquire(timeout=timeout):
                logger.warning(f"Timed out waiting for lock on {key}")
                raise TimeoutError(f"Lock on {key} not acquired")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release(key)

    def active_keys(self):
        with self._guard:
            return list(self._locks)


entity_locks = EntityLockManager()


def user_lock(user_id):
    return entity_locks.hold("user", int(user_id))
