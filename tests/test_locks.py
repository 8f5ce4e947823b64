import threading
import time

import pytest

from ledger.locks import EntityLockManager


def test_hold_releases_and_forgets_the_key():
    locks = EntityLockManager()
    with locks.hold("user", 1):
        assert locks.active_keys() == [("user", 1)]
    assert locks.active_keys() == []


def test_hold_releases_on_error():
    locks = EntityLockManager()
    with pytest.raises(RuntimeError):
        with locks.hold("user", 1):
            raise RuntimeError("boom")
    with locks.hold("user", 1, timeout=0.1):
        pass


def test_same_key_is_mutually_exclusive():
    locks = EntityLockManager()
    inside = []
    overlaps = []

    def worker():
        with locks.hold("user", 7):
            inside.append(1)
            if len(inside) > 1:
                overlaps.append(True)
            time.sleep(0.01)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlaps == []
    assert locks.active_keys() == []


def test_other_keys_do_not_block_and_timeout_raises():
    locks = EntityLockManager()
    with locks.hold("user", 1):
        with locks.hold("user", 2, timeout=0.1):
            pass
        with pytest.raises(TimeoutError):
            with locks.hold("user", 1, timeout=0.05):
                pass
    assert locks.active_keys() == []
