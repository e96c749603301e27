from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Iterator


def console_key(console_id: str) -> str:
    return f"console:{console_id}"


def member_key(member_id: str) -> str:
    return f"member:{member_id}"


class KeyedLocks:
    """One re-entrant lock per key (console id, member id).

    Unrelated keys never contend, so independent consoles and members are
    processed in parallel.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, RLock] = {}

    def get(self, key: str) -> RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.get(key)
        with lock:
            yield

    @contextmanager
    def try_hold(self, key: str) -> Iterator[bool]:
        lock = self.get(key)
        acquired = lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()
