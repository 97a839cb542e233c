import threading
from contextlib import ExitStack, contextmanager


class KeyedLock:
    """One mutex per key, created on demand and dropped when nobody holds it.

    Holding ``schedule_locks.hold(42)`` blocks any other thread trying to
    execute or mutate schedule 42 until the block exits; other ids proceed
    in parallel.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries = {}  # key -> [lock, waiters]

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._entries.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[key]

    @contextmanager
    def hold_all(self, keys):
        """Hold every key at once. Keys are taken in sorted order so two
        callers locking overlapping sets cannot deadlock."""
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self.hold(key))
            yield

    def __len__(self):
        with self._guard:
            return len(self._entries)


schedule_locks = KeyedLock()
rule_locks = KeyedLock()
