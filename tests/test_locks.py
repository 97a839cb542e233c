import threading
import time
import unittest

from smarttopup.locks import KeyedLock


class KeyedLockTests(unittest.TestCase):
    def test_same_key_is_serialised(self) -> None:
        locks = KeyedLock()
        inside = []
        overlaps = []

        def work():
            with locks.hold(7):
                inside.append(1)
                if len(inside) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=work) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(overlaps, [])

    def test_different_keys_do_not_block(self) -> None:
        locks = KeyedLock()
        with locks.hold(1):
            acquired = threading.Event()

            def other():
                with locks.hold(2):
                    acquired.set()

            thread = threading.Thread(target=other)
            thread.start()
            self.assertTrue(acquired.wait(1))
            thread.join()

    def test_entries_are_dropped_when_released(self) -> None:
        locks = KeyedLock()
        with locks.hold("a"):
            self.assertEqual(len(locks), 1)
        self.assertEqual(len(locks), 0)

    def test_hold_all_holds_each_key_once(self) -> None:
        locks = KeyedLock()
        with locks.hold_all([3, 1, 3]):
            self.assertEqual(len(locks), 2)
            blocked = threading.Event()

            def other():
                with locks.hold(1):
                    blocked.set()

            thread = threading.Thread(target=other)
            thread.start()
            self.assertFalse(blocked.wait(0.05))
        thread.join(1)
        self.assertTrue(blocked.is_set())
        self.assertEqual(len(locks), 0)

    def test_hold_all_with_no_keys(self) -> None:
        locks = KeyedLock()
        with locks.hold_all([]):
            self.assertEqual(len(locks), 0)

    def test_overlapping_sets_in_any_order_do_not_deadlock(self) -> None:
        locks = KeyedLock()

        def work(keys):
            for _ in range(200):
                with locks.hold_all(keys):
                    pass

        threads = [
            threading.Thread(target=work, args=([1, 2, 3],)),
            threading.Thread(target=work, args=([3, 2, 1],)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5)
        self.assertFalse(any(thread.is_alive() for thread in threads))
