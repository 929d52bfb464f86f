"""
Tests for per-tool locking (cli_manager/locks.py).
"""

import threading
import time

from cli_manager.locks import KeyedLock


class TestKeyedLock:
    """Tests for KeyedLock."""

    def test_same_key_same_lock(self):
        locks = KeyedLock()
        assert locks.get("codex") is locks.get("CODEX")
        assert len(locks) == 1

    def test_different_keys(self):
        locks = KeyedLock()
        assert locks.get("codex") is not locks.get("aider")
        assert len(locks) == 2

    def test_reentrant(self):
        """Test nested holds of one key by one thread do not deadlock."""
        locks = KeyedLock()
        with locks.hold("codex"):
            with locks.hold("codex"):
                pass

    def test_same_key_serialized(self):
        locks = KeyedLock()
        active = []
        overlap = []

        def work():
            with locks.hold("codex"):
                active.append(1)
                if len(active) > 1:
                    overlap.append(True)
                time.sleep(0.05)
                active.pop()

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert overlap == []

    def test_different_keys_not_blocked(self):
        """Test holding one key never blocks another."""
        locks = KeyedLock()
        acquired = threading.Event()

        def other():
            with locks.hold("aider"):
                acquired.set()

        with locks.hold("codex"):
            thread = threading.Thread(target=other)
            thread.start()
            assert acquired.wait(timeout=5)
        thread.join(timeout=5)
