"""Unit tests for app.core.rate_limit.FixedWindowRateLimiter."""

import threading
import unittest

from app.core.rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestFixedWindow(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.limiter = FixedWindowRateLimiter(3, 60, clock=self.clock)

    def test_allows_up_to_max_then_blocks(self) -> None:
        results = [self.limiter.check("ip:1") for _ in range(4)]
        self.assertEqual([r.allowed for r in results], [True, True, True, False])
        self.assertEqual([r.remaining for r in results], [2, 1, 0, 0])
        self.assertTrue(all(r.limit == 3 for r in results))

    def test_window_resets_after_expiry(self) -> None:
        for _ in range(3):
            self.limiter.check("ip:1")
        self.clock.now += 59
        self.assertFalse(self.limiter.check("ip:1").allowed)
        self.clock.now += 1
        result = self.limiter.check("ip:1")
        self.assertTrue(result.allowed)
        self.assertEqual(result.remaining, 2)

    def test_window_is_fixed_from_first_hit(self) -> None:
        self.limiter.check("ip:1")
        self.clock.now += 50
        self.limiter.check("ip:1")
        self.limiter.check("ip:1")
        blocked = self.limiter.check("ip:1")
        self.assertFalse(blocked.allowed)
        self.assertEqual(blocked.reset_after, 10)

    def test_keys_are_independent(self) -> None:
        for _ in range(3):
            self.limiter.check("ip:1")
        self.assertFalse(self.limiter.check("ip:1").allowed)
        self.assertTrue(self.limiter.check("ip:2").allowed)

    def test_reset_clears_key(self) -> None:
        for _ in range(4):
            self.limiter.check("ip:1")
        self.limiter.reset("ip:1")
        self.assertTrue(self.limiter.check("ip:1").allowed)

    def test_rejects_invalid_configuration(self) -> None:
        with self.assertRaises(ValueError):
            FixedWindowRateLimiter(0, 60)
        with self.assertRaises(ValueError):
            FixedWindowRateLimiter(5, 0)


class TestConcurrentHits(unittest.TestCase):
    """Concurrent checks on one key never admit more than max_requests."""

    def test_exactly_max_allowed_across_threads(self) -> None:
        limiter = FixedWindowRateLimiter(100, 3600)
        allowed: list[bool] = []
        lock = threading.Lock()
        start = threading.Barrier(8)

        def worker() -> None:
            start.wait()
            for _ in range(50):
                ok = limiter.check("shared").allowed
                with lock:
                    allowed.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(allowed), 400)
        self.assertEqual(sum(allowed), 100)


if __name__ == "__main__":
    unittest.main()
