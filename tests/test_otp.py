"""
Unit Tests for the one-time code store
"""
import threading

from eduhash.storage.otp import OtpStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestOtpStore:
    def test_issue_returns_six_digits(self):
        code = OtpStore().issue("tx1")
        assert len(code) == 6 and code.isdigit()

    def test_consume_is_at_most_once(self):
        """A valid code works once; resubmitting it fails"""
        otps = OtpStore()
        code = otps.issue("tx1")

        assert otps.consume("tx1", code) is True
        assert otps.consume("tx1", code) is False

    def test_wrong_code_keeps_the_right_one(self):
        otps = OtpStore()
        code = otps.issue("tx1")
        wrong = "000000" if code != "000000" else "111111"

        assert otps.consume("tx1", wrong) is False
        assert otps.consume("tx1", code) is True

    def test_codes_are_per_key(self):
        otps = OtpStore()
        code = otps.issue("tx1")
        assert otps.consume("tx2", code) is False

    def test_reissue_replaces_previous_code(self):
        otps = OtpStore()
        codes = [otps.issue("tx1") for _ in range(5)]
        assert len(otps) == 1
        assert otps.consume("tx1", codes[-1]) is True

    def test_expired_code_rejected(self):
        clock = FakeClock()
        otps = OtpStore(ttl_seconds=60, clock=clock)
        code = otps.issue("tx1")

        clock.now += 61

        assert otps.consume("tx1", code) is False
        assert len(otps) == 0

    def test_issue_purges_expired_codes(self):
        clock = FakeClock()
        otps = OtpStore(ttl_seconds=60, clock=clock)
        otps.issue("old")
        clock.now += 120

        otps.issue("new")

        assert len(otps) == 1

    def test_concurrent_consumers_only_one_wins(self):
        otps = OtpStore()
        code = otps.issue("tx1")
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(otps.consume("tx1", code))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
