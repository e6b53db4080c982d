# tests/test_x402_payment_log.py
"""
Unit tests for the payment attempt log.
"""
import dataclasses
import json
import threading

import pytest

from app.x402.payment_log import PaymentAttempt, PaymentLog, PaymentStatus, generate_attempt_id


def record(log, status=PaymentStatus.PENDING, capability="contract-scan", **kwargs):
    return log.record(capability=capability, price="$0.01", network="base-sepolia", status=status, **kwargs)


class TestPaymentLog:
    """Test PaymentLog behaviour."""

    def test_record_returns_attempt(self):
        log = PaymentLog()
        attempt = record(log, PaymentStatus.SETTLED, payer="0xpayer", reference="0xtx")

        assert isinstance(attempt, PaymentAttempt)
        assert attempt.status == PaymentStatus.SETTLED
        assert attempt.reference == "0xtx"
        assert len(attempt.attempt_id) == 8
        assert len(log) == 1

    def test_attempts_are_immutable(self):
        attempt = record(PaymentLog())
        with pytest.raises(dataclasses.FrozenInstanceError):
            attempt.status = PaymentStatus.SETTLED

    def test_recent_is_newest_first(self):
        log = PaymentLog()
        for slug in ["a", "b", "c"]:
            record(log, capability=slug)

        assert [attempt.capability for attempt in log.recent(10)] == ["c", "b", "a"]
        assert [attempt.capability for attempt in log.recent(2)] == ["c", "b"]
        assert log.recent(0) == []

    def test_log_is_bounded(self):
        """Oldest attempts are dropped once the bound is reached."""
        log = PaymentLog(max_entries=3)
        for i in range(5):
            record(log, capability=f"cap-{i}")

        assert len(log) == 3
        assert [attempt.capability for attempt in log.recent(10)] == ["cap-4", "cap-3", "cap-2"]

    def test_concurrent_appends(self):
        log = PaymentLog(max_entries=10000)

        def worker():
            for _ in range(100):
                record(log)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(log) == 800

    def test_audit_file_mirror(self, tmp_path):
        """Each attempt is appended to the audit file as one JSON line."""
        path = tmp_path / "audit" / "payments.jsonl"
        log = PaymentLog(audit_path=str(path))
        record(log, PaymentStatus.PENDING, attempt_id="abc12345")
        record(log, PaymentStatus.FAILED, attempt_id="abc12345", reason="invalid")

        lines = path.read_text().strip().split("\n")
        assert len(lines) == 2
        events = [json.loads(line) for line in lines]
        assert events[0]["status"] == "pending"
        assert events[1]["status"] == "failed"
        assert events[1]["reason"] == "invalid"
        assert events[1]["attempt_id"] == "abc12345"

    def test_concurrent_audit_order_matches_log(self, tmp_path):
        """Audit lines land in the same order as the in-memory log."""
        path = tmp_path / "payments.jsonl"
        log = PaymentLog(max_entries=10000, audit_path=str(path))

        def worker(n):
            for i in range(50):
                record(log, attempt_id=f"{n:02d}{i:06d}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        audited = [json.loads(line)["attempt_id"] for line in path.read_text().strip().split("\n")]
        in_memory = [attempt.attempt_id for attempt in reversed(log.recent(10000))]
        assert audited == in_memory


class TestGenerateAttemptId:
    def test_unique(self):
        ids = {generate_attempt_id() for _ in range(100)}
        assert len(ids) == 100
