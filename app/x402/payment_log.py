# app/x402/payment_log.py
"""
In-process record of payment attempts.

Each gate transition appends one immutable PaymentAttempt. The log is a
bounded deque, so the oldest attempts are dropped once
X402_PAYMENT_LOG_MAX_ENTRIES is reached. When X402_AUDIT_LOG_PATH is set,
every attempt is also written as a JSON line for reconciliation.
"""
import json
import logging
import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class PaymentStatus(Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    SETTLED = "settled"
    FAILED = "failed"


def generate_attempt_id() -> str:
    return str(uuid.uuid4())[:8]


@dataclass(frozen=True)
class PaymentAttempt:
    timestamp: str
    attempt_id: str
    capability: str
    price: str
    network: str
    status: PaymentStatus
    payer: Optional[str] = None
    reference: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


class PaymentLog:
    """Bounded, append-only list of payment attempts. Safe across threads."""

    def __init__(self, max_entries: int = 1000, audit_path: Optional[str] = None):
        self._entries = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._audit_path = Path(audit_path) if audit_path else None

    def record(
        self,
        capability: str,
        price: str,
        network: str,
        status: PaymentStatus,
        attempt_id: Optional[str] = None,
        payer: Optional[str] = None,
        reference: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> PaymentAttempt:
        attempt = PaymentAttempt(
            timestamp=datetime.now(timezone.utc).isoformat(),
            attempt_id=attempt_id or generate_attempt_id(),
            capability=capability,
            price=price,
            network=network,
            status=status,
            payer=payer,
            reference=reference,
            reason=reason,
        )
        with self._lock:
            self._entries.append(attempt)
            self._write_audit_line(attempt)
        return attempt

    def recent(self, limit: int = 50) -> List[PaymentAttempt]:
        """Most recent attempts, newest first."""
        if limit <= 0:
            return []
        with self._lock:
            entries = list(self._entries)
        return list(reversed(entries[-limit:]))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _write_audit_line(self, attempt: PaymentAttempt) -> None:
        if self._audit_path is None:
            return
        try:
            self._audit_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._audit_path, "a") as f:
                f.write(json.dumps(attempt.to_dict()) + "\n")
        except OSError as e:
            logger.error(f"Failed to write payment audit line: {e}")
