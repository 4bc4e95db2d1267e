import threading
import time
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

NotificationKind = Literal["payin", "payout"]


class NotificationRecord(BaseModel):
    kind: NotificationKind
    order_id: str
    order_status: Optional[str] = None
    received_at: float
    payload: Dict[str, Any] = Field(default_factory=dict)


class InMemoryInbox:
    """Latest verified callback per (kind, order id); gateways resend, so later copies replace earlier ones."""

    def __init__(self, max_items: int = 1000):
        self.max_items = max(1, int(max_items))
        self._records: Dict[Tuple[str, str], NotificationRecord] = {}
        self._lock = threading.Lock()

    def record(
        self,
        kind: NotificationKind,
        order_id: str,
        payload: Dict[str, Any],
        *,
        order_status: Optional[str] = None,
    ) -> NotificationRecord:
        rec = NotificationRecord(
            kind=kind,
            order_id=order_id,
            order_status=order_status,
            received_at=time.time(),
            payload=payload,
        )
        with self._lock:
            self._records[(kind, order_id)] = rec
            if len(self._records) > self.max_items:
                oldest = min(self._records, key=lambda k: self._records[k].received_at)
                del self._records[oldest]
        return rec

    def get(self, kind: NotificationKind, order_id: str) -> Optional[NotificationRecord]:
        with self._lock:
            return self._records.get((kind, order_id))

    def list_recent(self, kind: Optional[NotificationKind] = None) -> List[NotificationRecord]:
        with self._lock:
            snapshot = list(self._records.values())
        out = [r for r in snapshot if kind is None or r.kind == kind]
        # Most recent first.
        out.sort(key=lambda r: r.received_at, reverse=True)
        return out
