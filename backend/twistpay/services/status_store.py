"""In-memory transaction status store and its state machine.

``pending`` is set by a successful pre-validation; the payment processor then
reports ``approved`` or ``denied`` through store-status. Both are terminal.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Optional

from twistpay.services.record_store import now_iso

logger = logging.getLogger(__name__)


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


# None stands for "never seen"
TRANSITIONS: dict[Optional[TransactionStatus], set[TransactionStatus]] = {
    None: {
        TransactionStatus.PENDING,
        TransactionStatus.APPROVED,
        TransactionStatus.DENIED,
    },
    TransactionStatus.PENDING: {
        TransactionStatus.PENDING,
        TransactionStatus.APPROVED,
        TransactionStatus.DENIED,
    },
    TransactionStatus.APPROVED: set(),
    TransactionStatus.DENIED: set(),
}


def can_transition(
    from_state: Optional[TransactionStatus],
    to_state: TransactionStatus,
) -> bool:
    """Check if a transition from from_state to to_state is valid."""
    return to_state in TRANSITIONS.get(from_state, set())


def is_terminal_state(state: Optional[TransactionStatus]) -> bool:
    return state in (TransactionStatus.APPROVED, TransactionStatus.DENIED)


class StatusStore:
    """Lock-protected map of transaction_id -> status entry."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, dict[str, Any]] = {}

    def get(self, transaction_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(transaction_id)
            return dict(entry) if entry else None

    def status_of(self, transaction_id: str) -> Optional[TransactionStatus]:
        entry = self.get(transaction_id)
        return entry["status"] if entry else None

    def set_status(
        self,
        transaction_id: str,
        status: TransactionStatus,
        details: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Apply a transition; returns False (and keeps the old state) if invalid."""
        if not transaction_id:
            return False
        with self._lock:
            current = self._entries.get(transaction_id)
            current_status = current["status"] if current else None
            if not can_transition(current_status, status):
                logger.warning(
                    "Ignoring status %s for transaction %s: already %s",
                    status.value, transaction_id, current_status.value if current_status else None,
                )
                return False
            entry = dict(details or {})
            entry["status"] = status
            entry["t"] = now_iso()
            self._entries[transaction_id] = entry
        return True

    def mark_pending(self, transaction_id: str) -> bool:
        return self.set_status(transaction_id, TransactionStatus.PENDING)
