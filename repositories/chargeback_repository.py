"""
Chargeback persistence port.

Defines the contract the service layer depends on, the errors raised through
it, and identifier generation shared by every implementation.

Existence guards:
- save requires the identifier to be absent
- update and delete require it to be present
- a status change also requires the stored status to be unchanged since it was read

Reads never treat a missing record as an error; they return None or [].
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import List, Optional, Protocol

from domain.chargeback import ChargebackRecord, ChargebackStatus
from domain.time import utc_now

CHARGEBACK_ID_PREFIX = "cb_"


class RepositoryError(RuntimeError):
    """A store-level failure, wrapped with the operation that hit it."""

    def __init__(self, operation: str, cause: object, chargeback_id: Optional[str] = None) -> None:
        target = f" {chargeback_id}" if chargeback_id else ""
        super().__init__(f"failed to {operation}{target}: {cause}")
        self.operation = operation
        self.cause = cause
        self.chargeback_id = chargeback_id


class ChargebackAlreadyExistsError(RepositoryError):
    """Save hit an existing identifier."""

    def __init__(self, chargeback_id: str, cause: object = "chargeback already exists") -> None:
        super().__init__("save chargeback", cause, chargeback_id)


class ChargebackNotFoundError(RepositoryError):
    """Update or delete targeted an identifier that is not stored."""

    def __init__(self, operation: str, chargeback_id: str, cause: object = "chargeback not found") -> None:
        super().__init__(operation, cause, chargeback_id)


def generate_chargeback_id() -> str:
    """Return a new identifier: fixed prefix plus the current time in nanoseconds."""

    return f"{CHARGEBACK_ID_PREFIX}{time.time_ns()}"


class ChargebackRepository(Protocol):
    """Persistence operations for chargeback records."""

    def save(self, record: ChargebackRecord) -> ChargebackRecord:
        """Persist a new record, generating its id if empty. Returns the stored record."""
        ...

    def find_by_id(self, chargeback_id: str) -> Optional[ChargebackRecord]:
        ...

    def find_by_transaction_id(self, transaction_id: str) -> Optional[ChargebackRecord]:
        ...

    def find_by_merchant_id(self, merchant_id: str) -> List[ChargebackRecord]:
        ...

    def find_by_status(self, status: ChargebackStatus) -> List[ChargebackRecord]:
        ...

    def update(
        self,
        record: ChargebackRecord,
        *,
        expected_status: Optional[ChargebackStatus] = None,
    ) -> ChargebackRecord:
        """
        Replace an existing record, refreshing updated_at. Returns the stored record.

        With `expected_status`, the write only succeeds while the stored record
        still has that status; otherwise InvalidStatusTransitionError is raised
        with the stored status.
        """
        ...

    def delete(self, chargeback_id: str) -> None:
        ...

    def list(self, offset: int, limit: int) -> List[ChargebackRecord]:
        ...


def next_update_time(previous: datetime) -> datetime:
    """Current UTC time, nudged past `previous` when the clock has not moved on."""

    now = utc_now()
    if now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


def check_page_bounds(offset: int, limit: int) -> None:
    if offset < 0:
        raise ValueError("offset must be >= 0")
    if limit < 1:
        raise ValueError("limit must be >= 1")


__all__ = [
    "ChargebackRepository",
    "RepositoryError",
    "ChargebackAlreadyExistsError",
    "ChargebackNotFoundError",
    "generate_chargeback_id",
    "check_page_bounds",
    "next_update_time",
    "CHARGEBACK_ID_PREFIX",
]
