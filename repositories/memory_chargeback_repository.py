"""
In-memory chargeback repository.

Implements the same contract as the DynamoDB repository (existence guards,
silent not-found on reads, updated_at refresh, status-guarded updates,
offset/limit over an unordered sweep) on a plain dict. Insertion order stands in
for scan order.

Used by the test suite and for local runs with CHARGEBACK_STORE=memory. State
lives for the lifetime of the instance only.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from domain.chargeback import (
    ChargebackRecord,
    ChargebackStatus,
    InvalidStatusTransitionError,
)
from repositories.chargeback_repository import (
    ChargebackAlreadyExistsError,
    ChargebackNotFoundError,
    check_page_bounds,
    generate_chargeback_id,
    next_update_time,
)


class InMemoryChargebackRepository:
    def __init__(self) -> None:
        self._records: Dict[str, ChargebackRecord] = {}

    def save(self, record: ChargebackRecord) -> ChargebackRecord:
        if not record.id:
            record = record.with_id(generate_chargeback_id())
        if record.id in self._records:
            raise ChargebackAlreadyExistsError(record.id)
        self._records[record.id] = record
        return record

    def find_by_id(self, chargeback_id: str) -> Optional[ChargebackRecord]:
        return self._records.get(chargeback_id)

    def find_by_transaction_id(self, transaction_id: str) -> Optional[ChargebackRecord]:
        for record in self._records.values():
            if record.transaction_id == transaction_id:
                return record
        return None

    def find_by_merchant_id(self, merchant_id: str) -> List[ChargebackRecord]:
        return [r for r in self._records.values() if r.merchant_id == merchant_id]

    def find_by_status(self, status: ChargebackStatus) -> List[ChargebackRecord]:
        status = ChargebackStatus(status)
        return [r for r in self._records.values() if r.status is status]

    def update(
        self,
        record: ChargebackRecord,
        *,
        expected_status: Optional[ChargebackStatus] = None,
    ) -> ChargebackRecord:
        stored = self._records.get(record.id)
        if stored is None:
            raise ChargebackNotFoundError("update chargeback", record.id)
        if expected_status is not None and stored.status is not ChargebackStatus(expected_status):
            raise InvalidStatusTransitionError(stored.status, record.status)
        record = record.touched(next_update_time(record.updated_at))
        self._records[record.id] = record
        return record

    def delete(self, chargeback_id: str) -> None:
        if chargeback_id not in self._records:
            raise ChargebackNotFoundError("delete chargeback", chargeback_id)
        del self._records[chargeback_id]

    def list(self, offset: int, limit: int) -> List[ChargebackRecord]:
        check_page_bounds(offset, limit)
        records = list(self._records.values())
        return records[offset:offset + limit]


__all__ = ["InMemoryChargebackRepository"]
