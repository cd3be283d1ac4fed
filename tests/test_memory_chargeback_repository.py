"""
Tests for `repositories/memory_chargeback_repository.py`.

The in-memory store backs the API tests, so it must honour the same guards
as the DynamoDB repository.
"""

from __future__ import annotations

import pytest

from domain.chargeback import ChargebackStatus, InvalidStatusTransitionError
from repositories.chargeback_repository import (
    ChargebackAlreadyExistsError,
    ChargebackNotFoundError,
)
from repositories.memory_chargeback_repository import InMemoryChargebackRepository


@pytest.fixture
def repo() -> InMemoryChargebackRepository:
    return InMemoryChargebackRepository()


def test_save_generates_identifier(repo, make_record) -> None:
    saved = repo.save(make_record())

    assert saved.id.startswith("cb_")
    assert repo.find_by_id(saved.id) == saved
    assert len(repo.list(0, 100)) == 1


def test_save_rejects_existing_identifier(repo, make_record) -> None:
    original = repo.save(make_record(id="cb_1", merchant_id="merchant-a"))

    with pytest.raises(ChargebackAlreadyExistsError):
        repo.save(make_record(id="cb_1", merchant_id="merchant-b"))

    assert repo.find_by_id("cb_1") == original


def test_reads_of_missing_records_are_empty(repo) -> None:
    assert repo.find_by_id("cb_missing") is None
    assert repo.find_by_transaction_id("tx-missing") is None
    assert repo.find_by_merchant_id("merchant-missing") == []
    assert repo.find_by_status(ChargebackStatus.REJECTED) == []


def test_secondary_lookups(repo, make_record) -> None:
    a = repo.save(make_record(id="cb_a", transaction_id="t-a", merchant_id="m-1"))
    b = repo.save(make_record(id="cb_b", transaction_id="t-b", merchant_id="m-1",
                              status=ChargebackStatus.APPROVED))
    repo.save(make_record(id="cb_c", transaction_id="t-c", merchant_id="m-2"))

    assert repo.find_by_transaction_id("t-b") == b
    assert repo.find_by_merchant_id("m-1") == [a, b]
    assert [r.id for r in repo.find_by_status(ChargebackStatus.PENDING)] == ["cb_a", "cb_c"]


def test_update_requires_existing_record(repo, make_record) -> None:
    with pytest.raises(ChargebackNotFoundError):
        repo.update(make_record(id="cb_missing"))

    assert len(repo.list(0, 100)) == 0


def test_update_refreshes_updated_at(repo, make_record) -> None:
    saved = repo.save(make_record(id="cb_1"))

    updated = repo.update(saved.reject(saved.updated_at))

    assert updated.updated_at > saved.updated_at
    assert repo.find_by_id("cb_1").status is ChargebackStatus.REJECTED


def test_stale_status_change_is_rejected(repo, make_record) -> None:
    stale = repo.save(make_record(id="cb_1"))
    approved = repo.update(stale.approve(stale.updated_at), expected_status=ChargebackStatus.PENDING)

    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        repo.update(stale.reject(stale.updated_at), expected_status=ChargebackStatus.PENDING)

    assert exc_info.value.current is ChargebackStatus.APPROVED
    assert repo.find_by_id("cb_1") == approved


def test_delete(repo, make_record) -> None:
    repo.save(make_record(id="cb_1"))

    repo.delete("cb_1")

    assert repo.find_by_id("cb_1") is None
    with pytest.raises(ChargebackNotFoundError):
        repo.delete("cb_1")


def test_list_pages(repo, make_record) -> None:
    ids = [repo.save(make_record(id=f"cb_{i}", transaction_id=f"t-{i}")).id for i in range(5)]

    assert [r.id for r in repo.list(0, 2)] == ids[:2]
    assert [r.id for r in repo.list(3, 10)] == ids[3:]
    assert repo.list(10, 5) == []

    with pytest.raises(ValueError):
        repo.list(0, 0)
