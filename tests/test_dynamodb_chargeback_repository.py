"""
Tests for `repositories/dynamodb_chargeback_repository.py`.

Runs against FakeDynamoDBClient (no network). Covers:
- Conditional writes: save requires absence, update/delete require presence.
- Reads return None / [] for missing records, never an error.
- Secondary index queries, including the reserved `status` attribute name.
- Offset/limit listing over a paged scan.
- Store failures are wrapped with the operation name and cause.
- Round trip of every field through the attribute-value representation.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal, DecimalException

import pytest
from botocore.exceptions import ClientError

from domain.chargeback import ChargebackStatus, InvalidStatusTransitionError
from fake_dynamodb import FakeDynamoDBClient
from repositories.chargeback_repository import (
    ChargebackAlreadyExistsError,
    ChargebackNotFoundError,
    RepositoryError,
)
from repositories.dynamodb_chargeback_repository import (
    DynamoDBChargebackRepository,
    item_to_record,
    record_to_item,
)

TABLE = "chargebacks-test"


@pytest.fixture
def client() -> FakeDynamoDBClient:
    return FakeDynamoDBClient(table_name=TABLE)


@pytest.fixture
def repo(client) -> DynamoDBChargebackRepository:
    return DynamoDBChargebackRepository(client, TABLE)


def _seed(repo, make_record, count: int, **overrides):
    return [
        repo.save(make_record(transaction_id=f"txn-{i}", **overrides))
        for i in range(count)
    ]


class TestItemMapping:
    def test_item_is_flat_snake_case(self, make_record):
        item = record_to_item(make_record(id="cb_1"))

        assert set(item) == {
            "id", "transaction_id", "merchant_id", "amount", "currency", "card_number",
            "reason", "status", "description", "transaction_date", "chargeback_date",
            "created_at", "updated_at",
        }
        assert item["amount"] == {"N": "99.99"}
        assert item["status"] == {"S": "pending"}
        assert item["transaction_date"] == {"S": "2023-01-15T10:30:00+00:00"}

    def test_missing_description_round_trips_as_none(self, make_record):
        record = make_record(id="cb_1", description=None)

        assert record_to_item(record)["description"] == {"NULL": True}
        assert item_to_record(record_to_item(record)).description is None


class TestSave:
    def test_generates_identifier_when_empty(self, repo, client, make_record):
        saved = repo.save(make_record(id=""))

        assert saved.id.startswith("cb_")
        assert saved.id[3:].isdigit()
        assert saved.id in client.items

    def test_uses_attribute_not_exists_condition(self, repo, client, make_record):
        repo.save(make_record(id="cb_1"))

        put = client.calls_to("PutItem")[0]
        assert put["TableName"] == TABLE
        assert put["ConditionExpression"] == "attribute_not_exists(id)"

    def test_existing_identifier_is_rejected_and_original_kept(self, repo, client, make_record):
        original = repo.save(make_record(id="cb_1", merchant_id="merchant-a"))

        with pytest.raises(ChargebackAlreadyExistsError) as exc_info:
            repo.save(make_record(id="cb_1", merchant_id="merchant-b"))

        assert exc_info.value.chargeback_id == "cb_1"
        assert isinstance(exc_info.value.__cause__, ClientError)
        assert repo.find_by_id("cb_1") == original

    def test_store_failure_is_wrapped(self, repo, client, make_record):
        client.fail("PutItem", "ProvisionedThroughputExceededException")

        with pytest.raises(RepositoryError) as exc_info:
            repo.save(make_record(id="cb_1"))

        assert not isinstance(exc_info.value, ChargebackAlreadyExistsError)
        assert exc_info.value.operation == "save chargeback"
        assert "failed to save chargeback cb_1" in str(exc_info.value)
        assert "ProvisionedThroughputExceededException" in str(exc_info.value)

    def test_amount_beyond_store_precision_is_wrapped(self, repo, client, make_record):
        amount = Decimal("1.0000000000000000000000000000000000000001")

        with pytest.raises(RepositoryError) as exc_info:
            repo.save(make_record(id="cb_1", amount=amount))

        assert exc_info.value.operation == "save chargeback"
        assert isinstance(exc_info.value.__cause__, DecimalException)
        assert client.calls_to("PutItem") == []


class TestFind:
    def test_find_by_id_missing_returns_none(self, repo):
        assert repo.find_by_id("cb_never_saved") is None

    def test_round_trip_is_field_for_field_identical(self, repo, make_record):
        record = make_record(
            id="cb_1",
            amount=Decimal("1234.56"),
            created_at=datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc),
            updated_at=datetime(2024, 5, 6, 7, 8, 9, 654321, tzinfo=timezone.utc),
        )
        repo.save(record)

        assert repo.find_by_id("cb_1") == record
        assert repo.find_by_transaction_id(record.transaction_id) == record
        assert repo.find_by_merchant_id(record.merchant_id) == [record]
        assert repo.find_by_status(ChargebackStatus.PENDING) == [record]

    def test_find_by_transaction_id_queries_index_for_one_item(self, repo, client, make_record):
        saved = repo.save(make_record(transaction_id="tx-9"))

        assert repo.find_by_transaction_id("tx-9") == saved
        query = client.calls_to("Query")[-1]
        assert query["IndexName"] == "transaction-id-index"
        assert query["KeyConditionExpression"] == "transaction_id = :tid"
        assert query["ExpressionAttributeValues"] == {":tid": {"S": "tx-9"}}
        assert query["Limit"] == 1

    def test_find_by_transaction_id_missing_returns_none(self, repo):
        assert repo.find_by_transaction_id("tx-unknown") is None

    def test_find_by_merchant_id_returns_all_matches_across_pages(self, client, make_record):
        client.page_size = 2
        repo = DynamoDBChargebackRepository(client, TABLE)
        saved = _seed(repo, make_record, 5, merchant_id="merchant-x")
        repo.save(make_record(transaction_id="other", merchant_id="merchant-y"))

        found = repo.find_by_merchant_id("merchant-x")

        assert sorted(r.id for r in found) == sorted(r.id for r in saved)
        assert len(client.calls_to("Query")) >= 3
        assert client.calls_to("Query")[0]["IndexName"] == "merchant-id-index"

    def test_find_by_merchant_id_without_matches_is_empty(self, repo):
        assert repo.find_by_merchant_id("nobody") == []

    def test_find_by_status_uses_attribute_name_for_reserved_word(self, repo, client, make_record):
        pending = repo.save(make_record(transaction_id="t1"))
        repo.save(make_record(transaction_id="t2", status=ChargebackStatus.APPROVED))

        assert repo.find_by_status(ChargebackStatus.PENDING) == [pending]

        query = client.calls_to("Query")[-1]
        assert query["IndexName"] == "status-index"
        assert query["KeyConditionExpression"] == "#status = :status"
        assert query["ExpressionAttributeNames"] == {"#status": "status"}
        assert query["ExpressionAttributeValues"] == {":status": {"S": "pending"}}

    def test_query_failure_is_wrapped(self, repo, client):
        client.fail("Query")

        with pytest.raises(RepositoryError, match="query chargeback by transaction ID"):
            repo.find_by_transaction_id("tx-1")
        with pytest.raises(RepositoryError, match="query chargebacks by status"):
            repo.find_by_status(ChargebackStatus.PENDING)

    def test_get_failure_is_wrapped(self, repo, client):
        client.fail("GetItem", "AccessDeniedException")

        with pytest.raises(RepositoryError) as exc_info:
            repo.find_by_id("cb_1")

        assert exc_info.value.operation == "get chargeback"
        assert isinstance(exc_info.value.__cause__, ClientError)


class TestUpdate:
    def test_missing_record_is_rejected(self, repo, client, make_record):
        with pytest.raises(ChargebackNotFoundError):
            repo.update(make_record(id="cb_missing"))

        assert "cb_missing" not in client.items
        assert client.calls_to("PutItem")[-1]["ConditionExpression"] == "attribute_exists(id)"

    def test_update_advances_updated_at(self, repo, make_record):
        saved = repo.save(make_record(id="cb_1"))

        first = repo.update(saved.approve(saved.updated_at))
        second = repo.update(first)

        assert first.updated_at > saved.updated_at
        assert second.updated_at > first.updated_at
        assert repo.find_by_id("cb_1") == second
        assert second.status is ChargebackStatus.APPROVED
        assert second.created_at == saved.created_at

    def test_update_advances_even_when_clock_is_behind(self, repo, make_record):
        future = datetime(2999, 1, 1, tzinfo=timezone.utc)
        saved = repo.save(make_record(id="cb_1", created_at=future, updated_at=future))

        updated = repo.update(saved)

        assert updated.updated_at > future

    def test_amount_beyond_store_precision_is_wrapped(self, repo, client, make_record):
        saved = repo.save(make_record(id="cb_1"))

        with pytest.raises(RepositoryError) as exc_info:
            repo.update(replace(saved, amount=Decimal("9" * 40)))

        assert exc_info.value.operation == "update chargeback"
        assert isinstance(exc_info.value.__cause__, DecimalException)
        assert repo.find_by_id("cb_1") == saved

    def test_status_change_requires_expected_status(self, repo, client, make_record):
        saved = repo.save(make_record(id="cb_1"))

        approved = repo.update(saved.approve(saved.updated_at), expected_status=ChargebackStatus.PENDING)

        put = client.calls_to("PutItem")[-1]
        assert put["ConditionExpression"] == "attribute_exists(id) AND #status = :expected"
        assert put["ExpressionAttributeNames"] == {"#status": "status"}
        assert put["ExpressionAttributeValues"] == {":expected": {"S": "pending"}}
        assert put["ReturnValuesOnConditionCheckFailure"] == "ALL_OLD"
        assert approved.status is ChargebackStatus.APPROVED

    def test_stale_status_change_is_rejected(self, repo, make_record):
        stale = repo.save(make_record(id="cb_1"))
        approved = repo.update(stale.approve(stale.updated_at), expected_status=ChargebackStatus.PENDING)

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            repo.update(stale.reject(stale.updated_at), expected_status=ChargebackStatus.PENDING)

        assert exc_info.value.current is ChargebackStatus.APPROVED
        assert exc_info.value.target is ChargebackStatus.REJECTED
        assert repo.find_by_id("cb_1") == approved

    def test_status_change_on_missing_record(self, repo, make_record):
        with pytest.raises(ChargebackNotFoundError):
            repo.update(make_record(id="cb_missing"), expected_status=ChargebackStatus.PENDING)


class TestDelete:
    def test_missing_record_is_rejected(self, repo):
        with pytest.raises(ChargebackNotFoundError) as exc_info:
            repo.delete("cb_missing")

        assert exc_info.value.operation == "delete chargeback"

    def test_deleted_record_is_no_longer_found(self, repo, client, make_record):
        saved = repo.save(make_record(id="cb_1"))

        repo.delete(saved.id)

        assert repo.find_by_id(saved.id) is None
        assert client.calls_to("DeleteItem")[0]["ConditionExpression"] == "attribute_exists(id)"
        with pytest.raises(ChargebackNotFoundError):
            repo.delete(saved.id)


class TestList:
    def test_offset_past_end_returns_empty_list(self, repo, make_record):
        _seed(repo, make_record, 3)

        assert repo.list(offset=10, limit=5) == []

    def test_empty_table_returns_empty_list(self, repo):
        assert repo.list(offset=0, limit=5) == []

    def test_first_page(self, repo, make_record):
        saved = _seed(repo, make_record, 5)

        assert [r.id for r in repo.list(offset=0, limit=3)] == [r.id for r in saved[:3]]

    def test_offset_sweeps_multiple_scan_pages(self, repo, client, make_record):
        saved = _seed(repo, make_record, 7)

        page = repo.list(offset=4, limit=2)

        assert [r.id for r in page] == [r.id for r in saved[4:6]]
        scans = client.calls_to("Scan")
        assert len(scans) == 3
        assert all(scan["Limit"] == 2 for scan in scans)
        assert "ExclusiveStartKey" not in scans[0]
        assert scans[1]["ExclusiveStartKey"] == {"id": {"S": saved[1].id}}

    def test_partial_last_page(self, repo, make_record):
        saved = _seed(repo, make_record, 5)

        assert [r.id for r in repo.list(offset=3, limit=5)] == [r.id for r in saved[3:]]

    def test_continues_when_store_returns_short_pages(self, client, make_record):
        client.page_size = 1
        repo = DynamoDBChargebackRepository(client, TABLE)
        saved = _seed(repo, make_record, 4)

        page = repo.list(offset=0, limit=3)

        assert [r.id for r in page] == [r.id for r in saved[:3]]
        assert len(client.calls_to("Scan")) == 3

    def test_invalid_bounds_are_rejected(self, repo):
        with pytest.raises(ValueError):
            repo.list(offset=-1, limit=5)
        with pytest.raises(ValueError):
            repo.list(offset=0, limit=0)

    def test_scan_failure_is_wrapped(self, repo, client):
        client.fail("Scan")

        with pytest.raises(RepositoryError, match="scan chargebacks"):
            repo.list(offset=0, limit=5)


def test_wrong_table_surfaces_as_repository_error(client, make_record) -> None:
    repo = DynamoDBChargebackRepository(client, "missing-table")

    with pytest.raises(RepositoryError, match="ResourceNotFoundException"):
        repo.save(make_record(id="cb_1"))
