"""
Chargeback repository backed by DynamoDB (persistence).

Table layout:
- primary key: `id` (string hash key)
- GSI `transaction-id-index` on `transaction_id`
- GSI `merchant-id-index` on `merchant_id`
- GSI `status-index` on `status`

Existence guards are DynamoDB condition expressions evaluated atomically by the
store; there is no read-before-write anywhere in this module. Status changes
add the previously read status to the update condition, and on failure the
stored item comes back with the error (ReturnValuesOnConditionCheckFailure).

Listing emulates offset/limit on top of a paged Scan. The cost grows with the
offset since every skipped item is still read. Callers needing deep paging
should move to continuation tokens.
"""

from __future__ import annotations

import logging
from decimal import Decimal, DecimalException
from typing import Any, Dict, Iterator, List, Mapping, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from domain.chargeback import (
    ChargebackReason,
    ChargebackRecord,
    ChargebackStatus,
    InvalidStatusTransitionError,
)
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.chargeback_repository import (
    ChargebackAlreadyExistsError,
    ChargebackNotFoundError,
    RepositoryError,
    check_page_bounds,
    generate_chargeback_id,
    next_update_time,
)

logger = logging.getLogger(__name__)

TRANSACTION_ID_INDEX = "transaction-id-index"
MERCHANT_ID_INDEX = "merchant-id-index"
STATUS_INDEX = "status-index"

_CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()

Item = Dict[str, Dict[str, Any]]


def _is_condition_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == _CONDITIONAL_CHECK_FAILED


def record_to_item(record: ChargebackRecord) -> Item:
    """Convert a ChargebackRecord into a DynamoDB attribute-value map."""

    row: dict[str, Any] = {
        "id": record.id,
        "transaction_id": record.transaction_id,
        "merchant_id": record.merchant_id,
        "amount": Decimal(str(record.amount)),
        "currency": record.currency,
        "card_number": record.card_number,
        "reason": record.reason.value,
        "status": record.status.value,
        "description": record.description,
        "transaction_date": to_iso_utc(record.transaction_date, name="transaction_date"),
        "chargeback_date": to_iso_utc(record.chargeback_date, name="chargeback_date"),
        "created_at": to_iso_utc(record.created_at, name="created_at"),
        "updated_at": to_iso_utc(record.updated_at, name="updated_at"),
    }
    return {key: _serializer.serialize(value) for key, value in row.items()}


def item_to_record(item: Mapping[str, Mapping[str, Any]]) -> ChargebackRecord:
    """Convert a DynamoDB attribute-value map into a ChargebackRecord."""

    row = {key: _deserializer.deserialize(value) for key, value in item.items()}

    return ChargebackRecord(
        id=str(row["id"]),
        transaction_id=str(row["transaction_id"]),
        merchant_id=str(row["merchant_id"]),
        amount=Decimal(str(row["amount"])),
        currency=str(row.get("currency", "")),
        card_number=str(row.get("card_number", "")),
        reason=ChargebackReason(str(row["reason"])),
        status=ChargebackStatus(str(row["status"])),
        description=row.get("description") or None,
        transaction_date=parse_utc_datetime(row["transaction_date"]),
        chargeback_date=parse_utc_datetime(row["chargeback_date"]),
        created_at=parse_utc_datetime(row["created_at"]),
        updated_at=parse_utc_datetime(row["updated_at"]),
    )


class DynamoDBChargebackRepository:
    """
    ChargebackRepository implementation over a low-level boto3 DynamoDB client.

    The client is expected to be configured with call timeouts (see
    `repositories.client.create_dynamodb_client`); each operation issues its
    store calls through it and wraps failures in RepositoryError.
    """

    def __init__(
        self,
        client: Any,
        table_name: str,
        *,
        transaction_index: str = TRANSACTION_ID_INDEX,
        merchant_index: str = MERCHANT_ID_INDEX,
        status_index: str = STATUS_INDEX,
    ) -> None:
        self._client = client
        self._table_name = table_name
        self._transaction_index = transaction_index
        self._merchant_index = merchant_index
        self._status_index = status_index

    @property
    def table_name(self) -> str:
        return self._table_name

    def save(self, record: ChargebackRecord) -> ChargebackRecord:
        if not record.id:
            record = record.with_id(generate_chargeback_id())

        item = self._encode("save chargeback", record)
        try:
            self._client.put_item(
                TableName=self._table_name,
                Item=item,
                ConditionExpression="attribute_not_exists(id)",
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise ChargebackAlreadyExistsError(record.id, exc) from exc
            raise RepositoryError("save chargeback", exc, record.id) from exc
        except BotoCoreError as exc:
            raise RepositoryError("save chargeback", exc, record.id) from exc

        logger.debug("Saved chargeback id=%s transaction_id=%s", record.id, record.transaction_id)
        return record

    def find_by_id(self, chargeback_id: str) -> Optional[ChargebackRecord]:
        try:
            response = self._client.get_item(
                TableName=self._table_name,
                Key={"id": {"S": chargeback_id}},
            )
        except (ClientError, BotoCoreError) as exc:
            raise RepositoryError("get chargeback", exc, chargeback_id) from exc

        item = response.get("Item")
        if not item:
            return None
        return self._decode(item)

    def find_by_transaction_id(self, transaction_id: str) -> Optional[ChargebackRecord]:
        # At most one chargeback per transaction is expected; only the first is used.
        try:
            response = self._client.query(
                TableName=self._table_name,
                IndexName=self._transaction_index,
                KeyConditionExpression="transaction_id = :tid",
                ExpressionAttributeValues={":tid": {"S": transaction_id}},
                Limit=1,
            )
        except (ClientError, BotoCoreError) as exc:
            raise RepositoryError("query chargeback by transaction ID", exc) from exc

        items = response.get("Items") or []
        if not items:
            return None
        return self._decode(items[0])

    def find_by_merchant_id(self, merchant_id: str) -> List[ChargebackRecord]:
        return [
            self._decode(item)
            for item in self._query_all(
                "query chargebacks by merchant ID",
                IndexName=self._merchant_index,
                KeyConditionExpression="merchant_id = :mid",
                ExpressionAttributeValues={":mid": {"S": merchant_id}},
            )
        ]

    def find_by_status(self, status: ChargebackStatus) -> List[ChargebackRecord]:
        # status is a DynamoDB reserved word and must go through an attribute name.
        return [
            self._decode(item)
            for item in self._query_all(
                "query chargebacks by status",
                IndexName=self._status_index,
                KeyConditionExpression="#status = :status",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={":status": {"S": ChargebackStatus(status).value}},
            )
        ]

    def update(
        self,
        record: ChargebackRecord,
        *,
        expected_status: Optional[ChargebackStatus] = None,
    ) -> ChargebackRecord:
        record = record.touched(next_update_time(record.updated_at))
        item = self._encode("update chargeback", record)

        params: dict[str, Any] = {
            "TableName": self._table_name,
            "Item": item,
            "ConditionExpression": "attribute_exists(id)",
        }
        if expected_status is not None:
            params["ConditionExpression"] = "attribute_exists(id) AND #status = :expected"
            params["ExpressionAttributeNames"] = {"#status": "status"}
            params["ExpressionAttributeValues"] = {
                ":expected": {"S": ChargebackStatus(expected_status).value},
            }
            params["ReturnValuesOnConditionCheckFailure"] = "ALL_OLD"

        try:
            self._client.put_item(**params)
        except ClientError as exc:
            if _is_condition_failure(exc):
                stored = exc.response.get("Item")
                if expected_status is not None and stored:
                    current = ChargebackStatus(_deserializer.deserialize(stored["status"]))
                    raise InvalidStatusTransitionError(current, record.status) from exc
                raise ChargebackNotFoundError("update chargeback", record.id, exc) from exc
            raise RepositoryError("update chargeback", exc, record.id) from exc
        except BotoCoreError as exc:
            raise RepositoryError("update chargeback", exc, record.id) from exc

        logger.debug("Updated chargeback id=%s status=%s", record.id, record.status.value)
        return record

    def delete(self, chargeback_id: str) -> None:
        try:
            self._client.delete_item(
                TableName=self._table_name,
                Key={"id": {"S": chargeback_id}},
                ConditionExpression="attribute_exists(id)",
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise ChargebackNotFoundError("delete chargeback", chargeback_id, exc) from exc
            raise RepositoryError("delete chargeback", exc, chargeback_id) from exc
        except BotoCoreError as exc:
            raise RepositoryError("delete chargeback", exc, chargeback_id) from exc

        logger.debug("Deleted chargeback id=%s", chargeback_id)

    def list(self, offset: int, limit: int) -> List[ChargebackRecord]:
        """
        Return up to `limit` records after skipping `offset` scanned records.

        Scan pages of `limit` items are fetched until `offset + limit` items
        have been collected or the table is exhausted. An offset beyond the
        end of the table yields an empty list.
        """

        check_page_bounds(offset, limit)
        wanted = offset + limit

        scanned: List[Mapping[str, Any]] = []
        start_key: Optional[Mapping[str, Any]] = None
        pages = 0

        while len(scanned) < wanted:
            params: dict[str, Any] = {"TableName": self._table_name, "Limit": limit}
            if start_key:
                params["ExclusiveStartKey"] = start_key

            try:
                response = self._client.scan(**params)
            except (ClientError, BotoCoreError) as exc:
                raise RepositoryError("scan chargebacks", exc) from exc

            pages += 1
            scanned.extend(response.get("Items") or [])
            start_key = response.get("LastEvaluatedKey")
            if not start_key:
                break

        logger.debug(
            "Scanned chargebacks offset=%d limit=%d pages=%d items=%d",
            offset, limit, pages, len(scanned),
        )

        if offset >= len(scanned):
            return []
        return [self._decode(item) for item in scanned[offset:wanted]]

    def _query_all(self, operation: str, **params: Any) -> Iterator[Mapping[str, Any]]:
        """Run a Query to completion, following LastEvaluatedKey."""

        start_key: Optional[Mapping[str, Any]] = None
        while True:
            request = {"TableName": self._table_name, **params}
            if start_key:
                request["ExclusiveStartKey"] = start_key

            try:
                response = self._client.query(**request)
            except (ClientError, BotoCoreError) as exc:
                raise RepositoryError(operation, exc) from exc

            yield from response.get("Items") or []

            start_key = response.get("LastEvaluatedKey")
            if not start_key:
                return

    @staticmethod
    def _encode(operation: str, record: ChargebackRecord) -> Item:
        # The serializer enforces DynamoDB number precision (38 digits) and range.
        try:
            return record_to_item(record)
        except DecimalException as exc:
            raise RepositoryError(operation, exc, record.id) from exc

    @staticmethod
    def _decode(item: Mapping[str, Any]) -> ChargebackRecord:
        try:
            return item_to_record(item)
        except (KeyError, TypeError, ValueError) as exc:
            raise RepositoryError("unmarshal chargeback", exc) from exc


__all__ = [
    "DynamoDBChargebackRepository",
    "record_to_item",
    "item_to_record",
    "TRANSACTION_ID_INDEX",
    "MERCHANT_ID_INDEX",
    "STATUS_INDEX",
]
