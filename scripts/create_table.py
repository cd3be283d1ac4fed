"""
Create the chargebacks table and its secondary indexes.

Intended for DynamoDB Local and fresh environments:
- Hash key: id (S)
- GSI transaction-id-index on transaction_id
- GSI merchant-id-index on merchant_id
- GSI status-index on status

Reads the same environment variables as the API (DYNAMODB_ENDPOINT,
AWS_REGION, DYNAMODB_TABLE).

Usage:
    python scripts/create_table.py
    python scripts/create_table.py --table chargebacks-dev
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from botocore.exceptions import ClientError

from api.settings import load_settings
from repositories.client import create_dynamodb_client
from repositories.dynamodb_chargeback_repository import (
    MERCHANT_ID_INDEX,
    STATUS_INDEX,
    TRANSACTION_ID_INDEX,
)


def _index(name: str, attribute: str) -> dict:
    return {
        "IndexName": name,
        "KeySchema": [{"AttributeName": attribute, "KeyType": "HASH"}],
        "Projection": {"ProjectionType": "ALL"},
    }


def create_table(client, table_name: str) -> bool:
    """
    Create the table and wait until it is active.

    Returns:
        True if the table was created, False if it already existed
    """

    try:
        client.create_table(
            TableName=table_name,
            BillingMode="PAY_PER_REQUEST",
            AttributeDefinitions=[
                {"AttributeName": "id", "AttributeType": "S"},
                {"AttributeName": "transaction_id", "AttributeType": "S"},
                {"AttributeName": "merchant_id", "AttributeType": "S"},
                {"AttributeName": "status", "AttributeType": "S"},
            ],
            KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
            GlobalSecondaryIndexes=[
                _index(TRANSACTION_ID_INDEX, "transaction_id"),
                _index(MERCHANT_ID_INDEX, "merchant_id"),
                _index(STATUS_INDEX, "status"),
            ],
        )
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") == "ResourceInUseException":
            return False
        raise

    client.get_waiter("table_exists").wait(TableName=table_name)
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the chargebacks DynamoDB table")
    parser.add_argument("--table", help="Table name (default: DYNAMODB_TABLE or 'chargebacks')")
    args = parser.parse_args()

    settings = load_settings()
    table_name = args.table or settings.dynamodb.table_name
    client = create_dynamodb_client(settings.dynamodb)

    print("=" * 60)
    print("CREATE CHARGEBACKS TABLE")
    print("=" * 60)
    print(f"Table:    {table_name}")
    print(f"Region:   {settings.dynamodb.region}")
    print(f"Endpoint: {settings.dynamodb.endpoint or '(AWS default)'}")

    try:
        created = create_table(client, table_name)
    except ClientError as e:
        print(f"\n[ERROR] Failed to create table: {e}")
        return 1

    if created:
        print(f"\n[SUCCESS] Table '{table_name}' created with indexes:")
        for name in (TRANSACTION_ID_INDEX, MERCHANT_ID_INDEX, STATUS_INDEX):
            print(f"  - {name}")
    else:
        print(f"\nTable '{table_name}' already exists. Nothing to do.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
