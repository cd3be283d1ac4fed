"""
Walk through every repository operation against the configured store.

Creates one chargeback, reads it back through each lookup, approves it,
lists a page and deletes it again. Set CHARGEBACK_STORE=memory to run without
DynamoDB.

Usage:
    python scripts/repository_demo.py
"""

import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.main import build_repository
from api.settings import configure_logging, load_settings
from domain.chargeback import ChargebackStatus
from services.chargeback_service import ChargebackService, CreateChargebackRequest


def run_demo() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    repository = build_repository(settings)
    service = ChargebackService(repository)

    now = datetime.now(timezone.utc)
    transaction_id = f"tx-demo-{int(now.timestamp())}"

    print("\n=== Creating a new chargeback ===")
    chargeback = service.create(
        CreateChargebackRequest(
            transaction_id=transaction_id,
            merchant_id="merchant-789",
            amount=Decimal("150.75"),
            currency="USD",
            card_number="4111111111111111",
            reason="fraud",
            description="Suspicious transaction reported by cardholder",
            transaction_date=now - timedelta(days=5),
        )
    )
    print(f"Chargeback saved with ID: {chargeback.id} (card {chargeback.card_number})")

    print("\n=== Finding chargeback by ID ===")
    found = repository.find_by_id(chargeback.id)
    if found is not None:
        print(f"Found chargeback: {found.transaction_id} (Amount: {found.amount} {found.currency})")
    else:
        print("Chargeback not found")

    print("\n=== Finding chargeback by Transaction ID ===")
    by_tx = repository.find_by_transaction_id(transaction_id)
    print(f"Found: {by_tx.id if by_tx else None} (Status: {by_tx.status.value if by_tx else '-'})")

    print("\n=== Finding chargebacks by Merchant ID ===")
    merchant_records = repository.find_by_merchant_id("merchant-789")
    print(f"Found {len(merchant_records)} chargebacks for merchant-789")

    print("\n=== Approving chargeback ===")
    approved = service.approve(chargeback.id)
    print(f"Status: {approved.status.value}, updated_at: {approved.updated_at.isoformat()}")

    print("\n=== Finding approved chargebacks ===")
    print(f"Approved chargebacks: {len(repository.find_by_status(ChargebackStatus.APPROVED))}")

    print("\n=== Listing first page ===")
    for record in repository.list(0, 10):
        print(f"  {record.id}  {record.transaction_id}  {record.status.value}")

    print("\n=== Deleting chargeback ===")
    repository.delete(chargeback.id)
    print(f"Deleted. Lookup now returns: {repository.find_by_id(chargeback.id)}")


if __name__ == "__main__":
    run_demo()
