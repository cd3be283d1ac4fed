"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path so that tests can import domain,
repositories, services and api without installing the package.
"""

import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

# Add the project directory to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.chargeback import ChargebackReason, ChargebackRecord, ChargebackStatus  # noqa: E402


@pytest.fixture
def make_record():
    """Factory for valid pending records; override any field by keyword."""

    def _make(**overrides) -> ChargebackRecord:
        ts = datetime(2023, 1, 16, 12, 0, 0, tzinfo=timezone.utc)
        fields = dict(
            id="",
            transaction_id="txn-456",
            merchant_id="merchant-789",
            amount=Decimal("99.99"),
            currency="USD",
            card_number="************1234",
            reason=ChargebackReason.FRAUD,
            status=ChargebackStatus.PENDING,
            description="Test chargeback",
            transaction_date=datetime(2023, 1, 15, 10, 30, 0, tzinfo=timezone.utc),
            chargeback_date=ts,
            created_at=ts,
            updated_at=ts,
        )
        fields.update(overrides)
        return ChargebackRecord(**fields)

    return _make
