"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import AwareDatetime, BaseModel, Field

from domain.chargeback import ChargebackRecord


# ============================================================================
# Chargeback Models
# ============================================================================

class ChargebackCreateRequest(BaseModel):
    """
    Request to open a chargeback.

    Required-ness and value rules (non-empty ids, positive amount, known reason)
    are checked by the service so that all violations are reported together;
    this model only enforces JSON types.
    """
    transaction_id: str = ""
    merchant_id: str = ""
    amount: Decimal = Decimal("0")
    currency: str = ""
    card_number: str = ""
    reason: str = ""
    description: Optional[str] = None
    transaction_date: AwareDatetime = Field(
        ...,
        description="RFC 3339 date-time with offset, e.g. 2023-10-10T10:00:00Z"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "transaction_id": "tx-12345",
                "merchant_id": "merchant-789",
                "amount": 150.75,
                "currency": "USD",
                "card_number": "4111111111111111",
                "reason": "fraud",
                "description": "Suspicious transaction",
                "transaction_date": "2023-10-10T10:00:00Z"
            }
        }


class ChargebackResponse(BaseModel):
    """Public view of a chargeback record (card number always masked)."""
    id: str
    transaction_id: str
    merchant_id: str
    amount: float
    currency: str
    card_number: str
    reason: str
    status: str
    description: Optional[str] = None
    transaction_date: datetime
    chargeback_date: datetime
    created_at: datetime
    updated_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "id": "cb_1697025600000000000",
                "transaction_id": "tx-12345",
                "merchant_id": "merchant-789",
                "amount": 150.75,
                "currency": "USD",
                "card_number": "************1111",
                "reason": "fraud",
                "status": "pending",
                "description": "Suspicious transaction",
                "transaction_date": "2023-10-10T10:00:00Z",
                "chargeback_date": "2023-10-11T12:00:00Z",
                "created_at": "2023-10-11T12:00:00Z",
                "updated_at": "2023-10-11T12:00:00Z"
            }
        }

    @classmethod
    def from_record(cls, record: ChargebackRecord) -> "ChargebackResponse":
        return cls(
            id=record.id,
            transaction_id=record.transaction_id,
            merchant_id=record.merchant_id,
            amount=float(record.amount),
            currency=record.currency,
            card_number=record.card_number,
            reason=record.reason.value,
            status=record.status.value,
            description=record.description,
            transaction_date=record.transaction_date,
            chargeback_date=record.chargeback_date,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class ChargebackListResponse(BaseModel):
    """Response for chargeback listings."""
    items: List[ChargebackResponse]
    total_count: int
    offset: Optional[int] = None
    limit: Optional[int] = None


# ============================================================================
# Health / Error Models
# ============================================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    service: str
    version: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str

    class Config:
        json_schema_extra = {
            "example": {"error": "Content-Type must be application/json"}
        }
