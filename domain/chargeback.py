"""
Domain: Chargeback dispute record.

Rules implemented here:
- A chargeback is identified by `id`, assigned once at save time and never changed.
- `pending` is the only initial status; `approved` and `rejected` are terminal.
- Status transitions are one-way: pending -> approved | rejected.
- updated_at is never earlier than created_at.
- Card numbers are stored masked (last four digits only).

This module contains only pure domain entities/value objects: no I/O, no database, no frameworks.
All timestamps must be passed explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .time import require_utc_timestamp

CARD_MASK = "************"


class InvalidStatusTransitionError(ValueError):
    """Raised when a status change is not permitted from the current status."""

    def __init__(self, current: "ChargebackStatus", target: "ChargebackStatus") -> None:
        super().__init__(
            f"cannot transition chargeback from '{current.value}' to '{target.value}'"
        )
        self.current = current
        self.target = target


class ChargebackReason(str, Enum):
    FRAUD = "fraud"
    AUTHORIZATION_ERROR = "authorization_error"
    PROCESSING_ERROR = "processing_error"
    CONSUMER_DISPUTE = "consumer_dispute"

    @classmethod
    def options(cls) -> str:
        return ", ".join(member.value for member in cls)

    @classmethod
    def parse(cls, text: str) -> "ChargebackReason":
        """Case-insensitive lookup; the error message lists the valid options."""

        try:
            return cls((text or "").strip().lower())
        except ValueError:
            raise ValueError(
                f"invalid reason '{text}'. Valid options: {cls.options()}"
            ) from None


class ChargebackStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ChargebackStatus.PENDING

    @classmethod
    def parse(cls, text: str) -> "ChargebackStatus":
        try:
            return cls((text or "").strip().lower())
        except ValueError:
            options = ", ".join(member.value for member in cls)
            raise ValueError(
                f"invalid status '{text}'. Valid options: {options}"
            ) from None


def mask_card_number(card_number: str) -> str:
    """
    Redact a card number down to its last four digits.

    Only digits are considered, so separators and an existing mask are ignored:
    masking an already masked number returns the same value. Fewer than four
    digits are redacted entirely.

    Example:
        mask_card_number("4111 1111 1111 1234")  # "************1234"
    """

    digits = "".join(ch for ch in (card_number or "") if ch.isdigit())
    if len(digits) < 4:
        return CARD_MASK
    return CARD_MASK + digits[-4:]


@dataclass(frozen=True, slots=True)
class ChargebackRecord:
    """
    Immutable chargeback dispute record.

    Status changes and timestamp refreshes return new instances; the
    identifier is carried over unchanged.
    """

    id: str
    transaction_id: str
    merchant_id: str
    amount: Decimal
    currency: str
    card_number: str
    reason: ChargebackReason
    status: ChargebackStatus
    transaction_date: datetime
    chargeback_date: datetime
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("transaction_date", self.transaction_date)
        require_utc_timestamp("chargeback_date", self.chargeback_date)
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")

    def with_id(self, chargeback_id: str) -> "ChargebackRecord":
        if self.id and self.id != chargeback_id:
            raise ValueError("chargeback id is immutable once assigned")
        return replace(self, id=chargeback_id)

    def touched(self, now: datetime) -> "ChargebackRecord":
        """Return a copy with updated_at refreshed to `now`."""

        return replace(self, updated_at=now)

    def can_transition_to(self, target: ChargebackStatus) -> bool:
        return not self.status.is_terminal and target.is_terminal

    def transition_to(self, target: ChargebackStatus, now: datetime) -> "ChargebackRecord":
        if not self.can_transition_to(target):
            raise InvalidStatusTransitionError(self.status, target)
        return replace(self, status=target, updated_at=now)

    def approve(self, now: datetime) -> "ChargebackRecord":
        return self.transition_to(ChargebackStatus.APPROVED, now)

    def reject(self, now: datetime) -> "ChargebackRecord":
        return self.transition_to(ChargebackStatus.REJECTED, now)
