"""
Chargeback service.

Handles:
- Opening a chargeback (validation, duplicate-transaction check, card masking,
  record construction, persistence)
- Status transitions (approve / reject) for pending chargebacks
- Lookups and paginated listing, passed straight through to the repository

Known gap: the duplicate-transaction check and the save are two separate store
calls. Two concurrent requests for the same transaction can both pass the
check; the store only guards identifier collisions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple, Union

from domain.chargeback import (
    ChargebackReason,
    ChargebackRecord,
    ChargebackStatus,
    mask_card_number,
)
from domain.time import to_utc, utc_now
from repositories.chargeback_repository import (
    ChargebackNotFoundError,
    ChargebackRepository,
)

logger = logging.getLogger(__name__)

# DynamoDB numbers: 38 significant digits, magnitude 1E-130 up to below 1E+126.
MAX_AMOUNT_DIGITS = 38
MIN_AMOUNT_EXPONENT = -130
MAX_AMOUNT_EXPONENT = 125


class ValidationError(ValueError):
    """One or more field-level violations in a creation request."""

    def __init__(self, errors: List[str]) -> None:
        super().__init__("validation errors: " + "; ".join(errors))
        self.errors = list(errors)


class DuplicateTransactionError(Exception):
    """A chargeback already exists for the requested transaction."""

    def __init__(self, transaction_id: str, existing_id: str) -> None:
        super().__init__(
            f"chargeback for transaction '{transaction_id}' already exists (id {existing_id})"
        )
        self.transaction_id = transaction_id
        self.existing_id = existing_id


@dataclass(frozen=True, slots=True)
class CreateChargebackRequest:
    """
    Request to open a chargeback.

    card_number may be raw or already masked; it is masked before storage.
    reason may be given as text and is validated with the other fields.
    """
    transaction_id: str
    merchant_id: str
    amount: Decimal
    currency: str
    card_number: str
    reason: Union[ChargebackReason, str]
    transaction_date: datetime
    description: Optional[str] = None


def _to_decimal(value: object) -> Optional[Decimal]:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _amount_error(value: object) -> Optional[str]:
    amount = _to_decimal(value)
    if amount is None or not amount.is_finite() or amount <= 0:
        return "amount must be greater than zero"
    if len(amount.as_tuple().digits) > MAX_AMOUNT_DIGITS:
        return f"amount must have at most {MAX_AMOUNT_DIGITS} significant digits"
    if not MIN_AMOUNT_EXPONENT <= amount.adjusted() <= MAX_AMOUNT_EXPONENT:
        return "amount is out of range"
    return None


def validate_create_request(request: CreateChargebackRequest) -> Tuple[ChargebackReason, datetime]:
    """
    Check a creation request.

    Returns:
        The parsed reason and the transaction date converted to UTC

    Every violation is collected before raising, so callers see the full list
    in a single ValidationError.
    """

    errors: List[str] = []

    if not (request.transaction_id or "").strip():
        errors.append("transaction_id is required")
    if not (request.merchant_id or "").strip():
        errors.append("merchant_id is required")

    amount_error = _amount_error(request.amount)
    if amount_error:
        errors.append(amount_error)

    reason: Optional[ChargebackReason] = None
    try:
        if isinstance(request.reason, ChargebackReason):
            reason = request.reason
        else:
            reason = ChargebackReason.parse(request.reason)
    except ValueError as exc:
        errors.append(str(exc))

    transaction_date: Optional[datetime] = None
    if request.transaction_date is None:
        errors.append("transaction_date is required")
    elif request.transaction_date.tzinfo is None or request.transaction_date.utcoffset() is None:
        errors.append("transaction_date must include a timezone offset")
    else:
        try:
            transaction_date = to_utc("transaction_date", request.transaction_date)
        except ValueError as exc:
            errors.append(str(exc))

    if errors or reason is None or transaction_date is None:
        raise ValidationError(errors)

    return reason, transaction_date


class ChargebackService:
    """Chargeback workflows over a ChargebackRepository."""

    def __init__(self, repository: ChargebackRepository) -> None:
        self._repository = repository

    def create(self, request: CreateChargebackRequest) -> ChargebackRecord:
        """
        Open a new chargeback.

        Steps:
        1. Validate the request (all violations reported together)
        2. Reject if the transaction already has a chargeback
        3. Mask the card number
        4. Build a pending record with server timestamps
        5. Save (the repository assigns the id)

        Raises:
            ValidationError: Request is invalid
            DuplicateTransactionError: Transaction already has a chargeback
            RepositoryError: Store failure, including an id collision on save
        """

        reason, transaction_date = validate_create_request(request)
        transaction_id = request.transaction_id.strip()

        existing = self._repository.find_by_transaction_id(transaction_id)
        if existing is not None:
            logger.info(
                "Duplicate chargeback rejected transaction_id=%s existing_id=%s",
                transaction_id, existing.id,
            )
            raise DuplicateTransactionError(transaction_id, existing.id)

        now = utc_now()
        record = ChargebackRecord(
            id="",
            transaction_id=transaction_id,
            merchant_id=request.merchant_id.strip(),
            amount=Decimal(str(request.amount)),
            currency=(request.currency or "").strip().upper(),
            card_number=mask_card_number(request.card_number),
            reason=reason,
            status=ChargebackStatus.PENDING,
            description=request.description or None,
            transaction_date=transaction_date,
            chargeback_date=now,
            created_at=now,
            updated_at=now,
        )

        saved = self._repository.save(record)
        logger.info(
            "Chargeback created id=%s transaction_id=%s merchant_id=%s reason=%s",
            saved.id, saved.transaction_id, saved.merchant_id, saved.reason.value,
        )
        return saved

    def get(self, chargeback_id: str) -> Optional[ChargebackRecord]:
        return self._repository.find_by_id(chargeback_id)

    def find_by_transaction_id(self, transaction_id: str) -> Optional[ChargebackRecord]:
        return self._repository.find_by_transaction_id(transaction_id)

    def find_by_merchant_id(self, merchant_id: str) -> List[ChargebackRecord]:
        return self._repository.find_by_merchant_id(merchant_id)

    def find_by_status(self, status: Union[ChargebackStatus, str]) -> List[ChargebackRecord]:
        if not isinstance(status, ChargebackStatus):
            status = ChargebackStatus.parse(status)
        return self._repository.find_by_status(status)

    def list(self, offset: int = 0, limit: int = 20) -> List[ChargebackRecord]:
        return self._repository.list(offset, limit)

    def approve(self, chargeback_id: str) -> ChargebackRecord:
        return self._transition(chargeback_id, ChargebackStatus.APPROVED, "approve chargeback")

    def reject(self, chargeback_id: str) -> ChargebackRecord:
        return self._transition(chargeback_id, ChargebackStatus.REJECTED, "reject chargeback")

    def _transition(self, chargeback_id: str, target: ChargebackStatus, operation: str) -> ChargebackRecord:
        """
        Move a pending chargeback to a terminal status.

        Raises:
            ChargebackNotFoundError: No chargeback with this id
            InvalidStatusTransitionError: Chargeback is already terminal, or
                another request changed its status first
        """

        current = self._repository.find_by_id(chargeback_id)
        if current is None:
            raise ChargebackNotFoundError(operation, chargeback_id)

        # The repository stamps the final updated_at when writing. The expected
        # status makes a concurrent change to the same record fail the write.
        changed = current.transition_to(target, current.updated_at)
        updated = self._repository.update(changed, expected_status=current.status)

        logger.info(
            "Chargeback status changed id=%s from=%s to=%s",
            chargeback_id, current.status.value, updated.status.value,
        )
        return updated


__all__ = [
    "ChargebackService",
    "CreateChargebackRequest",
    "ValidationError",
    "DuplicateTransactionError",
    "validate_create_request",
]
