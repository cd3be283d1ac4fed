"""
Chargebacks API Endpoints.

Endpoints for opening chargebacks, looking them up and moving them through
their review statuses.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import ValidationError as PydanticValidationError

from api.models import (
    ChargebackCreateRequest,
    ChargebackListResponse,
    ChargebackResponse,
    ErrorResponse,
)
from domain.chargeback import ChargebackStatus, InvalidStatusTransitionError
from repositories.chargeback_repository import (
    ChargebackAlreadyExistsError,
    ChargebackNotFoundError,
)
from services.chargeback_service import (
    ChargebackService,
    CreateChargebackRequest,
    DuplicateTransactionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter()

JSON_MEDIA_TYPE = "application/json"


def get_chargeback_service(request: Request) -> ChargebackService:
    """Service instance built once by the application factory."""
    return request.app.state.chargeback_service


def _describe_validation_error(exc: PydanticValidationError) -> str:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "body"
        if field == "transaction_date" and error.get("type") == "missing":
            problems.append("transaction_date is required")
        elif field == "transaction_date":
            problems.append("Invalid transaction_date format. Use RFC3339 format")
        else:
            problems.append(f"{field}: {error.get('msg', 'invalid value')}")
    return "; ".join(problems)


async def parse_create_request(request: Request) -> ChargebackCreateRequest:
    """
    Read and type-check the creation body.

    Order of checks:
    1. Content-Type must contain application/json (415)
    2. Body must be a JSON object (400)
    3. Fields must have the right JSON types (400)
    """

    content_type = request.headers.get("content-type", "")
    if JSON_MEDIA_TYPE not in content_type.lower():
        raise HTTPException(
            status_code=415,
            detail="Content-Type must be application/json"
        )

    try:
        payload: Any = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON format")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON format")

    try:
        return ChargebackCreateRequest.model_validate(payload)
    except PydanticValidationError as e:
        raise HTTPException(status_code=400, detail=_describe_validation_error(e))


@router.post(
    "/chargebacks",
    status_code=201,
    response_model=ChargebackResponse,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Open Chargeback",
    description="Open a chargeback for a transaction. Only one chargeback per transaction is allowed."
)
def create_chargeback(
    body: ChargebackCreateRequest = Depends(parse_create_request),
    service: ChargebackService = Depends(get_chargeback_service),
):
    """
    Open a chargeback.

    **Process:**
    1. Validates required fields (all problems reported at once)
    2. Rejects the request if the transaction already has a chargeback
    3. Masks the card number (last 4 digits kept)
    4. Stores the chargeback with status `pending`

    **Example request:**
    ```json
    {
      "transaction_id": "tx-12345",
      "merchant_id": "merchant-789",
      "amount": 150.75,
      "currency": "USD",
      "card_number": "4111111111111111",
      "reason": "fraud",
      "description": "Suspicious transaction",
      "transaction_date": "2023-10-10T10:00:00Z"
    }
    ```

    Valid reasons: `fraud`, `authorization_error`, `processing_error`, `consumer_dispute`.
    """
    try:
        record = service.create(
            CreateChargebackRequest(
                transaction_id=body.transaction_id,
                merchant_id=body.merchant_id,
                amount=body.amount,
                currency=body.currency,
                card_number=body.card_number,
                reason=body.reason,
                description=body.description,
                transaction_date=body.transaction_date,
            )
        )
        return ChargebackResponse.from_record(record)

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (DuplicateTransactionError, ChargebackAlreadyExistsError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.exception("Failed to create chargeback transaction_id=%s", body.transaction_id)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create chargeback: {str(e)}"
        )


@router.get(
    "/chargebacks/page",
    response_model=ChargebackListResponse,
    summary="List Chargebacks",
    description="Offset/limit listing over an unordered table scan."
)
def list_chargebacks(
    offset: int = Query(0, ge=0, description="Number of chargebacks to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum number of chargebacks to return"),
    service: ChargebackService = Depends(get_chargeback_service),
):
    """
    List chargebacks.

    Order is whatever the store scan returns and is not stable across writes.
    Large offsets are slow: every skipped chargeback is still read.
    """
    try:
        records = service.list(offset, limit)
    except Exception as e:
        logger.exception("Failed to list chargebacks offset=%d limit=%d", offset, limit)
        raise HTTPException(status_code=500, detail=f"Failed to list chargebacks: {str(e)}")

    return ChargebackListResponse(
        items=[ChargebackResponse.from_record(r) for r in records],
        total_count=len(records),
        offset=offset,
        limit=limit,
    )


@router.get(
    "/chargebacks/by-transaction/{transaction_id}",
    response_model=ChargebackResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get Chargeback By Transaction"
)
def get_chargeback_by_transaction(
    transaction_id: str,
    service: ChargebackService = Depends(get_chargeback_service),
):
    try:
        record = service.find_by_transaction_id(transaction_id)
    except Exception as e:
        logger.exception("Failed to look up chargeback transaction_id=%s", transaction_id)
        raise HTTPException(status_code=500, detail=f"Failed to get chargeback: {str(e)}")

    if record is None:
        raise HTTPException(
            status_code=404,
            detail=f"Chargeback not found for transaction: {transaction_id}"
        )
    return ChargebackResponse.from_record(record)


@router.get(
    "/chargebacks/status/{status}",
    response_model=ChargebackListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="List Chargebacks By Status"
)
def list_chargebacks_by_status(
    status: str,
    service: ChargebackService = Depends(get_chargeback_service),
):
    try:
        parsed = ChargebackStatus.parse(status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        records = service.find_by_status(parsed)
    except Exception as e:
        logger.exception("Failed to list chargebacks status=%s", parsed.value)
        raise HTTPException(status_code=500, detail=f"Failed to list chargebacks: {str(e)}")

    return ChargebackListResponse(
        items=[ChargebackResponse.from_record(r) for r in records],
        total_count=len(records),
    )


@router.get(
    "/chargebacks/{chargeback_id}",
    response_model=ChargebackResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get Chargeback"
)
def get_chargeback(
    chargeback_id: str,
    service: ChargebackService = Depends(get_chargeback_service),
):
    try:
        record = service.get(chargeback_id)
    except Exception as e:
        logger.exception("Failed to get chargeback id=%s", chargeback_id)
        raise HTTPException(status_code=500, detail=f"Failed to get chargeback: {str(e)}")

    if record is None:
        raise HTTPException(status_code=404, detail=f"Chargeback not found: {chargeback_id}")
    return ChargebackResponse.from_record(record)


def _transition(service: ChargebackService, chargeback_id: str, action: str) -> ChargebackResponse:
    try:
        if action == "approve":
            record = service.approve(chargeback_id)
        else:
            record = service.reject(chargeback_id)
        return ChargebackResponse.from_record(record)

    except ChargebackNotFoundError:
        raise HTTPException(status_code=404, detail=f"Chargeback not found: {chargeback_id}")
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.exception("Failed to %s chargeback id=%s", action, chargeback_id)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to {action} chargeback: {str(e)}"
        )


@router.post(
    "/chargebacks/{chargeback_id}/approve",
    response_model=ChargebackResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Approve Chargeback",
    description="Move a pending chargeback to `approved`. Approved chargebacks are final."
)
def approve_chargeback(
    chargeback_id: str,
    service: ChargebackService = Depends(get_chargeback_service),
):
    return _transition(service, chargeback_id, "approve")


@router.post(
    "/chargebacks/{chargeback_id}/reject",
    response_model=ChargebackResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Reject Chargeback",
    description="Move a pending chargeback to `rejected`. Rejected chargebacks are final."
)
def reject_chargeback(
    chargeback_id: str,
    service: ChargebackService = Depends(get_chargeback_service),
):
    return _transition(service, chargeback_id, "reject")


@router.get(
    "/merchants/{merchant_id}/chargebacks",
    response_model=ChargebackListResponse,
    summary="List Merchant Chargebacks"
)
def list_merchant_chargebacks(
    merchant_id: str,
    service: ChargebackService = Depends(get_chargeback_service),
):
    try:
        records = service.find_by_merchant_id(merchant_id)
    except Exception as e:
        logger.exception("Failed to list chargebacks merchant_id=%s", merchant_id)
        raise HTTPException(status_code=500, detail=f"Failed to list chargebacks: {str(e)}")

    return ChargebackListResponse(
        items=[ChargebackResponse.from_record(r) for r in records],
        total_count=len(records),
    )
