"""Payment processor callback and public status polling."""

import logging

from fastapi import APIRouter, Depends, Query

from twistpay.auth_utils import require_store_status_key
from twistpay.dependencies import Services, get_services
from twistpay.schemas import (
    StoreStatusRequest,
    StoreStatusResponse,
    TransactionStatusResponse,
)
from twistpay.services.status_store import TransactionStatus

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/store-status",
    response_model=StoreStatusResponse,
    dependencies=[Depends(require_store_status_key)],
)
async def store_status(
    data: StoreStatusRequest,
    services: Services = Depends(get_services),
):
    """Record a status event from the payment processor."""
    payload = data.model_dump(exclude_none=True)
    result = await services.ingestor.ingest(payload)
    return StoreStatusResponse(**result)


@router.get("/check-status", response_model=TransactionStatusResponse)
def check_status(
    transaction_id: str = Query(..., min_length=1),
    services: Services = Depends(get_services),
):
    """Current status of a transaction; unknown ids report ``pending``."""
    transaction_id = transaction_id.strip()
    current = services.statuses.status_of(transaction_id)
    if current is not None:
        return TransactionStatusResponse(
            transaction_id=transaction_id, status=current.value, source="memory"
        )

    logged = services.records.find_latest_by_transaction(transaction_id)
    if logged:
        raw = str(logged.get("status") or "").strip().lower()
        if raw in {s.value for s in TransactionStatus}:
            return TransactionStatusResponse(
                transaction_id=transaction_id, status=raw, source="log"
            )

    return TransactionStatusResponse(
        transaction_id=transaction_id,
        status=TransactionStatus.PENDING.value,
        source="default",
    )
