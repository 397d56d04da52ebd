"""Transaction submission endpoint (embedded payment form)."""

import logging

from fastapi import APIRouter, Depends, Request

from twistpay.dependencies import Services, get_services
from twistpay.rate_limit import limiter
from twistpay.schemas import DecisionResponse, SubmitTransactionRequest
from twistpay.services.validation_engine import TransactionSubmission

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/submit", response_model=DecisionResponse)
@limiter.limit("30/minute")
async def submit_transaction(
    request: Request,
    data: SubmitTransactionRequest,
    services: Services = Depends(get_services),
):
    """Validate a card submission against the account on record."""
    decision = await services.engine.validate(
        TransactionSubmission(
            transaction_id=data.transaction_id,
            amount=data.amount,
            card_number=data.card_number,
            expiration=data.expiration,
            verification_slice=data.twist,
            email=str(data.email),
            phone=data.phone,
            postal=data.postal,
            province=data.province,
            otp_code=data.otp_code,
        )
    )
    if not decision.ok:
        logger.info("Transaction %s denied: %s", data.transaction_id, decision.message)
    return DecisionResponse(
        ok=decision.ok,
        status=decision.status,
        message=decision.message,
        loan_id=decision.loan_id,
    )
