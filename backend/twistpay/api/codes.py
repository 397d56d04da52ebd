"""TWIST code lookups (API-key protected)."""

from fastapi import APIRouter, Depends, HTTPException, Query

from twistpay.auth_utils import require_api_key
from twistpay.dependencies import Services, get_services
from twistpay.schemas import CodeResponse, LatestCodeResponse

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/get-code", response_model=CodeResponse)
def get_code(
    loan_id: str = Query(..., min_length=1),
    contract_expiration: str = Query(..., min_length=1),
    services: Services = Depends(get_services),
):
    """Get (or create on first use) the code for a loan/expiration pair."""
    code = services.codes.get_or_create(loan_id, contract_expiration)
    if not code:
        raise HTTPException(status_code=400, detail="loan_id and contract_expiration are required")
    return CodeResponse(twistcode=code)


@router.get("/check-latest", response_model=LatestCodeResponse)
def check_latest(services: Services = Depends(get_services)):
    """The most recently issued or fetched code."""
    latest = services.codes.latest()
    if not latest:
        raise HTTPException(status_code=404, detail="No code found in code store")
    return LatestCodeResponse(code=latest["code"], t=latest.get("t"))
