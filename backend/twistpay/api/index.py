"""Lookups over the derived payload index (API-key protected)."""

from fastapi import APIRouter, Depends, Query

from twistpay.auth_utils import require_api_key
from twistpay.dependencies import Services, get_services
from twistpay.schemas import IndexLookupResponse, IndexRebuildResponse, IndexRecordSummary

router = APIRouter(dependencies=[Depends(require_api_key)])


def _with_payloads(services: Services, summaries: list[dict]) -> IndexLookupResponse:
    # Payloads come from the log, never from the cached copy in the index.
    results = [
        IndexRecordSummary(**s, payload=services.index.resolve_payload(s["key"]))
        for s in summaries
    ]
    return IndexLookupResponse(count=len(results), results=results)


@router.get("/by-phone", response_model=IndexLookupResponse)
def by_phone(
    phone: str = Query(..., min_length=1),
    services: Services = Depends(get_services),
):
    return _with_payloads(services, services.index.find_by_phone(phone))


@router.get("/by-email", response_model=IndexLookupResponse)
def by_email(
    email: str = Query(..., min_length=1),
    services: Services = Depends(get_services),
):
    return _with_payloads(services, services.index.find_by_email(email))


@router.get("/by-code", response_model=IndexLookupResponse)
def by_code(
    code: str = Query(..., min_length=12, max_length=12),
    services: Services = Depends(get_services),
):
    return _with_payloads(services, services.index.find_by_code(code))


@router.post("/rebuild", response_model=IndexRebuildResponse)
def rebuild(services: Services = Depends(get_services)):
    """Discard the index and replay the whole record log into it."""
    return IndexRebuildResponse(**services.index.rebuild_from_log())
