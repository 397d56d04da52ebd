"""Shared-secret API key dependencies."""

import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from twistpay.config import settings

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


def _check_key(provided: Optional[str], expected: str) -> None:
    if not expected:
        logger.warning("API key for protected endpoint is not configured")
    if not provided or not expected or not secrets.compare_digest(provided, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


async def require_api_key(api_key: Optional[str] = Depends(api_key_header)) -> None:
    """Read-side key (GET_API_KEY) for code and index lookups."""
    _check_key(api_key, settings.get_api_key)


async def require_store_status_key(api_key: Optional[str] = Depends(api_key_header)) -> None:
    """Write-side key for the payment processor; falls back to GET_API_KEY."""
    _check_key(api_key, settings.store_status_api_key)
