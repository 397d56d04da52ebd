"""FastAPI middleware that captures unhandled exceptions and logs them.

Every 5xx response is recorded at ERROR severity; 4xx responses other than
auth failures are recorded as warnings. Request bodies are never captured:
they carry card numbers and one-time passcodes.
"""

from __future__ import annotations

import logging
import time

from fastapi import HTTPException, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from twistpay.services.error_logger import ErrorSeverity, log_error

logger = logging.getLogger("twistpay.middleware")


class ErrorCaptureMiddleware(BaseHTTPMiddleware):
    """Catches unhandled exceptions, returns 500, and logs the error."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.time()
        ip_address = request.client.host if request.client else None

        try:
            response = await call_next(request)
            elapsed_ms = round((time.time() - start) * 1000, 2)

            if response.status_code >= 500:
                severity = ErrorSeverity.ERROR
            elif response.status_code >= 400 and response.status_code not in (401, 403):
                severity = ErrorSeverity.WARNING
            else:
                return response

            await log_error(
                Exception(f"HTTP {response.status_code} on {request.method} {request.url.path}"),
                severity=severity,
                module="middleware.error_capture",
                function_name="dispatch",
                request_method=request.method,
                request_path=str(request.url.path),
                status_code=response.status_code,
                response_time_ms=elapsed_ms,
                ip_address=ip_address,
            )
            return response

        except Exception as exc:
            elapsed_ms = round((time.time() - start) * 1000, 2)

            if isinstance(exc, HTTPException) and exc.status_code < 500:
                raise

            await log_error(
                exc,
                severity=ErrorSeverity.ERROR,
                module="middleware.error_capture",
                request_method=request.method,
                request_path=str(request.url.path),
                status_code=500,
                response_time_ms=elapsed_ms,
                ip_address=ip_address,
            )

            logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error"},
            )
