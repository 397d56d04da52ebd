"""TwistPay Relay - FastAPI Entry Point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from twistpay import __version__
from twistpay.api import codes, index, otp, status, transactions
from twistpay.config import settings
from twistpay.dependencies import get_services
from twistpay.middleware.error_capture import ErrorCaptureMiddleware
from twistpay.rate_limit import limiter

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the service graph up front so storage problems surface at boot."""
    services = get_services()
    logger.info(
        "Record log files: %s (readable: %d)",
        ", ".join(str(p) for p in services.records.source.paths),
        len(services.records.source.readable_files()),
    )
    yield


app = FastAPI(
    title="TwistPay Relay API",
    description="Payment verification relay for TWIST card transactions",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing fields fail fast with a 400 and no side effects."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", "invalid value")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"ok": False, "message": message})


# ── Security headers middleware ──────────────────────────────────
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        if settings.environment != "development":
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return response


# Error capture middleware
app.add_middleware(ErrorCaptureMiddleware)

# Security headers
app.add_middleware(SecurityHeadersMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-API-Key"],
)

# Routers
app.include_router(transactions.router, prefix="/api/transactions", tags=["Transactions"])
app.include_router(status.router, prefix="/api", tags=["Status"])
app.include_router(otp.router, prefix="/api/otp", tags=["OTP"])
app.include_router(codes.router, prefix="/api", tags=["Codes"])
app.include_router(index.router, prefix="/api/index", tags=["Index"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "twistpay-relay", "version": __version__}
