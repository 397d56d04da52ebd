"""One-time passcode verification against the external OTP service.

The remote service is authoritative: it receives ``{"phone", "code"}`` with the
phone in E.164 form and answers ``{"success": bool}``. In development the
``mock`` provider accepts the configured mock code instead.

A short-lived confirmation cache remembers (phone, code) pairs that were
already confirmed, so a client-side pre-check followed by the server-side
submit does not consume the same one-time code twice.
"""

import logging
import threading
import time
from datetime import timedelta
from typing import Any, Callable, Optional

import httpx

from twistpay.config import settings

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_TTL = timedelta(minutes=10)


class OtpConfirmationCache:
    """Affirmative-only cache with expiry checked lazily on read."""

    def __init__(
        self,
        ttl: timedelta = DEFAULT_CONFIRMATION_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl.total_seconds()
        self._clock = clock
        self._lock = threading.Lock()
        self._confirmed: dict[tuple[str, str], float] = {}

    def confirm(self, phone: str, code: str) -> None:
        with self._lock:
            self._confirmed[(phone, code)] = self._clock()

    def is_confirmed(self, phone: str, code: str) -> bool:
        with self._lock:
            confirmed_at = self._confirmed.get((phone, code))
            if confirmed_at is None:
                return False
            if self._clock() - confirmed_at > self.ttl_seconds:
                del self._confirmed[(phone, code)]
                return False
            return True


class OtpVerifier:
    """Client for the OTP collaborator, selected by ``OTP_PROVIDER``."""

    def __init__(
        self,
        provider: Optional[str] = None,
        verify_url: Optional[str] = None,
        timeout: Optional[float] = None,
        mock_code: Optional[str] = None,
    ):
        self.provider = (provider or settings.otp_provider).lower()
        self.verify_url = verify_url if verify_url is not None else settings.otp_verify_url
        self.timeout = timeout or settings.otp_timeout_seconds
        self.mock_code = mock_code if mock_code is not None else settings.otp_mock_code

    async def verify(self, phone_e164: str, code: str) -> bool:
        """Ask the collaborator whether ``code`` is valid for ``phone_e164``.

        Returns False on any failure, including transport errors.
        """
        if not phone_e164 or not code:
            return False
        if self.provider == "mock":
            return str(code).strip() == self.mock_code
        if self.provider != "http":
            raise NotImplementedError(f"OTP provider '{self.provider}' not implemented")
        if not self.verify_url:
            logger.warning("OTP_VERIFY_URL not configured, rejecting OTP check")
            return False

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.verify_url,
                    json={"phone": phone_e164, "code": str(code).strip()},
                    timeout=self.timeout,
                )
            body: Any = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.error("OTP verification call failed for %s: %s", phone_e164, exc)
            return False

        if response.status_code >= 400:
            logger.warning("OTP service returned HTTP %s for %s", response.status_code, phone_e164)
            return False
        return isinstance(body, dict) and body.get("success") is True


class OtpService:
    """Verifier plus confirmation cache; the single entry point for OTP checks."""

    def __init__(self, verifier: OtpVerifier, cache: OtpConfirmationCache):
        self.verifier = verifier
        self.cache = cache

    async def check(self, phone_e164: str, code: str) -> bool:
        code = str(code or "").strip()
        if not phone_e164 or not code:
            return False
        if self.cache.is_confirmed(phone_e164, code):
            logger.info("OTP for %s already confirmed recently, skipping provider call", phone_e164)
            return True
        if await self.verifier.verify(phone_e164, code):
            self.cache.confirm(phone_e164, code)
            return True
        return False
