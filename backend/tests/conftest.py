"""Shared fixtures: file-backed stores under tmp_path and a seeded account."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from twistpay.rate_limit import limiter
from twistpay.services.code_store import CodeStore, derive_code, verification_slice
from twistpay.services.crm_sync import CrmClient
from twistpay.services.otp_service import OtpConfirmationCache, OtpService, OtpVerifier
from twistpay.services.payload_index import PayloadIndex
from twistpay.services.record_store import LogSource, RecordStore
from twistpay.services.status_store import StatusStore
from twistpay.services.validation_engine import ValidationEngine

ISSUER_PREFIX = "62840010"
LOAN_ID = "TW-000123456"
CARD_NUMBER = ISSUER_PREFIX + "123456"
EXPIRATION = "03/27"
OTP_CODE = "482913"


def log_line(ts: str, record: dict, event: str = "store-status") -> str:
    return f"[{ts}] {event}: {json.dumps(record)}\n"


def expected_slice(loan_id: str = LOAN_ID, expiration: str = EXPIRATION) -> str:
    return verification_slice(derive_code(loan_id, expiration))


@pytest.fixture(autouse=True)
def _disable_rate_limit():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def account() -> dict:
    return {
        "transaction_id": "seed-1",
        "status": "approved",
        "loan_id": LOAN_ID,
        "contract_expiration": EXPIRATION,
        "postal_code": "M5V 2T6",
        "province": "ON",
        "email": "Jane.Doe@example.com",
        "phone": "(416) 555-0199",
        "available_credit": 1500,
        "product_code": "TW1",
        "product_description": "Twist card",
        "state": "active",
    }


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "webhook_logs.txt"


@pytest.fixture
def write_log(log_path):
    """Append raw lines to the primary log file."""
    def _write(*lines: str, path=None):
        with open(path or log_path, "a", encoding="utf-8") as fh:
            fh.writelines(lines)
    return _write


@pytest.fixture
def records(log_path):
    return RecordStore(LogSource([log_path]))


@pytest.fixture
def codes(tmp_path):
    return CodeStore(tmp_path / "code.json")


@pytest.fixture
def index(tmp_path, codes, records):
    return PayloadIndex(tmp_path / "payload_index.json", codes, records)


@pytest.fixture
def statuses():
    return StatusStore()


@pytest.fixture
def otp_verifier():
    verifier = MagicMock(spec=OtpVerifier)
    verifier.verify = AsyncMock(return_value=True)
    return verifier


@pytest.fixture
def otp(otp_verifier):
    return OtpService(otp_verifier, OtpConfirmationCache())


@pytest.fixture
def crm():
    client = MagicMock(spec=CrmClient)
    client.sync_payload = AsyncMock(return_value={"skipped": True, "reason": "AC not configured"})
    return client


@pytest.fixture
def engine(records, codes, otp, statuses):
    return ValidationEngine(records, codes, otp, statuses, ISSUER_PREFIX)
