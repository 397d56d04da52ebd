"""Transaction validation engine.

Checks a submitted card payment against the latest logged account record for
the loan embedded in the card number, then the TWIST slice and the OTP.
Checks run in a fixed order and stop at the first failure, each failure
carrying its own stable message. A failed validation has no side effects.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from starlette.concurrency import run_in_threadpool

from twistpay.services.code_store import CodeStore, derive_code, verification_slice
from twistpay.services.formats import (
    digits_only,
    last10,
    normalize_postal,
    normalize_province,
    parse_amount,
    phone_values,
    to_e164,
    to_mmyy,
)
from twistpay.services.otp_service import OtpService
from twistpay.services.record_store import RecordStore
from twistpay.services.status_store import StatusStore, is_terminal_state

logger = logging.getLogger(__name__)

CARD_NUMBER_LENGTH = 14
LOAN_SUFFIX_LENGTH = 6

MSG_INCORRECT_CARD = "incorrect card number"
MSG_EMAIL_MISMATCH = "email mismatch"
MSG_PHONE_MISMATCH = "phone mismatch"
MSG_POSTAL_MISMATCH = "postal mismatch"
MSG_PROVINCE_MISMATCH = "province mismatch"
MSG_AMOUNT_EXCEEDS = "amount exceeds available credit"
MSG_EXPIRATION_MISMATCH = "expiration mismatch"
MSG_CODE_MISMATCH = "code mismatch"
MSG_OTP_INVALID = "OTP invalid or expired"
MSG_TRANSACTION_SETTLED = "transaction already settled"
MSG_VALIDATED = "validated"


@dataclass
class TransactionSubmission:
    transaction_id: str
    amount: Any
    card_number: str
    expiration: str
    verification_slice: str
    email: str
    phone: str
    postal: str
    otp_code: str
    province: Optional[str] = None


@dataclass
class Decision:
    ok: bool
    message: str
    loan_id: Optional[str] = None

    @property
    def status(self) -> str:
        return "approved" if self.ok else "denied"


def _deny(message: str) -> Decision:
    return Decision(ok=False, message=message)


def record_province(record: dict) -> str:
    """Province from the record; a two-letter ``state`` counts as one.

    ``state`` otherwise carries the account status (e.g. ``active``).
    """
    province = normalize_province(record.get("province"))
    if province:
        return province
    state = normalize_province(record.get("state"))
    if len(state) == 2 and state.isalpha():
        return state
    return ""


class ValidationEngine:
    def __init__(
        self,
        records: RecordStore,
        codes: CodeStore,
        otp: OtpService,
        statuses: StatusStore,
        issuer_prefix: str,
    ):
        self.records = records
        self.codes = codes
        self.otp = otp
        self.statuses = statuses
        self.issuer_prefix = issuer_prefix

    def expected_slice(self, loan_id: str, raw_expiration: str) -> Optional[str]:
        """Slice of the stored code, or of the code the pair would be given.

        Nothing is persisted here; codes are minted by store-status ingestion
        and the get-code endpoint.
        """
        code = self.codes.lookup(loan_id, raw_expiration)
        if code is None and str(loan_id or "").strip() and raw_expiration:
            code = derive_code(loan_id, raw_expiration)
        return verification_slice(code)

    def check_account(self, sub: TransactionSubmission) -> Decision:
        """Every check up to the OTP step, against the logged account record.

        Reads the record log and the code store, so callers on the event loop
        run it in a worker thread.
        """
        card = digits_only(sub.card_number)
        if len(card) != CARD_NUMBER_LENGTH or not card.startswith(self.issuer_prefix):
            return _deny(MSG_INCORRECT_CARD)

        record = self.records.find_latest_by_loan_suffix(card[-LOAN_SUFFIX_LENGTH:])
        if record is None:
            logger.info("No account record for card ending %s", card[-4:])
            return _deny(MSG_INCORRECT_CARD)
        loan_id = str(record.get("loan_id") or "").strip()

        record_email = str(record.get("email") or "").strip().lower()
        if record_email and record_email != str(sub.email or "").strip().lower():
            return _deny(MSG_EMAIL_MISMATCH)

        record_phones = {last10(p) for p in phone_values(record)} - {""}
        if record_phones and last10(sub.phone) not in record_phones:
            return _deny(MSG_PHONE_MISMATCH)

        record_postal = normalize_postal(record.get("postal_code") or record.get("postal"))
        if record_postal and normalize_postal(sub.postal) != record_postal:
            return _deny(MSG_POSTAL_MISMATCH)

        expected_province = record_province(record)
        submitted_province = normalize_province(sub.province)
        if expected_province and submitted_province and expected_province != submitted_province:
            return _deny(MSG_PROVINCE_MISMATCH)

        amount = parse_amount(sub.amount)
        available = parse_amount(record.get("available_credit")) or 0.0
        if amount is None or amount > available:
            return _deny(MSG_AMOUNT_EXCEEDS)

        raw_expiration = str(record.get("contract_expiration") or "").strip()
        submitted_mmyy = to_mmyy(sub.expiration)
        if not submitted_mmyy or submitted_mmyy != to_mmyy(raw_expiration):
            return _deny(MSG_EXPIRATION_MISMATCH)

        expected = self.expected_slice(loan_id, raw_expiration)
        if not expected or str(sub.verification_slice or "").strip() != expected:
            return _deny(MSG_CODE_MISMATCH)

        return Decision(ok=True, message=MSG_VALIDATED, loan_id=loan_id)

    async def validate(self, sub: TransactionSubmission) -> Decision:
        """Run every check in order; mark the transaction pending on success."""
        decision = await run_in_threadpool(self.check_account, sub)
        if not decision.ok:
            return decision

        # A settled transaction cannot be re-validated; the OTP is not spent.
        if is_terminal_state(self.statuses.status_of(sub.transaction_id)):
            logger.info("Transaction %s already settled, rejecting resubmission", sub.transaction_id)
            return _deny(MSG_TRANSACTION_SETTLED)

        phone_e164 = to_e164(sub.phone)
        if not phone_e164 or not await self.otp.check(phone_e164, sub.otp_code):
            return _deny(MSG_OTP_INVALID)

        if not self.statuses.mark_pending(sub.transaction_id):
            return _deny(MSG_TRANSACTION_SETTLED)
        logger.info("Transaction %s validated against loan %s", sub.transaction_id, decision.loan_id)
        return decision
