"""Tests for API schemas covering SubmitTransactionRequest, StoreStatusRequest."""

import pytest
from pydantic import ValidationError

from twistpay.schemas import (
    IndexRecordSummary,
    OtpVerifyRequest,
    StoreStatusRequest,
    SubmitTransactionRequest,
)


def _submit(**overrides):
    data = {
        "transaction_id": "txn-1",
        "amount": "120.50",
        "cardNumber": "62840010123456",
        "expiration": "03/27",
        "twist": "1234",
        "email": "jane@example.com",
        "phone": "4165550199",
        "postal": "M5V 2T6",
        "otpCode": "482913",
    }
    data.update(overrides)
    return SubmitTransactionRequest(**data)


class TestSubmitTransactionRequest:
    """Embedded payment form payload."""

    def test_accepts_camel_case_aliases(self):
        """cardNumber and otpCode populate the snake_case fields."""
        data = _submit()
        assert data.card_number == "62840010123456"
        assert data.otp_code == "482913"

    def test_accepts_field_names(self):
        """Field names work as well as aliases."""
        data = SubmitTransactionRequest(
            transaction_id="txn-1",
            amount=10,
            card_number="62840010123456",
            expiration="03/27",
            twist="1234",
            email="jane@example.com",
            phone="4165550199",
            postal="M5V 2T6",
            otp_code="1",
        )
        assert data.otp_code == "1"

    def test_amount_with_currency_formatting(self):
        """Amounts like "$1,200.50" are parsed."""
        assert _submit(amount="$1,200.50").amount == 1200.50

    @pytest.mark.parametrize("amount", ["free", "-5", "1e3", "5-"])
    def test_rejects_unusable_amount(self, amount):
        """Unparseable or signed amounts are rejected, not reinterpreted."""
        with pytest.raises(ValidationError):
            _submit(amount=amount)

    def test_empty_province_becomes_none(self):
        """Empty optional strings become None."""
        assert _submit(province="").province is None

    def test_strips_whitespace(self):
        """Surrounding whitespace is stripped."""
        assert _submit(twist=" 1234 ").twist == "1234"

    def test_rejects_bad_email(self):
        """Email must be valid."""
        with pytest.raises(ValidationError):
            _submit(email="nope")


class TestStoreStatusRequest:
    """Payment processor callback payload."""

    def test_status_is_case_insensitive(self):
        """Status is lower-cased before validation."""
        assert StoreStatusRequest(transaction_id="t1", status=" Approved ").status == "approved"

    def test_rejects_unknown_status(self):
        """Only pending, approved and denied are accepted."""
        with pytest.raises(ValidationError):
            StoreStatusRequest(transaction_id="t1", status="refunded")

    def test_keeps_extra_fields(self):
        """Unknown fields survive into model_dump."""
        data = StoreStatusRequest(transaction_id="t1", status="approved", postal_code="M5V 2T6")
        assert data.model_dump(exclude_none=True)["postal_code"] == "M5V 2T6"

    def test_rejects_negative_credit(self):
        """available_credit cannot be negative."""
        with pytest.raises(ValidationError):
            StoreStatusRequest(transaction_id="t1", status="approved", available_credit=-1)


class TestOtpVerifyRequest:
    def test_alias(self):
        assert OtpVerifyRequest(phone="4165550199", otpCode="123456").otp_code == "123456"


class TestIndexRecordSummary:
    def test_defaults(self):
        summary = IndexRecordSummary(key="abc")
        assert summary.phones == []
        assert summary.payload is None
