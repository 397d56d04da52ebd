"""Pydantic schemas for request/response validation."""

from typing import Any, Optional, Literal
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from twistpay.services.formats import parse_amount


# ── Transaction submission ───────────────────────────

class SubmitTransactionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    transaction_id: str = Field(min_length=1, max_length=128)
    orderno: Optional[str] = None
    amount: float
    card_number: str = Field(alias="cardNumber", min_length=1)
    expiration: str = Field(min_length=1, max_length=10)
    twist: str = Field(min_length=1, max_length=8, description="4-digit verification slice")
    email: EmailStr
    phone: str = Field(min_length=1, max_length=32)
    postal: str = Field(min_length=1, max_length=16)
    province: Optional[str] = None
    otp_code: str = Field(alias="otpCode", min_length=1, max_length=12)
    address: Optional[str] = None
    city: Optional[str] = None
    name: Optional[str] = None
    product_description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def empty_strings_to_none(cls, values: Any) -> Any:
        """Convert empty optional strings to None."""
        if isinstance(values, dict):
            optional = {"orderno", "province", "address", "city", "name", "product_description"}
            return {k: (None if k in optional and v == "" else v) for k, v in values.items()}
        return values

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, v: Any) -> float:
        amount = parse_amount(v)
        if amount is None:
            raise ValueError("amount must be a non-negative number")
        return amount


class DecisionResponse(BaseModel):
    ok: bool
    status: Literal["approved", "denied"]
    message: str
    loan_id: Optional[str] = None


# ── Store status (payment processor callback) ────────

class StoreStatusRequest(BaseModel):
    """Processor payload; unknown fields are kept and written to the log."""
    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    transaction_id: str = Field(min_length=1, max_length=128)
    status: Literal["pending", "approved", "denied"]
    email: Optional[str] = None
    available_credit: Optional[float] = Field(None, ge=0)
    loan_id: Optional[str] = None
    contract_expiration: Optional[str] = None
    product_code: Optional[str] = None
    state: Optional[str] = None
    limit: Optional[float] = None
    phone: Optional[str] = None
    product_description: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _lower_status(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class StoreStatusResponse(BaseModel):
    success: bool
    transaction_id: str
    status: str
    status_applied: bool
    phoneLast10: str = ""
    code_ready: bool = False
    crm: dict[str, Any] = Field(default_factory=dict)


class TransactionStatusResponse(BaseModel):
    success: bool = True
    transaction_id: str
    status: str
    source: Literal["memory", "log", "default"]


# ── OTP pre-check ────────────────────────────────────

class OtpVerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    phone: str = Field(min_length=1, max_length=32)
    otp_code: str = Field(alias="otpCode", min_length=1, max_length=12)


class OtpVerifyResponse(BaseModel):
    ok: bool
    message: str


# ── Codes & index ────────────────────────────────────

class CodeResponse(BaseModel):
    success: bool = True
    twistcode: str


class LatestCodeResponse(BaseModel):
    ok: bool = True
    source: str = "code.json"
    code: str
    t: Optional[str] = None


class IndexRecordSummary(BaseModel):
    key: str
    loan_id: Optional[str] = None
    contract_expiration: Optional[str] = None
    code: Optional[str] = None
    phones: list[str] = Field(default_factory=list)
    emails: list[str] = Field(default_factory=list)
    updatedAt: Optional[str] = None
    payload: Optional[dict[str, Any]] = None


class IndexLookupResponse(BaseModel):
    ok: bool = True
    count: int
    results: list[IndexRecordSummary]


class IndexRebuildResponse(BaseModel):
    ok: bool = True
    replayed: int
    keys: int
