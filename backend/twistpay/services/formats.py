"""Format normalisation for expirations, phone numbers, postal codes and amounts.

Records arrive from several writers over time, so the same expiration may be
stored as ``MMYY``, ``MM/YY`` or ``YYYY-MM-DD`` and phones may or may not
carry punctuation or a country code.
"""

import re
from typing import Any, Iterable

_MMYY_RE = re.compile(r"^(\d{2})(\d{2})$")
_SLASHED_RE = re.compile(r"^(\d{2})/(\d{2})$")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_NON_DIGIT_RE = re.compile(r"\D")
_AMOUNT_NOISE_RE = re.compile(r"[$,\s]")
_AMOUNT_RE = re.compile(r"^\d+(\.\d+)?$")


def _clean(value: Any) -> str:
    return "" if value is None else str(value).strip()


# ── Expiration ───────────────────────────────────────────────────

def to_mmyy(value: Any) -> str | None:
    """Return the canonical 4-digit ``MMYY`` form, or None when unrecognised."""
    s = _clean(value)
    if _MMYY_RE.match(s):
        return s
    m = _SLASHED_RE.match(s)
    if m:
        return m.group(1) + m.group(2)
    m = _ISO_DATE_RE.match(s)
    if m:
        return m.group(2) + m.group(1)[-2:]
    return None


def expiration_variants(value: Any) -> list[str]:
    """All plausible textual encodings of an expiration, the given form first.

    The code store is keyed by the expiration exactly as it was first
    submitted, so lookups retry across these until one hits.
    """
    s = _clean(value)
    if not s:
        return []
    out = [s]
    mmyy = to_mmyy(s)
    if mmyy:
        for candidate in (mmyy, f"{mmyy[:2]}/{mmyy[2:]}"):
            if candidate not in out:
                out.append(candidate)
    return out


# ── Phone ────────────────────────────────────────────────────────

def digits_only(value: Any) -> str:
    return _NON_DIGIT_RE.sub("", _clean(value))


def last10(value: Any) -> str:
    return digits_only(value)[-10:]


def to_e164(value: Any) -> str | None:
    """``+1`` prefixed E.164 form for a North American number."""
    digits = digits_only(value)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        return None
    return f"+1{digits}"


def phone_values(record: dict) -> list[str]:
    """Values of every field whose name mentions ``phone``."""
    return [
        str(v)
        for k, v in record.items()
        if "phone" in str(k).lower() and v not in (None, "") and not isinstance(v, (dict, list))
    ]


def phone_last10_set(values: Iterable[Any]) -> list[str]:
    out: list[str] = []
    for v in values:
        l10 = last10(v)
        if l10 and l10 not in out:
            out.append(l10)
    return out


# ── Postal / province / amount ───────────────────────────────────

def normalize_postal(value: Any) -> str:
    return re.sub(r"\s", "", _clean(value)).upper()


def normalize_province(value: Any) -> str:
    return _clean(value).upper()


def parse_amount(value: Any) -> float | None:
    """Parse a money amount such as ``"$1,200.50"``; None when unusable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        # Only currency symbols, thousands separators and spaces are dropped;
        # a sign or exponent makes the amount unusable.
        cleaned = _AMOUNT_NOISE_RE.sub("", _clean(value))
        if not _AMOUNT_RE.match(cleaned):
            return None
        amount = float(cleaned)
    if amount != amount or amount < 0:  # NaN or negative
        return None
    return amount
