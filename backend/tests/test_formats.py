"""Tests for expiration, phone, postal and amount normalisation."""

import pytest

from twistpay.services.formats import (
    digits_only,
    expiration_variants,
    last10,
    normalize_postal,
    parse_amount,
    phone_last10_set,
    phone_values,
    to_e164,
    to_mmyy,
)


class TestToMMYY:
    @pytest.mark.parametrize("raw", ["2025-03-01", "03/25", "0325", " 03/25 "])
    def test_all_formats_share_canonical_form(self, raw):
        assert to_mmyy(raw) == "0325"

    @pytest.mark.parametrize("raw", ["", None, "3/25", "March 2025", "03-25", "20250301", "2025/03/01"])
    def test_unrecognised_formats(self, raw):
        assert to_mmyy(raw) is None


class TestExpirationVariants:
    def test_slashed(self):
        assert expiration_variants("03/25") == ["03/25", "0325"]

    def test_compact(self):
        assert expiration_variants("0325") == ["0325", "03/25"]

    def test_iso_date(self):
        assert set(expiration_variants("2025-03-01")) == {"0325", "03/25", "2025-03-01"}
        assert expiration_variants("2025-03-01")[0] == "2025-03-01"

    def test_unrecognised_kept_as_is(self):
        assert expiration_variants("next year") == ["next year"]

    def test_empty(self):
        assert expiration_variants("") == []
        assert expiration_variants(None) == []


class TestPhone:
    def test_digits_and_last10(self):
        assert digits_only("+1 (416) 555-0199") == "14165550199"
        assert last10("+1 (416) 555-0199") == "4165550199"
        assert last10("555-0199") == "5550199"

    def test_e164_from_ten_digits(self):
        assert to_e164("(416) 555-0199") == "+14165550199"

    def test_e164_accepts_leading_country_code(self):
        assert to_e164("+1 416 555 0199") == "+14165550199"

    @pytest.mark.parametrize("raw", ["", "555-0199", "+44 20 7946 0958", "24165550199"])
    def test_e164_rejects_other_lengths(self, raw):
        assert to_e164(raw) is None

    def test_phone_values_picks_any_phone_field(self):
        record = {"phone": "416-555-0199", "customer_phone": "", "Mobile_Phone": 4165550100, "email": "x@y.z"}
        assert phone_values(record) == ["416-555-0199", "4165550100"]

    def test_phone_last10_set_dedupes(self):
        assert phone_last10_set(["416-555-0199", "+14165550199", ""]) == ["4165550199"]


class TestPostalAndAmount:
    def test_postal(self):
        assert normalize_postal(" m5v 2t6 ") == "M5V2T6"

    @pytest.mark.parametrize("raw,expected", [
        (1500, 1500.0),
        ("1500", 1500.0),
        ("$1,200.50", 1200.5),
        (" 1 500.00 ", 1500.0),
        (0, 0.0),
    ])
    def test_amounts(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "1.2.3", -5, True, "-5", "1e3", "5-", "-1400"])
    def test_unusable_amounts(self, raw):
        assert parse_amount(raw) is None
