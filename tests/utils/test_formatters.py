"""
Tests for pt-BR formatting helpers.
"""
from datetime import date, datetime

import pytest

from backoffice.utils.formatters import (
    MAX_AMOUNT_IN_WORDS,
    format_cep,
    format_cnpj,
    format_cpf,
    format_date_ptbr,
    format_decimal_ptbr,
    format_document,
    format_integer_ptbr,
    format_phone,
    number_to_words_ptbr,
    only_digits,
)


class TestDocuments:
    def test_only_digits(self):
        assert only_digits("123.456.789-01") == "12345678901"
        assert only_digits(None) == ""

    def test_cpf(self):
        assert format_cpf("12345678901") == "123.456.789-01"
        assert format_cpf("1234") == "123.4"

    def test_cnpj(self):
        assert format_cnpj("12345678000195") == "12.345.678/0001-95"
        assert format_cnpj("12.345.678/0001-95") == "12.345.678/0001-95"

    def test_document_picks_mask_by_length(self):
        assert format_document("12345678901") == "123.456.789-01"
        assert format_document("12345678000195") == "12.345.678/0001-95"
        assert format_document("ABC-1") == "ABC-1"

    def test_cep(self):
        assert format_cep("01310100") == "01310-100"
        assert format_cep("0131") == "0131"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1133334444", "(11) 3333-4444"),
            ("11999998888", "(11) 99999-8888"),
            ("11", "11"),
            ("+55 11 99999-8888", "(11) 99999-8888"),
        ],
    )
    def test_phone(self, raw, expected):
        assert format_phone(raw) == expected


class TestNumbers:
    def test_integer_thousands(self):
        assert format_integer_ptbr(1234567) == "1.234.567"
        assert format_integer_ptbr(160) == "160"

    def test_decimal(self):
        assert format_decimal_ptbr(1234.5) == "1.234,50"
        assert format_decimal_ptbr(0.76) == "0,76"
        assert format_decimal_ptbr(0.95, 4) == "0,9500"

    def test_date(self):
        assert format_date_ptbr(date(2026, 1, 5)) == "05/01/2026"
        assert format_date_ptbr(datetime(2026, 12, 31, 23, 59)) == "31/12/2026"


class TestNumberToWords:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, "zero real"),
            (1, "um real"),
            (2, "dois reais"),
            (15, "quinze reais"),
            (100, "cem reais"),
            (101, "cento e um reais"),
            (160, "cento e sessenta reais"),
            (1000, "mil reais"),
            (1500, "mil e quinhentos reais"),
            (1600, "mil e seiscentos reais"),
            (2345, "dois mil trezentos e quarenta e cinco reais"),
            (1000000, "um milhao de reais"),
            (2000000, "dois milhoes de reais"),
        ],
    )
    def test_amounts(self, value, expected):
        assert number_to_words_ptbr(value) == expected

    def test_cents_are_truncated(self):
        assert number_to_words_ptbr(160.99) == "cento e sessenta reais"

    def test_scales_beyond_trilhao(self):
        assert number_to_words_ptbr(10**15) == "um quatrilhao de reais"
        assert number_to_words_ptbr(2 * 10**15 + 5) == "dois quatrilhoes e cinco reais"
        assert number_to_words_ptbr(10**33) == "um decilhao de reais"

    def test_amount_without_scale_name_is_rejected(self):
        with pytest.raises(ValueError):
            number_to_words_ptbr(MAX_AMOUNT_IN_WORDS + 1)

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_amount_is_rejected(self, value):
        with pytest.raises(ValueError):
            number_to_words_ptbr(value)
