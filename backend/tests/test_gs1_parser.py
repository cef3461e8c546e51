"""Tests for the GS1 Application Identifier parser."""

from datetime import date
from decimal import Decimal

import pytest

from stockscan.services.barcode_errors import GS1ParseError
from stockscan.services.gs1_parser import (
    GS,
    GS1_AI_TABLE,
    MISENCODED_HYPHEN,
    century_year,
    decode_gs1,
    extract_fields,
    normalize_barcode,
    parse_yymmdd,
)

GTIN = "04912345678881"


def _fields(barcode: str) -> dict:
    return extract_fields(decode_gs1(barcode))


class TestNormalizeBarcode:
    def test_strips_whitespace(self):
        assert normalize_barcode("  01012345  ") == "01012345"

    def test_strips_cr_lf(self):
        assert normalize_barcode("01012345\r\n") == "01012345"

    def test_strips_symbology_prefix_d2(self):
        assert normalize_barcode("]d201012345") == "01012345"

    def test_strips_symbology_prefix_c1(self):
        assert normalize_barcode("]C101012345") == "01012345"

    def test_strips_symbology_prefix_e0(self):
        assert normalize_barcode("]e001012345") == "01012345"

    def test_strips_bare_format_indicator(self):
        assert normalize_barcode("C101012345") == "01012345"
        assert normalize_barcode("d201012345") == "01012345"

    def test_replaces_gs_placeholder_braces(self):
        assert normalize_barcode("ABC{GS}DEF") == f"ABC{GS}DEF"

    def test_replaces_gs_placeholder_angle_brackets(self):
        assert normalize_barcode("ABC<GS>DEF") == f"ABC{GS}DEF"

    def test_replaces_unicode_gs_symbol(self):
        assert normalize_barcode("ABC\u241dDEF") == f"ABC{GS}DEF"

    def test_maps_misencoded_hyphen(self):
        assert normalize_barcode(f"10AB{MISENCODED_HYPHEN}12") == "10AB-12"

    def test_parenthesized_ais_become_field_boundaries(self):
        raw = f"(01){GTIN}(17)250210(10)ABC123"
        assert normalize_barcode(raw) == f"01{GTIN}{GS}17250210{GS}10ABC123"

    def test_parentheses_inside_a_value_are_kept(self):
        raw = f"(01){GTIN}(10)LOT(A)"
        assert normalize_barcode(raw) == f"01{GTIN}{GS}10LOT(A)"


class TestParseYYMMDD:
    def test_regular_date(self):
        assert parse_yymmdd("250210") == date(2025, 2, 10)

    def test_day_zero_is_last_day_of_month(self):
        assert parse_yymmdd("250200") == date(2025, 2, 28)
        assert parse_yymmdd("240200") == date(2024, 2, 29)

    def test_century_pivot(self):
        assert parse_yymmdd("491231") == date(2049, 12, 31)
        assert parse_yymmdd("500101") == date(1950, 1, 1)
        assert century_year(99) == 1999

    def test_impossible_dates(self):
        assert parse_yymmdd("251301") is None
        assert parse_yymmdd("250230") is None
        assert parse_yymmdd("2502") is None
        assert parse_yymmdd("25AB10") is None


class TestDecodeGS1:
    def test_gtin_expiry_lot(self):
        fields = _fields(f"]C101{GTIN}17250210" + "10ABC123")
        assert fields["gtin"] == GTIN
        assert fields["expiration_date"] == "2025-02-10"
        assert fields["batch_lot"] == "ABC123"

    def test_elements_in_order_of_occurrence(self):
        elements = decode_gs1(f"01{GTIN}17250210" + "10ABC123")
        assert [e.ai for e in elements] == ["01", "17", "10"]
        assert elements[1].typed_value == date(2025, 2, 10)

    def test_variable_field_terminated_by_gs(self):
        fields = _fields(f"01{GTIN}10LOT456{GS}21SER789")
        assert fields["batch_lot"] == "LOT456"
        assert fields["serial_number"] == "SER789"

    def test_gs_between_fixed_length_ais(self):
        fields = _fields(f"01{GTIN}{GS}17261231")
        assert fields["gtin"] == GTIN
        assert fields["expiration_date"] == "2026-12-31"

    def test_parenthesized_human_readable_form(self):
        fields = _fields(f"(01){GTIN}(10)LOT-7(17)261231")
        assert fields["batch_lot"] == "LOT-7"
        assert fields["expiration_date"] == "2026-12-31"

    def test_three_digit_ai_not_confused_with_two_digit(self):
        fields = _fields(f"10LOT{GS}240CATALOG123")
        assert fields["batch_lot"] == "LOT"
        assert fields["extras"] == {"ai240": "CATALOG123"}

    def test_four_digit_decimal_ai(self):
        elements = decode_gs1(f"01{GTIN}3103001250")
        weight = elements[1]
        assert weight.ai == "3103"
        assert weight.typed_value == Decimal("1.250")

    def test_quantity_ai(self):
        assert _fields(f"01{GTIN}3025")["quantity"] == 25

    def test_invalid_expiry_keeps_element_but_no_date(self):
        elements = decode_gs1(f"01{GTIN}17251399")
        assert elements[1].raw_value == "251399"
        assert elements[1].typed_value is None
        assert extract_fields(elements)["expiration_date"] is None

    def test_unknown_two_digit_ai_kept_in_extras(self):
        fields = _fields(f"01{GTIN}{GS}88XYZ")
        assert fields["gtin"] == GTIN
        assert fields["extras"] == {"ai88": "XYZ"}

    def test_repeated_ai_last_occurrence_wins(self):
        assert _fields(f"10FIRST{GS}10SECOND")["batch_lot"] == "SECOND"

    def test_partial_parse_returns_what_it_can(self):
        fields = _fields(f"01{GTIN}ZZZZZZ")
        assert fields["gtin"] == GTIN

    def test_stray_digit_shifts_fields(self):
        # One extra "0" after the AI: the decoder does not guess, it reads on
        fields = _fields("]C101004912345678881710250210ABC123")
        assert fields["gtin"] == "00491234567888"
        assert fields["expiration_date"] is None
        assert fields["batch_lot"] == "ABC123"

    def test_misencoded_hyphen_in_lot(self):
        assert _fields(f"01{GTIN}10AB{MISENCODED_HYPHEN}12")["batch_lot"] == "AB-12"

    def test_lot_with_parentheses_survives(self):
        fields = _fields(f"(01){GTIN}(10)LOT(A)7(17)261231")
        assert fields["batch_lot"] == "LOT(A)7"
        assert fields["expiration_date"] == "2026-12-31"

    def test_non_ascii_digits_are_not_numbers(self):
        # "²" passes str.isdigit() but int() rejects it
        elements = decode_gs1(f"01{GTIN[:-1]}²{GS}30²")
        assert elements[0].raw_value == f"{GTIN[:-1]}²"
        assert elements[0].typed_value is None
        assert elements[1].typed_value is None
        assert parse_yymmdd("26123²") is None

    @pytest.mark.parametrize("barcode", ["NOTAGS1BARCODE", "", "   \r\n", "88XYZ", "01123"])
    def test_no_valid_elements_raises(self, barcode):
        with pytest.raises(GS1ParseError, match="No valid GS1 elements found"):
            decode_gs1(barcode)


class TestAITable:
    def test_fixed_and_variable_lengths(self):
        assert GS1_AI_TABLE["01"].length == 14
        assert GS1_AI_TABLE["17"].length == 6
        assert GS1_AI_TABLE["10"].length is None
        assert GS1_AI_TABLE["21"].length is None

    def test_decimal_ais_carry_implied_decimals(self):
        assert GS1_AI_TABLE["3102"].decimals == 2
        assert GS1_AI_TABLE["3115"].unit == "m"
