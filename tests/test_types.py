# ABOUTME: Tests for Ledgerizer type definitions
# ABOUTME: Validates parse_amount, Totals.sum, and BalanceCheck derivation

from decimal import Decimal

import pytest

from ledgerizer.exceptions import ValidationError
from ledgerizer.types import BalanceCheck, Totals, parse_amount, parse_iso_date


class TestParseAmount:
    """Test report cell parsing."""

    def test_parses_plain_decimal_text(self):
        assert parse_amount("23017.77") == Decimal("23017.77")
        assert parse_amount("-50.00") == Decimal("-50.00")

    def test_strips_thousands_separators(self):
        assert parse_amount("1,234,567.89") == Decimal("1234567.89")

    def test_handles_none_and_blank(self):
        assert parse_amount(None) == Decimal("0")
        assert parse_amount("") == Decimal("0")
        assert parse_amount("   ") == Decimal("0")

    def test_malformed_text_is_zero(self):
        assert parse_amount("n/a") == Decimal("0")
        assert parse_amount("NaN") == Decimal("0")

    def test_numbers_pass_through(self):
        assert parse_amount(100) == Decimal("100")
        assert parse_amount(Decimal("2.5")) == Decimal("2.5")


class TestParseIsoDate:
    """Test date validation."""

    def test_accepts_iso_date(self):
        assert parse_iso_date("2025-06-30").isoformat() == "2025-06-30"

    def test_rejects_other_formats(self):
        with pytest.raises(ValidationError, match="from_date"):
            parse_iso_date("30/06/2025", "from_date")


class TestTotals:
    """Test Totals aggregation."""

    def test_sum_is_field_by_field(self):
        a = Totals(total_assets=Decimal("100"), total_debits=Decimal("100"))
        b = Totals(total_assets=Decimal("50.25"), total_credits=Decimal("7"))

        total = Totals.sum([a, b])

        assert total.total_assets == Decimal("150.25")
        assert total.total_debits == Decimal("100")
        assert total.total_credits == Decimal("7")
        assert total.total_equity == Decimal("0")

    def test_sum_of_nothing_is_zero(self):
        assert Totals.sum([]) == Totals()


class TestBalanceCheck:
    """Test the balance check invariants."""

    def test_exactly_equal_is_balanced_with_zero_difference(self):
        totals = Totals(
            total_debits=Decimal("1000"),
            total_credits=Decimal("1000"),
            total_assets=Decimal("1000"),
            total_liabilities=Decimal("400"),
            total_equity=Decimal("600"),
        )
        check = BalanceCheck.from_totals(totals)

        assert check.debits_equal_credits is True
        assert check.difference == Decimal("0")
        assert check.accounting_equation.balanced is True
        assert check.accounting_equation.liabilities_and_equity == Decimal("1000")

    def test_within_tolerance_is_balanced(self):
        totals = Totals(total_debits=Decimal("100.005"), total_credits=Decimal("100"))
        assert BalanceCheck.from_totals(totals).debits_equal_credits is True

    def test_one_cent_is_out_of_balance(self):
        totals = Totals(total_debits=Decimal("100.01"), total_credits=Decimal("100"))
        check = BalanceCheck.from_totals(totals)

        assert check.debits_equal_credits is False
        assert check.difference == Decimal("0.01")

    def test_accounting_equation_checked_separately(self):
        totals = Totals(
            total_debits=Decimal("50"),
            total_credits=Decimal("50"),
            total_assets=Decimal("50000"),
            total_liabilities=Decimal("20000"),
            total_equity=Decimal("29000"),
        )
        check = BalanceCheck.from_totals(totals)

        assert check.debits_equal_credits is True
        assert check.accounting_equation.balanced is False
