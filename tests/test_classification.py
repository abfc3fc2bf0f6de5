"""Tests for code resolution and income base classification."""

from decimal import Decimal

import pytest

from ca_payroll.calculators.classification import (
    CodeCatalog,
    build_recurring_earnings,
    classify_income,
    compute_recurring_deductions,
)
from ca_payroll.calculators.line_builder import LineItemBuilder
from ca_payroll.calculators.types import EarningType, LineCategory
from ca_payroll.domain.company import DeductionCode, DeductionKind
from ca_payroll.domain.employee import EmployeeDeduction, EmployeeEarning
from ca_payroll.exceptions import DataIntegrityError


@pytest.fixture
def catalog(company_settings):
    return CodeCatalog.from_configurations(company_settings.configurations)


def earning(amount, code_id="reg-pay", earning_type=EarningType.REGULAR):
    return LineItemBuilder.create_earning_line(earning_type, "line", Decimal(amount), code_id=code_id)


class TestCodeCatalog:
    def test_system_codes_always_resolve(self, catalog):
        for code_id in ("reg-pay", "bonus-disc", "vacation-payout"):
            code = catalog.earning_code(code_id)
            assert code.is_taxable and code.is_pensionable and code.is_insurable

    def test_unknown_earning_code(self, catalog):
        with pytest.raises(DataIntegrityError, match="Unknown earning code 'nope'"):
            catalog.earning_code("nope")

    def test_unknown_deduction_code(self, catalog):
        with pytest.raises(DataIntegrityError):
            catalog.deduction_code("nope")


class TestClassifyIncome:
    def test_all_flags_set(self, catalog):
        bases = classify_income([earning("1000.00")], [], catalog)
        assert bases.taxable == bases.pensionable == bases.insurable == Decimal("1000.00")

    def test_non_insurable_earning(self, catalog):
        """Car allowance is taxable and pensionable but not insurable."""
        bases = classify_income(
            [earning("1000.00"), earning("200.00", code_id="car-allow", earning_type="Earning")],
            [],
            catalog,
        )
        assert bases.taxable == Decimal("1200.00")
        assert bases.pensionable == Decimal("1200.00")
        assert bases.insurable == Decimal("1000.00")

    def test_pretax_reduces_only_flagged_bases(self, catalog):
        rrsp = LineItemBuilder.create_deduction_line("rrsp", "Group RRSP", Decimal("150.00"), pretax=True)
        bases = classify_income([earning("1000.00")], [rrsp], catalog)
        assert bases.taxable == Decimal("850.00")
        assert bases.pensionable == Decimal("1000.00")
        assert bases.insurable == Decimal("1000.00")

    def test_bases_clamp_at_zero(self, catalog):
        rrsp = LineItemBuilder.create_deduction_line("rrsp", "Group RRSP", Decimal("5000.00"), pretax=True)
        bases = classify_income([earning("1000.00")], [rrsp], catalog)
        assert bases.taxable == Decimal("0")

    def test_item_without_code_counts_everywhere(self, catalog):
        line = LineItemBuilder.create_earning_line(EarningType.EARNING, "Manual", Decimal("50.00"))
        bases = classify_income([line], [], catalog)
        assert bases.taxable == bases.pensionable == bases.insurable == Decimal("50.00")

    def test_unknown_code_is_fatal(self, catalog):
        with pytest.raises(DataIntegrityError):
            classify_income([earning("10.00", code_id="ghost")], [], catalog)


class TestRecurringLines:
    def test_recurring_earnings_use_code_name(self, catalog):
        lines = build_recurring_earnings([EmployeeEarning("car-allow", Decimal("200"))], catalog)
        assert lines[0].description == "Car Allowance"
        assert lines[0].amount == Decimal("200.00")
        assert lines[0].category == LineCategory.EARNING

    def test_fixed_and_percentage_deductions(self, catalog):
        lines = compute_recurring_deductions(
            [
                EmployeeDeduction("rrsp", Decimal("150")),
                EmployeeDeduction("union", Decimal("1.5")),
            ],
            catalog,
            gross_pay=Decimal("4375.00"),
        )
        assert [(l.code_id, l.amount, l.category) for l in lines] == [
            ("rrsp", Decimal("150.00"), LineCategory.PRE_TAX),
            ("union", Decimal("65.63"), LineCategory.POST_TAX),
        ]

    def test_zero_amount_omitted(self, catalog):
        lines = compute_recurring_deductions(
            [EmployeeDeduction("rrsp", Decimal("0"))], catalog, gross_pay=Decimal("1000")
        )
        assert lines == []

    def test_deduction_code_pretax_flag(self):
        code = DeductionCode(id="x", name="X", type=DeductionKind.POST_TAX)
        assert code.is_pretax is False
