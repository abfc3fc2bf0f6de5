"""Tests for garnishment ordering."""

from decimal import Decimal

from ca_payroll.calculators.garnishments import apply_garnishments
from ca_payroll.calculators.types import LineCategory
from ca_payroll.domain.company import CalculationMethod, GarnishmentConfiguration
from ca_payroll.domain.employee import EmployeeGarnishment

GROSS = Decimal("4375.00")
NET_BEFORE = Decimal("2967.69")


def configs(company_settings):
    return company_settings.configurations.garnishment_map()


class TestApplyGarnishments:
    def test_priority_order_and_unresolved_warning(self, company_settings):
        """Priority 1 ($50) before priority 2 ($200); unknown config skipped."""
        result = apply_garnishments(
            [
                EmployeeGarnishment("g-cra", Decimal("200")),
                EmployeeGarnishment("g-missing", Decimal("75")),
                EmployeeGarnishment("g-support", Decimal("50")),
            ],
            configs(company_settings),
            gross_pay=GROSS,
            net_before_garnishment=NET_BEFORE,
        )

        assert [(l.code_id, l.amount) for l in result.lines] == [
            ("g-support", Decimal("50.00")),
            ("g-cra", Decimal("200.00")),
        ]
        assert all(l.category == LineCategory.GARNISHMENT for l in result.lines)
        assert result.total == Decimal("250.00")
        assert len(result.warnings) == 1
        assert "g-missing" in result.warnings[0]

    def test_order_independent_of_input(self, company_settings):
        forward = [
            EmployeeGarnishment("g-support", Decimal("50")),
            EmployeeGarnishment("g-cra", Decimal("200")),
        ]
        a = apply_garnishments(forward, configs(company_settings), GROSS, NET_BEFORE)
        b = apply_garnishments(list(reversed(forward)), configs(company_settings), GROSS, NET_BEFORE)
        assert a.lines == b.lines

    def test_same_priority_ordered_by_config_id(self):
        cfgs = {
            "b": GarnishmentConfiguration("b", "B", CalculationMethod.FIXED_AMOUNT, priority=1),
            "a": GarnishmentConfiguration("a", "A", CalculationMethod.FIXED_AMOUNT, priority=1),
        }
        result = apply_garnishments(
            [EmployeeGarnishment("b", Decimal("1")), EmployeeGarnishment("a", Decimal("2"))],
            cfgs,
            GROSS,
            NET_BEFORE,
        )
        assert [l.code_id for l in result.lines] == ["a", "b"]

    def test_percentage_of_gross(self):
        cfgs = {
            "pct": GarnishmentConfiguration(
                "pct", "Wage Order", CalculationMethod.PERCENTAGE_OF_GROSS, priority=1
            )
        }
        result = apply_garnishments(
            [EmployeeGarnishment("pct", Decimal("10"))], cfgs, GROSS, NET_BEFORE
        )
        assert result.lines[0].amount == Decimal("437.50")

    def test_exceeding_net_warns_but_deducts(self, company_settings):
        """No minimum-net floor is applied."""
        result = apply_garnishments(
            [EmployeeGarnishment("g-cra", Decimal("3000"))],
            configs(company_settings),
            gross_pay=GROSS,
            net_before_garnishment=NET_BEFORE,
        )
        assert result.total == Decimal("3000.00")
        assert len(result.warnings) == 1
        assert "exceed" in result.warnings[0]

    def test_no_garnishments(self, company_settings):
        result = apply_garnishments([], configs(company_settings), GROSS, NET_BEFORE)
        assert result.lines == ()
        assert result.warnings == ()
        assert result.total == Decimal("0")
