"""Statutory withholding: income tax, CPP/QPP and EI/QPIP."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from ca_payroll.calculators.classification import CodeCatalog, classify_income
from ca_payroll.calculators.line_builder import LineItemBuilder
from ca_payroll.calculators.tax_tables import TaxBracket, TaxYearTables
from ca_payroll.calculators.types import (
    ZERO,
    IncomeBases,
    PayFrequency,
    PaystubItem,
    Province,
    StatutoryDeductions,
    periods_per_year,
)
from ca_payroll.domain.employee import TaxCredits, YearToDate


def age_on(birth_date: date, as_of_date: date) -> int:
    """Age in whole years on ``as_of_date``."""
    had_birthday = (as_of_date.month, as_of_date.day) >= (birth_date.month, birth_date.day)
    return as_of_date.year - birth_date.year - (0 if had_birthday else 1)


def clip_to_headroom(amount: Decimal, ytd: Decimal, annual_max: Decimal) -> Decimal:
    """Limit a period contribution so YTD never exceeds the annual maximum."""
    headroom = max(ZERO, annual_max - ytd)
    return min(max(amount, ZERO), headroom)


class StatutoryCalculator:
    """Calculates statutory deductions for one pay period.

    Income tax is annualized with the pay frequency multiplier, run through
    the progressive bracket table, then prorated back to the period. The
    same bracket routine serves federal and provincial tables.
    """

    def __init__(self, tables: TaxYearTables):
        self.tables = tables

    def compute(
        self,
        earnings: Iterable[PaystubItem],
        pre_tax_deductions: Iterable[PaystubItem],
        catalog: CodeCatalog,
        ytd: YearToDate,
        birth_date: date,
        province: Province,
        pay_frequency: PayFrequency | str,
        as_of_date: date,
        tax_credits: TaxCredits | None = None,
    ) -> StatutoryDeductions:
        """Classify earnings into bases and compute every statutory amount."""
        bases = classify_income(earnings, pre_tax_deductions, catalog)
        return self.compute_from_bases(
            bases,
            ytd=ytd,
            birth_date=birth_date,
            province=province,
            pay_frequency=pay_frequency,
            as_of_date=as_of_date,
            tax_credits=tax_credits,
        )

    def compute_from_bases(
        self,
        bases: IncomeBases,
        ytd: YearToDate,
        birth_date: date,
        province: Province,
        pay_frequency: PayFrequency | str,
        as_of_date: date,
        tax_credits: TaxCredits | None = None,
    ) -> StatutoryDeductions:
        periods = periods_per_year(pay_frequency)
        credits = tax_credits or TaxCredits()

        federal_tax = self.period_income_tax(
            bases.taxable, periods, self.tables.federal_brackets, credits.federal
        )
        provincial_tax = self.period_income_tax(
            bases.taxable, periods, self.tables.brackets_for(province), credits.provincial
        )

        cpp = self.calculate_cpp(
            bases.pensionable, periods, ytd.cpp, province, birth_date, as_of_date
        )
        ei = self.calculate_ei(bases.insurable, ytd.ei, province)

        rates = self.tables.contributions
        return StatutoryDeductions(
            federal_tax=federal_tax,
            provincial_tax=provincial_tax,
            cpp=cpp,
            ei=ei,
            employer_cpp=cpp,
            employer_ei=LineItemBuilder.round_to_cents(ei * rates.ei_employer_multiplier),
            bases=bases,
            province=province,
        )

    @staticmethod
    def progressive_tax(amount: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
        """Unrounded tax on ``amount``.

        Each bracket taxes only the slice between its threshold and the next
        bracket's threshold.
        """
        if amount <= 0:
            return ZERO

        total = ZERO
        ordered = sorted(brackets, key=lambda b: b.threshold)
        for index, bracket in enumerate(ordered):
            if amount <= bracket.threshold:
                break
            upper = ordered[index + 1].threshold if index + 1 < len(ordered) else None
            top = amount if upper is None else min(amount, upper)
            total += (top - bracket.threshold) * bracket.rate
        return total

    def annual_income_tax(
        self,
        annual_income: Decimal,
        brackets: Sequence[TaxBracket],
        credit_amount: Decimal = ZERO,
    ) -> Decimal:
        """Annual tax after the non-refundable personal credit (floor 0)."""
        tax = self.progressive_tax(annual_income, brackets)
        if credit_amount > 0:
            lowest_rate = min(brackets, key=lambda b: b.threshold).rate
            tax -= credit_amount * lowest_rate
        return max(tax, ZERO)

    def period_income_tax(
        self,
        taxable: Decimal,
        periods: int,
        brackets: Sequence[TaxBracket],
        credit_amount: Decimal = ZERO,
    ) -> Decimal:
        if taxable <= 0:
            return ZERO
        annual_tax = self.annual_income_tax(taxable * periods, brackets, credit_amount)
        return LineItemBuilder.round_to_cents(annual_tax / periods)

    def calculate_cpp(
        self,
        pensionable: Decimal,
        periods: int,
        ytd_cpp: Decimal,
        province: Province,
        birth_date: date | None = None,
        as_of_date: date | None = None,
    ) -> Decimal:
        """Employee CPP (QPP in Quebec) for the period, capped by YTD headroom."""
        rates = self.tables.contributions
        if birth_date is not None and as_of_date is not None:
            age = age_on(birth_date, as_of_date)
            if age < rates.cpp_min_age or age >= rates.cpp_max_age:
                return ZERO

        if province == Province.QC:
            rate, annual_max = rates.qpp_employee_rate, rates.qpp_max_contribution
        else:
            rate, annual_max = rates.cpp_employee_rate, rates.cpp_max_contribution

        exemption = rates.cpp_basic_exemption / periods
        contributory = max(max(pensionable, ZERO) - exemption, ZERO)
        contribution = LineItemBuilder.round_to_cents(contributory * rate)
        return clip_to_headroom(contribution, ytd_cpp, annual_max)

    def calculate_ei(self, insurable: Decimal, ytd_ei: Decimal, province: Province) -> Decimal:
        """Employee EI (QPIP in Quebec) for the period, capped by YTD headroom."""
        rates = self.tables.contributions
        if province == Province.QC:
            rate, annual_max = rates.qpip_employee_rate, rates.qpip_max_premium
        else:
            rate, annual_max = rates.ei_employee_rate, rates.ei_max_premium

        premium = LineItemBuilder.round_to_cents(max(insurable, ZERO) * rate)
        return clip_to_headroom(premium, ytd_ei, annual_max)
