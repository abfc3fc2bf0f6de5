"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from ca_payroll.calculators.tax_tables import TAX_TABLES_2024, TaxYearTables
from ca_payroll.calculators.types import PayFrequency, Province
from ca_payroll.config import Settings
from ca_payroll.domain.company import (
    CalculationMethod,
    CompanyConfigurations,
    CompanySettings,
    DeductionCode,
    DeductionKind,
    EarningCode,
    GarnishmentConfiguration,
    VacationPolicy,
)
from ca_payroll.domain.employee import (
    BankAccount,
    Employee,
    EmployeeProfile,
    PayType,
    ProfileRecord,
    YearToDate,
)
from ca_payroll.services.data_source import InMemoryDataSource

TENANT_ID = "tenant-northstar"
AS_OF = date(2024, 7, 15)
PAY_PERIOD = "2024-07-01 to 2024-07-15"


def make_profile(
    name: str = "Alice Tremblay",
    salary: Decimal = Decimal("105000"),
    province: Province = Province.ON,
    date_of_birth: date = date(1985, 4, 12),
    **kwargs,
) -> EmployeeProfile:
    return EmployeeProfile(
        name=name,
        pay_type=kwargs.pop("pay_type", PayType.SALARIED),
        province=province,
        date_of_birth=date_of_birth,
        annual_salary=salary,
        **kwargs,
    )


def make_employee(
    employee_id: int = 1,
    profile: EmployeeProfile | None = None,
    frequency: PayFrequency | str = PayFrequency.SEMI_MONTHLY,
    ytd: YearToDate | None = None,
    **kwargs,
) -> Employee:
    """Employee with a single profile record effective 2020-01-01."""
    return Employee(
        id=employee_id,
        employee_number=kwargs.pop("employee_number", f"E{employee_id:04d}"),
        pay_frequency=frequency,
        profile_history=(
            ProfileRecord(effective_date=date(2020, 1, 1), profile=profile or make_profile()),
        ),
        ytd=ytd or YearToDate(),
        **kwargs,
    )


@pytest.fixture
def tables() -> TaxYearTables:
    return TAX_TABLES_2024


@pytest.fixture
def company_settings() -> CompanySettings:
    """Company with one code of each kind and two garnishment orders."""
    return CompanySettings(
        legal_name="Northstar HCM, Inc",
        configurations=CompanyConfigurations(
            earning_codes=(
                EarningCode(
                    id="car-allow",
                    name="Car Allowance",
                    is_taxable=True,
                    is_pensionable=True,
                    is_insurable=False,
                ),
            ),
            deduction_codes=(
                DeductionCode(
                    id="rrsp",
                    name="Group RRSP",
                    type=DeductionKind.PRE_TAX,
                    reduces_taxable_income=True,
                ),
                DeductionCode(
                    id="union",
                    name="Union Dues",
                    type=DeductionKind.POST_TAX,
                    calculation_method=CalculationMethod.PERCENTAGE_OF_GROSS,
                ),
            ),
            garnishments=(
                GarnishmentConfiguration(
                    id="g-support",
                    name="Family Support Order",
                    calculation_type=CalculationMethod.FIXED_AMOUNT,
                    priority=1,
                    jurisdiction="Ontario",
                ),
                GarnishmentConfiguration(
                    id="g-cra",
                    name="CRA Requirement to Pay",
                    calculation_type=CalculationMethod.FIXED_AMOUNT,
                    priority=2,
                ),
            ),
            vacation_policies=(
                VacationPolicy(id="vac-std", name="Standard Vacation", accrual_percent=Decimal("4")),
            ),
        ),
    )


@pytest.fixture
def app_config() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        tax_year=2024,
        employee_fetch_limit=500,
        default_payor_name="NorthStar_HCM_Inc",
        max_active_runs=100,
    )


@pytest.fixture
def alice() -> Employee:
    """$105,000 salaried Ontario employee paid semi-monthly, no YTD."""
    return make_employee(
        1,
        bank_accounts=(BankAccount(institution="004", transit="12345", account="9876543"),),
    )


@pytest.fixture
def bob() -> Employee:
    """$62,400 salaried BC employee with $300.00 of banked vacation pay."""
    return make_employee(
        2,
        profile=make_profile(name="Bob Singh", salary=Decimal("62400"), province=Province.BC),
        ytd=YearToDate(vacation_pay=Decimal("300.00")),
        time_off_balances={"vac-std": Decimal("40")},
    )


@pytest.fixture
def data_source(company_settings, alice, bob) -> InMemoryDataSource:
    source = InMemoryDataSource()
    source.add_tenant(TENANT_ID, company_settings, employees=[alice, bob])
    return source
