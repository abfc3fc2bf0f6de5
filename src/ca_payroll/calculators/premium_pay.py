"""Overtime and statutory holiday pay.

Both are derived from the profile in effect for the period:

- the hourly rate is the profile's rate for hourly employees, or the annual
  salary spread over ``weekly_hours`` (40 when unset) for 52 weeks
- overtime pays ``rate x 1.5`` per hour
- a statutory holiday pays one average day's wage: four weeks of regular
  wages divided by 20 days, i.e. annual pay / 260

Holiday pay is only added for hourly employees; salaried pay already
covers holidays that fall inside the period.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable

from ca_payroll.calculators.classification import OVERTIME_CODE, STAT_HOLIDAY_CODE
from ca_payroll.calculators.line_builder import LineItemBuilder
from ca_payroll.calculators.types import EarningType, PaystubItem
from ca_payroll.domain.company import StatutoryHoliday
from ca_payroll.domain.employee import WEEKS_PER_YEAR, EmployeeProfile, PayType
from ca_payroll.exceptions import DataIntegrityError, ValidationError

logger = logging.getLogger(__name__)

OVERTIME_MULTIPLIER = Decimal("1.5")
STANDARD_WEEKLY_HOURS = Decimal("40")
WORKDAYS_PER_YEAR = WEEKS_PER_YEAR * 5
PERIOD_SEPARATOR = " to "


def hourly_rate(profile: EmployeeProfile) -> Decimal:
    """Straight-time hourly rate, unrounded."""
    if profile.pay_type == PayType.HOURLY:
        if profile.hourly_rate is None:
            raise DataIntegrityError(f"Hourly profile for {profile.name} has no rate")
        return profile.hourly_rate
    weekly_hours = profile.weekly_hours or STANDARD_WEEKLY_HOURS
    return profile.annual_salary / (weekly_hours * WEEKS_PER_YEAR)


def average_daily_wage(profile: EmployeeProfile) -> Decimal:
    return profile.annual_pay() / WORKDAYS_PER_YEAR


def overtime_line(profile: EmployeeProfile, hours: Decimal) -> PaystubItem:
    """Overtime earning for ``hours`` at time and a half."""
    if hours <= 0:
        raise ValidationError("Overtime hours must be positive")
    rate = hourly_rate(profile) * OVERTIME_MULTIPLIER
    return LineItemBuilder.create_earning_line(
        EarningType.OVERTIME,
        "Overtime",
        rate * hours,
        code_id=OVERTIME_CODE,
        rate=LineItemBuilder.round_to_cents(rate),
        hours=hours,
    )


def period_bounds(pay_period: str) -> tuple[date, date] | None:
    """Parse ``"YYYY-MM-DD to YYYY-MM-DD"``; None for free-form labels."""
    start, separator, end = pay_period.partition(PERIOD_SEPARATOR)
    if not separator:
        return None
    try:
        bounds = date.fromisoformat(start.strip()), date.fromisoformat(end.strip())
    except ValueError:
        return None
    if bounds[0] > bounds[1]:
        raise ValidationError(f"Pay period '{pay_period}' ends before it starts")
    return bounds


def holidays_in_period(
    holidays: Iterable[StatutoryHoliday], start: date, end: date, profile: EmployeeProfile
) -> list[StatutoryHoliday]:
    """Holidays inside ``[start, end]`` observed in the profile's province, by date."""
    return sorted(
        (h for h in holidays if start <= h.date <= end and h.applies_to(profile.province)),
        key=lambda h: h.date,
    )


def stat_holiday_lines(
    profile: EmployeeProfile, holidays: Iterable[StatutoryHoliday], pay_period: str
) -> list[PaystubItem]:
    """One holiday pay line per observed holiday in the period."""
    if profile.pay_type != PayType.HOURLY:
        return []
    bounds = period_bounds(pay_period)
    if bounds is None:
        logger.debug("Pay period '%s' has no dates; skipping holiday pay", pay_period)
        return []

    daily_wage = average_daily_wage(profile)
    return [
        LineItemBuilder.create_earning_line(
            EarningType.STAT_HOLIDAY,
            f"Statutory Holiday Pay ({holiday.name})",
            daily_wage,
            code_id=STAT_HOLIDAY_CODE,
        )
        for holiday in holidays_in_period(holidays, bounds[0], bounds[1], profile)
    ]
