"""
Savings plan calculations for dreams.

A plan is either date-driven (how much to save per month to reach the goal
by a target date) or amount-driven (how long a fixed monthly saving takes).
"""
import math
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from orcamais.domain.enums import CalculationType
from orcamais.domain.errors import ValidationError
from orcamais.domain.models import Dream
from orcamais.domain.periods import day_in_period, months_between, period_of, shift_period
from orcamais.utils.formatters import format_currency, format_date

CENTS = Decimal("0.01")


@dataclass
class DreamPlan:
    monthly_amount: Decimal
    months_needed: int
    target_date: date
    message: str


def months_until(target: date, today: date) -> int:
    """Calendar months from today's month to the target's month"""
    return months_between(period_of(today), period_of(target))


def add_months(day: date, months: int) -> date:
    """Same day of month `months` later, clamped to the month length"""
    return day_in_period(shift_period(period_of(day), months), day.day)


def format_duration(months: int) -> str:
    """14 -> '1 ano e 2 meses'"""
    years, rest = divmod(months, 12)
    month_label = f"{rest} {'mês' if rest == 1 else 'meses'}"
    if years == 0:
        return month_label

    year_label = f"{years} {'ano' if years == 1 else 'anos'}"
    if rest == 0:
        return year_label
    return f"{year_label} e {month_label}"


def plan_dream(
    name: str,
    total_value: Decimal,
    calculation_type: CalculationType,
    target_date: Optional[date] = None,
    monthly_amount: Optional[Decimal] = None,
    today: Optional[date] = None,
) -> DreamPlan:
    """
    Compute the missing half of a savings plan.

    DATE: monthly amount = total / months until the target date.
    MONTHLY: months needed = ceil(total / monthly amount), target date is
    that many months from today.

    Raises:
        ValidationError: Target date not in a future month, or a
            non-positive monthly amount
    """
    today = today or date.today()

    if calculation_type == CalculationType.DATE:
        if target_date is None:
            raise ValidationError("Sonho inválido", {"targetDate": "Data alvo é obrigatória"})
        months = months_until(target_date, today)
        if months <= 0:
            raise ValidationError(
                "Sonho inválido", {"targetDate": "A data alvo deve ser no futuro."}
            )
        monthly = (total_value / months).quantize(CENTS, rounding=ROUND_HALF_UP)
        message = (
            f"Você precisará economizar {format_currency(monthly)} por mês para alcançar "
            f'"{name}" ({format_currency(total_value)}) até {format_date(target_date)}.'
        )
        return DreamPlan(monthly, months, target_date, message)

    if monthly_amount is None or monthly_amount <= 0:
        raise ValidationError(
            "Sonho inválido", {"monthlyAmount": "Valor mensal deve ser maior que zero"}
        )

    months = math.ceil(total_value / monthly_amount)
    message = (
        f'Você alcançará "{name}" ({format_currency(total_value)}) em aproximadamente '
        f"{format_duration(months)}, economizando {format_currency(monthly_amount)} por mês."
    )
    return DreamPlan(monthly_amount, months, add_months(today, months), message)


def remaining_time_label(dream: Dream, today: Optional[date] = None) -> Optional[str]:
    """Time left until the dream's target date, or None without one"""
    if dream.target_date is None:
        return None

    months = months_until(dream.target_date, today or date.today())
    if months <= 0:
        return "Meta atingida!"
    return format_duration(months)
