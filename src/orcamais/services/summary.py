"""
Financial summary aggregation.

Pure functions over a transaction list. Summaries are derived on every
read and never persisted; templates are never counted.
"""
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional

from orcamais.domain.enums import BudgetStatus, TransactionType
from orcamais.domain.models import Transaction
from orcamais.domain.periods import trailing_periods
from orcamais.services.models import (
    Alert,
    CategoryBudgetStatus,
    FinancialSummary,
    PeriodComparison,
)
from orcamais.utils.formatters import format_currency

SPENDING_ALERT_RATIO = Decimal("0.9")


def transactions_for_period(period: str, transactions: List[Transaction]) -> List[Transaction]:
    """Ledger entries of a period, newest first"""
    selected = [t for t in transactions if not t.is_template and t.period == period]
    return sorted(
        selected,
        key=lambda t: (t.date, t.created_at or ""),
        reverse=True,
    )


def summarize(
    period: str,
    transactions: List[Transaction],
    monthly_income: Decimal = Decimal("0"),
) -> FinancialSummary:
    """
    Aggregate one period.

    Args:
        period: YYYY-MM key
        transactions: The user's full transaction list
        monthly_income: Base income set for the period

    Returns:
        FinancialSummary; categories without expenses are absent
    """
    selected = transactions_for_period(period, transactions)

    total_income = Decimal("0")
    total_expenses = Decimal("0")
    by_category: Dict[str, Decimal] = defaultdict(Decimal)

    for transaction in selected:
        if transaction.type == TransactionType.INCOME:
            total_income += transaction.amount
        else:
            total_expenses += transaction.amount
            by_category[transaction.category] += transaction.amount

    return FinancialSummary(
        period=period,
        monthly_income=monthly_income,
        total_income=total_income,
        total_expenses=total_expenses,
        expenses_by_category=dict(by_category),
        transactions=selected,
    )


def compare_summaries(base: FinancialSummary, current: FinancialSummary) -> PeriodComparison:
    return PeriodComparison(base=base, current=current)


def monthly_series(
    transactions: List[Transaction],
    monthly_incomes: Dict[str, Decimal],
    months: int,
    end_period: str,
) -> List[FinancialSummary]:
    """
    Summaries of the `months` periods ending at `end_period`, oldest first.

    Periods without data are present with zero values.
    """
    return [
        summarize(period, transactions, monthly_incomes.get(period, Decimal("0")))
        for period in trailing_periods(months, end_period)
    ]


def category_budget_statuses(
    budgets: Dict[str, Decimal],
    summary: FinancialSummary,
) -> List[CategoryBudgetStatus]:
    """Every budgeted category with what was spent on it in the summary's period"""
    return [
        CategoryBudgetStatus(
            category=category,
            limit=limit,
            spent=summary.expenses_by_category.get(category, Decimal("0")),
        )
        for category, limit in budgets.items()
    ]


def budget_alerts(statuses: List[CategoryBudgetStatus], period: str) -> List[Alert]:
    """Warning and exceeded budgets of a period, as alerts"""
    alerts = []
    for status in statuses:
        if status.status == BudgetStatus.EXCEEDED:
            alerts.append(Alert(
                type="budget",
                category=status.category,
                period=period,
                severity="danger",
                message=(
                    f"Orçamento de {status.category} excedido: "
                    f"{format_currency(status.spent)} de {format_currency(status.limit)}"
                ),
            ))
        elif status.status == BudgetStatus.WARNING:
            alerts.append(Alert(
                type="budget",
                category=status.category,
                period=period,
                severity="warning",
                message=(
                    f"Orçamento de {status.category} em {status.percentage:.0f}%: "
                    f"{format_currency(status.spent)} de {format_currency(status.limit)}"
                ),
            ))
    return alerts


def spending_alert(summary: FinancialSummary) -> Optional[Alert]:
    """Warn when expenses reach 90% of the base monthly income"""
    if summary.monthly_income <= 0:
        return None
    if summary.total_expenses < summary.monthly_income * SPENDING_ALERT_RATIO:
        return None

    percentage = summary.total_expenses / summary.monthly_income * 100
    return Alert(
        type="spending",
        period=summary.period,
        severity="danger" if percentage >= 100 else "warning",
        message=f"Você já gastou {percentage:.0f}% da sua renda mensal",
    )
