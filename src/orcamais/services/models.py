"""
Service layer models - DTOs for service operations.

These models represent the results of service operations, not domain entities.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, TypeVar

from orcamais.domain.enums import BudgetStatus
from orcamais.domain.models import Transaction
from orcamais.domain.periods import format_period
from orcamais.utils.formatters import calculate_percentage_change

T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    """
    Outcome of a façade operation.

    Failures are reported here instead of raised so callers can show
    inline feedback: `message` is user-facing, `errors` holds
    field-level validation messages.
    """
    success: bool
    value: Optional[T] = None
    message: str = ""
    errors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def ok(cls, value: Optional[T] = None, message: str = "") -> "OperationResult[T]":
        return cls(success=True, value=value, message=message)

    @classmethod
    def fail(cls, message: str, errors: Optional[Dict[str, str]] = None) -> "OperationResult[T]":
        return cls(success=False, message=message, errors=errors or {})

    def __bool__(self) -> bool:
        return self.success


@dataclass
class FinancialSummary:
    """
    Summary of one period.

    Derived on every read, never persisted. `balance` is a property so
    balance == monthly_income + total_income - total_expenses always holds.
    """
    period: str
    monthly_income: Decimal = Decimal("0")
    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    expenses_by_category: Dict[str, Decimal] = field(default_factory=dict)
    transactions: List[Transaction] = field(default_factory=list)

    @property
    def balance(self) -> Decimal:
        return self.monthly_income + self.total_income - self.total_expenses

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def top_spending_categories(self) -> List[tuple[str, Decimal]]:
        """Categories sorted by spending amount (descending)"""
        return sorted(
            self.expenses_by_category.items(),
            key=lambda x: x[1],
            reverse=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "monthlyIncome": str(self.monthly_income),
            "totalIncome": str(self.total_income),
            "totalExpenses": str(self.total_expenses),
            "balance": str(self.balance),
            "expensesByCategory": {c: str(v) for c, v in self.expenses_by_category.items()},
            "transactionCount": self.transaction_count,
            "transactions": [t.to_dict() for t in self.transactions],
        }

    def __str__(self) -> str:
        lines = [
            f"📊 {format_period(self.period)}",
            f"  Renda base: R$ {self.monthly_income:,.2f}",
            f"  Receitas:   R$ {self.total_income:,.2f}",
            f"  Despesas:   R$ {self.total_expenses:,.2f}",
            f"  Saldo:      R$ {self.balance:,.2f}",
        ]
        return "\n".join(lines)


@dataclass
class PeriodComparison:
    """
    Change from a base period (A) to another period (B).

    Percentages use a zero-safe rule: a zero base gives +100 when B is
    positive, otherwise 0.
    """
    base: FinancialSummary
    current: FinancialSummary

    @property
    def income_change(self) -> Decimal:
        return self.current.total_income - self.base.total_income

    @property
    def expense_change(self) -> Decimal:
        return self.current.total_expenses - self.base.total_expenses

    @property
    def balance_change(self) -> Decimal:
        return self.current.balance - self.base.balance

    @property
    def income_change_percent(self) -> Decimal:
        return calculate_percentage_change(self.base.total_income, self.current.total_income)

    @property
    def expense_change_percent(self) -> Decimal:
        return calculate_percentage_change(self.base.total_expenses, self.current.total_expenses)

    @property
    def balance_change_percent(self) -> Decimal:
        return calculate_percentage_change(self.base.balance, self.current.balance)


@dataclass
class CategoryBudgetStatus:
    """A category budget compared with what was spent in the period"""
    category: str
    limit: Decimal
    spent: Decimal

    WARNING_THRESHOLD = Decimal("80")
    EXCEEDED_THRESHOLD = Decimal("100")

    @property
    def percentage(self) -> Decimal:
        if self.limit <= 0:
            return Decimal("0")
        return self.spent / self.limit * 100

    @property
    def remaining(self) -> Decimal:
        return max(self.limit - self.spent, Decimal("0"))

    @property
    def status(self) -> BudgetStatus:
        if self.percentage >= self.EXCEEDED_THRESHOLD:
            return BudgetStatus.EXCEEDED
        if self.percentage >= self.WARNING_THRESHOLD:
            return BudgetStatus.WARNING
        return BudgetStatus.OK


@dataclass
class Alert:
    """
    A derived notice shown to the user (budget or spending).

    Alerts are recomputed on every read; `id` is stable for the same
    kind, category and period so a dismissal sticks.
    """
    type: str
    message: str
    severity: str
    period: str
    category: Optional[str] = None

    @property
    def id(self) -> str:
        """'budget:Lazer:2025-03' or 'spending:2025-03'"""
        return ":".join(part for part in (self.type, self.category, self.period) if part)


@dataclass
class RecurrenceResult:
    """
    Outcome of a catch-up pass.

    - generated: occurrences written in this pass
    - reconciled: periods whose occurrence already existed, only the
      template counters were advanced
    - failed: template id -> error message
    """
    generated: List[Transaction] = field(default_factory=list)
    reconciled: int = 0
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def changed(self) -> bool:
        return bool(self.generated) or self.reconciled > 0
