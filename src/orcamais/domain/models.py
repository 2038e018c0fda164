from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from orcamais.domain.enums import CalculationType, Theme, TransactionType


def to_decimal(value: Any) -> Decimal:
    """
    Convert a stored number (int, float or string) to Decimal without float noise.

    Raises:
        ValueError: If the value is not a finite number (NaN and Infinity included)
    """
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def parse_day(value: Any) -> date:
    """Parse a stored 'YYYY-MM-DD' day (anything after the day part is ignored)"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class InvestmentData:
    """Details of a simulated stock purchase"""
    stock_code: str
    quantity: int
    purchase_price: Decimal
    logo: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stockCode": self.stock_code,
            "quantity": self.quantity,
            "purchasePrice": str(self.purchase_price),
            "logo": self.logo,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InvestmentData":
        return cls(
            stock_code=data["stockCode"],
            quantity=int(data["quantity"]),
            purchase_price=to_decimal(data["purchasePrice"]),
            logo=data.get("logo") or "",
        )


@dataclass
class Transaction:
    """
    Core domain model representing a single financial movement.

    A transaction plays one of three roles:
    - template: recurring definition (is_recurring, no original id), never
      counted as a ledger entry itself
    - generated occurrence: materialized from a template for one period
      (original_transaction_id set)
    - plain one-off entry
    """
    date: date
    description: str
    amount: Decimal
    type: TransactionType
    category: str = "Outros"
    id: Optional[str] = None
    created_at: Optional[str] = None

    # Recurrence (templates only)
    is_recurring: bool = False
    recurrence_day: Optional[int] = None
    recurrence_limit: Optional[int] = None
    recurrence_current: int = 0
    last_generated_period: Optional[str] = None

    # Installment / child occurrence
    original_transaction_id: Optional[str] = None
    installment_number: Optional[int] = None
    installment_total: Optional[int] = None

    investment_data: Optional[InvestmentData] = None

    @property
    def period(self) -> str:
        """The YYYY-MM prefix of the stored day"""
        return self.date.isoformat()[:7]

    @property
    def is_template(self) -> bool:
        return self.is_recurring and self.original_transaction_id is None

    @property
    def is_occurrence(self) -> bool:
        return self.original_transaction_id is not None

    @property
    def is_subscription(self) -> bool:
        """Unbounded recurrence (template or child without installment plan)"""
        if self.is_template:
            return self.recurrence_limit is None
        return self.is_occurrence and self.installment_total is None

    @property
    def limit_reached(self) -> bool:
        return (
            self.recurrence_limit is not None
            and self.recurrence_current >= self.recurrence_limit
        )

    @property
    def signed_amount(self) -> Decimal:
        """Return amount with sign for net calculations"""
        return self.amount if self.type == TransactionType.INCOME else -self.amount

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the document store layout (camelCase keys)"""
        data: Dict[str, Any] = {
            "id": self.id,
            "description": self.description,
            "amount": str(self.amount), # Store as string for precision
            "type": self.type.value,
            "category": self.category,
            "date": self.date.isoformat(),
            "createdAt": self.created_at,
        }

        if self.is_recurring:
            data.update({
                "isRecurring": True,
                "recurrenceDay": self.recurrence_day,
                "recurrenceLimit": self.recurrence_limit,
                "recurrenceCurrent": self.recurrence_current,
                "lastGeneratedPeriod": self.last_generated_period,
            })

        if self.original_transaction_id is not None:
            data["originalTransactionId"] = self.original_transaction_id
        if self.installment_number is not None:
            data["installmentNumber"] = self.installment_number
        if self.installment_total is not None:
            data["installmentTotal"] = self.installment_total
        if self.investment_data is not None:
            data["investmentData"] = self.investment_data.to_dict()

        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """Build a transaction from a stored document entry"""
        investment = data.get("investmentData")
        limit = data.get("recurrenceLimit")
        day = data.get("recurrenceDay")

        return cls(
            id=data.get("id"),
            date=parse_day(data["date"]),
            description=data.get("description", ""),
            amount=to_decimal(data["amount"]),
            type=TransactionType(data["type"]),
            category=data.get("category") or "Outros",
            created_at=data.get("createdAt"),
            is_recurring=bool(data.get("isRecurring", False)),
            recurrence_day=int(day) if day is not None else None,
            recurrence_limit=int(limit) if limit else None,
            recurrence_current=int(data.get("recurrenceCurrent") or 0),
            last_generated_period=data.get("lastGeneratedPeriod"),
            original_transaction_id=data.get("originalTransactionId"),
            installment_number=data.get("installmentNumber"),
            installment_total=data.get("installmentTotal"),
            investment_data=InvestmentData.from_dict(investment) if investment else None,
        )

    def __repr__(self):
        sign = "+" if self.type == TransactionType.INCOME else "-"
        return f"Transaction({self.date}, {self.description[:30]}, {sign}R${self.amount})"


@dataclass
class Dream:
    """A savings goal with a target value"""
    name: str
    total_value: Decimal
    calculation_type: CalculationType
    saved_amount: Decimal = Decimal("0")
    target_date: Optional[date] = None
    monthly_amount: Optional[Decimal] = None
    id: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def remaining_amount(self) -> Decimal:
        return max(self.total_value - self.saved_amount, Decimal("0"))

    @property
    def is_exceeded(self) -> bool:
        """Saved more than the goal; allowed, only flagged for display"""
        return self.saved_amount > self.total_value

    @property
    def progress_percentage(self) -> Decimal:
        """Progress towards the goal, capped at 100 for display"""
        if self.total_value <= 0:
            return Decimal("0")
        return min(self.saved_amount / self.total_value * 100, Decimal("100"))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "totalValue": str(self.total_value),
            "savedAmount": str(self.saved_amount),
            "calculationType": self.calculation_type.value,
            "createdAt": self.created_at,
        }
        if self.target_date is not None:
            data["targetDate"] = self.target_date.isoformat()
        if self.monthly_amount is not None:
            data["monthlyAmount"] = str(self.monthly_amount)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Dream":
        target_date = data.get("targetDate")
        monthly_amount = data.get("monthlyAmount")
        return cls(
            id=data.get("id"),
            name=data["name"],
            total_value=to_decimal(data["totalValue"]),
            saved_amount=to_decimal(data.get("savedAmount") or 0),
            calculation_type=CalculationType(data.get("calculationType", "monthly")),
            target_date=parse_day(target_date) if target_date else None,
            monthly_amount=to_decimal(monthly_amount) if monthly_amount else None,
            created_at=data.get("createdAt"),
        )


@dataclass
class UserProfile:
    name: str
    email: str
    created_at: Optional[str] = None
    last_login: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "createdAt": self.created_at,
            "lastLogin": self.last_login,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            name=data.get("name") or "",
            email=data.get("email") or "",
            created_at=data.get("createdAt"),
            last_login=data.get("lastLogin"),
        )


@dataclass
class UserSettings:
    currency: str = "BRL"
    theme: Theme = Theme.LIGHT
    notifications: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency,
            "theme": self.theme.value,
            "notifications": self.notifications,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSettings":
        theme = data.get("theme")
        return cls(
            currency=data.get("currency") or "BRL",
            theme=Theme(theme) if theme in ("light", "dark") else Theme.LIGHT,
            notifications=bool(data.get("notifications", True)),
        )


@dataclass
class UserDocument:
    """
    The per-user document kept in the document store.

    Layout:
        profile, settings, transactions[], monthlyIncome{period: amount},
        categoryBudgets{category: limit}, categories[], dreams[],
        dismissedAlerts[]
    """
    id: str
    profile: UserProfile
    settings: UserSettings = field(default_factory=UserSettings)
    transactions: List[Transaction] = field(default_factory=list)
    monthly_income: Dict[str, Decimal] = field(default_factory=dict)
    category_budgets: Dict[str, Decimal] = field(default_factory=dict)
    categories: List[str] = field(default_factory=list)
    dreams: List[Dream] = field(default_factory=list)
    dismissed_alerts: List[str] = field(default_factory=list)

    # Top-level keys every stored document must carry
    REQUIRED_KEYS = (
        "profile", "settings", "transactions", "monthlyIncome",
        "categoryBudgets", "categories", "dreams", "dismissedAlerts",
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "profile": self.profile.to_dict(),
            "settings": self.settings.to_dict(),
            "transactions": [t.to_dict() for t in self.transactions],
            "monthlyIncome": {p: str(v) for p, v in self.monthly_income.items()},
            "categoryBudgets": {c: str(v) for c, v in self.category_budgets.items()},
            "categories": list(self.categories),
            "dreams": [d.to_dict() for d in self.dreams],
            "dismissedAlerts": list(self.dismissed_alerts),
        }

    @classmethod
    def from_dict(cls, user_id: str, data: Dict[str, Any]) -> "UserDocument":
        return cls(
            id=user_id,
            profile=UserProfile.from_dict(data.get("profile") or {}),
            settings=UserSettings.from_dict(data.get("settings") or {}),
            transactions=[Transaction.from_dict(t) for t in data.get("transactions") or []],
            monthly_income={
                p: to_decimal(v) for p, v in (data.get("monthlyIncome") or {}).items()
            },
            category_budgets={
                c: to_decimal(v) for c, v in (data.get("categoryBudgets") or {}).items()
            },
            categories=list(data.get("categories") or []),
            dreams=[Dream.from_dict(d) for d in data.get("dreams") or []],
            dismissed_alerts=list(data.get("dismissedAlerts") or []),
        )

    @classmethod
    def missing_keys(cls, data: Dict[str, Any]) -> List[str]:
        """Keys an older stored document lacks and must be migrated"""
        return [key for key in cls.REQUIRED_KEYS if key not in data]
