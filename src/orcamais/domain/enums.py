from enum import Enum

class TransactionType(Enum):
    """Represents whether money is coming in or out"""
    INCOME = "income" # in
    EXPENSE = "expense" # out


class CalculationType(Enum):
    """How a dream's plan was computed"""
    DATE = "date" # fixed target date, derive the monthly amount
    MONTHLY = "monthly" # fixed monthly amount, derive the target date


class BudgetStatus(Enum):
    OK = "ok"
    WARNING = "warning"
    EXCEEDED = "exceeded"


class Theme(Enum):
    LIGHT = "light"
    DARK = "dark"


class DataEvent(Enum):
    """Typed change notifications published by the finance service"""
    AUTH_CHANGED = "authChanged"
    TRANSACTIONS_CHANGED = "transactionsChanged"
    INCOME_CHANGED = "incomeChanged"
    BUDGETS_CHANGED = "budgetsChanged"
    DREAMS_CHANGED = "dreamsChanged"
    SETTINGS_CHANGED = "settingsChanged"
    ALERTS_CHANGED = "alertsChanged"
