"""Display formatting for currency, dates and percentages (pt-BR)."""
from datetime import date
from decimal import Decimal
from typing import Union

Number = Union[Decimal, int, float]


def format_currency(amount: Number) -> str:
    """
    Format as Brazilian Real: 1234.5 -> 'R$ 1.234,50'.

    Negative values keep the sign after the symbol: 'R$ -100,00'.
    """
    value = Decimal(str(amount))
    sign = "-" if value < 0 else ""
    formatted = f"{abs(value):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {sign}{formatted}"


def format_date(day: Union[date, str]) -> str:
    """
    'YYYY-MM-DD' -> 'DD/MM/YYYY'.

    Strings are split rather than parsed so the day never shifts.
    """
    if isinstance(day, date):
        return day.strftime("%d/%m/%Y")

    parts = str(day)[:10].split("-")
    if len(parts) != 3:
        return str(day)
    year, month, dd = parts
    return f"{dd}/{month}/{year}"


def calculate_percentage_change(old_value: Number, new_value: Number) -> Decimal:
    """
    Percentage change from old to new.

    A zero base gives +100 when the new value is positive, otherwise 0.
    The base is taken in absolute value so a negative balance moving up
    reads as a positive change.
    """
    old = Decimal(str(old_value))
    new = Decimal(str(new_value))
    if old == 0:
        return Decimal("100") if new > 0 else Decimal("0")
    return (new - old) / abs(old) * 100


def format_percentage(percentage: Number) -> str:
    """12.345 -> '+12.3%'"""
    value = Decimal(str(percentage))
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.1f}%"
