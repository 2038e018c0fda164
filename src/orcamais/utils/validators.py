"""
Input validation.

Predicates return booleans; the payload validators raise a ValidationError
carrying one message per offending field.
"""
import re
from datetime import date
from decimal import Decimal
from typing import Any, Dict

from orcamais.domain.errors import ValidationError
from orcamais.domain.models import parse_day, to_decimal

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


def validate_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def validate_password(password: str) -> bool:
    """Passwords need at least 6 characters"""
    return bool(password) and len(password) >= MIN_PASSWORD_LENGTH


def validate_credentials(email: str, password: str, name: str = None) -> None:
    """
    Check sign-up/sign-in fields before they reach the identity provider.

    Raises:
        ValidationError: With messages keyed by 'name', 'email', 'password'
    """
    errors: Dict[str, str] = {}

    if name is not None and not name.strip():
        errors["name"] = "Nome é obrigatório"
    if not validate_email(email):
        errors["email"] = "Email inválido"
    if not validate_password(password):
        errors["password"] = f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres"

    if errors:
        raise ValidationError("Dados de acesso inválidos", errors)


def _positive_amount(value: Any) -> bool:
    try:
        return to_decimal(value) > Decimal("0")
    except ValueError:
        return False


def _as_int(value: Any) -> int:
    """Integer value, or 0 when it cannot be read as one"""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def validate_transaction_data(data: Dict[str, Any]) -> None:
    """
    Validate a new transaction payload.

    Required: description, amount > 0, date (YYYY-MM-DD), type.
    Recurring payloads also need a day of month between 1 and 31 and,
    when given, a positive limit.

    Raises:
        ValidationError: If any field is missing or malformed
    """
    errors: Dict[str, str] = {}

    if not str(data.get("description") or "").strip():
        errors["description"] = "Descrição é obrigatória"

    if data.get("amount") in (None, "") or not _positive_amount(data["amount"]):
        errors["amount"] = "Valor deve ser maior que zero"

    day = data.get("date")
    if not day:
        errors["date"] = "Data é obrigatória"
    elif not isinstance(day, date):
        try:
            parse_day(day)
        except ValueError:
            errors["date"] = "Data inválida, use AAAA-MM-DD"

    if data.get("type") not in ("income", "expense"):
        errors["type"] = "Tipo deve ser 'income' ou 'expense'"

    if data.get("isRecurring"):
        recurrence_day = data.get("recurrenceDay")
        if recurrence_day not in (None, "") and not 1 <= _as_int(recurrence_day) <= 31:
            errors["recurrenceDay"] = "Dia da recorrência deve estar entre 1 e 31"
        limit = data.get("recurrenceLimit")
        if limit not in (None, "") and _as_int(limit) < 1:
            errors["recurrenceLimit"] = "Número de parcelas deve ser maior que zero"

    if errors:
        raise ValidationError("Transação inválida", errors)


def validate_dream_data(data: Dict[str, Any]) -> None:
    """
    Validate a new dream payload.

    Raises:
        ValidationError: If name, total value or the plan fields are missing
    """
    errors: Dict[str, str] = {}

    if not str(data.get("name") or "").strip():
        errors["name"] = "Nome do sonho é obrigatório"

    if data.get("totalValue") in (None, "") or not _positive_amount(data["totalValue"]):
        errors["totalValue"] = "Valor total deve ser maior que zero"

    calculation_type = data.get("calculationType")
    if calculation_type == "date":
        target_date = data.get("targetDate")
        if not target_date:
            errors["targetDate"] = "Data alvo é obrigatória"
        elif not isinstance(target_date, date):
            try:
                parse_day(target_date)
            except ValueError:
                errors["targetDate"] = "Data inválida, use AAAA-MM-DD"
    elif calculation_type == "monthly":
        if data.get("monthlyAmount") in (None, "") or not _positive_amount(data["monthlyAmount"]):
            errors["monthlyAmount"] = "Valor mensal deve ser maior que zero"
    else:
        errors["calculationType"] = "Tipo de cálculo deve ser 'date' ou 'monthly'"

    if errors:
        raise ValidationError("Sonho inválido", errors)
