import pytest
from datetime import date
from decimal import Decimal
from typing import Dict, Optional, Tuple

from orcamais.categorization import CategorizationEngine
from orcamais.config.settings import ConfigLoader
from orcamais.domain.enums import TransactionType
from orcamais.domain.models import Transaction
from orcamais.identity.base import (
    EmailInUseError,
    IdentityProvider,
    InvalidCredentialsError,
    UserNotFoundError,
    UserRef,
)

TODAY = date(2025, 3, 15)


class InMemoryIdentityProvider(IdentityProvider):
    """Identity provider double keeping accounts in a dict"""

    def __init__(self, signed_in: Optional[UserRef] = None):
        super().__init__()
        self.accounts: Dict[str, Tuple[str, UserRef]] = {}
        self._current = signed_in
        self.reset_requests = []

    def sign_in(self, email, password):
        account = self.accounts.get(email.lower())
        if account is None or account[0] != password:
            raise InvalidCredentialsError(f"bad credentials for {email}")
        self._current = account[1]
        self._notify(self._current)
        return self._current

    def sign_up(self, email, password):
        if email.lower() in self.accounts:
            raise EmailInUseError(email)
        user = UserRef(uid=f"uid-{len(self.accounts) + 1}", email=email)
        self.accounts[email.lower()] = (password, user)
        self._current = user
        self._notify(user)
        return user

    def update_profile(self, user, display_name):
        updated = UserRef(uid=user.uid, email=user.email, display_name=display_name)
        password, _ = self.accounts[user.email.lower()]
        self.accounts[user.email.lower()] = (password, updated)
        self._current = updated
        return updated

    def send_password_reset(self, email):
        if email.lower() not in self.accounts:
            raise UserNotFoundError(email)
        self.reset_requests.append(email)

    def sign_out(self):
        self._current = None
        self._notify(None)

    def current_user(self):
        return self._current


@pytest.fixture
def today() -> date:
    """Fixed reference day (2025-03-15) for period-dependent tests"""
    return TODAY


@pytest.fixture
def identity() -> InMemoryIdentityProvider:
    return InMemoryIdentityProvider()


@pytest.fixture
def categorization_engine() -> CategorizationEngine:
    """Engine with the packaged keyword map and no user rules"""
    return CategorizationEngine(
        rules_config={"rules": []},
        categories_config=ConfigLoader.load_config("categories.json"),
    )


@pytest.fixture
def make_transaction():
    """Factory for transactions with sensible defaults"""

    def _make(
        description: str = "Mercado",
        amount: str = "100.00",
        day: date = date(2025, 3, 10),
        type: TransactionType = TransactionType.EXPENSE,
        category: str = "Alimentação",
        **kwargs,
    ) -> Transaction:
        kwargs.setdefault("id", f"txn-{description.lower().replace(' ', '-')}-{day.isoformat()}")
        return Transaction(
            date=day,
            description=description,
            amount=Decimal(amount),
            type=type,
            category=category,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_template(make_transaction):
    """Factory for recurring templates (counters zeroed)"""

    def _make(
        description: str = "Netflix",
        amount: str = "39.90",
        day: date = date(2025, 1, 5),
        recurrence_day: Optional[int] = None,
        recurrence_limit: Optional[int] = None,
        **kwargs,
    ) -> Transaction:
        return make_transaction(
            description=description,
            amount=amount,
            day=day,
            category=kwargs.pop("category", "Lazer"),
            is_recurring=True,
            recurrence_day=recurrence_day or day.day,
            recurrence_limit=recurrence_limit,
            id=kwargs.pop("id", f"tpl-{description.lower()}"),
            **kwargs,
        )

    return _make
