import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from orcamais.categorization.categories import INVESTMENTS
from orcamais.domain.errors import NotFoundError, OrcaMaisError, ValidationError
from orcamais.domain.models import InvestmentData, Transaction
from orcamais.domain.periods import current_period
from orcamais.services.finance_service import FinanceService
from orcamais.services.market_data import MarketDataClient, MarketDataError, Quote
from orcamais.services.models import OperationResult
from orcamais.utils.formatters import format_currency

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass
class Position:
    """A simulated purchase valued at the latest known price"""
    transaction: Transaction
    current_price: Decimal

    @property
    def investment(self) -> InvestmentData:
        return self.transaction.investment_data

    @property
    def total_cost(self) -> Decimal:
        return self.investment.purchase_price * self.investment.quantity

    @property
    def current_value(self) -> Decimal:
        return self.current_price * self.investment.quantity

    @property
    def profit(self) -> Decimal:
        return self.current_value - self.total_cost

    @property
    def profit_percent(self) -> Decimal:
        if self.total_cost <= 0:
            return Decimal("0")
        return self.profit / self.total_cost * 100


@dataclass
class ProjectionPoint:
    month: int
    value: Decimal


class InvestmentService:
    """
    Simulated stock purchases recorded as 'Investimentos' expenses.

    A purchase may never cost more than the current period's balance.
    Selling removes the purchase and records only the profit (income)
    or the loss (expense).
    """

    def __init__(self, finance: FinanceService, market_data: MarketDataClient):
        self.finance = finance
        self.market_data = market_data

    def search(self, term: str = "") -> List[Quote]:
        """Quotes whose code or name contains the term (case-insensitive)"""
        needle = term.strip().lower()
        quotes = self.market_data.list_quotes()
        if not needle:
            return quotes
        return [q for q in quotes if needle in q.stock.lower() or needle in q.name.lower()]

    def simulate_purchase(
        self,
        quote: Quote,
        quantity: int,
        today: Optional[date] = None,
    ) -> OperationResult[Transaction]:
        """
        Record the purchase of whole shares at the quote's closing price.

        Fails when fewer than one share is requested or the cost exceeds
        the current period's balance.
        """
        today = today or self.finance.clock()
        shares = int(quantity)
        if shares < 1:
            return OperationResult.fail(
                "Quantidade inválida", {"quantity": "Compre pelo menos 1 ação"}
            )

        cost = quote.close * shares
        if cost <= 0:
            return OperationResult.fail("Cotação indisponível para esta ação")

        balance = self.finance.get_financial_summary(current_period(today)).balance
        if cost > balance:
            logger.info("Purchase of %dx %s refused: cost %s > balance %s", shares, quote.stock, cost, balance)
            return OperationResult.fail(
                f"Saldo insuficiente: a compra custa {format_currency(cost)} "
                f"e seu saldo é {format_currency(balance)}"
            )

        return self.finance.add_transaction({
            "description": f"Compra de {shares}x {quote.stock}",
            "amount": cost,
            "type": "expense",
            "category": INVESTMENTS,
            "date": today.isoformat(),
            "investmentData": InvestmentData(
                stock_code=quote.stock,
                quantity=shares,
                purchase_price=quote.close,
                logo=quote.logo,
            ),
        })

    def purchases(self) -> List[Transaction]:
        return [
            t for t in self.finance.get_all_transactions()
            if t.category == INVESTMENTS and t.investment_data is not None
        ]

    def _current_prices(self) -> Dict[str, Decimal]:
        try:
            return self.market_data.prices()
        except MarketDataError as e:
            logger.warning("Using purchase prices, quotes unavailable: %s", e)
            return {}

    def portfolio(self) -> List[Position]:
        """
        Every simulated purchase with its profit.

        Positions without a known current price are valued at the
        purchase price.
        """
        purchases = self.purchases()
        if not purchases:
            return []

        prices = self._current_prices()
        return [
            Position(
                transaction=t,
                current_price=prices.get(t.investment_data.stock_code, t.investment_data.purchase_price),
            )
            for t in purchases
        ]

    def sell(self, transaction_id: str, today: Optional[date] = None) -> OperationResult[Decimal]:
        """
        Sell a simulated purchase at the current price.

        Returns:
            OperationResult whose value is the realized profit (negative for a loss)
        """
        today = today or self.finance.clock()
        try:
            position = next(
                (p for p in self.portfolio() if p.transaction.id == transaction_id), None
            )
            if position is None:
                raise NotFoundError("Investimento não encontrado")
        except OrcaMaisError as e:
            logger.warning("Sale of %s rejected: %s", transaction_id, e)
            return OperationResult.fail(str(e))

        removed = self.finance.remove_transaction(transaction_id)
        if not removed:
            return OperationResult.fail(removed.message)

        profit = position.profit.quantize(CENTS, rounding=ROUND_HALF_UP)
        if profit != 0:
            label = "Lucro" if profit > 0 else "Prejuízo"
            recorded = self.finance.add_transaction({
                "description": (
                    f"{label} na Venda: {position.investment.quantity}x "
                    f"{position.investment.stock_code}"
                ),
                "amount": abs(profit),
                "type": "income" if profit > 0 else "expense",
                "category": INVESTMENTS,
                "date": today.isoformat(),
            })
            if not recorded:
                return OperationResult.fail(recorded.message)

        return OperationResult.ok(profit)

    @staticmethod
    def project(value: Decimal, monthly_rate: Decimal, months: int = 6) -> List[ProjectionPoint]:
        """
        Compound a value at a monthly rate (percent).

        Empty when the value or the rate is not positive.
        """
        value = Decimal(str(value))
        rate = Decimal(str(monthly_rate)) / 100
        if value <= 0 or rate <= 0:
            return []

        points = []
        for month in range(1, months + 1):
            value = value * (1 + rate)
            points.append(ProjectionPoint(month=month, value=value.quantize(CENTS, rounding=ROUND_HALF_UP)))
        return points

    @staticmethod
    def validate_quantity(quantity: str) -> int:
        """Whole number of shares from user input"""
        try:
            shares = int(Decimal(quantity))
        except (ArithmeticError, ValueError) as e:
            raise ValidationError("Quantidade inválida", {"quantity": "Informe um número"}) from e
        if shares < 1:
            raise ValidationError("Quantidade inválida", {"quantity": "Compre pelo menos 1 ação"})
        return shares
