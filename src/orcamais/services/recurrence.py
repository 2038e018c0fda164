import logging
import uuid
from datetime import date
from typing import Callable, List, Optional

from orcamais.domain.models import Transaction, now_iso
from orcamais.domain.periods import current_period, day_in_period, next_period, period_range
from orcamais.repositories.base import DocumentStore, PersistenceError
from orcamais.services.models import RecurrenceResult

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


class RecurrenceEngine:
    """
    Materializes occurrences of recurring templates.

    A catch-up pass walks every template from the period after its
    `last_generated_period` (or from its own creation period when it was
    never generated) up to the current period, creating one occurrence
    per period until the template's limit is reached.

    Each (template, period) step is persisted as a single write of the
    `transactions` field carrying both the new occurrence and the advanced
    template counters, so a counter is never advanced without its child
    and vice versa.
    """

    def __init__(
        self,
        store: DocumentStore,
        id_factory: Callable[[], str] = new_id,
    ):
        self.store = store
        self.id_factory = id_factory

    def pending_periods(self, template: Transaction, up_to: str) -> List[str]:
        """Periods still to generate for a template, oldest first"""
        if template.last_generated_period:
            start = next_period(template.last_generated_period)
        else:
            start = template.period
        return period_range(start, up_to)

    def build_occurrence(self, template: Transaction, period: str) -> Transaction:
        """
        Build the template's occurrence for a period.

        The day of month is clamped to the period's last day. Bounded
        templates also number the installment.
        """
        day = template.recurrence_day or template.date.day
        occurrence = Transaction(
            id=self.id_factory(),
            date=day_in_period(period, day),
            description=template.description,
            amount=template.amount,
            type=template.type,
            category=template.category,
            created_at=now_iso(),
            original_transaction_id=template.id,
        )

        if template.recurrence_limit is not None:
            occurrence.installment_number = template.recurrence_current + 1
            occurrence.installment_total = template.recurrence_limit

        return occurrence

    @staticmethod
    def find_occurrence(
        transactions: List[Transaction],
        template: Transaction,
        period: str,
    ) -> Optional[Transaction]:
        for transaction in transactions:
            if transaction.original_transaction_id == template.id and transaction.period == period:
                return transaction
        return None

    def catch_up(
        self,
        user_id: str,
        transactions: List[Transaction],
        today: Optional[date] = None,
    ) -> RecurrenceResult:
        """
        Run a catch-up pass over the user's transaction list.

        The list is updated in place. A failed write rolls back that step
        and stops the template; the other templates are still processed.

        Args:
            user_id: Owner of the transactions
            transactions: The user's full transaction list
            today: Reference day, defaults to today

        Returns:
            RecurrenceResult with generated occurrences and failed templates
        """
        result = RecurrenceResult()
        up_to = current_period(today)

        templates = [t for t in transactions if t.is_template]
        for template in templates:
            try:
                self._catch_up_template(user_id, template, transactions, up_to, result)
            except PersistenceError as e:
                logger.error("Recurrence for template %s failed: %s", template.id, e)
                result.failed[template.id] = str(e)

        if result.generated:
            logger.info(
                "Generated %d occurrence(s) for user %s", len(result.generated), user_id
            )

        return result

    def _catch_up_template(
        self,
        user_id: str,
        template: Transaction,
        transactions: List[Transaction],
        up_to: str,
        result: RecurrenceResult,
    ) -> None:
        for period in self.pending_periods(template, up_to):
            if template.limit_reached:
                break

            existing = self.find_occurrence(transactions, template, period)
            occurrence = None
            if existing is None:
                occurrence = self.build_occurrence(template, period)
                transactions.append(occurrence)

            previous = (template.recurrence_current, template.last_generated_period)
            template.recurrence_current += 1
            template.last_generated_period = period

            try:
                self.store.update_field(
                    user_id, "transactions", [t.to_dict() for t in transactions]
                )
            except PersistenceError:
                if occurrence is not None:
                    transactions.pop()
                template.recurrence_current, template.last_generated_period = previous
                raise

            if occurrence is not None:
                logger.info(
                    "Generated %s for %s (%s)", occurrence.id, period, template.description
                )
                result.generated.append(occurrence)
            else:
                logger.info(
                    "Occurrence of %s for %s already present, counters reconciled",
                    template.id, period,
                )
                result.reconciled += 1
