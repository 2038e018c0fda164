import itertools
import pytest
from datetime import date
from decimal import Decimal

from orcamais.domain.enums import TransactionType
from orcamais.repositories.base import DocumentStore, PersistenceError
from orcamais.services.recurrence import RecurrenceEngine


@pytest.fixture
def store(mocker) -> DocumentStore:
    """Document store mock that accepts every write"""
    return mocker.Mock(spec=DocumentStore)


@pytest.fixture
def engine(store) -> RecurrenceEngine:
    counter = itertools.count(1)
    return RecurrenceEngine(store, id_factory=lambda: f"occ-{next(counter)}")


def children_of(template, transactions):
    return sorted(
        (t for t in transactions if t.original_transaction_id == template.id),
        key=lambda t: t.date,
    )


@pytest.mark.unit
class TestSubscriptions:
    """Unbounded recurring templates"""

    def test_generates_one_occurrence_per_month_from_creation_period(
        self, engine, store, make_template
    ):
        """A subscription created 2025-01-05 has four occurrences by April"""

        # Arrange
        template = make_template(day=date(2025, 1, 5))
        transactions = [template]

        # Act
        result = engine.catch_up("user-1", transactions, today=date(2025, 4, 20))

        # Assert
        children = children_of(template, transactions)
        assert [c.date for c in children] == [
            date(2025, 1, 5),
            date(2025, 2, 5),
            date(2025, 3, 5),
            date(2025, 4, 5),
        ]
        assert all(c.installment_total is None for c in children)
        assert all(c.installment_number is None for c in children)
        assert template.recurrence_current == 4
        assert template.last_generated_period == "2025-04"
        assert len(result.generated) == 4
        assert result.success

    def test_occurrence_copies_template_fields(self, engine, make_template):
        """Description, amount, type and category come from the template"""

        # Arrange
        template = make_template(description="Academia", amount="99.90", category="Saúde")
        transactions = [template]

        # Act
        engine.catch_up("user-1", transactions, today=date(2025, 1, 31))

        # Assert
        child = children_of(template, transactions)[0]
        assert child.description == "Academia"
        assert child.amount == Decimal("99.90")
        assert child.type == TransactionType.EXPENSE
        assert child.category == "Saúde"
        assert child.id == "occ-1"
        assert not child.is_template

    def test_year_rollover(self, engine, make_template):
        """December is followed by January of the next year"""

        # Arrange
        template = make_template(day=date(2024, 11, 15))
        transactions = [template]

        # Act
        engine.catch_up("user-1", transactions, today=date(2025, 2, 1))

        # Assert
        periods = [c.period for c in children_of(template, transactions)]
        assert periods == ["2024-11", "2024-12", "2025-01", "2025-02"]


@pytest.mark.unit
class TestInstallments:
    """Bounded templates (installment plans)"""

    def test_stops_at_limit(self, engine, store, make_template):
        """A two-installment plan never produces a third occurrence"""

        # Arrange
        template = make_template(description="Geladeira", day=date(2025, 1, 10), recurrence_limit=2)
        transactions = [template]

        # Act
        engine.catch_up("user-1", transactions, today=date(2025, 3, 20))

        # Assert
        children = children_of(template, transactions)
        assert [c.period for c in children] == ["2025-01", "2025-02"]
        assert template.recurrence_current == 2
        assert store.update_field.call_count == 2

    def test_numbers_installments(self, engine, make_template):
        """Occurrences carry their installment number and the plan total"""

        # Arrange
        template = make_template(recurrence_limit=3)
        transactions = [template]

        # Act
        engine.catch_up("user-1", transactions, today=date(2025, 12, 1))

        # Assert
        children = children_of(template, transactions)
        assert len(children) == 3
        assert [c.installment_number for c in children] == [1, 2, 3]
        assert all(c.installment_total == 3 for c in children)

    def test_limit_reached_template_produces_no_writes(self, engine, store, make_template):
        """A finished plan is skipped entirely"""

        # Arrange
        template = make_template(
            recurrence_limit=2,
            recurrence_current=2,
            last_generated_period="2025-02",
        )

        # Act
        result = engine.catch_up("user-1", [template], today=date(2025, 6, 1))

        # Assert
        store.update_field.assert_not_called()
        assert not result.changed


@pytest.mark.unit
class TestIdempotence:

    def test_second_pass_in_same_period_writes_nothing(self, engine, store, make_template):
        """Running the catch-up twice in a month generates nothing new"""

        # Arrange
        template = make_template()
        transactions = [template]
        engine.catch_up("user-1", transactions, today=date(2025, 3, 1))
        writes = store.update_field.call_count
        size = len(transactions)

        # Act
        result = engine.catch_up("user-1", transactions, today=date(2025, 3, 28))

        # Assert
        assert store.update_field.call_count == writes
        assert len(transactions) == size
        assert result.generated == []

    def test_next_month_generates_only_new_period(self, engine, make_template):
        """Navigating forward a month adds exactly one occurrence"""

        # Arrange
        template = make_template()
        transactions = [template]
        engine.catch_up("user-1", transactions, today=date(2025, 3, 1))

        # Act
        result = engine.catch_up("user-1", transactions, today=date(2025, 4, 1))

        # Assert
        assert [c.period for c in result.generated] == ["2025-04"]

    def test_existing_occurrence_only_reconciles_counters(
        self, engine, store, make_template, make_transaction
    ):
        """Stale counters with an occurrence already stored do not duplicate it"""

        # Arrange
        template = make_template(day=date(2025, 1, 5))
        existing = make_transaction(
            description="Netflix",
            amount="39.90",
            day=date(2025, 1, 5),
            id="already-there",
            original_transaction_id=template.id,
        )
        transactions = [template, existing]

        # Act
        result = engine.catch_up("user-1", transactions, today=date(2025, 2, 10))

        # Assert
        children = children_of(template, transactions)
        assert [c.period for c in children] == ["2025-01", "2025-02"]
        assert result.reconciled == 1
        assert len(result.generated) == 1
        assert template.recurrence_current == 2
        assert template.last_generated_period == "2025-02"

    def test_future_template_generates_nothing(self, engine, store, make_template):
        # Arrange
        template = make_template(day=date(2025, 5, 5))

        # Act
        result = engine.catch_up("user-1", [template], today=date(2025, 3, 1))

        # Assert
        assert result.generated == []
        store.update_field.assert_not_called()


@pytest.mark.unit
class TestDayClamping:

    def test_day_31_falls_on_last_day_of_february(self, engine, make_template):
        # Arrange
        template = make_template(day=date(2025, 1, 31), recurrence_day=31)
        transactions = [template]

        # Act
        engine.catch_up("user-1", transactions, today=date(2025, 3, 1))

        # Assert
        dates = [c.date for c in children_of(template, transactions)]
        assert dates == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31)]

    def test_leap_year_february(self, engine, make_template):
        # Arrange
        template = make_template(day=date(2024, 1, 30), recurrence_day=30)
        transactions = [template]

        # Act
        engine.catch_up("user-1", transactions, today=date(2024, 2, 1))

        # Assert
        assert children_of(template, transactions)[-1].date == date(2024, 2, 29)

    def test_template_without_day_uses_its_own_day(self, engine, make_template):
        # Arrange
        template = make_template(day=date(2025, 1, 12))
        template.recurrence_day = None

        # Act
        occurrence = engine.build_occurrence(template, "2025-06")

        # Assert
        assert occurrence.date == date(2025, 6, 12)


@pytest.mark.unit
class TestPersistence:

    def test_each_step_writes_child_and_counters_together(self, engine, store, make_template):
        """The single write carries the new occurrence and the advanced template"""

        # Arrange
        template = make_template(recurrence_limit=5)

        # Act
        engine.catch_up("user-1", [template], today=date(2025, 1, 20))

        # Assert
        user_id, path, payload = store.update_field.call_args.args
        assert (user_id, path) == ("user-1", "transactions")
        stored_template = next(t for t in payload if t["id"] == template.id)
        stored_child = next(t for t in payload if t.get("originalTransactionId") == template.id)
        assert stored_template["recurrenceCurrent"] == 1
        assert stored_template["lastGeneratedPeriod"] == "2025-01"
        assert stored_child["installmentNumber"] == 1

    def test_failed_write_rolls_back_and_continues_with_next_template(
        self, engine, store, make_template
    ):
        """A failing template keeps its counters; the others still generate"""

        # Arrange
        failing = make_template(description="Spotify", day=date(2025, 3, 1))
        working = make_template(description="Netflix", day=date(2025, 3, 5))
        transactions = [failing, working]
        store.update_field.side_effect = [PersistenceError("disk full"), None]

        # Act
        result = engine.catch_up("user-1", transactions, today=date(2025, 3, 10))

        # Assert
        assert result.failed == {failing.id: "disk full"}
        assert not result.success
        assert failing.recurrence_current == 0
        assert failing.last_generated_period is None
        assert children_of(failing, transactions) == []
        assert [c.description for c in result.generated] == ["Netflix"]
        assert working.recurrence_current == 1

    def test_failed_template_is_retried_on_next_pass(self, engine, store, make_template):
        # Arrange
        template = make_template(day=date(2025, 3, 1))
        transactions = [template]
        store.update_field.side_effect = [PersistenceError("offline"), None]
        engine.catch_up("user-1", transactions, today=date(2025, 3, 10))

        # Act
        result = engine.catch_up("user-1", transactions, today=date(2025, 3, 10))

        # Assert
        assert len(result.generated) == 1
        assert template.recurrence_current == 1

    def test_plain_transactions_are_left_alone(self, engine, store, make_transaction):
        # Arrange
        plain = make_transaction()

        # Act
        result = engine.catch_up("user-1", [plain], today=date(2025, 3, 10))

        # Assert
        store.update_field.assert_not_called()
        assert not result.changed


@pytest.mark.unit
class TestPendingPeriods:

    def test_never_generated_starts_at_creation_period(self, engine, make_template):
        template = make_template(day=date(2025, 1, 5))

        assert engine.pending_periods(template, "2025-03") == ["2025-01", "2025-02", "2025-03"]

    def test_resumes_after_last_generated(self, engine, make_template):
        template = make_template(day=date(2025, 1, 5), last_generated_period="2025-02")

        assert engine.pending_periods(template, "2025-03") == ["2025-03"]
