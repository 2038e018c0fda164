import pytest
from datetime import date
from decimal import Decimal

from orcamais.domain.enums import CalculationType
from orcamais.domain.errors import ValidationError
from orcamais.domain.models import Dream
from orcamais.services.dreams import (
    add_months,
    format_duration,
    months_until,
    plan_dream,
    remaining_time_label,
)


@pytest.mark.unit
class TestPlanByDate:

    def test_monthly_amount_splits_total_over_months(self, today):
        # Act
        plan = plan_dream(
            "Viagem",
            Decimal("1200"),
            CalculationType.DATE,
            target_date=date(2025, 9, 10),
            today=today,
        )

        # Assert
        assert plan.months_needed == 6
        assert plan.monthly_amount == Decimal("200.00")
        assert plan.target_date == date(2025, 9, 10)
        assert "R$ 200,00" in plan.message
        assert "10/09/2025" in plan.message

    def test_monthly_amount_rounded_to_cents(self, today):
        # Act
        plan = plan_dream(
            "Curso", Decimal("1000"), CalculationType.DATE, target_date=date(2025, 6, 1), today=today
        )

        # Assert
        assert plan.monthly_amount == Decimal("333.33")

    @pytest.mark.parametrize("target", [date(2025, 3, 31), date(2024, 12, 1)])
    def test_target_in_current_or_past_month_is_rejected(self, today, target):
        # Act
        with pytest.raises(ValidationError) as exc_info:
            plan_dream("Carro", Decimal("30000"), CalculationType.DATE, target_date=target, today=today)

        # Assert
        assert exc_info.value.errors == {"targetDate": "A data alvo deve ser no futuro."}


@pytest.mark.unit
class TestPlanByMonthlyAmount:

    def test_months_needed_rounds_up(self, today):
        # Act
        plan = plan_dream(
            "Bicicleta", Decimal("1000"), CalculationType.MONTHLY,
            monthly_amount=Decimal("300"), today=today,
        )

        # Assert
        assert plan.months_needed == 4
        assert plan.target_date == date(2025, 7, 15)
        assert "4 meses" in plan.message

    def test_long_plan_message_uses_years(self, today):
        # Act
        plan = plan_dream(
            "Casa", Decimal("1400"), CalculationType.MONTHLY,
            monthly_amount=Decimal("100"), today=today,
        )

        # Assert
        assert "1 ano e 2 meses" in plan.message
        assert plan.target_date == date(2026, 5, 15)

    def test_requires_positive_monthly_amount(self, today):
        with pytest.raises(ValidationError):
            plan_dream("Casa", Decimal("1000"), CalculationType.MONTHLY, monthly_amount=Decimal("0"), today=today)


@pytest.mark.unit
class TestDateHelpers:

    @pytest.mark.parametrize(
        "months, expected",
        [
            (1, "1 mês"),
            (3, "3 meses"),
            (12, "1 ano"),
            (14, "1 ano e 2 meses"),
            (24, "2 anos"),
            (25, "2 anos e 1 mês"),
        ],
    )
    def test_format_duration(self, months, expected):
        assert format_duration(months) == expected

    def test_add_months_clamps_day(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)

    def test_months_until_counts_calendar_months(self):
        assert months_until(date(2025, 4, 1), date(2025, 3, 31)) == 1
        assert months_until(date(2025, 3, 1), date(2025, 3, 31)) == 0


@pytest.mark.unit
class TestDreamProgress:

    def test_remaining_time_label(self, today):
        # Arrange
        dream = Dream("Viagem", Decimal("5000"), CalculationType.DATE, target_date=date(2026, 5, 1))
        reached = Dream("Celular", Decimal("2000"), CalculationType.DATE, target_date=date(2025, 1, 1))
        open_ended = Dream("Moto", Decimal("9000"), CalculationType.MONTHLY)

        # Act / Assert
        assert remaining_time_label(dream, today) == "1 ano e 2 meses"
        assert remaining_time_label(reached, today) == "Meta atingida!"
        assert remaining_time_label(open_ended, today) is None

    def test_progress_capped_but_exceeded_flagged(self):
        # Arrange
        dream = Dream("TV", Decimal("2000"), CalculationType.MONTHLY, saved_amount=Decimal("2500"))

        # Assert
        assert dream.progress_percentage == Decimal("100")
        assert dream.is_exceeded
        assert dream.remaining_amount == Decimal("0")

    def test_partial_progress(self):
        # Arrange
        dream = Dream("TV", Decimal("2000"), CalculationType.MONTHLY, saved_amount=Decimal("500"))

        # Assert
        assert dream.progress_percentage == Decimal("25")
        assert not dream.is_exceeded
        assert dream.remaining_amount == Decimal("1500")
