import pytest

from orcamais.domain.enums import DataEvent
from orcamais.services.events import EventBus


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.mark.unit
class TestEventBus:

    def test_unfiltered_subscriber_gets_every_event(self, bus):
        # Arrange
        received = []
        bus.subscribe(received.append)

        # Act
        bus.publish(DataEvent.TRANSACTIONS_CHANGED)
        bus.publish(DataEvent.DREAMS_CHANGED)

        # Assert
        assert received == [DataEvent.TRANSACTIONS_CHANGED, DataEvent.DREAMS_CHANGED]

    def test_filtered_subscriber(self, bus, mocker):
        # Arrange
        callback = mocker.Mock()
        bus.subscribe(callback, {DataEvent.BUDGETS_CHANGED})

        # Act
        bus.publish(DataEvent.INCOME_CHANGED)
        bus.publish(DataEvent.BUDGETS_CHANGED)

        # Assert
        callback.assert_called_once_with(DataEvent.BUDGETS_CHANGED)

    def test_unsubscribe(self, bus, mocker):
        # Arrange
        callback = mocker.Mock()
        unsubscribe = bus.subscribe(callback)

        # Act
        unsubscribe()
        unsubscribe()
        bus.publish(DataEvent.AUTH_CHANGED)

        # Assert
        callback.assert_not_called()

    def test_subscription_order(self, bus):
        # Arrange
        calls = []
        bus.subscribe(lambda e: calls.append("first"))
        bus.subscribe(lambda e: calls.append("second"))

        # Act
        bus.publish(DataEvent.SETTINGS_CHANGED)

        # Assert
        assert calls == ["first", "second"]

    def test_callback_may_unsubscribe_while_publishing(self, bus):
        # Arrange
        calls = []
        unsubscribe = None

        def once(event):
            calls.append(event)
            unsubscribe()

        unsubscribe = bus.subscribe(once)

        # Act
        bus.publish(DataEvent.AUTH_CHANGED)
        bus.publish(DataEvent.AUTH_CHANGED)

        # Assert
        assert calls == [DataEvent.AUTH_CHANGED]
