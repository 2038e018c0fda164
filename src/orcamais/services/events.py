import logging
from typing import Callable, Iterable, List, Optional, Set, Tuple

from orcamais.domain.enums import DataEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[DataEvent], None]


class EventBus:
    """
    Typed change notifications.

    Views subscribe to the events they render and re-read through the
    finance service when notified.

    Usage:
        bus = EventBus()
        unsubscribe = bus.subscribe(refresh, {DataEvent.TRANSACTIONS_CHANGED})
        bus.publish(DataEvent.TRANSACTIONS_CHANGED)
        unsubscribe()
    """

    def __init__(self):
        self._subscribers: List[Tuple[EventCallback, Optional[Set[DataEvent]]]] = []

    def subscribe(
        self,
        callback: EventCallback,
        events: Optional[Iterable[DataEvent]] = None,
    ) -> Callable[[], None]:
        """
        Register a callback.

        Args:
            callback: Called with the published event
            events: Events to receive; None means every event

        Returns:
            A function that removes the subscription
        """
        entry = (callback, set(events) if events is not None else None)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: DataEvent) -> None:
        """Deliver an event to every matching subscriber, in subscription order"""
        logger.debug("Publishing %s", event.value)
        for callback, events in list(self._subscribers):
            if events is None or event in events:
                callback(event)
