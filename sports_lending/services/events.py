"""In-process publisher for student standing changes"""

import logging
from typing import Callable, Iterable, List

from sports_lending.domain.models import StudentEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[StudentEvent], None]


class EventPublisher:
    """
    Fan out StudentEvents to subscribers.

    Managers only publish after their transaction commits, so subscribers never
    see events for work that was rolled back. A failing subscriber is logged and
    does not stop delivery to the others.
    """

    def __init__(self):
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def publish(self, event: StudentEvent) -> None:
        for handler in self._handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event handler failed",
                    extra={"event": event.event, "student_id": event.student_id},
                )

    def publish_all(self, events: Iterable[StudentEvent]) -> None:
        for event in events:
            self.publish(event)


class RecordingPublisher(EventPublisher):
    """Publisher that also keeps every event it delivered"""

    def __init__(self):
        super().__init__()
        self.events: List[StudentEvent] = []

    def publish(self, event: StudentEvent) -> None:
        self.events.append(event)
        super().publish(event)

    def of_type(self, event_type: str) -> List[StudentEvent]:
        return [e for e in self.events if e.event == event_type]
