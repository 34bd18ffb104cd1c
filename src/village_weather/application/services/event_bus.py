from collections import defaultdict
import logging
from typing import Callable, DefaultDict, List, Type


Handler = Callable[[object], None]


class EventBus:
    """In-process fan-out of weather events to collaborators such as the chat poster.

    Handlers subscribed to a base class also receive events of its subclasses.
    """

    def __init__(self) -> None:
        self._subscribers: DefaultDict[Type[object], List[tuple[int, int, Handler]]] = defaultdict(list)
        self._next_order = 0
        self._last_publish_errors: List[Exception] = []
        self._logger = logging.getLogger(__name__)

    def subscribe(self, event_type: Type[object], handler: Handler, *, priority: int = 100) -> None:
        self._subscribers[event_type].append((int(priority), self._next_order, handler))
        self._next_order += 1

    def unsubscribe(self, event_type: Type[object], handler: Handler) -> bool:
        rows = self._subscribers.get(event_type, [])
        kept = [row for row in rows if row[2] is not handler]
        self._subscribers[event_type] = kept
        return len(kept) != len(rows)

    def _handlers_for(self, event_type: Type[object]) -> List[tuple[int, int, Handler]]:
        rows: List[tuple[int, int, Handler]] = []
        for klass in event_type.__mro__:
            rows.extend(self._subscribers.get(klass, ()))
        return sorted(rows, key=lambda row: (row[0], row[1]))

    def publish(self, event: object) -> None:
        # Runs after the store write; a failing subscriber never undoes it.
        self._last_publish_errors = []
        event_type = type(event)
        for priority, _, handler in self._handlers_for(event_type):
            try:
                handler(event)
            except Exception as exc:
                self._last_publish_errors.append(exc)
                handler_name = getattr(handler, "__qualname__", getattr(handler, "__name__", repr(handler)))
                self._logger.exception(
                    "Weather event handler failed and was isolated",
                    extra={
                        "event_type": event_type.__name__,
                        "handler": handler_name,
                        "priority": priority,
                    },
                )

    def last_publish_errors(self) -> List[Exception]:
        return list(self._last_publish_errors)
