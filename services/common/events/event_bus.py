"""
In-process event bus with typed subscriptions.

Subscribers register against an event class (or its ``event_type`` name, or
``"*"`` for everything). Handlers may be plain callables or coroutines; they
run in registration order and a failing handler never affects the publisher
or the other subscribers.
"""

import inspect
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Type, Union

from services.common.events.base_events import BaseEvent
from services.common.logging_config import get_logger
from services.common.telemetry import get_tracer, record_exception

logger = get_logger(__name__)
tracer = get_tracer(__name__)

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]
EventKey = Union[str, Type[BaseEvent]]

ALL_EVENTS = "*"


def _key(event_type: EventKey) -> str:
    if isinstance(event_type, str):
        return event_type
    return event_type.event_type


class EventBus:
    """Dispatches domain events to registered handlers."""

    def __init__(self, service_name: str = "unknown-service") -> None:
        self.service_name = service_name
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    def subscribe(
        self, event_type: EventKey, handler: EventHandler
    ) -> Callable[[], None]:
        """Register a handler and return a callable that unsubscribes it."""
        key = _key(event_type)
        self._handlers[key].append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(key, handler)

        return unsubscribe

    def unsubscribe(self, event_type: EventKey, handler: EventHandler) -> None:
        handlers = self._handlers.get(_key(event_type), [])
        if handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event_type: EventKey) -> int:
        return len(self._handlers.get(_key(event_type), []))

    def clear(self) -> None:
        self._handlers.clear()

    async def publish(self, event: BaseEvent) -> int:
        """
        Deliver an event to its subscribers.

        Returns:
            Number of handlers that completed without raising
        """
        handlers = list(self._handlers.get(event.event_type, [])) + list(
            self._handlers.get(ALL_EVENTS, [])
        )

        delivered = 0
        with tracer.start_as_current_span(f"events.publish.{event.event_type}") as span:
            if span.is_recording():
                context = span.get_span_context()
                event.add_trace_context(
                    trace_id=f"{context.trace_id:032x}",
                    span_id=f"{context.span_id:016x}",
                )
                span.set_attribute("events.type", event.event_type)
                span.set_attribute("events.subscribers", len(handlers))

            for handler in handlers:
                try:
                    result = handler(event)
                    if inspect.isawaitable(result):
                        await result
                    delivered += 1
                except Exception as e:
                    record_exception(e)
                    logger.error(
                        "Event handler failed",
                        event_type=event.event_type,
                        event_id=event.metadata.event_id,
                        handler=getattr(handler, "__qualname__", repr(handler)),
                        error=str(e),
                        exc_info=True,
                    )

        logger.debug(
            "Event published",
            event_type=event.event_type,
            event_id=event.metadata.event_id,
            subscribers=len(handlers),
            delivered=delivered,
        )
        return delivered
