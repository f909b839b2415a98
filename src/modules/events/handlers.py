"""EventHandlerRegistry: maps outbox event types to subscriber callables."""

import logging
from collections import defaultdict
from collections.abc import Callable

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict], None]


class EventHandlerRegistry:
    """Process-wide registry of outbox subscribers.

    Handlers are plain callables that accept the event payload dict. Several
    handlers may subscribe to one event type; registering the same handler
    twice is a no-op.
    """

    _handlers: dict[str, list[EventHandler]] = defaultdict(list)

    @classmethod
    def register(cls, event_type: str, handler: EventHandler) -> None:
        if handler in cls._handlers[event_type]:
            return
        cls._handlers[event_type].append(handler)
        logger.debug("Registered handler %s for %s", handler.__name__, event_type)

    @classmethod
    def get_handlers(cls, event_type: str) -> list[EventHandler]:
        return list(cls._handlers.get(event_type, []))

    @classmethod
    def event_types(cls) -> list[str]:
        return sorted(cls._handlers)

    @classmethod
    def dispatch(cls, event_type: str, payload: dict) -> list[dict]:
        """Run every handler for ``event_type``.

        Returns one result dict per handler. A failing handler is logged and
        reported in the results without stopping the others.
        """
        results = []
        for handler in cls.get_handlers(event_type):
            try:
                handler(payload)
                results.append({"handler": handler.__name__, "status": "ok"})
            except Exception as exc:
                logger.exception("Handler %s failed for %s", handler.__name__, event_type)
                results.append({
                    "handler": handler.__name__,
                    "status": "error",
                    "error": str(exc),
                })
        return results

    @classmethod
    def clear(cls) -> None:
        cls._handlers.clear()
