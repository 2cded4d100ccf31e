"""
Event registry — named event handlers fanned out from one Slack listener per event.

Usage:
    events = EventRegistry(on_error=log_event_error)

    @events.on("app_mention", tags=["public"])
    async def greet(event, say, client):
        await say("Hi!")

    events.attach(app)              # one listener per event name
    await events.dispatch("ready")  # "ready" is never attached, fire it yourself
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

READY_EVENT = "ready"


@dataclass
class EventHandler:
    """A named handler for one event."""

    name: str
    event: str
    run: Callable[..., Awaitable[None]]
    once: bool = False
    tags: List[str] = field(default_factory=list)


@dataclass
class EventData:
    """What middleware and error hooks see about an event being handled."""

    name: str
    handler: str
    kwargs: Dict[str, Any]


Block = Callable[..., None]
Middleware = Callable[[EventData, Block], Awaitable[None]]
ErrorHook = Callable[[Exception, EventData], Any]


class EventRegistry:
    """Holds handlers by event name and runs them through middleware and error hooks."""

    def __init__(
        self,
        middleware: Optional[Middleware] = None,
        on_error: Optional[ErrorHook] = None,
    ):
        self.middleware = middleware
        self.on_error = on_error
        self.handlers: Dict[str, Dict[str, EventHandler]] = {}

    def add(self, handler: EventHandler) -> EventHandler:
        self.handlers.setdefault(handler.event, {})[handler.name] = handler
        logger.debug(f"Registered {handler.name} > {handler.event}")
        return handler

    def on(
        self,
        event: str,
        name: Optional[str] = None,
        once: bool = False,
        tags: Optional[List[str]] = None,
    ):
        """Decorator form of add(); the handler name defaults to the function name."""

        def decorator(fn):
            self.add(EventHandler(
                name=name or fn.__name__,
                event=event,
                run=fn,
                once=once,
                tags=list(tags or []),
            ))
            return fn

        return decorator

    def attach(self, app) -> None:
        """Attach one listener per registered event (except "ready") to a Slack app."""
        for event_name in self.handlers:
            if event_name == READY_EVENT:
                continue
            app.event(event_name)(self._listener(event_name))

    def _listener(self, event_name: str):
        async def listener(event, say, client):
            await self.dispatch(event_name, event=event, say=say, client=client)

        return listener

    async def dispatch(self, event_name: str, **kwargs) -> None:
        """Run every handler registered for the event, in registration order."""
        for handler in list(self.handlers.get(event_name, {}).values()):
            await self.handle(handler, kwargs)

    async def handle(self, handler: EventHandler, kwargs: Dict[str, Any]) -> None:
        blocked = False

        def block(*selected: str) -> None:
            # An untagged handler is blocked by any call to block().
            nonlocal blocked
            if selected and any(tag in handler.tags for tag in selected):
                blocked = True
            if not handler.tags:
                blocked = True

        event_data = EventData(name=handler.event, handler=handler.name, kwargs=kwargs)

        if self.middleware:
            await self.middleware(event_data, block)
        if blocked:
            logger.debug(f"Handler {handler.name} blocked by middleware")
            return

        try:
            await handler.run(**kwargs)
        except Exception as e:
            if not self.on_error:
                raise
            self.on_error(e, event_data)

        if handler.once:
            self.handlers.get(handler.event, {}).pop(handler.name, None)
