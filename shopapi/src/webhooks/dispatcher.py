"""Stripe webhook event dispatch.

The entrypoint only verifies and parses deliveries. What an event means for
orders and payments is decided by handlers the payment feature registers
per event type; events without a handler are acknowledged and logged so
Stripe stops retrying them.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger(__name__)


class StripeEvent(BaseModel):
    """The fields of a Stripe event object the entrypoint relies on."""
    id: str = Field(..., description="Event id (evt_...)")
    type: str = Field(..., description="Event type, e.g. payment_intent.succeeded")
    created: Optional[int] = Field(None, description="Unix creation time")
    livemode: bool = Field(False, description="Live or test mode event")
    data: Dict[str, Any] = Field(default_factory=dict, description="Event payload")

    model_config = ConfigDict(extra="allow")


EventHandler = Callable[[StripeEvent, Request], Awaitable[None]]


class WebhookDispatcher:
    """Registry of async handlers keyed by Stripe event type."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}

    def register(self, event_type: str, handler: Optional[EventHandler] = None):
        """
        Register ``handler`` for ``event_type``.

        Usable directly or as a decorator::

            @dispatcher.register("payment_intent.succeeded")
            async def on_paid(event, request): ...
        """
        def decorator(func: EventHandler) -> EventHandler:
            self._handlers.setdefault(event_type, []).append(func)
            logger.debug("webhook_handler_registered", event_type=event_type, handler=func.__name__)
            return func

        if handler is not None:
            return decorator(handler)
        return decorator

    def handlers_for(self, event_type: str) -> List[EventHandler]:
        return list(self._handlers.get(event_type, []))

    @property
    def event_types(self) -> List[str]:
        return sorted(self._handlers)

    async def dispatch(self, event: StripeEvent, request: Request) -> bool:
        """
        Run every handler registered for the event's type, in order.

        Handler exceptions propagate so the delivery fails with a 500 and
        Stripe retries it.

        Returns:
            True if at least one handler ran
        """
        handlers = self.handlers_for(event.type)
        if not handlers:
            logger.info("stripe_event_unhandled", event_id=event.id, event_type=event.type)
            return False

        for handler in handlers:
            await handler(event, request)

        logger.info(
            "stripe_event_handled",
            event_id=event.id,
            event_type=event.type,
            handlers=len(handlers)
        )
        return True
