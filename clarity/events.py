import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Type
from pydantic import BaseModel
from .schemas import MessagePublic

logger = logging.getLogger(__name__)


class DomainEvent(BaseModel):
    tenantId: str


class MessageCreated(DomainEvent):
    """Published after a message has been durably stored."""
    message: MessagePublic


Handler = Callable[[DomainEvent], Awaitable[None]]


class EventBus:
    """
    In-process outbox between the store and its side effects.

    Handlers run after the write has succeeded. A failing handler is logged and
    never reaches the publisher, so delivery stays best-effort.
    """

    def __init__(self):
        self._handlers: Dict[Type[DomainEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    async def publish(self, event: DomainEvent) -> None:
        for handler in list(self._handlers[type(event)]):
            try:
                await handler(event)
            except Exception:
                logger.exception(f"Handler {getattr(handler, '__qualname__', handler)} failed for {type(event).__name__}")
