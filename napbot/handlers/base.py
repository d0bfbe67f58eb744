"""Responder contracts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from napbot.gateway import OutboundGateway
from napbot.models import MESSAGE_EVENT_TYPES, Event
from napbot.rate_limit import RateLimiter

TOO_FREQUENT_NOTICE = "调用过于频繁，请一分钟后再试。"


@dataclass(slots=True)
class HandlerContext:
    """Collaborators shared by every responder during dispatch."""

    gateway: OutboundGateway

    async def reply(self, event: Event, text: str) -> bool:
        """Send `text` back to wherever `event` came from."""

        if not isinstance(event, MESSAGE_EVENT_TYPES):
            return False
        return await self.gateway.send(event.reply_target, text)


class Handler(ABC):
    """Base class for all responders.

    `matches` must be cheap and free of side effects; `execute` runs only
    after the ban and rate-limit checks pass.
    """

    name: str
    rate_limiter: RateLimiter | None = None
    too_frequent_notice: str = TOO_FREQUENT_NOTICE

    @abstractmethod
    def matches(self, event: Event) -> bool:
        """Return True when this responder wants the event."""

    @abstractmethod
    async def execute(self, event: Event, ctx: HandlerContext) -> None:
        """Act on a matched event."""
