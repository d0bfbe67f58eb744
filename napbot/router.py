"""Ordered dispatch of decoded events to registered responders."""

from __future__ import annotations

import logging

from napbot.ban import BanGate
from napbot.dedup import DedupCache
from napbot.gateway import OutboundGateway
from napbot.handlers.base import Handler, HandlerContext
from napbot.models import (
    MESSAGE_EVENT_TYPES,
    Event,
    GroupMessage,
    Heartbeat,
    Lifecycle,
    PrivateMessage,
    Unknown,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_BAN_NOTICE = "you are banned server"


class Dispatcher:
    """Routes events to every responder whose predicate matches.

    Responders run in registration order and independently: one event can
    trigger several of them. Banned senders get the ban notice instead,
    once per matching responder.
    """

    def __init__(
        self,
        gateway: OutboundGateway,
        dedup: DedupCache,
        ban_gate: BanGate,
        ban_notice: str = DEFAULT_BAN_NOTICE,
    ) -> None:
        self._ctx = HandlerContext(gateway=gateway)
        self._dedup = dedup
        self._ban_gate = ban_gate
        self._ban_notice = ban_notice
        self._handlers: list[Handler] = []

    def register(self, handler: Handler) -> None:
        self._handlers.append(handler)
        LOGGER.debug("Registered handler %s", handler.name)

    @property
    def handlers(self) -> tuple[Handler, ...]:
        return tuple(self._handlers)

    async def dispatch(self, event: Event) -> None:
        """Run all matching responders for one event.

        An exception from a responder stops the remaining responders for
        this event only. The event id is recorded as seen afterwards,
        whatever the outcome.
        """
        dedup_id = event.dedup_id if isinstance(event, MESSAGE_EVENT_TYPES) else None
        if self._dedup.seen(dedup_id):
            LOGGER.debug("Skipping already processed message %s", dedup_id)
            return

        _log_event(event)
        try:
            for handler in self._handlers:
                try:
                    await self._run_handler(handler, event)
                except Exception:  # noqa: BLE001
                    LOGGER.exception(
                        "Handler %s failed; skipping remaining handlers for this event",
                        handler.name,
                    )
                    break
        finally:
            self._dedup.record(dedup_id)

    async def _run_handler(self, handler: Handler, event: Event) -> None:
        if not handler.matches(event):
            return

        sender_id = event.sender_id if isinstance(event, MESSAGE_EVENT_TYPES) else 0
        if self._ban_gate.is_banned(sender_id):
            LOGGER.warning("Banned user %s triggered %s; sending ban notice", sender_id, handler.name)
            await self._ctx.reply(event, self._ban_notice)
            return

        if handler.rate_limiter is not None and not handler.rate_limiter.try_acquire():
            LOGGER.warning("Handler %s is rate limited; rejecting request from %s", handler.name, sender_id)
            await self._ctx.reply(event, handler.too_frequent_notice)
            return

        LOGGER.info("Handler %s accepted event from %s", handler.name, sender_id)
        await handler.execute(event, self._ctx)


def _log_event(event: Event) -> None:
    if isinstance(event, GroupMessage):
        LOGGER.info(
            "Group message: group=%s sender=%s (%s) id=%s text=%r",
            event.group_id,
            event.display_name,
            event.sender_id,
            event.message_id or "unknown",
            event.text,
        )
    elif isinstance(event, PrivateMessage):
        LOGGER.info(
            "Private message: sender=%s (%s) id=%s text=%r",
            event.display_name,
            event.sender_id,
            event.message_id or "unknown",
            event.text,
        )
    elif isinstance(event, Heartbeat):
        LOGGER.debug("Heartbeat")
    elif isinstance(event, Lifecycle):
        LOGGER.info("Lifecycle event: %s", event.subtype)
    elif isinstance(event, Unknown):
        LOGGER.debug("Unknown event (%s)", event.reason)
