"""Application entrypoint."""

from __future__ import annotations

import asyncio
import logging
import signal

from napbot.ban import BanGate
from napbot.codec import EventCodec
from napbot.config import Settings, bot_names, bridge_group_ids, load_settings, warn_on_placeholders
from napbot.db import Database
from napbot.dedup import DedupCache
from napbot.gateway import NapCatGateway
from napbot.handlers.basic import EchoHandler, HelpHandler
from napbot.handlers.chat import GroupChatHandler, PrivateChatHandler
from napbot.handlers.ledger import CheckInHandler, PointsQueryHandler, TipHandler, TipSubmissionHandler
from napbot.handlers.server import PlayerCountHandler, ServerCommandHandler
from napbot.llm.workers_ai import WorkersAIProvider
from napbot.monitor import ServerMessageMonitor
from napbot.rate_limit import build_rate_limiter
from napbot.router import Dispatcher
from napbot.supervisor import ConnectionSupervisor
from napbot.workers import BackgroundWorkers

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    """Log to the console and, if configured, to a file rewritten on every start."""

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file, mode="w", encoding="utf-8"))
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT, handlers=handlers, force=True)
    # Keep request lines out of INFO output.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_dispatcher(
    settings: Settings,
    gateway: NapCatGateway,
    db: Database,
    ban_gate: BanGate,
    workers: BackgroundWorkers,
) -> Dispatcher:
    """Create the dispatcher with every responder registered in order."""

    dispatcher = Dispatcher(
        gateway=gateway,
        dedup=DedupCache(settings.dedup_capacity),
        ban_gate=ban_gate,
        ban_notice=settings.ban_notice,
    )
    llm = WorkersAIProvider(settings)
    chat_limiter = build_rate_limiter(
        settings.rate_limit_max_requests,
        settings.rate_limit_window_ms,
        settings.rate_limit_cooldown_ms,
    )
    groups = bridge_group_ids(settings)
    if settings.ai_answer_timeout_seconds >= settings.ai_task_timeout_seconds:
        LOGGER.warning(
            "AI_ANSWER_TIMEOUT_SECONDS (%.0f) is not below AI_TASK_TIMEOUT_SECONDS (%.0f); "
            "slow model replies may be dropped without notice",
            settings.ai_answer_timeout_seconds,
            settings.ai_task_timeout_seconds,
        )

    dispatcher.register(EchoHandler(settings.trigger_message, settings.reply_message))
    dispatcher.register(PlayerCountHandler(settings.server_api_url))
    dispatcher.register(CheckInHandler(db))
    dispatcher.register(PointsQueryHandler(db))
    dispatcher.register(TipSubmissionHandler(db))
    dispatcher.register(TipHandler(db))
    dispatcher.register(HelpHandler())
    dispatcher.register(ServerCommandHandler(settings.server_api_url, groups))
    answer_timeout = settings.ai_answer_timeout_seconds
    dispatcher.register(GroupChatHandler(llm, workers, chat_limiter, answer_timeout))
    dispatcher.register(PrivateChatHandler(llm, workers, chat_limiter, answer_timeout))
    return dispatcher


async def run() -> None:
    """Initialize app layers and run until SIGINT or SIGTERM."""

    settings = load_settings()
    configure_logging(settings)
    warn_on_placeholders(settings)

    db = Database(settings.database_path)
    db.initialize()

    ban_gate = BanGate(settings.ban_list_path)
    ban_gate.initialize()

    gateway = NapCatGateway(settings.napcat_api_url, settings.napcat_token)
    workers = BackgroundWorkers(
        max_workers=settings.ai_workers,
        max_queue=settings.ai_queue_size,
        task_timeout_seconds=settings.ai_task_timeout_seconds,
    )
    dispatcher = build_dispatcher(settings, gateway, db, ban_gate, workers)
    codec = EventCodec(bot_names(settings), settings.bot_user_id)

    async def handle_frame(raw: str) -> None:
        await dispatcher.dispatch(codec.decode(raw))

    supervisor = ConnectionSupervisor(
        url=settings.napcat_ws_url,
        token=settings.napcat_token,
        on_frame=handle_frame,
        reconnect_delay_seconds=settings.reconnect_delay_ms / 1000,
    )
    monitor = ServerMessageMonitor(
        settings.server_api_url,
        gateway,
        bridge_group_ids(settings),
        poll_interval_seconds=settings.server_poll_interval_seconds,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)
    if hasattr(signal, "SIGHUP"):
        loop.add_signal_handler(signal.SIGHUP, ban_gate.reload)

    workers.start()
    monitor_task = asyncio.create_task(monitor.run_forever(), name="server-message-monitor")
    LOGGER.info("napbot starting with %d handlers", len(dispatcher.handlers))
    try:
        await supervisor.connect()
        await stop_event.wait()
    finally:
        LOGGER.info("Shutting down")
        monitor.stop()
        await supervisor.stop()
        await asyncio.gather(monitor_task, return_exceptions=True)
        await workers.stop()
        await gateway.aclose()
        LOGGER.info("napbot shutdown complete")


def main() -> None:
    """Synchronous wrapper for asyncio entrypoint."""

    asyncio.run(run())


if __name__ == "__main__":
    main()
