"""Application configuration."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOGGER = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Environment-driven settings validated at startup."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    napcat_ws_url: str = Field(default="ws://127.0.0.1:3001", alias="NAPCAT_WS_URL")
    napcat_api_url: str = Field(default="http://127.0.0.1:3000", alias="NAPCAT_API_URL")
    napcat_token: str = Field(..., alias="NAPCAT_TOKEN")
    reconnect_delay_ms: int = Field(default=5000, alias="RECONNECT_DELAY_MS")
    dedup_capacity: int = Field(default=1000, alias="DEDUP_CAPACITY")
    rate_limit_window_ms: int = Field(default=60000, alias="RATE_LIMIT_WINDOW_MS")
    rate_limit_max_requests: int = Field(default=10, alias="RATE_LIMIT_MAX_REQUESTS")
    # 0 keeps the plain fixed-window limiter.
    rate_limit_cooldown_ms: int = Field(default=0, alias="RATE_LIMIT_COOLDOWN_MS")
    ban_list_path: Path = Field(default=Path("ban.txt"), alias="BAN_LIST_PATH")
    ban_notice: str = Field(default="you are banned server", alias="BAN_NOTICE")
    database_path: Path = Field(default=Path("napbot.db"), alias="DATABASE_PATH")
    trigger_message: str = Field(default="oi", alias="TRIGGER_MESSAGE")
    reply_message: str = Field(default="io", alias="REPLY_MESSAGE")
    # Comma-separated display names that count as a mention of the bot.
    bot_names: str = Field(default="写了亿小时bug,wans2024", alias="BOT_NAMES")
    bot_user_id: int = Field(default=0, alias="BOT_USER_ID")
    ai_api_key: str = Field(default="", alias="AI_API_KEY")
    cloudflare_account_id: str = Field(default="", alias="CLOUDFLARE_ACCOUNT_ID")
    ai_base_url: str = Field(
        default="https://api.cloudflare.com/client/v4/accounts",
        alias="AI_BASE_URL",
    )
    ai_model: str = Field(default="@cf/meta/llama-3.1-8b-instruct", alias="AI_MODEL")
    request_timeout_seconds: float = Field(default=15.0, alias="REQUEST_TIMEOUT_SECONDS")
    ai_workers: int = Field(default=4, alias="AI_WORKERS")
    ai_queue_size: int = Field(default=32, alias="AI_QUEUE_SIZE")
    ai_task_timeout_seconds: float = Field(default=60.0, alias="AI_TASK_TIMEOUT_SECONDS")
    # Keep below AI_TASK_TIMEOUT_SECONDS.
    ai_answer_timeout_seconds: float = Field(default=45.0, alias="AI_ANSWER_TIMEOUT_SECONDS")
    server_api_url: str = Field(default="http://127.0.0.1:2000", alias="SERVER_API_URL")
    # Comma-separated group ids bridged to the game server.
    bridge_group_ids: str = Field(default="", alias="BRIDGE_GROUP_IDS")
    server_poll_interval_seconds: float = Field(default=3.0, alias="SERVER_POLL_INTERVAL_SECONDS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str = Field(default="last.log", alias="LOG_FILE")


def load_settings() -> Settings:
    """Load and validate settings."""

    return Settings()


def bot_names(settings: Settings) -> frozenset[str]:
    """Return the display names the mention trigger accepts."""

    return frozenset(n.strip() for n in settings.bot_names.split(",") if n.strip())


def bridge_group_ids(settings: Settings) -> frozenset[int]:
    """Return the group ids relayed to and from the game server.

    Blank and non-numeric entries are skipped with a warning.
    """
    ids: set[int] = set()
    for raw in settings.bridge_group_ids.split(","):
        raw = raw.strip()
        if not raw:
            continue
        if not raw.isdigit():
            LOGGER.warning("Ignoring invalid bridge group id %r", raw)
            continue
        ids.add(int(raw))
    return frozenset(ids)


def warn_on_placeholders(settings: Settings) -> None:
    """Log the optional integrations that are not configured."""

    if not settings.ai_api_key:
        LOGGER.warning("AI_API_KEY is not set; chat responders will report the service as unavailable")
    if not settings.cloudflare_account_id:
        LOGGER.warning("CLOUDFLARE_ACCOUNT_ID is not set; chat responders will report the service as unavailable")
