from pathlib import Path

from napbot.config import Settings, bot_names, bridge_group_ids


def _settings(**overrides: str) -> Settings:
    values = {"NAPCAT_TOKEN": "token"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_defaults():
    settings = _settings()

    assert settings.reconnect_delay_ms == 5000
    assert settings.dedup_capacity == 1000
    assert settings.rate_limit_max_requests == 10
    assert settings.rate_limit_window_ms == 60000
    assert settings.ban_list_path == Path("ban.txt")
    assert settings.ban_notice == "you are banned server"
    assert settings.log_file == "last.log"


def test_bot_names_split_and_trimmed():
    settings = _settings(BOT_NAMES=" 写了亿小时bug , wans2024,, ")

    assert bot_names(settings) == frozenset({"写了亿小时bug", "wans2024"})


def test_bridge_group_ids_skip_invalid_entries():
    settings = _settings(BRIDGE_GROUP_IDS="1055829026, 721103774,abc,,")

    assert bridge_group_ids(settings) == frozenset({1055829026, 721103774})
