"""
Config loader: reads .env and the process environment into typed config objects.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Union

from dotenv import load_dotenv

# Load .env from the project root (one level above baozi_alert/)
_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_ROOT / ".env")

DEFAULT_API_URL = "https://baozi.bet/api"

ChannelType = Literal["telegram", "discord", "webhook"]


@dataclass
class AlertSettings:
    claimable: bool = True
    closing_soon: bool = True
    closing_soon_hours: int = 6
    odds_shift: bool = True
    odds_shift_threshold: int = 15  # percentage points


@dataclass
class TelegramSettings:
    bot_token: str
    chat_id: str


@dataclass
class DiscordSettings:
    webhook_url: str


@dataclass
class WebhookSettings:
    url: str
    headers: dict[str, str] | None = None


@dataclass
class ChannelConfig:
    type: ChannelType
    settings: Union[TelegramSettings, DiscordSettings, WebhookSettings]


@dataclass
class AgentConfig:
    wallets: list[str]
    alerts: AlertSettings = field(default_factory=AlertSettings)
    channel: ChannelConfig | None = None
    poll_interval_minutes: int = 15
    baozi_api_url: str = DEFAULT_API_URL


@dataclass
class PunditConfig:
    wallet_address: str
    private_key: str = field(repr=False)
    baozi_api_url: str = DEFAULT_API_URL
    post_cooldown_minutes: int = 30
    comment_cooldown_minutes: int = 60


def _flag(name: str) -> bool:
    """Alert flags are on unless explicitly set to 'false'."""
    return os.getenv(name) != "false"


def _int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _load_channel() -> ChannelConfig:
    channel_type = os.getenv("NOTIFICATION_CHANNEL", "webhook")

    if channel_type == "telegram":
        token = os.getenv("TELEGRAM_BOT_TOKEN", "")
        chat_id = os.getenv("TELEGRAM_CHAT_ID", "")
        if not token or not chat_id:
            raise ValueError(
                "TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID are required for Telegram notifications."
            )
        return ChannelConfig(type="telegram", settings=TelegramSettings(bot_token=token, chat_id=chat_id))

    if channel_type == "discord":
        webhook_url = os.getenv("DISCORD_WEBHOOK_URL", "")
        if not webhook_url:
            raise ValueError("DISCORD_WEBHOOK_URL is required for Discord notifications.")
        return ChannelConfig(type="discord", settings=DiscordSettings(webhook_url=webhook_url))

    # Anything else falls back to the generic webhook
    url = os.getenv("WEBHOOK_URL", "")
    if not url:
        raise ValueError("WEBHOOK_URL is required for webhook notifications.")
    raw_headers = os.getenv("WEBHOOK_HEADERS", "")
    headers = None
    if raw_headers:
        try:
            headers = json.loads(raw_headers)
        except ValueError as exc:
            raise ValueError(f"WEBHOOK_HEADERS is not valid JSON: {exc}") from exc
        if not isinstance(headers, dict):
            raise ValueError("WEBHOOK_HEADERS must be a JSON object.")
    return ChannelConfig(type="webhook", settings=WebhookSettings(url=url, headers=headers))


def load_config() -> AgentConfig:
    """Load and validate the alert agent configuration from the environment."""
    wallets = [w.strip() for w in os.getenv("WATCH_WALLETS", "").split(",") if w.strip()]
    if not wallets:
        raise ValueError(
            "WATCH_WALLETS is not set (comma-separated list). "
            "Copy .env.example to .env and fill in the wallets to monitor."
        )

    alerts = AlertSettings(
        claimable=_flag("ALERT_CLAIMABLE"),
        closing_soon=_flag("ALERT_CLOSING_SOON"),
        closing_soon_hours=_int("ALERT_CLOSING_HOURS", 6),
        odds_shift=_flag("ALERT_ODDS_SHIFT"),
        odds_shift_threshold=_int("ALERT_ODDS_THRESHOLD", 15),
    )

    return AgentConfig(
        wallets=wallets,
        alerts=alerts,
        channel=_load_channel(),
        poll_interval_minutes=_int("POLL_INTERVAL_MINUTES", 15),
        baozi_api_url=os.getenv("BAOZI_API_URL") or DEFAULT_API_URL,
    )


def load_pundit_config() -> PunditConfig:
    """Load the AgentBook pundit configuration from the environment."""
    wallet_address = os.getenv("PUNDIT_WALLET_ADDRESS", "")
    private_key = os.getenv("PUNDIT_PRIVATE_KEY", "")
    if not wallet_address or not private_key:
        raise ValueError("PUNDIT_WALLET_ADDRESS and PUNDIT_PRIVATE_KEY are required.")

    return PunditConfig(
        wallet_address=wallet_address,
        private_key=private_key,
        baozi_api_url=os.getenv("BAOZI_API_URL") or DEFAULT_API_URL,
        post_cooldown_minutes=_int("PUNDIT_POST_COOLDOWN", 30),
        comment_cooldown_minutes=_int("PUNDIT_COMMENT_COOLDOWN", 60),
    )
