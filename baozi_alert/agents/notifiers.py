"""
Notification Dispatch: delivers alerts through Telegram, a Discord webhook
or a generic JSON webhook.
"""
from __future__ import annotations

import html
import logging
from abc import ABC, abstractmethod

from baozi_alert.config import ChannelConfig, DiscordSettings, TelegramSettings, WebhookSettings
from baozi_alert.models import Alert, alert_to_dict
from baozi_alert.utils.http_client import post_json

log = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"

_EMOJI = {
    "market_resolved": "🎉",
    "unclaimed_winnings": "💰",
    "closing_soon": "⏰",
    "odds_shift": "📊",
}

_DISCORD_COLORS = {
    "market_resolved": 0x00FF00,     # green
    "unclaimed_winnings": 0xFFD700,  # gold
    "closing_soon": 0xFFA500,        # orange
    "odds_shift": 0x3498DB,          # blue
}


class DeliveryError(RuntimeError):
    """The channel accepted the request but refused the message."""


def short_wallet(wallet: str) -> str:
    """Keep the first and last eight characters of *wallet*."""
    return f"{wallet[:8]}...{wallet[-8:]}"


def format_telegram_message(alert: Alert) -> str:
    emoji = _EMOJI.get(alert.kind, "ℹ️")
    timestamp = alert.timestamp.strftime("%Y-%m-%d %H:%M:%S")
    return (
        f"<b>{emoji} {html.escape(alert.title)}</b>\n\n"
        f"{html.escape(alert.message)}\n\n"
        f"<i>Wallet: {html.escape(short_wallet(alert.wallet))}</i>\n"
        f"<i>Time: {timestamp} UTC</i>"
    )


def format_discord_embed(alert: Alert) -> dict:
    return {
        "title": alert.title,
        "description": alert.message,
        "color": _DISCORD_COLORS.get(alert.kind, 0x95A5A6),
        "timestamp": alert.timestamp.isoformat(),
        "footer": {"text": f"Wallet: {short_wallet(alert.wallet)}"},
    }


class AlertChannel(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def send(self, alert: Alert) -> None:
        """Deliver *alert*; raise on failure."""


class TelegramChannel(AlertChannel):
    def __init__(self, bot_token: str, chat_id: str):
        self.bot_token = bot_token
        self.chat_id = chat_id

    @property
    def name(self) -> str:
        return "telegram"

    async def send(self, alert: Alert) -> None:
        url = f"{TELEGRAM_API_BASE}/bot{self.bot_token}/sendMessage"
        result = await post_json(url, {
            "chat_id": self.chat_id,
            "text": format_telegram_message(alert),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        })
        if not result.get("ok", False):
            raise DeliveryError(f"Telegram rejected message: {result}")


class DiscordChannel(AlertChannel):
    def __init__(self, webhook_url: str):
        self.webhook_url = webhook_url

    @property
    def name(self) -> str:
        return "discord"

    async def send(self, alert: Alert) -> None:
        await post_json(self.webhook_url, {"embeds": [format_discord_embed(alert)]})


class WebhookChannel(AlertChannel):
    def __init__(self, url: str, headers: dict[str, str] | None = None):
        self.url = url
        self.headers = headers or {"Content-Type": "application/json"}

    @property
    def name(self) -> str:
        return "webhook"

    async def send(self, alert: Alert) -> None:
        await post_json(self.url, alert_to_dict(alert), headers=self.headers)


def create_channel(channel: ChannelConfig) -> AlertChannel:
    """Build the notification channel described by *channel*."""
    settings = channel.settings
    if channel.type == "telegram" and isinstance(settings, TelegramSettings):
        return TelegramChannel(settings.bot_token, settings.chat_id)
    if channel.type == "discord" and isinstance(settings, DiscordSettings):
        return DiscordChannel(settings.webhook_url)
    if channel.type == "webhook" and isinstance(settings, WebhookSettings):
        return WebhookChannel(settings.url, settings.headers)
    raise ValueError(f"Unknown notification channel type: {channel.type}")


async def dispatch_alerts(alerts: list[Alert], channel: AlertChannel) -> int:
    """
    Send every alert through *channel*, one at a time.

    A failed send is logged and does not stop the rest of the batch.
    Returns the count of successfully sent alerts.
    """
    sent = 0
    for alert in alerts:
        try:
            await channel.send(alert)
        except Exception as exc:
            log.error("Failed to send %s alert via %s: %s", alert.kind, channel.name, exc)
            continue
        sent += 1
        log.info("Sent via %s: %s (wallet: %s)", channel.name, alert.title, alert.wallet)
    return sent
