"""
main.py: Entry point. Starts the wallet polling loop.

Run with:
    python -m baozi_alert.main
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from baozi_alert.agents.alert_engine import AlertEngine
from baozi_alert.agents.notifiers import AlertChannel, create_channel, dispatch_alerts
from baozi_alert.config import load_config
from baozi_alert.utils.http_client import close_client
from baozi_alert.utils.logger import setup_logging

log = logging.getLogger(__name__)


async def run_cycle(engine: AlertEngine, channel: AlertChannel) -> int:
    """
    Execute one full monitoring cycle:
    1. Check every wallet for alerts.
    2. Dispatch the alerts through the configured channel.

    Returns the number of alerts delivered.
    """
    log.info(
        "=== Cycle start: %s | %d wallet(s) ===",
        datetime.now(timezone.utc).isoformat(), len(engine.config.wallets),
    )

    alerts = await engine.check_wallets()
    if not alerts:
        log.info("No alerts to send.")
        log.info("=== Cycle complete ===")
        return 0

    log.info("Sending %d alert(s) …", len(alerts))
    sent = await dispatch_alerts(alerts, channel)
    log.info("=== Cycle complete: %d/%d alert(s) sent ===", sent, len(alerts))
    return sent


async def main() -> None:
    setup_logging()

    log.info("Loading configuration …")
    try:
        config = load_config()
    except ValueError as exc:
        log.critical("Configuration error: %s", exc)
        return

    engine = AlertEngine(config)
    channel = create_channel(config.channel)

    log.info(
        "Baozi Claim & Alert Agent started. Polling every %d minute(s) for %d wallet(s) via %s.",
        config.poll_interval_minutes, len(config.wallets), channel.name,
    )

    try:
        while True:
            try:
                await run_cycle(engine, channel)
            except Exception as exc:
                log.error("Error during cycle: %s", exc, exc_info=True)
            await asyncio.sleep(config.poll_interval_minutes * 60)
    finally:
        log.info("Shutting down ...")
        await close_client()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
