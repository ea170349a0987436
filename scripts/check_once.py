"""
Run a single alert-engine cycle and print the alerts instead of sending them.

    python scripts/check_once.py <wallet> [<wallet> ...]

Falls back to WATCH_WALLETS when no wallet is given. Odds shifts need a
previous snapshot, so pass --twice to poll again after a short pause.
"""
import asyncio
import os
import sys

from baozi_alert.agents.alert_engine import AlertEngine
from baozi_alert.config import DEFAULT_API_URL, AgentConfig
from baozi_alert.utils.http_client import close_client
from baozi_alert.utils.logger import setup_logging


async def probe(wallets, twice):
    engine = AlertEngine(AgentConfig(wallets=wallets, baozi_api_url=os.getenv("BAOZI_API_URL") or DEFAULT_API_URL))
    try:
        alerts = await engine.check_wallets()
        if twice:
            await asyncio.sleep(30)
            alerts = await engine.check_wallets()
    finally:
        await close_client()

    print(f"{len(alerts)} alert(s)")
    for alert in alerts:
        print(f"[{alert.kind}] {alert.wallet}")
        print(f"  {alert.title}")
        print(f"  {alert.message}")
        print()


args = [a for a in sys.argv[1:] if a != "--twice"]
wallets = args or [w.strip() for w in os.getenv("WATCH_WALLETS", "").split(",") if w.strip()]
if not wallets:
    sys.exit("usage: check_once.py <wallet> [<wallet> ...] [--twice]")

setup_logging()
asyncio.run(probe(wallets, "--twice" in sys.argv))
