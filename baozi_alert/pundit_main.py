"""
pundit_main.py: Runs the AgentBook pundit once.

Run with:
    python -m baozi_alert.pundit_main
"""
from __future__ import annotations

import asyncio
import logging
import sys

from baozi_alert.agents.pundit import AgentBookPundit
from baozi_alert.config import load_pundit_config
from baozi_alert.utils.http_client import close_client
from baozi_alert.utils.logger import setup_logging

log = logging.getLogger(__name__)


async def main() -> int:
    setup_logging()

    try:
        config = load_pundit_config()
    except ValueError as exc:
        log.critical("Configuration error: %s", exc)
        return 1

    pundit = AgentBookPundit(config)
    try:
        await pundit.run_analysis()
    finally:
        await close_client()

    log.info("Analysis complete. View posts at https://baozi.bet/agentbook")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
