"""
AgentBook Pundit: turns active market data into short commentary and posts
it to the AgentBook feed and to individual market comment threads.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Literal

from baozi_alert.agents.market_gateway import MarketGateway
from baozi_alert.config import PunditConfig
from baozi_alert.models import Market
from baozi_alert.utils.http_client import post_json

log = logging.getLogger(__name__)

MAX_POST_CHARS = 2000
MAX_COMMENT_CHARS = 500
HIGH_VOLUME_POOL = 5.0  # SOL

Confidence = Literal["high", "medium", "low"]

_CATEGORY_KEYWORDS = [
    ("crypto", ("btc", "eth", "sol", "price", "$")),
    ("sports", ("super bowl", "ufc", "nba", "world cup")),
    ("politics", ("election", "trump", "biden", "vote")),
    ("entertainment", ("grammy", "oscar", "movie", "album")),
]


@dataclass
class MarketAnalysis:
    market: Market
    insight: str
    confidence: Confidence
    category: str


def hmac_signer(private_key: str) -> Callable[[str], str]:
    """Sign messages with HMAC-SHA256 keyed by *private_key* (base64 output)."""
    key = private_key.encode("utf-8")

    def sign(message: str) -> str:
        digest = hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    return sign


def detect_category(question: str) -> str:
    q = question.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(k in q for k in keywords):
            return category
    return "general"


def _favorite(market: Market) -> tuple[str, float] | None:
    if not market.odds:
        return None
    index = market.odds.index(max(market.odds))
    name = market.outcomes[index] if index < len(market.outcomes) else f"Outcome {index}"
    return name, market.odds[index]


def generate_insight(
    market: Market,
    context: Literal["trending", "closing"],
    now: datetime | None = None,
) -> MarketAnalysis | None:
    """Build a one-line take on *market*, or None when it has no odds to talk about."""
    favorite = _favorite(market)
    if favorite is None:
        return None
    name, odds = favorite
    spread = odds - min(market.odds)

    confidence: Confidence = "medium"
    if context == "trending":
        if market.pool > 50:
            insight = (
                f"High volume market: {market.pool:.1f} SOL pooled. "
                f"{name} is the favorite at {odds:g}%. "
                f"{'Strong consensus' if spread > 30 else 'Tight race'}."
            )
            confidence = "high" if spread > 30 else "medium"
        else:
            insight = f"Active market with {market.pool:.1f} SOL volume. {name} leading at {odds:g}%."
    else:
        now = now or datetime.now(timezone.utc)
        hours = math.ceil((market.closing_time - now).total_seconds() / 3600)
        insight = f"Closing in {hours}h: {market.question} - {name} at {odds:g}%. Last chance to bet."
        confidence = "high"

    return MarketAnalysis(
        market=market,
        insight=insight,
        confidence=confidence,
        category=detect_category(market.question),
    )


def analyze_markets(markets: list[Market], now: datetime | None = None) -> list[MarketAnalysis]:
    """Top five markets by pool as trending takes, then the three soonest to close."""
    now = now or datetime.now(timezone.utc)
    trending = sorted(markets, key=lambda m: m.pool, reverse=True)[:5]
    closing = sorted((m for m in markets if m.closing_time > now), key=lambda m: m.closing_time)[:3]

    analyses: list[MarketAnalysis] = []
    for market in trending:
        analysis = generate_insight(market, "trending", now)
        if analysis:
            analyses.append(analysis)
    for market in closing:
        analysis = generate_insight(market, "closing", now)
        if analysis:
            analyses.append(analysis)
    return analyses


class AgentBookPundit:
    def __init__(
        self,
        config: PunditConfig,
        gateway: MarketGateway | None = None,
        signer: Callable[[str], str] | None = None,
    ):
        self.config = config
        self.base_url = config.baozi_api_url.rstrip("/")
        self.gateway = gateway or MarketGateway(config.baozi_api_url)
        self.signer = signer or hmac_signer(config.private_key)
        self.last_post_time: datetime | None = None
        self.last_comment_times: dict[str, datetime] = {}

    async def run_analysis(self) -> None:
        """Fetch active markets, post the top takes and comment on busy markets."""
        log.info("Running market analysis …")
        try:
            markets = await self.gateway.list_markets(status="active", limit=20)
            if not markets:
                log.info("No active markets found.")
                return

            for analysis in analyze_markets(markets)[:2]:
                await self.post_to_agentbook(analysis)

            for market in [m for m in markets if m.pool > HIGH_VOLUME_POOL][:2]:
                await self.comment_on_market(market)
        except Exception as exc:
            log.error("Error during analysis: %s", exc, exc_info=True)

    async def post_to_agentbook(self, analysis: MarketAnalysis) -> bool:
        """Post *analysis* to the AgentBook feed unless the post cooldown is active."""
        now = datetime.now(timezone.utc)
        if self.last_post_time:
            elapsed = (now - self.last_post_time).total_seconds() / 60
            if elapsed < self.config.post_cooldown_minutes:
                log.info(
                    "Skipping post: cooldown (%dm remaining)",
                    math.ceil(self.config.post_cooldown_minutes - elapsed),
                )
                return False

        market = analysis.market
        content = f"{analysis.insight} Pool: {market.pool:.1f} SOL. Category: {analysis.category}."
        try:
            await post_json(f"{self.base_url}/agentbook/posts", {
                "walletAddress": self.config.wallet_address,
                "content": content[:MAX_POST_CHARS],
                "marketPda": market.pda,
            })
        except Exception as exc:
            log.error("Failed to post to AgentBook: %s", exc)
            return False

        self.last_post_time = datetime.now(timezone.utc)
        log.info("Posted to AgentBook: %s", market.question[:50])
        return True

    async def comment_on_market(self, market: Market) -> bool:
        """Leave a signed comment on *market* unless it was commented on recently."""
        now = datetime.now(timezone.utc)
        last = self.last_comment_times.get(market.pda)
        if last and (now - last).total_seconds() / 60 < self.config.comment_cooldown_minutes:
            return False

        favorite = _favorite(market)
        if favorite is None:
            return False
        name, odds = favorite

        content = (
            f"{name} leading at {odds:g}% with {market.pool:.1f} SOL pooled. "
            f"{'Strong favorite' if odds > 60 else 'Competitive market'}."
        )[:MAX_COMMENT_CHARS]
        message = json.dumps({"marketPda": market.pda, "content": content}, separators=(",", ":"))

        try:
            await post_json(
                f"{self.base_url}/markets/{market.pda}/comments",
                {"content": content},
                headers={
                    "Content-Type": "application/json",
                    "x-wallet-address": self.config.wallet_address,
                    "x-signature": self.signer(message),
                    "x-message": message,
                },
            )
        except Exception as exc:
            log.error("Failed to comment on %s: %s", market.pda, exc)
            return False

        self.last_comment_times[market.pda] = datetime.now(timezone.utc)
        log.info("Commented on market: %s", market.question[:40])
        return True
