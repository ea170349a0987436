"""
Market Data Gateway: fetches positions, claimable winnings, resolutions,
market details and quotes from the Baozi REST API.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from baozi_alert.config import DEFAULT_API_URL
from baozi_alert.models import ClaimableWinnings, Market, MarketResolution, Position, Quote
from baozi_alert.utils.http_client import get_json

log = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    """The API answered 2xx but the body did not have the expected shape."""


class MarketGateway:
    """Thin async client over the Baozi API. Transport errors propagate to the caller."""

    def __init__(self, base_url: str = DEFAULT_API_URL):
        self.base_url = base_url.rstrip("/")

    async def list_markets(
        self,
        status: str | None = None,
        layer: str | None = None,
        limit: int | None = None,
    ) -> list[Market]:
        params: dict[str, str] = {}
        if status and status != "all":
            params["status"] = status
        if layer and layer != "all":
            params["layer"] = layer
        if limit:
            params["limit"] = str(limit)

        raw = await get_json(f"{self.base_url}/markets", params=params or None)
        return [parse_market(m) for m in _items(raw, "markets")]

    async def get_positions(self, wallet: str) -> list[Position]:
        """
        Fetch all positions held by *wallet*.

        Parameters
        ----------
        wallet : str
            The wallet address being monitored.

        Returns
        -------
        list[Position]
            Parsed positions. Empty list if the wallet holds nothing.
        """
        log.debug("Fetching positions for %s …", wallet)
        raw = await get_json(f"{self.base_url}/positions/{wallet}")
        positions = [parse_position(p) for p in _items(raw, "positions")]
        log.info("Fetched %d position(s) for %s", len(positions), wallet)
        return positions

    async def get_claimable(self, wallet: str) -> list[ClaimableWinnings]:
        raw = await get_json(f"{self.base_url}/claimable/{wallet}")
        return [parse_claimable(c) for c in _items(raw, "claimable")]

    async def get_resolution_status(self, wallet: str) -> list[MarketResolution]:
        raw = await get_json(f"{self.base_url}/resolutions/{wallet}")
        return [parse_resolution(r) for r in _items(raw, "resolutions")]

    async def get_market(self, market_id: str) -> Market:
        raw = await get_json(f"{self.base_url}/markets/{market_id}")
        if not isinstance(raw, dict):
            raise GatewayError(f"Unexpected market payload for {market_id}: {raw!r}")
        return parse_market(raw)

    async def get_quote(self, market_id: str) -> Quote:
        raw = await get_json(f"{self.base_url}/quote/{market_id}")
        if not isinstance(raw, dict) or not isinstance(raw.get("odds"), list):
            raise GatewayError(f"Unexpected quote payload for {market_id}: {raw!r}")
        return Quote(
            odds=[float(o or 0) for o in raw["odds"]],
            pool=float(raw.get("pool") or 0),
        )


def _items(raw: dict | list, key: str) -> list[dict]:
    """Pull the list stored under *key* out of a response body."""
    if isinstance(raw, dict) and isinstance(raw.get(key), list):
        return raw[key]
    raise GatewayError(f"Response is missing the '{key}' list")


def parse_market(item: dict) -> Market:
    """Convert a raw API market dict into a Market dataclass."""
    outcomes = item.get("outcomes")
    odds = item.get("odds")
    resolution = item.get("resolution")
    return Market(
        id=str(item.get("id") or item.get("pda") or ""),
        pda=str(item.get("pda") or item.get("id") or ""),
        question=str(item.get("question") or ""),
        status=str(item.get("status") or "active"),
        layer=str(item.get("layer") or "lab"),
        outcomes=[str(o) for o in outcomes] if isinstance(outcomes, list) else ["Yes", "No"],
        odds=[float(o or 0) for o in odds] if isinstance(odds, list) else [50.0, 50.0],
        pool=float(item.get("pool") or item.get("totalPool") or 0),
        closing_time=parse_timestamp(item.get("closingTime") or item.get("closing_time")),
        resolution=str(resolution) if resolution else None,
    )


def parse_position(item: dict) -> Position:
    return Position(
        market_id=str(item.get("marketId") or item.get("market_id") or ""),
        market_question=str(item.get("marketQuestion") or item.get("market_question") or ""),
        outcome=int(item.get("outcome") or 0),
        outcome_name=str(item.get("outcomeName") or item.get("outcome_name") or ""),
        amount=float(item.get("amount") or item.get("stake") or 0),
        potential_winnings=float(item.get("potentialWinnings") or item.get("potential_winnings") or 0),
        current_odds=float(item.get("currentOdds") or item.get("current_odds") or 50),
    )


def parse_claimable(item: dict) -> ClaimableWinnings:
    return ClaimableWinnings(
        market_id=str(item.get("marketId") or item.get("market_id") or ""),
        market_question=str(item.get("marketQuestion") or item.get("market_question") or ""),
        winning_outcome=int(item.get("winningOutcome") or item.get("winning_outcome") or 0),
        winning_outcome_name=str(item.get("winningOutcomeName") or item.get("winning_outcome_name") or ""),
        amount=float(item.get("amount") or item.get("winnings") or 0),
    )


def parse_resolution(item: dict) -> MarketResolution:
    return MarketResolution(
        market_id=str(item.get("marketId") or item.get("market_id") or ""),
        market_question=str(item.get("marketQuestion") or item.get("market_question") or ""),
        resolved_outcome=int(item.get("resolvedOutcome") or item.get("resolved_outcome") or 0),
        resolved_outcome_name=str(item.get("resolvedOutcomeName") or item.get("resolved_outcome_name") or ""),
        user_bet_outcome=int(item.get("userBetOutcome") or item.get("user_bet_outcome") or 0),
        user_won=bool(item.get("userWon") or item.get("user_won") or False),
        claimable_amount=float(item.get("claimableAmount") or item.get("claimable_amount") or 0),
    )


def parse_timestamp(value) -> datetime:
    """
    Parse an ISO-8601 string or epoch number into an aware UTC datetime.

    A missing value means "now", matching how the API treats markets without
    a published closing time.
    """
    if value is None or value == "":
        return datetime.now(timezone.utc)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e12 else value  # epoch millis
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
