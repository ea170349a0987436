"""
Alert Engine: polls each monitored wallet, refreshes its cached odds
snapshot and runs the four alert detectors against the fresh data.

The detectors are plain functions of (current data, previous snapshot,
settings) so they can be exercised without any I/O.
"""
from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone

from baozi_alert.agents.market_gateway import MarketGateway
from baozi_alert.agents.wallet_cache import WalletStateCache
from baozi_alert.config import AgentConfig
from baozi_alert.models import (
    Alert,
    CachedWalletState,
    ClaimableWinnings,
    ClosingSoonAlert,
    ClosingSoonData,
    Market,
    MarketResolution,
    MarketResolvedAlert,
    OddsShiftAlert,
    OddsShiftData,
    Position,
    UnclaimedWinningsAlert,
    UnclaimedWinningsData,
)
from baozi_alert.utils.aio import gather_best_effort

log = logging.getLogger(__name__)

CLAIM_URL = "baozi.bet/my-bets"
CURRENCY = "SOL"


class AlertEngine:
    """Checks the configured wallets and returns the alerts raised this cycle."""

    def __init__(
        self,
        config: AgentConfig,
        gateway: MarketGateway | None = None,
        cache: WalletStateCache | None = None,
    ):
        self.config = config
        self.gateway = gateway if gateway is not None else MarketGateway(config.baozi_api_url)
        self.cache = cache if cache is not None else WalletStateCache()

    async def check_wallets(self) -> list[Alert]:
        """
        Check every configured wallet concurrently.

        Alerts come back grouped per wallet in configuration order. A wallet
        whose check fails contributes nothing and does not affect the others.
        """
        results = await asyncio.gather(*(self._check_isolated(w) for w in self.config.wallets))
        return [alert for wallet_alerts in results for alert in wallet_alerts]

    async def _check_isolated(self, wallet: str) -> list[Alert]:
        try:
            return await self.check_wallet(wallet)
        except Exception as exc:
            # Isolate failures: one wallet failing does not block others.
            log.error("[%s] Error checking wallet: %s", wallet, exc, exc_info=True)
            return []

    async def check_wallet(self, wallet: str) -> list[Alert]:
        """Run one poll cycle for *wallet*. Errors fetching the wallet's own data propagate."""
        settings = self.config.alerts

        async with self.cache.lock(wallet):
            previous = self.cache.get(wallet)

            positions, claimable, resolutions = await asyncio.gather(
                self.gateway.get_positions(wallet),
                self.gateway.get_claimable(wallet) if settings.claimable else _nothing(),
                self.gateway.get_resolution_status(wallet) if settings.claimable else _nothing(),
            )

            quotes = await gather_best_effort(
                (p.market_id for p in positions), self.gateway.get_quote, label="quote for market"
            )
            current_odds = {market_id: quote.odds for market_id, quote in quotes.items()}

            self.cache.put(wallet, CachedWalletState(positions=positions, odds=current_odds))

            alerts: list[Alert] = []

            if settings.claimable:
                alerts.extend(detect_market_resolved(wallet, resolutions))
                unclaimed = detect_unclaimed_winnings(wallet, claimable)
                if unclaimed:
                    alerts.append(unclaimed)

            if settings.closing_soon:
                markets = await gather_best_effort(
                    (p.market_id for p in positions), self.gateway.get_market, label="market"
                )
                alerts.extend(
                    detect_closing_soon(wallet, positions, markets, settings.closing_soon_hours)
                )

            if settings.odds_shift and previous is not None:
                alerts.extend(
                    detect_odds_shift(
                        wallet, positions, previous.odds, current_odds, settings.odds_shift_threshold
                    )
                )

        log.info("[%s] %d alert(s) this cycle.", wallet, len(alerts))
        return alerts


async def _nothing() -> list:
    return []


def detect_market_resolved(wallet: str, resolutions: list[MarketResolution]) -> list[MarketResolvedAlert]:
    """One alert per resolved market the wallet won and has not claimed yet."""
    alerts: list[MarketResolvedAlert] = []
    for resolution in resolutions:
        if not (resolution.user_won and resolution.claimable_amount > 0):
            continue
        # Only reached for winners, so "incorrectly" is informational at most.
        verdict = "correctly" if resolution.user_bet_outcome == resolution.resolved_outcome else "incorrectly"
        alerts.append(
            MarketResolvedAlert(
                wallet=wallet,
                title="Market Resolved - Claim Your Winnings!",
                message=(
                    f'Market "{resolution.market_question}" resolved {resolution.resolved_outcome_name}. '
                    f"You bet {verdict}. "
                    f"Claim {resolution.claimable_amount:.4f} {CURRENCY} at {CLAIM_URL}"
                ),
                data=resolution,
            )
        )
    return alerts


def detect_unclaimed_winnings(
    wallet: str, claimable: list[ClaimableWinnings]
) -> UnclaimedWinningsAlert | None:
    """A single aggregate alert for all unclaimed winnings, or None when there are none."""
    if not claimable:
        return None

    total = sum(c.amount for c in claimable)
    return UnclaimedWinningsAlert(
        wallet=wallet,
        title="Unclaimed Winnings Available!",
        message=(
            f"You have {total:.4f} {CURRENCY} unclaimed across {len(claimable)} market(s). "
            f"Claim at {CLAIM_URL}"
        ),
        data=UnclaimedWinningsData(total_amount=total, markets=list(claimable)),
    )


def detect_closing_soon(
    wallet: str,
    positions: list[Position],
    markets: dict[str, Market],
    window_hours: int,
    now: datetime | None = None,
) -> list[ClosingSoonAlert]:
    """
    Alert on positions whose market is still active and closes within *window_hours*.

    Parameters
    ----------
    markets : dict[str, Market]
        Market records by id. A position whose market is missing (the fetch
        failed) is skipped.
    now : datetime, optional
        Reference time, defaults to the current UTC time.
    """
    now = now or datetime.now(timezone.utc)
    window_seconds = window_hours * 3600
    alerts: list[ClosingSoonAlert] = []

    for position in positions:
        market = markets.get(position.market_id)
        if market is None:
            continue

        remaining = (market.closing_time - now).total_seconds()
        if not (0 < remaining <= window_seconds and market.status == "active"):
            continue

        hours_remaining = math.ceil(remaining / 3600)
        alerts.append(
            ClosingSoonAlert(
                wallet=wallet,
                title="Market Closing Soon!",
                message=(
                    f'Market "{market.question}" closes in {hours_remaining} hours. '
                    f"Your position: {position.amount:.4f} {CURRENCY} on {position.outcome_name} "
                    f"({position.current_odds:g}%)"
                ),
                data=ClosingSoonData(
                    market_id=market.id,
                    market_question=market.question,
                    hours_remaining=hours_remaining,
                    user_position=position,
                ),
            )
        )
    return alerts


def detect_odds_shift(
    wallet: str,
    positions: list[Position],
    old_odds: dict[str, list[float]],
    new_odds: dict[str, list[float]],
    threshold: float,
) -> list[OddsShiftAlert]:
    """
    Compare the odds of each held outcome between the previous and current cycle.

    The threshold is an absolute difference in percentage points. Markets
    missing from either snapshot, and outcomes with no previous odds (0), are
    skipped.
    """
    alerts: list[OddsShiftAlert] = []

    for position in positions:
        market_old = old_odds.get(position.market_id)
        market_new = new_odds.get(position.market_id)
        if market_old is None or market_new is None:
            continue

        old_value = _odds_at(market_old, position.outcome)
        new_value = _odds_at(market_new, position.outcome)
        if old_value == 0:
            continue

        shift = abs(new_value - old_value)
        if shift < threshold:
            continue

        direction = "up" if new_value > old_value else "down"
        log.info(
            "[%s] Odds shift on %s (%s): %.1f%% → %.1f%%",
            wallet, position.market_question, position.outcome_name, old_value, new_value,
        )
        alerts.append(
            OddsShiftAlert(
                wallet=wallet,
                title="Significant Odds Shift Detected!",
                message=(
                    f'Odds on "{position.market_question}" shifted {direction} '
                    f"from {old_value:.1f}% to {new_value:.1f}% for {position.outcome_name}. "
                    f"You hold {position.amount:.4f} {CURRENCY} on this outcome."
                ),
                data=OddsShiftData(
                    market_id=position.market_id,
                    market_question=position.market_question,
                    old_odds=old_value,
                    new_odds=new_value,
                    shift_percentage=shift,
                    direction=direction,
                    user_outcome=position.outcome,
                    user_outcome_name=position.outcome_name,
                ),
            )
        )
    return alerts


def _odds_at(odds: list[float], index: int) -> float:
    if 0 <= index < len(odds):
        return odds[index] or 0.0
    return 0.0
