"""
Tests for the Alert Engine and its detectors.

Run with:  pytest tests/test_alert_engine.py
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from baozi_alert.agents.alert_engine import (
    AlertEngine,
    detect_closing_soon,
    detect_market_resolved,
    detect_odds_shift,
    detect_unclaimed_winnings,
)
from baozi_alert.agents.market_gateway import MarketGateway
from baozi_alert.agents.wallet_cache import WalletStateCache
from baozi_alert.config import AgentConfig, AlertSettings
from baozi_alert.models import (
    CachedWalletState,
    ClaimableWinnings,
    Market,
    MarketResolution,
    Position,
    Quote,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _position(market_id: str = "m1", outcome: int = 0, odds: float = 50.0, amount: float = 1.5) -> Position:
    return Position(
        market_id=market_id,
        market_question=f"Question for {market_id}?",
        outcome=outcome,
        outcome_name="Yes" if outcome == 0 else "No",
        amount=amount,
        potential_winnings=amount * 2,
        current_odds=odds,
    )


def _market(market_id: str = "m1", status: str = "active", closes_in: timedelta = timedelta(hours=2)) -> Market:
    return Market(
        id=market_id,
        pda=f"pda-{market_id}",
        question=f"Question for {market_id}?",
        status=status,
        layer="lab",
        outcomes=["Yes", "No"],
        odds=[50.0, 50.0],
        pool=12.0,
        closing_time=datetime.now(timezone.utc) + closes_in,
    )


def _claimable(amount: float, market_id: str = "m1") -> ClaimableWinnings:
    return ClaimableWinnings(
        market_id=market_id,
        market_question="Will BTC hit $120K?",
        winning_outcome=0,
        winning_outcome_name="Yes",
        amount=amount,
    )


def _resolution(user_won: bool = True, claimable_amount: float = 5.0) -> MarketResolution:
    return MarketResolution(
        market_id="m1",
        market_question="Will SOL hit $300?",
        resolved_outcome=0,
        resolved_outcome_name="Yes",
        user_bet_outcome=0,
        user_won=user_won,
        claimable_amount=claimable_amount,
    )


def _gateway(
    positions: list[Position] | None = None,
    claimable: list[ClaimableWinnings] | None = None,
    resolutions: list[MarketResolution] | None = None,
) -> MagicMock:
    gateway = MagicMock()
    gateway.get_positions = AsyncMock(return_value=positions or [])
    gateway.get_claimable = AsyncMock(return_value=claimable or [])
    gateway.get_resolution_status = AsyncMock(return_value=resolutions or [])
    gateway.get_quote = AsyncMock(return_value=Quote(odds=[50.0, 50.0], pool=10.0))
    gateway.get_market = AsyncMock(side_effect=lambda market_id: _market(market_id, closes_in=timedelta(days=3)))
    return gateway


def _config(wallets: list[str] | None = None, **alerts) -> AgentConfig:
    return AgentConfig(wallets=wallets or ["wallet123"], alerts=AlertSettings(**alerts))


# ---------------------------------------------------------------------------
# Detectors (no I/O)
# ---------------------------------------------------------------------------

class TestDetectMarketResolved:
    def test_won_with_claimable_amount(self):
        alerts = detect_market_resolved("w", [_resolution(user_won=True, claimable_amount=5.0)])
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.kind == "market_resolved"
        assert alert.title == "Market Resolved - Claim Your Winnings!"
        assert '"Will SOL hit $300?" resolved Yes' in alert.message
        assert "You bet correctly" in alert.message
        assert "5.0000 SOL" in alert.message
        assert alert.data.claimable_amount == 5.0

    def test_lost_is_ignored_regardless_of_amount(self):
        assert detect_market_resolved("w", [_resolution(user_won=False, claimable_amount=5.0)]) == []

    def test_already_claimed_is_ignored(self):
        assert detect_market_resolved("w", [_resolution(user_won=True, claimable_amount=0.0)]) == []

    def test_mismatched_outcome_reports_incorrectly(self):
        resolution = _resolution()
        resolution.user_bet_outcome = 1
        alerts = detect_market_resolved("w", [resolution])
        assert "You bet incorrectly" in alerts[0].message


class TestDetectUnclaimedWinnings:
    def test_empty_list_gives_nothing(self):
        assert detect_unclaimed_winnings("w", []) is None

    def test_single_aggregate_alert(self):
        alert = detect_unclaimed_winnings("w", [_claimable(2.5, "m1"), _claimable(1.0, "m2")])
        assert alert is not None
        assert alert.kind == "unclaimed_winnings"
        assert alert.data.total_amount == pytest.approx(3.5)
        assert len(alert.data.markets) == 2
        assert "3.5000 SOL" in alert.message
        assert "2 market(s)" in alert.message


class TestDetectClosingSoon:
    def test_active_market_inside_window(self):
        market = _market(closes_in=timedelta(hours=2))
        market.closing_time = NOW + timedelta(hours=1, minutes=10)
        alerts = detect_closing_soon("w", [_position(odds=62.5)], {"m1": market}, 6, now=NOW)
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.data.hours_remaining == 2  # rounded up
        assert "closes in 2 hours" in alert.message
        assert "1.5000 SOL on Yes (62.5%)" in alert.message
        assert alert.data.user_position.market_id == "m1"

    def test_closed_market_is_excluded(self):
        market = _market(status="closed")
        market.closing_time = NOW + timedelta(hours=2)
        assert detect_closing_soon("w", [_position()], {"m1": market}, 6, now=NOW) == []

    def test_outside_window(self):
        market = _market()
        market.closing_time = NOW + timedelta(hours=7)
        assert detect_closing_soon("w", [_position()], {"m1": market}, 6, now=NOW) == []

    def test_already_past_closing_time(self):
        market = _market()
        market.closing_time = NOW - timedelta(minutes=1)
        assert detect_closing_soon("w", [_position()], {"m1": market}, 6, now=NOW) == []

    def test_exactly_at_window_edge(self):
        market = _market()
        market.closing_time = NOW + timedelta(hours=6)
        alerts = detect_closing_soon("w", [_position()], {"m1": market}, 6, now=NOW)
        assert [a.data.hours_remaining for a in alerts] == [6]

    def test_missing_market_is_skipped(self):
        assert detect_closing_soon("w", [_position("m2")], {}, 6, now=NOW) == []


class TestDetectOddsShift:
    def test_shift_up_over_threshold(self):
        alerts = detect_odds_shift("w", [_position()], {"m1": [50, 50]}, {"m1": [70, 30]}, 15)
        assert len(alerts) == 1
        data = alerts[0].data
        assert data.direction == "up"
        assert data.old_odds == 50.0
        assert data.new_odds == 70.0
        assert data.shift_percentage == 20
        assert "shifted up from 50.0% to 70.0% for Yes" in alerts[0].message
        assert "You hold 1.5000 SOL" in alerts[0].message

    def test_shift_below_threshold(self):
        assert detect_odds_shift("w", [_position()], {"m1": [50, 50]}, {"m1": [70, 30]}, 25) == []

    def test_shift_down(self):
        alerts = detect_odds_shift("w", [_position(outcome=0)], {"m1": [70, 30]}, {"m1": [40, 60]}, 15)
        assert alerts[0].data.direction == "down"

    def test_uses_position_outcome_index(self):
        alerts = detect_odds_shift("w", [_position(outcome=1)], {"m1": [50, 50]}, {"m1": [70, 30]}, 15)
        assert alerts[0].data.old_odds == 50
        assert alerts[0].data.new_odds == 30
        assert alerts[0].data.user_outcome_name == "No"

    def test_zero_baseline_is_skipped(self):
        assert detect_odds_shift("w", [_position()], {"m1": [0, 100]}, {"m1": [80, 20]}, 15) == []

    def test_market_missing_from_either_snapshot(self):
        assert detect_odds_shift("w", [_position()], {}, {"m1": [80, 20]}, 15) == []
        assert detect_odds_shift("w", [_position()], {"m1": [50, 50]}, {}, 15) == []

    def test_missing_outcome_index_counts_as_zero(self):
        alerts = detect_odds_shift("w", [_position(outcome=1)], {"m1": [50, 50]}, {"m1": [50]}, 15)
        assert alerts[0].data.new_odds == 0
        assert alerts[0].data.direction == "down"


# ---------------------------------------------------------------------------
# Engine orchestration (mocked gateway)
# ---------------------------------------------------------------------------

class TestCheckWallets:
    @pytest.mark.asyncio
    async def test_no_alerts_when_nothing_happens(self):
        engine = AlertEngine(_config(), gateway=_gateway())
        assert await engine.check_wallets() == []

    @pytest.mark.asyncio
    async def test_all_flags_disabled_gives_no_alerts(self):
        gateway = _gateway(
            positions=[_position()],
            claimable=[_claimable(2.5)],
            resolutions=[_resolution()],
        )
        gateway.get_market = AsyncMock(return_value=_market(closes_in=timedelta(hours=1)))
        engine = AlertEngine(
            _config(claimable=False, closing_soon=False, odds_shift=False), gateway=gateway
        )
        assert await engine.check_wallets() == []
        assert await engine.check_wallets() == []
        gateway.get_claimable.assert_not_awaited()
        gateway.get_resolution_status.assert_not_awaited()
        gateway.get_market.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unclaimed_winnings(self):
        gateway = _gateway(claimable=[_claimable(2.5), _claimable(1.0, "m2")])
        alerts = await AlertEngine(_config(), gateway=gateway).check_wallets()
        assert len(alerts) == 1
        assert alerts[0].kind == "unclaimed_winnings"
        assert alerts[0].title == "Unclaimed Winnings Available!"
        assert alerts[0].wallet == "wallet123"

    @pytest.mark.asyncio
    async def test_market_resolved(self):
        gateway = _gateway(resolutions=[_resolution()])
        alerts = await AlertEngine(_config(), gateway=gateway).check_wallets()
        assert [a.kind for a in alerts] == ["market_resolved"]

    @pytest.mark.asyncio
    async def test_odds_shift_needs_previous_cycle(self):
        gateway = _gateway(positions=[_position()])
        gateway.get_quote = AsyncMock(side_effect=[
            Quote(odds=[50.0, 50.0], pool=10.0),
            Quote(odds=[70.0, 30.0], pool=12.0),
        ])
        engine = AlertEngine(_config(closing_soon=False), gateway=gateway)

        first = await engine.check_wallets()
        assert first == []

        second = await engine.check_wallets()
        assert len(second) == 1
        assert second[0].kind == "odds_shift"
        assert second[0].data.old_odds == 50.0
        assert second[0].data.new_odds == 70.0

    @pytest.mark.asyncio
    async def test_null_odds_entry_keeps_market_in_snapshot(self):
        gateway = _gateway(positions=[_position("m1", outcome=1)])
        gateway.get_quote = MarketGateway("https://api.test").get_quote
        responses = AsyncMock(side_effect=[
            {"odds": [50, 50], "pool": 4},
            {"odds": [None, 80], "pool": 4},
        ])
        engine = AlertEngine(_config(closing_soon=False), gateway=gateway)

        with patch("baozi_alert.agents.market_gateway.get_json", new=responses):
            assert await engine.check_wallets() == []
            second = await engine.check_wallets()

        assert engine.cache.get("wallet123").odds == {"m1": [0.0, 80.0]}
        assert [a.kind for a in second] == ["odds_shift"]
        assert second[0].data.old_odds == 50.0
        assert second[0].data.new_odds == 80.0

    @pytest.mark.asyncio
    async def test_overlapping_checks_of_same_wallet_run_in_turn(self):
        gateway = _gateway(positions=[_position()])
        odds = iter([[50.0, 50.0], [70.0, 30.0]])

        async def slow_quote(market_id):
            await asyncio.sleep(0.01)
            return Quote(odds=next(odds), pool=10.0)

        gateway.get_quote = AsyncMock(side_effect=slow_quote)
        engine = AlertEngine(_config(closing_soon=False), gateway=gateway)

        first, second = await asyncio.gather(engine.check_wallet("w"), engine.check_wallet("w"))

        assert first == []
        assert [a.kind for a in second] == ["odds_shift"]
        assert engine.cache.get("w").odds == {"m1": [70.0, 30.0]}

    @pytest.mark.asyncio
    async def test_first_check_of_wallet_never_reports_shift(self):
        cache = WalletStateCache()
        cache.put("other-wallet", CachedWalletState(positions=[], odds={"m1": [5.0, 95.0]}))
        gateway = _gateway(positions=[_position()])
        gateway.get_quote = AsyncMock(return_value=Quote(odds=[95.0, 5.0], pool=1.0))
        engine = AlertEngine(_config(closing_soon=False), gateway=gateway, cache=cache)
        assert await engine.check_wallets() == []

    @pytest.mark.asyncio
    async def test_failing_quote_is_left_out_of_snapshot(self):
        gateway = _gateway(positions=[_position("m1"), _position("m2")])

        async def quote(market_id):
            if market_id == "m2":
                raise RuntimeError("quote down")
            return Quote(odds=[60.0, 40.0], pool=3.0)

        gateway.get_quote = AsyncMock(side_effect=quote)
        engine = AlertEngine(_config(closing_soon=False), gateway=gateway)
        await engine.check_wallets()

        cached = engine.cache.get("wallet123")
        assert cached is not None
        assert cached.odds == {"m1": [60.0, 40.0]}
        assert len(cached.positions) == 2

    @pytest.mark.asyncio
    async def test_one_quote_per_market(self):
        gateway = _gateway(positions=[_position("m1", 0), _position("m1", 1)])
        await AlertEngine(_config(), gateway=gateway).check_wallets()
        assert gateway.get_quote.await_count == 1
        assert gateway.get_market.await_count == 1

    @pytest.mark.asyncio
    async def test_closing_soon_skips_failed_market_fetch(self):
        gateway = _gateway(positions=[_position("m1"), _position("m2")])

        async def market(market_id):
            if market_id == "m1":
                raise RuntimeError("market down")
            return _market(market_id, closes_in=timedelta(hours=3))

        gateway.get_market = AsyncMock(side_effect=market)
        alerts = await AlertEngine(_config(), gateway=gateway).check_wallets()
        assert [(a.kind, a.data.market_id) for a in alerts] == [("closing_soon", "m2")]

    @pytest.mark.asyncio
    async def test_failing_wallet_does_not_block_others(self):
        gateway = _gateway(claimable=[_claimable(1.0)])

        async def positions(wallet):
            if wallet == "bad-wallet":
                raise RuntimeError("positions down")
            return []

        gateway.get_positions = AsyncMock(side_effect=positions)
        engine = AlertEngine(_config(wallets=["bad-wallet", "good-wallet"]), gateway=gateway)
        alerts = await engine.check_wallets()
        assert [a.wallet for a in alerts] == ["good-wallet"]
        assert not engine.cache.has("bad-wallet")

    @pytest.mark.asyncio
    async def test_failed_check_keeps_previous_snapshot(self):
        gateway = _gateway(positions=[_position()])
        engine = AlertEngine(_config(), gateway=gateway)
        await engine.check_wallets()
        before = engine.cache.get("wallet123")

        gateway.get_positions = AsyncMock(side_effect=RuntimeError("boom"))
        assert await engine.check_wallets() == []
        assert engine.cache.get("wallet123") is before

    @pytest.mark.asyncio
    async def test_alert_order(self):
        gateway = _gateway(
            positions=[_position()],
            claimable=[_claimable(5.0)],
            resolutions=[_resolution()],
        )
        gateway.get_quote = AsyncMock(side_effect=[
            Quote(odds=[20.0, 80.0], pool=1.0),
            Quote(odds=[60.0, 40.0], pool=1.0),
        ])
        gateway.get_market = AsyncMock(return_value=_market(closes_in=timedelta(hours=1)))
        engine = AlertEngine(_config(), gateway=gateway)

        await engine.check_wallets()
        alerts = await engine.check_wallets()
        assert [a.kind for a in alerts] == [
            "market_resolved",
            "unclaimed_winnings",
            "closing_soon",
            "odds_shift",
        ]

    @pytest.mark.asyncio
    async def test_injected_empty_cache_is_used(self):
        cache = WalletStateCache()
        engine = AlertEngine(_config(), gateway=_gateway(positions=[_position()]), cache=cache)
        await engine.check_wallets()
        assert cache.has("wallet123")

    @pytest.mark.asyncio
    async def test_engines_do_not_share_cache(self):
        first = AlertEngine(_config(), gateway=_gateway(positions=[_position()]))
        second = AlertEngine(_config(), gateway=_gateway(positions=[_position()]))
        await first.check_wallets()
        assert first.cache.has("wallet123")
        assert not second.cache.has("wallet123")
