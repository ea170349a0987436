"""
Data models used across the Baozi Claim & Alert Agent.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Literal, Union

MarketStatus = Literal["active", "closed", "resolved"]
MarketLayer = Literal["official", "lab", "private"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Market:
    id: str                  # market id (falls back to the PDA)
    pda: str                 # on-chain program-derived address
    question: str            # e.g. "Will BTC hit $120K?"
    status: MarketStatus
    layer: MarketLayer
    outcomes: list[str]      # e.g. ["Yes", "No"]
    odds: list[float]        # percentages, parallel to outcomes
    pool: float              # total SOL pooled
    closing_time: datetime   # timezone-aware UTC
    resolution: str | None = None


@dataclass
class Position:
    market_id: str
    market_question: str
    outcome: int             # index into the market's outcomes
    outcome_name: str
    amount: float            # SOL staked
    potential_winnings: float
    current_odds: float      # odds observed when the position was queried


@dataclass
class ClaimableWinnings:
    market_id: str
    market_question: str
    winning_outcome: int
    winning_outcome_name: str
    amount: float


@dataclass
class MarketResolution:
    market_id: str
    market_question: str
    resolved_outcome: int
    resolved_outcome_name: str
    user_bet_outcome: int
    user_won: bool
    claimable_amount: float  # 0 if not won or already claimed


@dataclass
class Quote:
    odds: list[float]
    pool: float


@dataclass
class CachedWalletState:
    positions: list[Position]
    odds: dict[str, list[float]]   # market id → odds snapshot
    last_check: datetime = field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

AlertKind = Literal["market_resolved", "unclaimed_winnings", "closing_soon", "odds_shift"]


@dataclass(frozen=True)
class UnclaimedWinningsData:
    total_amount: float
    markets: list[ClaimableWinnings]


@dataclass(frozen=True)
class ClosingSoonData:
    market_id: str
    market_question: str
    hours_remaining: int
    user_position: Position


@dataclass(frozen=True)
class OddsShiftData:
    market_id: str
    market_question: str
    old_odds: float
    new_odds: float
    shift_percentage: float   # absolute percentage-point difference
    direction: Literal["up", "down"]
    user_outcome: int
    user_outcome_name: str


@dataclass(frozen=True)
class MarketResolvedAlert:
    wallet: str
    title: str
    message: str
    data: MarketResolution
    timestamp: datetime = field(default_factory=_utcnow)
    kind: Literal["market_resolved"] = field(default="market_resolved", init=False)


@dataclass(frozen=True)
class UnclaimedWinningsAlert:
    wallet: str
    title: str
    message: str
    data: UnclaimedWinningsData
    timestamp: datetime = field(default_factory=_utcnow)
    kind: Literal["unclaimed_winnings"] = field(default="unclaimed_winnings", init=False)


@dataclass(frozen=True)
class ClosingSoonAlert:
    wallet: str
    title: str
    message: str
    data: ClosingSoonData
    timestamp: datetime = field(default_factory=_utcnow)
    kind: Literal["closing_soon"] = field(default="closing_soon", init=False)


@dataclass(frozen=True)
class OddsShiftAlert:
    wallet: str
    title: str
    message: str
    data: OddsShiftData
    timestamp: datetime = field(default_factory=_utcnow)
    kind: Literal["odds_shift"] = field(default="odds_shift", init=False)


Alert = Union[MarketResolvedAlert, UnclaimedWinningsAlert, ClosingSoonAlert, OddsShiftAlert]


def alert_to_dict(alert: Alert) -> dict:
    """JSON-ready representation of *alert* (used by the generic webhook channel)."""
    return {
        "type": alert.kind,
        "title": alert.title,
        "message": alert.message,
        "wallet": alert.wallet,
        "data": _jsonable(asdict(alert.data)),
        "timestamp": alert.timestamp.isoformat(),
    }


def _jsonable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value
