"""Shared domain types for market context, signals and callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class Direction(str, Enum):
    """Trade direction. NEUTRAL means no trade."""

    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"


class Trend(str, Enum):
    """Coarse trend label attached to an analysis context."""

    UP = "UP"
    DOWN = "DOWN"
    SIDEWAYS = "SIDEWAYS"
    UNKNOWN = "UNKNOWN"


class TradingMode(str, Enum):
    """Trading style, each with its own candle window."""

    SCALPING = "SCALPING"
    INTRADAY = "INTRADAY"
    SWING = "SWING"

    @property
    def candle_count(self) -> int:
        return _MODE_CANDLES[self]

    @classmethod
    def from_string(cls, value: str | None) -> TradingMode:
        """Case-insensitive lookup; None falls back to SCALPING."""
        if value is None:
            return cls.SCALPING
        try:
            return cls(value.strip().upper())
        except ValueError as exc:
            valid = ", ".join(mode.value for mode in cls)
            raise ValueError(f"invalid_trading_mode: {value} (valid: {valid})") from exc


_MODE_CANDLES = {
    TradingMode.SCALPING: 50,
    TradingMode.INTRADAY: 100,
    TradingMode.SWING: 200,
}


class Timeframe(str, Enum):
    """Candle timeframe, valued by its Binance interval string."""

    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"
    W1 = "1w"

    @property
    def seconds(self) -> int:
        return _TIMEFRAME_SECONDS[self]

    @classmethod
    def from_string(cls, value: str) -> Timeframe:
        """Accept either the enum name (``M5``) or the interval (``5m``)."""
        text = value.strip()
        for tf in cls:
            if text == tf.value or text.upper() == tf.name:
                return tf
        raise ValueError(f"invalid_timeframe: {value}")


_TIMEFRAME_SECONDS = {
    Timeframe.M1: 60,
    Timeframe.M5: 300,
    Timeframe.M15: 900,
    Timeframe.M30: 1800,
    Timeframe.H1: 3600,
    Timeframe.H4: 14400,
    Timeframe.D1: 86400,
    Timeframe.W1: 604800,
}


class PositionStatus(str, Enum):
    """Position lifecycle states. CLOSED and CANCELLED are terminal."""

    PENDING = "PENDING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (PositionStatus.CLOSED, PositionStatus.CANCELLED)


class ExitReason(str, Enum):
    """Why a position was closed."""

    TP1_HIT = "TP1_HIT"
    TP2_HIT = "TP2_HIT"
    TP3_HIT = "TP3_HIT"
    SL_HIT = "SL_HIT"
    MANUAL_EXIT = "MANUAL_EXIT"
    TIME_EXIT = "TIME_EXIT"
    TRAILING_STOP = "TRAILING_STOP"
    RISK_MANAGEMENT = "RISK_MANAGEMENT"


@dataclass(frozen=True, slots=True)
class Candle:
    """One OHLCV bar. Immutable once produced."""

    symbol: str
    timeframe: str
    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    def __post_init__(self) -> None:
        for name in ("open", "high", "low", "close"):
            if getattr(self, name) <= 0:
                raise ValueError(f"candle_{name}_must_be_positive")
        if self.volume < 0:
            raise ValueError("candle_volume_must_be_non_negative")
        if self.timestamp.tzinfo is None:
            raise ValueError("candle_timestamp_must_be_timezone_aware")

    def to_payload(self) -> dict[str, object]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "open": float(self.open),
            "high": float(self.high),
            "low": float(self.low),
            "close": float(self.close),
            "volume": float(self.volume),
        }


@dataclass(frozen=True, slots=True)
class AnalysisContext:
    """Bounded market window handed to the suggestion provider."""

    symbol_code: str
    timeframe: str
    candles: tuple[Candle, ...] = ()
    ema21: tuple[Decimal, ...] = ()
    ema25: tuple[Decimal, ...] = ()
    trend: Trend = Trend.UNKNOWN

    @property
    def is_empty(self) -> bool:
        return not self.candles

    @property
    def last_close(self) -> Decimal | None:
        return self.candles[-1].close if self.candles else None

    def to_payload(self) -> dict[str, object]:
        """JSON-safe rendering used in the model prompt."""
        return {
            "symbolCode": self.symbol_code,
            "timeframe": self.timeframe,
            "higherTimeframeTrend": self.trend.value,
            "candles": [candle.to_payload() for candle in self.candles],
            "ema21": [float(value) for value in self.ema21],
            "ema25": [float(value) for value in self.ema25],
        }


@dataclass(frozen=True, slots=True)
class Signal:
    """An accepted, persisted trade idea. Append-only."""

    id: str
    symbol_code: str
    timeframe: str
    mode: TradingMode
    direction: Direction
    entry_price: Decimal
    stop_loss: Decimal
    take_profit_1: Decimal | None
    take_profit_2: Decimal | None
    take_profit_3: Decimal | None
    risk_reward_1: Decimal | None
    risk_reward_2: Decimal | None
    risk_reward_3: Decimal | None
    reasoning: str
    created_at: datetime
    created_by: str


@dataclass(frozen=True, slots=True)
class NeutralResult:
    """A no-trade outcome. Returned to the caller, never stored."""

    symbol_code: str
    timeframe: str
    mode: TradingMode
    reasoning: str
    direction: Direction = Direction.NEUTRAL


@dataclass(frozen=True, slots=True)
class Caller:
    """Identity of whoever drives a mutating call."""

    username: str
    is_admin: bool = False


SYSTEM_CALLER = Caller(username="system", is_admin=True)


@dataclass
class Page(Generic[T]):
    """One page of a newest-first listing."""

    items: list[T] = field(default_factory=list)
    page: int = 0
    size: int = 20
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return (self.total + self.size - 1) // self.size


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
