"""Market analysis context: ordered candle window, EMAs and trend label."""

from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

from trading_ai.features.indicators import compute_ema, infer_trend
from trading_ai.types import AnalysisContext, Candle, TradingMode, Trend

_T = TypeVar("_T")


def build_context(
    symbol_code: str,
    timeframe: str,
    candles: Iterable[Candle],
    *,
    fast_period: int = 21,
    slow_period: int = 25,
) -> AnalysisContext:
    """Build the analysis context for one (symbol, timeframe) series.

    An empty series is a valid state: the context comes back with an UNKNOWN
    trend and empty sequences instead of raising.
    """
    ordered = sorted(candles, key=lambda candle: candle.timestamp)
    if not ordered:
        return AnalysisContext(
            symbol_code=symbol_code,
            timeframe=timeframe,
            trend=Trend.UNKNOWN,
        )

    closes = [candle.close for candle in ordered]
    return AnalysisContext(
        symbol_code=symbol_code,
        timeframe=timeframe,
        candles=tuple(ordered),
        ema21=tuple(compute_ema(closes, fast_period)),
        ema25=tuple(compute_ema(closes, slow_period)),
        trend=infer_trend(closes),
    )


def trim_to_mode(context: AnalysisContext, mode: TradingMode) -> AnalysisContext:
    """Keep only the most recent candles for the trading mode.

    Each EMA series is cut to its own last N entries; the series are shorter
    than the candle window, so their offsets differ from the candle offset.
    """
    limit = mode.candle_count
    if len(context.candles) <= limit:
        return context

    return AnalysisContext(
        symbol_code=context.symbol_code,
        timeframe=context.timeframe,
        candles=_tail(context.candles, limit),
        ema21=_tail(context.ema21, limit),
        ema25=_tail(context.ema25, limit),
        trend=context.trend,
    )


def _tail(values: Sequence[_T], limit: int) -> tuple[_T, ...]:
    if len(values) <= limit:
        return tuple(values)
    return tuple(values[len(values) - limit :])
