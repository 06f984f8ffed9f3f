"""Indicator computation for the analysis context."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from trading_ai.types import Trend

EMA_SCALE = Decimal("0.000001")
TREND_LOOKBACK = 5


def compute_ema(closes: Sequence[Decimal], period: int) -> list[Decimal]:
    """Exponential moving average seeded with the SMA of the first ``period`` closes.

    The unseeded leading ``period - 1`` positions are omitted, so the result is
    shorter than the input by ``period - 1``. Insufficient data gives ``[]``.
    """
    if period < 1 or len(closes) < period:
        return []

    k = Decimal(2) / Decimal(period + 1)
    one_minus_k = Decimal(1) - k

    seed = sum(closes[:period], Decimal(0)) / Decimal(period)
    ema_prev = _quantize(seed)
    values = [ema_prev]
    for close in closes[period:]:
        ema_prev = _quantize(close * k + ema_prev * one_minus_k)
        values.append(ema_prev)
    return values


def infer_trend(closes: Sequence[Decimal]) -> Trend:
    """Compare the last close with the close five bars back."""
    if len(closes) < TREND_LOOKBACK:
        return Trend.UNKNOWN

    last = closes[-1]
    prev = closes[-TREND_LOOKBACK]
    if last > prev:
        return Trend.UP
    if last < prev:
        return Trend.DOWN
    return Trend.SIDEWAYS


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(EMA_SCALE, rounding=ROUND_HALF_UP)
