from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from trading_ai.analysis.context import build_context, trim_to_mode
from trading_ai.types import Candle, TradingMode, Trend


def _candles(count: int, start: float = 100.0, drift: float = 1.0) -> list[Candle]:
    base = datetime(2024, 1, 1, tzinfo=UTC)
    candles = []
    for i in range(count):
        close = Decimal(str(start + i * drift))
        candles.append(
            Candle(
                symbol="BTCUSDT",
                timeframe="1h",
                timestamp=base + timedelta(hours=i),
                open=close,
                high=close + 1,
                low=close - Decimal("0.5"),
                close=close,
                volume=Decimal("10"),
            )
        )
    return candles


def test_build_context_empty_is_unknown() -> None:
    context = build_context("BTCUSDT", "1h", [])
    assert context.trend == Trend.UNKNOWN
    assert context.is_empty
    assert context.ema21 == ()
    assert context.ema25 == ()


def test_build_context_sorts_and_computes() -> None:
    candles = _candles(30)
    context = build_context("BTCUSDT", "1h", list(reversed(candles)))
    assert [c.timestamp for c in context.candles] == [c.timestamp for c in candles]
    assert len(context.ema21) == 10
    assert len(context.ema25) == 6
    assert context.trend == Trend.UP
    assert context.last_close == candles[-1].close


def test_trim_to_mode_small_window_returns_same_object() -> None:
    context = build_context("BTCUSDT", "1h", _candles(40))
    assert trim_to_mode(context, TradingMode.SCALPING) is context


def test_trim_to_mode_cuts_each_series_by_its_own_length() -> None:
    context = build_context("BTCUSDT", "1h", _candles(200))
    assert len(context.ema21) == 180
    assert len(context.ema25) == 176

    trimmed = trim_to_mode(context, TradingMode.SCALPING)
    assert len(trimmed.candles) == 50
    assert trimmed.candles[-1] == context.candles[-1]
    assert trimmed.ema21 == context.ema21[-50:]
    assert trimmed.ema25 == context.ema25[-50:]
    assert trimmed.trend == context.trend


def test_trim_to_mode_is_idempotent() -> None:
    context = build_context("BTCUSDT", "1h", _candles(150))
    once = trim_to_mode(context, TradingMode.INTRADAY)
    twice = trim_to_mode(once, TradingMode.INTRADAY)
    assert twice == once
    assert len(twice.candles) == 100


def test_context_payload_uses_wire_names() -> None:
    payload = build_context("BTCUSDT", "1h", _candles(25)).to_payload()
    assert payload["symbolCode"] == "BTCUSDT"
    assert payload["higherTimeframeTrend"] == "UP"
    assert len(payload["candles"]) == 25
    assert len(payload["ema25"]) == 1
