from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from trading_ai.ai.providers import (
    HeuristicSuggestionProvider,
    LLMSuggestionProvider,
    build_provider,
)
from trading_ai.analysis.context import build_context
from trading_ai.config import Settings
from trading_ai.types import Candle, Direction, TradingMode


def _context(closes: list[str]):
    base = datetime(2024, 1, 1, tzinfo=UTC)
    candles = [
        Candle(
            symbol="BTCUSDT",
            timeframe="1h",
            timestamp=base + timedelta(hours=i),
            open=Decimal(close),
            high=Decimal(close),
            low=Decimal(close),
            close=Decimal(close),
            volume=Decimal("1"),
        )
        for i, close in enumerate(closes)
    ]
    return build_context("BTCUSDT", "1h", candles)


def test_heuristic_long_on_uptrend() -> None:
    suggestion = HeuristicSuggestionProvider().suggest(
        _context(["100", "101", "102", "103", "104", "105"]), TradingMode.SCALPING
    )
    assert suggestion.direction == Direction.LONG
    assert suggestion.entry_price == Decimal("105.00")
    assert suggestion.stop_loss == Decimal("104.79")
    assert suggestion.take_profit_1 > suggestion.entry_price
    assert suggestion.risk_reward_1 == Decimal("1.5")
    assert suggestion.risk_reward_2 == Decimal("3.0")


def test_heuristic_short_on_downtrend() -> None:
    suggestion = HeuristicSuggestionProvider().suggest(
        _context(["105", "104", "103", "102", "101", "100"]), TradingMode.SCALPING
    )
    assert suggestion.direction == Direction.SHORT
    assert suggestion.stop_loss > suggestion.entry_price
    assert suggestion.take_profit_1 < suggestion.entry_price


def test_heuristic_neutral_on_flat_or_empty() -> None:
    provider = HeuristicSuggestionProvider()
    assert provider.suggest(_context(["100"] * 6), TradingMode.SCALPING).is_neutral
    empty = provider.suggest(_context([]), TradingMode.SCALPING)
    assert empty.is_neutral
    assert empty.reasoning == "No candle data available"


def test_build_provider_follows_settings() -> None:
    assert isinstance(build_provider(Settings(llm_provider="heuristic")), HeuristicSuggestionProvider)
    assert isinstance(
        build_provider(Settings(llm_provider="llm", llm_api_key="k")),
        LLMSuggestionProvider,
    )
