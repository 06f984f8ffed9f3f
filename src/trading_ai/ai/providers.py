"""Trade suggestion providers used by the signal service."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from trading_ai.ai.llm_client import LLMClient
from trading_ai.ai.schemas import TradeSuggestion
from trading_ai.config import Settings
from trading_ai.types import AnalysisContext, Direction, TradingMode, Trend

_STOP_FRACTION = Decimal("0.002")
_TP1_R = Decimal("1.5")
_TP2_R = Decimal("3.0")


class SuggestionProvider(Protocol):
    """Provider interface for trade suggestions."""

    def suggest(self, context: AnalysisContext, mode: TradingMode) -> TradeSuggestion:
        """Return one suggestion. Must not raise for business reasons."""


class LLMSuggestionProvider:
    """Production provider backed by an OpenAI-compatible endpoint."""

    def __init__(self, settings: Settings) -> None:
        self._client = LLMClient(settings)

    def suggest(self, context: AnalysisContext, mode: TradingMode) -> TradeSuggestion:
        return self._client.suggest(context, mode)


class HeuristicSuggestionProvider:
    """Deterministic trend follower for offline use and tests.

    LONG on an UP trend, SHORT on DOWN, NEUTRAL otherwise. Stop sits 0.2%
    from the last close, targets at 1.5R and 3R.
    """

    def suggest(self, context: AnalysisContext, mode: TradingMode) -> TradeSuggestion:
        last_close = context.last_close
        if last_close is None:
            return TradeSuggestion.neutral("No candle data available")

        if context.trend == Trend.UP:
            direction = Direction.LONG
            sign = Decimal(1)
        elif context.trend == Trend.DOWN:
            direction = Direction.SHORT
            sign = Decimal(-1)
        else:
            return TradeSuggestion.neutral(f"Trend is {context.trend.value}; no clean setup")

        entry = last_close.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if entry <= 0:
            return TradeSuggestion.neutral("Price below tick precision")
        risk = last_close * _STOP_FRACTION
        return TradeSuggestion(
            direction=direction,
            entry_price=entry,
            stop_loss=entry - sign * risk,
            take_profit_1=entry + sign * risk * _TP1_R,
            take_profit_2=entry + sign * risk * _TP2_R,
            risk_reward_1=_TP1_R,
            risk_reward_2=_TP2_R,
            reasoning=f"Heuristic {mode.value} suggestion following trend = {context.trend.value}",
        )


def build_provider(settings: Settings) -> SuggestionProvider:
    """Pick the provider configured in settings."""
    if settings.uses_llm:
        return LLMSuggestionProvider(settings)
    return HeuristicSuggestionProvider()
