"""Hard numeric guards applied to AI trade suggestions."""

from __future__ import annotations

from decimal import Decimal

from trading_ai.ai.schemas import TradeSuggestion
from trading_ai.config import Settings
from trading_ai.errors import InvalidSignal
from trading_ai.types import Direction, TradingMode
from trading_ai.utils.logging import get_logger, log_risk_event

_HUNDRED = Decimal(100)


class SignalGuard:
    """Deterministic admission rules for a suggestion.

    Rules run in order and the first violation decides the rejection reason.
    A rejection is a NEUTRAL suggestion with every price field cleared; it is a
    normal outcome, not an error.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._logger = get_logger("trading_ai.risk.guard")

    def validate(self, suggestion: object, mode: TradingMode) -> TradeSuggestion:
        """Return the suggestion unchanged if admissible, else a NEUTRAL rejection."""
        if not isinstance(suggestion, TradeSuggestion):
            return self._reject(None, "Invalid AI response", mode)

        if suggestion.direction == Direction.NEUTRAL:
            return suggestion

        entry = suggestion.entry_price
        stop = suggestion.stop_loss
        if entry is None or stop is None:
            return self._reject(suggestion, "Missing entry/SL", mode)

        cap = self.max_stop_distance_pct(mode)
        distance = stop_distance_pct(entry, stop)
        if cap is not None and distance > cap:
            return self._reject(
                suggestion,
                f"SL too wide for {mode.value.lower()}",
                mode,
                distance_pct=float(distance),
                cap_pct=float(cap),
            )

        rr1 = suggestion.risk_reward_1
        if rr1 is not None:
            low = Decimal(str(self._settings.min_risk_reward))
            high = Decimal(str(self._settings.max_risk_reward))
            if rr1 < low or rr1 > high:
                return self._reject(suggestion, "RR out of range", mode, risk_reward_1=float(rr1))

        return suggestion

    def max_stop_distance_pct(self, mode: TradingMode) -> Decimal | None:
        """Stop-distance cap for the mode; None means unconstrained."""
        caps = {
            TradingMode.SCALPING: self._settings.scalping_max_sl_pct,
            TradingMode.INTRADAY: self._settings.intraday_max_sl_pct,
            TradingMode.SWING: self._settings.swing_max_sl_pct,
        }
        cap = caps[mode]
        return None if cap is None else Decimal(str(cap))

    def _reject(
        self,
        suggestion: TradeSuggestion | None,
        reason: str,
        mode: TradingMode,
        **kwargs: object,
    ) -> TradeSuggestion:
        log_risk_event(
            self._logger,
            event_type="signal_guard",
            action="neutralized",
            reason=reason,
            mode=mode.value,
            **kwargs,
        )
        if suggestion is None:
            return TradeSuggestion.neutral(reason)
        return suggestion.as_neutral(reason)


def stop_distance_pct(entry: Decimal, stop: Decimal) -> Decimal:
    """Distance between stop and entry as a percentage of entry."""
    return abs(stop - entry) / entry * _HUNDRED


def ensure_actionable(suggestion: TradeSuggestion) -> None:
    """Structural checks for an accepted LONG/SHORT before it is stored.

    Raises ``InvalidSignal`` when the stop sits on the wrong side of entry or
    the first take-profit is missing.
    """
    direction = suggestion.direction
    if direction == Direction.NEUTRAL:
        return
    entry = suggestion.entry_price
    stop = suggestion.stop_loss
    if entry is None:
        raise InvalidSignal(f"{direction.value} signal missing entry price")
    if stop is None:
        raise InvalidSignal(f"{direction.value} signal missing stop loss")
    if direction == Direction.LONG and stop >= entry:
        raise InvalidSignal(
            f"LONG signal: stop loss must be below entry price. Entry={entry}, SL={stop}"
        )
    if direction == Direction.SHORT and stop <= entry:
        raise InvalidSignal(
            f"SHORT signal: stop loss must be above entry price. Entry={entry}, SL={stop}"
        )
    if suggestion.take_profit_1 is None:
        raise InvalidSignal("Signal missing take profit level")
