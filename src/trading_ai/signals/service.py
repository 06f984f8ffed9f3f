"""Signal generation: candles -> context -> suggestion -> guard -> stored signal."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from time import perf_counter

from trading_ai.ai.providers import SuggestionProvider
from trading_ai.ai.schemas import TradeSuggestion
from trading_ai.analysis.context import build_context, trim_to_mode
from trading_ai.config import Settings
from trading_ai.errors import InvalidSignal, MarketDataUnavailable, SymbolNotFound
from trading_ai.risk.guard import SignalGuard, ensure_actionable
from trading_ai.store.base import CandleStore, SignalStore, SymbolRegistry
from trading_ai.types import (
    Caller,
    NeutralResult,
    Page,
    Signal,
    Timeframe,
    TradingMode,
    utc_now,
)
from trading_ai.utils.logging import get_logger, log_trade_signal

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SignalService:
    """Orchestrates one signal request end to end."""

    def __init__(
        self,
        symbols: SymbolRegistry,
        candles: CandleStore,
        signals: SignalStore,
        provider: SuggestionProvider,
        settings: Settings,
    ) -> None:
        self._symbols = symbols
        self._candles = candles
        self._signals = signals
        self._provider = provider
        self._settings = settings
        self._guard = SignalGuard(settings)
        self._logger = get_logger("trading_ai.signals.service")

    def generate_signal(
        self,
        symbol_code: str,
        timeframe: Timeframe | str,
        mode: TradingMode | str | None = None,
        caller: Caller | None = None,
    ) -> Signal | NeutralResult:
        """Produce an accepted signal or a NEUTRAL outcome.

        Raises ``SymbolNotFound`` for an unknown symbol,
        ``MarketDataUnavailable`` when no candles are stored (the provider is
        not called), and ``InvalidSignal`` when an accepted suggestion is
        structurally broken. NEUTRAL outcomes are returned, not stored.
        """
        started = perf_counter()
        code = self._resolve_symbol(symbol_code)
        tf = Timeframe.from_string(timeframe).value
        resolved_mode = mode if isinstance(mode, TradingMode) else TradingMode.from_string(mode)

        recent = self._candles.fetch_recent(code, tf, self._settings.context_candle_limit)
        context = build_context(
            code,
            tf,
            recent,
            fast_period=self._settings.ema_fast_period,
            slow_period=self._settings.ema_slow_period,
        )
        context = trim_to_mode(context, resolved_mode)
        if context.is_empty:
            raise MarketDataUnavailable(
                f"No market data available for {code} on {tf}",
                {"symbol_code": code, "timeframe": tf},
            )

        suggestion = self._provider.suggest(context, resolved_mode)
        checked = self._guard.validate(suggestion, resolved_mode)

        elapsed_ms = round((perf_counter() - started) * 1000, 2)
        if checked.is_neutral:
            log_trade_signal(
                self._logger,
                symbol=code,
                direction=checked.direction.value,
                signal_type="neutral",
                timeframe=tf,
                mode=resolved_mode.value,
                reasoning=checked.reasoning,
                elapsed_ms=elapsed_ms,
            )
            return NeutralResult(
                symbol_code=code,
                timeframe=tf,
                mode=resolved_mode,
                reasoning=checked.reasoning,
            )

        ensure_actionable(checked)
        signal = self._signals.save(self._build_signal(code, tf, resolved_mode, checked, caller))
        log_trade_signal(
            self._logger,
            symbol=code,
            direction=signal.direction.value,
            signal_type="accepted",
            signal_id=signal.id,
            timeframe=tf,
            mode=resolved_mode.value,
            entry_price=str(signal.entry_price),
            stop_loss=str(signal.stop_loss),
            elapsed_ms=elapsed_ms,
        )
        return signal

    def get_signals(
        self,
        symbol_code: str,
        timeframe: Timeframe | str,
        from_: datetime | None = None,
        to: datetime | None = None,
        page: int = 0,
        size: int = 20,
    ) -> Page[Signal]:
        """Stored signals for one market, newest first."""
        code = self._resolve_symbol(symbol_code)
        tf = Timeframe.from_string(timeframe).value
        return self._signals.find(
            code,
            tf,
            from_ if from_ is not None else _EPOCH,
            to if to is not None else utc_now(),
            page,
            size,
        )

    def get_signal(self, signal_id: str) -> Signal:
        signal = self._signals.get(signal_id)
        if signal is None:
            raise InvalidSignal(f"Signal not found: {signal_id}", {"signal_id": signal_id})
        return signal

    def _resolve_symbol(self, symbol_code: str) -> str:
        code = self._symbols.get(symbol_code)
        if code is None:
            raise SymbolNotFound(symbol_code)
        return code

    @staticmethod
    def _build_signal(
        symbol_code: str,
        timeframe: str,
        mode: TradingMode,
        suggestion: TradeSuggestion,
        caller: Caller | None,
    ) -> Signal:
        return Signal(
            id=uuid.uuid4().hex,
            symbol_code=symbol_code,
            timeframe=timeframe,
            mode=mode,
            direction=suggestion.direction,
            entry_price=suggestion.entry_price,
            stop_loss=suggestion.stop_loss,
            take_profit_1=suggestion.take_profit_1,
            take_profit_2=suggestion.take_profit_2,
            take_profit_3=suggestion.take_profit_3,
            risk_reward_1=suggestion.risk_reward_1,
            risk_reward_2=suggestion.risk_reward_2,
            risk_reward_3=suggestion.risk_reward_3,
            reasoning=suggestion.reasoning,
            created_at=utc_now(),
            created_by=caller.username if caller is not None else "system",
        )
