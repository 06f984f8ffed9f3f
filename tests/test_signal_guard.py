from __future__ import annotations

from decimal import Decimal

import pytest

from trading_ai.ai.schemas import TradeSuggestion
from trading_ai.config import Settings
from trading_ai.errors import InvalidSignal
from trading_ai.risk.guard import SignalGuard, ensure_actionable
from trading_ai.types import Direction, TradingMode


def _guard(**overrides: object) -> SignalGuard:
    return SignalGuard(Settings(**overrides))


def _long(entry: str = "100", stop: str = "99.8", rr1: str | None = "2", tp1: str | None = "101") -> TradeSuggestion:
    return TradeSuggestion(
        direction=Direction.LONG,
        entry_price=Decimal(entry),
        stop_loss=Decimal(stop),
        take_profit_1=Decimal(tp1) if tp1 is not None else None,
        risk_reward_1=Decimal(rr1) if rr1 is not None else None,
        reasoning="breakout",
    )


def test_invalid_input_becomes_neutral() -> None:
    result = _guard().validate(None, TradingMode.SCALPING)
    assert result.is_neutral
    assert result.reasoning == "Invalid AI response"


def test_neutral_passes_through_unchanged() -> None:
    neutral = TradeSuggestion.neutral("choppy")
    assert _guard().validate(neutral, TradingMode.SCALPING) is neutral


def test_missing_entry_or_stop_rejected() -> None:
    suggestion = TradeSuggestion(direction=Direction.LONG, entry_price=Decimal("100"))
    result = _guard().validate(suggestion, TradingMode.SWING)
    assert result.is_neutral
    assert result.reasoning == "Missing entry/SL"


def test_stop_distance_cap_depends_on_mode() -> None:
    suggestion = _long(entry="100", stop="99.5")
    scalping = _guard().validate(suggestion, TradingMode.SCALPING)
    assert scalping.is_neutral
    assert scalping.reasoning == "SL too wide for scalping"
    assert scalping.entry_price is None
    assert scalping.stop_loss is None
    assert scalping.take_profit_1 is None
    assert scalping.risk_reward_1 is None

    intraday = _guard().validate(suggestion, TradingMode.INTRADAY)
    assert intraday is suggestion


def test_stop_distance_cap_is_inclusive() -> None:
    assert _guard().validate(_long(stop="99.6"), TradingMode.SCALPING).direction == Direction.LONG
    assert _guard().validate(_long(stop="99"), TradingMode.INTRADAY).direction == Direction.LONG
    assert _guard().validate(_long(stop="98.99"), TradingMode.INTRADAY).is_neutral


def test_swing_is_uncapped_by_default_and_configurable() -> None:
    wide = _long(stop="80")
    assert _guard().validate(wide, TradingMode.SWING) is wide
    capped = _guard(swing_max_sl_pct=5.0).validate(wide, TradingMode.SWING)
    assert capped.reasoning == "SL too wide for swing"


@pytest.mark.parametrize(
    ("rr1", "accepted"),
    [("0.5", False), ("1.0", True), ("4.0", True), ("4.01", False)],
)
def test_risk_reward_bounds(rr1: str, accepted: bool) -> None:
    result = _guard().validate(_long(rr1=rr1), TradingMode.INTRADAY)
    assert (not result.is_neutral) is accepted
    if not accepted:
        assert result.reasoning == "RR out of range"


def test_missing_risk_reward_is_allowed() -> None:
    suggestion = _long(rr1=None)
    assert _guard().validate(suggestion, TradingMode.INTRADAY) is suggestion


def test_first_violation_wins() -> None:
    # both too wide and bad RR: the distance rule runs first
    result = _guard().validate(_long(stop="90", rr1="9"), TradingMode.SCALPING)
    assert result.reasoning == "SL too wide for scalping"


def test_ensure_actionable_rejects_wrong_side_stop() -> None:
    with pytest.raises(InvalidSignal):
        ensure_actionable(_long(stop="100.5"))
    short = TradeSuggestion(
        direction=Direction.SHORT,
        entry_price=Decimal("100"),
        stop_loss=Decimal("99"),
        take_profit_1=Decimal("98"),
    )
    with pytest.raises(InvalidSignal):
        ensure_actionable(short)


def test_ensure_actionable_requires_take_profit() -> None:
    with pytest.raises(InvalidSignal):
        ensure_actionable(_long(tp1=None))
    ensure_actionable(_long())
    ensure_actionable(TradeSuggestion.neutral("skip"))
