"""Slippage and realized P&L arithmetic for positions."""

from __future__ import annotations

from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from trading_ai.positions.models import Position

PERCENT_SCALE = Decimal("0.000001")
RR_SCALE = Decimal("0.01")
_HUNDRED = Decimal(100)
_MILLISECOND = timedelta(milliseconds=1)


def compute_slippage(planned: Decimal | None, actual: Decimal | None) -> Decimal | None:
    """Absolute fill deviation as a percentage of the planned entry."""
    if planned is None or actual is None or planned <= 0:
        return None
    pct = abs(actual - planned) / planned * _HUNDRED
    return pct.quantize(PERCENT_SCALE, rounding=ROUND_HALF_UP)


def apply_realized_pnl(position: Position) -> None:
    """Fill the realized P&L fields of a closed position in place.

    Never raises. Anything that cannot be computed from the available
    prices is left as ``None``.
    """
    entry = position.actual_entry_price
    exit_price = position.exit_price
    if entry is not None and exit_price is not None:
        if position.is_long:
            price_diff = exit_price - entry
        else:
            price_diff = entry - exit_price

        position.realized_pnl = price_diff * position.quantity - position.fees

        if entry > 0:
            position.realized_pnl_percent = (price_diff / entry * _HUNDRED).quantize(
                PERCENT_SCALE, rounding=ROUND_HALF_UP
            )

        risk = abs(entry - position.stop_loss)
        if risk > 0:
            position.actual_risk_reward = (abs(price_diff) / risk).quantize(
                RR_SCALE, rounding=ROUND_HALF_UP
            )

    if position.opened_at is not None and position.closed_at is not None:
        delta = position.closed_at - position.opened_at
        position.duration_ms = delta // _MILLISECOND
