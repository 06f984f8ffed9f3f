"""Portfolio statistics recomputed from a set of positions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from trading_ai.positions.models import Position
from trading_ai.types import Direction, PositionStatus

_ZERO = Decimal(0)
_NEVER = datetime.min.replace(tzinfo=timezone.utc)
_RATE_SCALE = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class PortfolioStats:
    """Aggregate view of one user's (or everyone's) positions. Never null."""

    total_positions: int = 0
    pending_positions: int = 0
    open_positions: int = 0
    closed_positions: int = 0
    cancelled_positions: int = 0
    total_pnl: Decimal = _ZERO
    average_pnl: Decimal = _ZERO
    best_trade: Decimal = _ZERO
    worst_trade: Decimal = _ZERO
    win_rate: float = 0.0
    long_win_rate: float = 0.0
    short_win_rate: float = 0.0
    average_risk_reward: Decimal = _ZERO
    total_fees: Decimal = _ZERO
    pnl_by_symbol: dict[str, Decimal] = field(default_factory=dict)
    consecutive_wins: int = 0
    consecutive_losses: int = 0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    average_duration_ms: int = 0
    shortest_duration_ms: int = 0
    longest_duration_ms: int = 0


def compute_portfolio_stats(
    positions: Iterable[Position],
    owner: str | None = None,
) -> PortfolioStats:
    """Compute stats over ``positions``, optionally restricted to one owner.

    Rates are percentages rounded to two decimals; every figure falls back
    to zero when there is nothing to aggregate.
    """
    scoped = [p for p in positions if owner is None or p.owner == owner]
    by_status = {status: 0 for status in PositionStatus}
    for position in scoped:
        by_status[position.status] += 1

    closed = [p for p in scoped if p.status == PositionStatus.CLOSED]
    with_pnl = [p for p in closed if p.realized_pnl is not None]
    pnls = [p.realized_pnl for p in with_pnl if p.realized_pnl is not None]

    total_pnl = sum(pnls, _ZERO)
    risk_rewards = [p.actual_risk_reward for p in closed if p.actual_risk_reward is not None]
    durations = [p.duration_ms for p in closed if p.duration_ms is not None]

    pnl_by_symbol: dict[str, Decimal] = {}
    for position in with_pnl:
        pnl_by_symbol[position.symbol_code] = (
            pnl_by_symbol.get(position.symbol_code, _ZERO) + (position.realized_pnl or _ZERO)
        )

    streak = _streaks(with_pnl)

    return PortfolioStats(
        total_positions=len(scoped),
        pending_positions=by_status[PositionStatus.PENDING],
        open_positions=by_status[PositionStatus.OPEN],
        closed_positions=by_status[PositionStatus.CLOSED],
        cancelled_positions=by_status[PositionStatus.CANCELLED],
        total_pnl=total_pnl,
        average_pnl=total_pnl / len(pnls) if pnls else _ZERO,
        best_trade=max(pnls) if pnls else _ZERO,
        worst_trade=min(pnls) if pnls else _ZERO,
        win_rate=_win_rate(closed),
        long_win_rate=_win_rate([p for p in closed if p.direction == Direction.LONG]),
        short_win_rate=_win_rate([p for p in closed if p.direction == Direction.SHORT]),
        average_risk_reward=(
            (sum(risk_rewards, _ZERO) / len(risk_rewards)).quantize(
                _RATE_SCALE, rounding=ROUND_HALF_UP
            )
            if risk_rewards
            else _ZERO
        ),
        total_fees=sum((p.fees for p in closed), _ZERO),
        pnl_by_symbol=pnl_by_symbol,
        consecutive_wins=streak.current_wins,
        consecutive_losses=streak.current_losses,
        max_consecutive_wins=streak.max_wins,
        max_consecutive_losses=streak.max_losses,
        average_duration_ms=sum(durations) // len(durations) if durations else 0,
        shortest_duration_ms=min(durations) if durations else 0,
        longest_duration_ms=max(durations) if durations else 0,
    )


def _win_rate(closed: Sequence[Position]) -> float:
    if not closed:
        return 0.0
    wins = sum(1 for p in closed if p.realized_pnl is not None and p.realized_pnl > 0)
    return round(wins / len(closed) * 100.0, 2)


@dataclass(slots=True)
class _Streaks:
    current_wins: int = 0
    current_losses: int = 0
    max_wins: int = 0
    max_losses: int = 0


def _streaks(closed: Sequence[Position]) -> _Streaks:
    # break-even trades end both streaks
    result = _Streaks()
    ordered = sorted(closed, key=lambda p: p.closed_at or _NEVER)
    for position in ordered:
        pnl = position.realized_pnl or _ZERO
        if pnl > 0:
            result.current_wins += 1
            result.current_losses = 0
        elif pnl < 0:
            result.current_losses += 1
            result.current_wins = 0
        else:
            result.current_wins = 0
            result.current_losses = 0
        result.max_wins = max(result.max_wins, result.current_wins)
        result.max_losses = max(result.max_losses, result.current_losses)
    return result
