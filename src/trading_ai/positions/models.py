"""Position record, request types and invariant checks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from trading_ai.errors import PositionValidationError
from trading_ai.types import Direction, ExitReason, PositionStatus

_ZERO = Decimal(0)


@dataclass(slots=True)
class Position:
    """A user's trade from plan to close.

    ``version`` is owned by the position store and bumped on every save.
    """

    id: str
    symbol_code: str
    direction: Direction
    planned_entry_price: Decimal
    stop_loss: Decimal
    quantity: Decimal
    owner: str
    status: PositionStatus = PositionStatus.PENDING
    signal_id: str | None = None
    actual_entry_price: Decimal | None = None
    take_profit_1: Decimal | None = None
    take_profit_2: Decimal | None = None
    take_profit_3: Decimal | None = None
    exit_price: Decimal | None = None
    fees: Decimal = _ZERO
    realized_pnl: Decimal | None = None
    realized_pnl_percent: Decimal | None = None
    actual_risk_reward: Decimal | None = None
    exit_reason: ExitReason | None = None
    opened_at: datetime | None = None
    closed_at: datetime | None = None
    slippage: Decimal | None = None
    duration_ms: int | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @property
    def is_long(self) -> bool:
        return self.direction == Direction.LONG

    def append_notes(self, text: str | None) -> None:
        if not text:
            return
        self.notes = f"{self.notes}\n{text}" if self.notes else text


@dataclass(frozen=True, slots=True)
class OpenPositionRequest:
    symbol_code: str
    direction: Direction
    planned_entry_price: Decimal
    stop_loss: Decimal
    quantity: Decimal
    take_profit_1: Decimal | None = None
    take_profit_2: Decimal | None = None
    take_profit_3: Decimal | None = None
    notes: str | None = None
    signal_id: str | None = None


@dataclass(frozen=True, slots=True)
class ClosePositionRequest:
    exit_price: Decimal
    exit_reason: ExitReason
    fees: Decimal | None = None
    notes: str | None = None

    def validate(self) -> None:
        problems: list[str] = []
        if self.exit_price <= 0:
            problems.append("exit_price must be positive")
        if self.fees is not None and self.fees < 0:
            problems.append("fees must not be negative")
        if problems:
            raise PositionValidationError("; ".join(problems), {"violations": problems})


def position_violations(position: Position) -> list[str]:
    """List every invariant the position breaks, in a stable order."""
    problems: list[str] = []

    if position.direction not in (Direction.LONG, Direction.SHORT):
        problems.append("direction must be LONG or SHORT")
    if position.quantity <= 0:
        problems.append("quantity must be positive")
    if position.planned_entry_price <= 0:
        problems.append("planned_entry_price must be positive")
    if position.stop_loss <= 0:
        problems.append("stop_loss must be positive")
    if position.fees < 0:
        problems.append("fees must not be negative")

    if position.direction == Direction.LONG and position.stop_loss >= position.planned_entry_price:
        problems.append("LONG position: stop loss must be below planned entry price")
    if position.direction == Direction.SHORT and position.stop_loss <= position.planned_entry_price:
        problems.append("SHORT position: stop loss must be above planned entry price")

    if position.status != PositionStatus.CLOSED:
        for name in ("realized_pnl", "realized_pnl_percent", "actual_risk_reward", "duration_ms"):
            if getattr(position, name) is not None:
                problems.append(f"{name} is only set on CLOSED positions")

    return problems


def validate_position(position: Position) -> None:
    """Raise ``PositionValidationError`` when any invariant is broken."""
    problems = position_violations(position)
    if problems:
        raise PositionValidationError(
            problems[0],
            {"position_id": position.id, "violations": problems},
        )
