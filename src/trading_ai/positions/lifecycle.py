"""Position state machine: PENDING -> OPEN -> CLOSED, PENDING -> CANCELLED."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable

from trading_ai.errors import (
    ForbiddenOwnership,
    InvalidPositionOperation,
    InvalidSignal,
    PositionNotFound,
    PositionValidationError,
    SymbolNotFound,
)
from trading_ai.positions.models import (
    ClosePositionRequest,
    OpenPositionRequest,
    Position,
    validate_position,
)
from trading_ai.positions.pnl import apply_realized_pnl, compute_slippage
from trading_ai.store.base import PositionStore, SignalStore, SymbolRegistry, paginate
from trading_ai.types import Caller, Page, PositionStatus, utc_now
from trading_ai.utils.logging import get_logger, log_position_event


class PositionService:
    """Drives positions through their lifecycle on behalf of a caller.

    Every call that touches an existing position checks, in order: that it
    exists (``PositionNotFound``), that the caller owns it or is an admin
    (``ForbiddenOwnership``), and that the current state allows the
    transition (``InvalidPositionOperation``).
    """

    def __init__(
        self,
        symbols: SymbolRegistry,
        positions: PositionStore,
        signals: SignalStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._symbols = symbols
        self._positions = positions
        self._signals = signals
        self._clock = clock
        self._logger = get_logger("trading_ai.positions.lifecycle")

    def open(self, request: OpenPositionRequest, caller: Caller) -> Position:
        """Create a PENDING position owned by the caller."""
        code = self._symbols.get(request.symbol_code)
        if code is None:
            raise SymbolNotFound(request.symbol_code)
        if request.signal_id is not None and self._signals.get(request.signal_id) is None:
            raise InvalidSignal(
                f"Signal not found: {request.signal_id}",
                {"signal_id": request.signal_id},
            )

        now = self._clock()
        position = Position(
            id=uuid.uuid4().hex,
            signal_id=request.signal_id,
            symbol_code=code,
            direction=request.direction,
            planned_entry_price=request.planned_entry_price,
            stop_loss=request.stop_loss,
            take_profit_1=request.take_profit_1,
            take_profit_2=request.take_profit_2,
            take_profit_3=request.take_profit_3,
            quantity=request.quantity,
            notes=request.notes,
            owner=caller.username,
            created_at=now,
            updated_at=now,
        )
        validate_position(position)
        saved = self._positions.save(position)
        self._log("opened", saved, caller, planned_entry_price=str(saved.planned_entry_price))
        return saved

    def open_from_signal(
        self,
        signal_id: str,
        quantity: Decimal,
        caller: Caller,
        notes: str | None = None,
    ) -> Position:
        """Plan a position from a stored signal's direction and levels."""
        signal = self._signals.get(signal_id)
        if signal is None:
            raise InvalidSignal(f"Signal not found: {signal_id}", {"signal_id": signal_id})
        request = OpenPositionRequest(
            symbol_code=signal.symbol_code,
            direction=signal.direction,
            planned_entry_price=signal.entry_price,
            stop_loss=signal.stop_loss,
            take_profit_1=signal.take_profit_1,
            take_profit_2=signal.take_profit_2,
            take_profit_3=signal.take_profit_3,
            quantity=quantity,
            notes=notes,
            signal_id=signal.id,
        )
        return self.open(request, caller)

    def execute(self, position_id: str, actual_entry_price: Decimal, caller: Caller) -> Position:
        """Record the fill of a PENDING position."""
        position = self._load_owned(position_id, caller)
        self._require_status(position, PositionStatus.PENDING, "execute")
        if actual_entry_price <= 0:
            raise PositionValidationError(
                "actual_entry_price must be positive",
                {"position_id": position_id, "actual_entry_price": str(actual_entry_price)},
            )

        now = self._clock()
        updated = replace(
            position,
            actual_entry_price=actual_entry_price,
            opened_at=now,
            status=PositionStatus.OPEN,
            slippage=compute_slippage(position.planned_entry_price, actual_entry_price),
            updated_at=now,
        )
        saved = self._positions.save(updated)
        self._log(
            "executed",
            saved,
            caller,
            actual_entry_price=str(actual_entry_price),
            slippage=str(saved.slippage) if saved.slippage is not None else None,
        )
        return saved

    def close(self, position_id: str, request: ClosePositionRequest, caller: Caller) -> Position:
        """Close an OPEN position and realize its P&L."""
        position = self._load_owned(position_id, caller)
        self._require_status(position, PositionStatus.OPEN, "close")
        request.validate()

        now = self._clock()
        updated = replace(
            position,
            exit_price=request.exit_price,
            exit_reason=request.exit_reason,
            closed_at=now,
            status=PositionStatus.CLOSED,
            updated_at=now,
        )
        if request.fees is not None:
            updated.fees = updated.fees + request.fees
        updated.append_notes(request.notes)
        apply_realized_pnl(updated)

        saved = self._positions.save(updated)
        self._log(
            "closed",
            saved,
            caller,
            exit_reason=request.exit_reason.value,
            realized_pnl=str(saved.realized_pnl) if saved.realized_pnl is not None else None,
        )
        return saved

    def cancel(self, position_id: str, caller: Caller) -> Position:
        """Abandon a PENDING position."""
        position = self._load_owned(position_id, caller)
        self._require_status(position, PositionStatus.PENDING, "cancel")

        updated = replace(position, status=PositionStatus.CANCELLED, updated_at=self._clock())
        saved = self._positions.save(updated)
        self._log("cancelled", saved, caller)
        return saved

    def get(self, position_id: str, caller: Caller) -> Position:
        return self._load_owned(position_id, caller)

    def list_positions(
        self,
        caller: Caller,
        symbol_code: str | None = None,
        status: PositionStatus | None = None,
        page: int = 0,
        size: int = 20,
    ) -> Page[Position]:
        """Caller's positions (all positions for admins), newest first."""
        owner = None if caller.is_admin else caller.username
        code = None
        if symbol_code is not None:
            code = self._symbols.get(symbol_code)
            if code is None:
                raise SymbolNotFound(symbol_code)
        found = self._positions.list(owner=owner, symbol_code=code, status=status)
        return Page(items=paginate(found, page, size), page=page, size=size, total=len(found))

    def open_positions(self, caller: Caller) -> list[Position]:
        """The caller's own OPEN positions."""
        return self._positions.list(owner=caller.username, status=PositionStatus.OPEN)

    def _load_owned(self, position_id: str, caller: Caller) -> Position:
        position = self._positions.get(position_id)
        if position is None:
            raise PositionNotFound(position_id)
        if not caller.is_admin and position.owner != caller.username:
            raise ForbiddenOwnership.for_resource("positions", caller.username)
        return position

    @staticmethod
    def _require_status(position: Position, expected: PositionStatus, action: str) -> None:
        if position.status != expected:
            raise InvalidPositionOperation(
                f"Cannot {action} position in status {position.status.value}; "
                f"only {expected.value} positions can be {_PAST_TENSE[action]}",
                {"position_id": position.id, "status": position.status.value},
            )

    def _log(self, action: str, position: Position, caller: Caller, **kwargs: object) -> None:
        log_position_event(
            self._logger,
            action=action,
            position_id=position.id,
            symbol=position.symbol_code,
            status=position.status.value,
            caller=caller.username,
            version=position.version,
            **kwargs,
        )


_PAST_TENSE = {"execute": "executed", "close": "closed", "cancel": "cancelled"}
