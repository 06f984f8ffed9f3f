"""Position lifecycle package exports."""

from trading_ai.positions.lifecycle import PositionService
from trading_ai.positions.models import (
    ClosePositionRequest,
    OpenPositionRequest,
    Position,
    validate_position,
)
from trading_ai.positions.pnl import apply_realized_pnl, compute_slippage

__all__ = [
    "ClosePositionRequest",
    "OpenPositionRequest",
    "Position",
    "PositionService",
    "apply_realized_pnl",
    "compute_slippage",
    "validate_position",
]
