"""Store interfaces shared by the in-memory and file-backed implementations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Protocol, Sequence

from trading_ai.positions.models import Position
from trading_ai.types import Candle, Page, PositionStatus, Signal


class SymbolRegistry(Protocol):
    def get(self, code: str) -> str | None:
        """Canonical symbol code, or None when unknown."""

    def codes(self) -> list[str]:
        """All registered codes."""


class CandleStore(Protocol):
    def fetch_recent(self, symbol_code: str, timeframe: str, limit: int) -> list[Candle]:
        """Up to ``limit`` most recent candles, ascending by timestamp."""

    def replace_all(self, symbol_code: str, timeframe: str, candles: Iterable[Candle]) -> int:
        """Atomically replace one (symbol, timeframe) partition."""

    def upsert(self, symbol_code: str, timeframe: str, candles: Iterable[Candle]) -> int:
        """Add candles whose timestamps are not stored yet; return how many."""


class SignalStore(Protocol):
    def save(self, signal: Signal) -> Signal: ...

    def get(self, signal_id: str) -> Signal | None: ...

    def find(
        self,
        symbol_code: str,
        timeframe: str,
        from_: datetime,
        to: datetime,
        page: int,
        size: int,
    ) -> Page[Signal]:
        """Signals created in ``[from_, to]``, newest first."""


class PositionStore(Protocol):
    def save(self, position: Position) -> Position:
        """Persist a copy and return it with its new version.

        Raises ``ConcurrentModification`` when ``position.version`` does not
        match the stored version.
        """

    def get(self, position_id: str) -> Position | None: ...

    def delete(self, position_id: str) -> bool: ...

    def list(
        self,
        *,
        owner: str | None = None,
        symbol_code: str | None = None,
        status: PositionStatus | None = None,
    ) -> list[Position]:
        """Matching positions, newest opened/created first."""


_EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)


def check_partition(symbol_code: str, timeframe: str, candles: Iterable[Candle]) -> list[Candle]:
    """Validate a candle batch for one partition and return it sorted.

    Raises ``ValueError`` on a candle from another partition or a repeated
    timestamp.
    """
    batch = sorted(candles, key=lambda candle: candle.timestamp)
    seen: set[datetime] = set()
    for candle in batch:
        if candle.symbol != symbol_code or candle.timeframe != timeframe:
            raise ValueError(
                f"candle_partition_mismatch: {candle.symbol}/{candle.timeframe} "
                f"!= {symbol_code}/{timeframe}"
            )
        if candle.timestamp in seen:
            raise ValueError(f"duplicate_candle_timestamp: {candle.timestamp.isoformat()}")
        seen.add(candle.timestamp)
    return batch


def merge_new(existing: Sequence[Candle], incoming: Iterable[Candle]) -> tuple[list[Candle], int]:
    """Append incoming candles with unseen timestamps; return merged list and count added."""
    known = {candle.timestamp for candle in existing}
    added = [candle for candle in incoming if candle.timestamp not in known]
    merged = sorted([*existing, *added], key=lambda candle: candle.timestamp)
    return merged, len(added)


def sort_newest_first(positions: Iterable[Position]) -> list[Position]:
    return sorted(positions, key=_recency_key, reverse=True)


def paginate(items: Sequence[object], page: int, size: int) -> list:
    if page < 0 or size <= 0:
        return []
    start = page * size
    return list(items[start : start + size])


def matches(
    position: Position,
    owner: str | None,
    symbol_code: str | None,
    status: PositionStatus | None,
) -> bool:
    if owner is not None and position.owner != owner:
        return False
    if symbol_code is not None and position.symbol_code != symbol_code:
        return False
    if status is not None and position.status != status:
        return False
    return True


def _recency_key(position: Position) -> datetime:
    stamp = position.opened_at or position.created_at
    return stamp if stamp is not None else _EPOCH_MIN
