"""In-memory stores for tests and single-process use."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Iterable

from trading_ai.errors import ConcurrentModification
from trading_ai.positions.models import Position, validate_position
from trading_ai.store.base import check_partition, matches, merge_new, paginate, sort_newest_first
from trading_ai.types import Candle, Page, PositionStatus, Signal


class InMemorySymbolRegistry:
    def __init__(self, codes: Iterable[str]) -> None:
        self._codes = {code.strip().upper(): code.strip().upper() for code in codes}

    def get(self, code: str) -> str | None:
        return self._codes.get(code.strip().upper())

    def codes(self) -> list[str]:
        return sorted(self._codes)


class InMemoryCandleStore:
    """Candles keyed by (symbol, timeframe), each partition kept sorted."""

    def __init__(self) -> None:
        self._partitions: dict[tuple[str, str], list[Candle]] = {}
        self._lock = threading.Lock()

    def fetch_recent(self, symbol_code: str, timeframe: str, limit: int) -> list[Candle]:
        if limit <= 0:
            return []
        with self._lock:
            candles = self._partitions.get((symbol_code, timeframe), [])
            return list(candles[-limit:])

    def replace_all(self, symbol_code: str, timeframe: str, candles: Iterable[Candle]) -> int:
        batch = check_partition(symbol_code, timeframe, candles)
        with self._lock:
            self._partitions[(symbol_code, timeframe)] = batch
        return len(batch)

    def upsert(self, symbol_code: str, timeframe: str, candles: Iterable[Candle]) -> int:
        batch = check_partition(symbol_code, timeframe, candles)
        with self._lock:
            existing = self._partitions.get((symbol_code, timeframe), [])
            merged, added = merge_new(existing, batch)
            self._partitions[(symbol_code, timeframe)] = merged
        return added


class InMemorySignalStore:
    def __init__(self) -> None:
        self._signals: dict[str, Signal] = {}
        self._lock = threading.Lock()

    def save(self, signal: Signal) -> Signal:
        with self._lock:
            self._signals[signal.id] = signal
        return signal

    def get(self, signal_id: str) -> Signal | None:
        return self._signals.get(signal_id)

    def find(
        self,
        symbol_code: str,
        timeframe: str,
        from_: datetime,
        to: datetime,
        page: int,
        size: int,
    ) -> Page[Signal]:
        with self._lock:
            found = [
                signal
                for signal in self._signals.values()
                if signal.symbol_code == symbol_code
                and signal.timeframe == timeframe
                and from_ <= signal.created_at <= to
            ]
        found.sort(key=lambda signal: signal.created_at, reverse=True)
        return Page(items=paginate(found, page, size), page=page, size=size, total=len(found))


class InMemoryPositionStore:
    """Versioned position records. Reads and writes hand out copies."""

    def __init__(self) -> None:
        self._positions: dict[str, Position] = {}
        self._lock = threading.Lock()

    def save(self, position: Position) -> Position:
        validate_position(position)
        with self._lock:
            stored = self._positions.get(position.id)
            current = stored.version if stored is not None else 0
            if position.version != current:
                raise ConcurrentModification(
                    f"Position {position.id} was modified concurrently",
                    {"position_id": position.id, "expected": current, "got": position.version},
                )
            saved = replace(position, version=current + 1)
            self._positions[position.id] = saved
        return replace(saved)

    def get(self, position_id: str) -> Position | None:
        stored = self._positions.get(position_id)
        return replace(stored) if stored is not None else None

    def delete(self, position_id: str) -> bool:
        with self._lock:
            return self._positions.pop(position_id, None) is not None

    def list(
        self,
        *,
        owner: str | None = None,
        symbol_code: str | None = None,
        status: PositionStatus | None = None,
    ) -> list[Position]:
        with self._lock:
            found = [
                replace(position)
                for position in self._positions.values()
                if matches(position, owner, symbol_code, status)
            ]
        return sort_newest_first(found)
