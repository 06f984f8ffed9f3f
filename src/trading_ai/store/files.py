"""File-backed stores under the configured data directory.

Signals go to daily append-only JSONL files, positions to one JSON document
replaced atomically on every save, candles to one CSV per (symbol, timeframe).
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import asdict, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

import pandas as pd  # type: ignore[import-untyped]

from trading_ai.data.candles import candles_to_frame
from trading_ai.errors import ConcurrentModification
from trading_ai.positions.models import Position, validate_position
from trading_ai.store.base import check_partition, matches, merge_new, paginate, sort_newest_first
from trading_ai.types import (
    Candle,
    Direction,
    ExitReason,
    Page,
    PositionStatus,
    Signal,
    TradingMode,
)

_SIGNAL_DECIMALS = {
    "entry_price",
    "stop_loss",
    "take_profit_1",
    "take_profit_2",
    "take_profit_3",
    "risk_reward_1",
    "risk_reward_2",
    "risk_reward_3",
}
_POSITION_DECIMALS = {
    "planned_entry_price",
    "actual_entry_price",
    "stop_loss",
    "take_profit_1",
    "take_profit_2",
    "take_profit_3",
    "exit_price",
    "quantity",
    "fees",
    "realized_pnl",
    "realized_pnl_percent",
    "actual_risk_reward",
    "slippage",
}
_POSITION_DATETIMES = {"opened_at", "closed_at", "created_at", "updated_at"}


class JsonlSignalStore:
    """Append-only signal journal, one JSONL file per UTC day."""

    def __init__(self, signal_dir: Path) -> None:
        self._signal_dir = signal_dir
        self._signal_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def save(self, signal: Signal) -> Signal:
        file_path = self._file_path_for_day(signal.created_at.date())
        line = json.dumps(signal_to_record(signal), ensure_ascii=True)
        with self._lock, file_path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
        return signal

    def get(self, signal_id: str) -> Signal | None:
        for signal in self._load_all():
            if signal.id == signal_id:
                return signal
        return None

    def find(
        self,
        symbol_code: str,
        timeframe: str,
        from_: datetime,
        to: datetime,
        page: int,
        size: int,
    ) -> Page[Signal]:
        found = [
            signal
            for signal in self._load_all()
            if signal.symbol_code == symbol_code
            and signal.timeframe == timeframe
            and from_ <= signal.created_at <= to
        ]
        found.sort(key=lambda signal: signal.created_at, reverse=True)
        return Page(items=paginate(found, page, size), page=page, size=size, total=len(found))

    def _load_all(self) -> list[Signal]:
        rows: list[Signal] = []
        for file in sorted(self._signal_dir.glob("*.jsonl")):
            for line in file.read_text(encoding="utf-8").splitlines():
                if not line.strip():
                    continue
                rows.append(signal_from_record(json.loads(line)))
        return rows

    def _file_path_for_day(self, day: date) -> Path:
        return self._signal_dir / f"{day.isoformat()}.jsonl"


class JsonPositionStore:
    """All positions in one JSON document, rewritten atomically per save."""

    def __init__(self, state_file: Path) -> None:
        self._state_file = state_file
        self._state_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def save(self, position: Position) -> Position:
        validate_position(position)
        with self._lock:
            records = self._load_state()
            stored = records.get(position.id)
            current = int(stored["version"]) if stored is not None else 0
            if position.version != current:
                raise ConcurrentModification(
                    f"Position {position.id} was modified concurrently",
                    {"position_id": position.id, "expected": current, "got": position.version},
                )
            saved = replace(position, version=current + 1)
            records[position.id] = position_to_record(saved)
            self._persist(records)
        return saved

    def get(self, position_id: str) -> Position | None:
        with self._lock:
            record = self._load_state().get(position_id)
        return position_from_record(record) if record is not None else None

    def delete(self, position_id: str) -> bool:
        with self._lock:
            records = self._load_state()
            if records.pop(position_id, None) is None:
                return False
            self._persist(records)
        return True

    def list(
        self,
        *,
        owner: str | None = None,
        symbol_code: str | None = None,
        status: PositionStatus | None = None,
    ) -> list[Position]:
        with self._lock:
            records = self._load_state()
        positions = [position_from_record(record) for record in records.values()]
        return sort_newest_first(
            position for position in positions if matches(position, owner, symbol_code, status)
        )

    def _load_state(self) -> dict[str, dict[str, Any]]:
        if not self._state_file.exists():
            return {}
        raw = json.loads(self._state_file.read_text(encoding="utf-8"))
        return dict(raw.get("positions", {}))

    def _persist(self, records: dict[str, dict[str, Any]]) -> None:
        serialized = json.dumps({"positions": records}, ensure_ascii=True, indent=2)
        tmp_file = self._state_file.with_suffix(self._state_file.suffix + ".tmp")
        tmp_file.write_text(serialized, encoding="utf-8")
        os.replace(tmp_file, self._state_file)


class CsvCandleStore:
    """One CSV per (symbol, timeframe). Prices are stored as exact decimal strings."""

    def __init__(self, candle_dir: Path) -> None:
        self._candle_dir = candle_dir
        self._candle_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def fetch_recent(self, symbol_code: str, timeframe: str, limit: int) -> list[Candle]:
        if limit <= 0:
            return []
        return self._read(symbol_code, timeframe)[-limit:]

    def replace_all(self, symbol_code: str, timeframe: str, candles: Iterable[Candle]) -> int:
        batch = check_partition(symbol_code, timeframe, candles)
        with self._lock:
            self._write(symbol_code, timeframe, batch)
        return len(batch)

    def upsert(self, symbol_code: str, timeframe: str, candles: Iterable[Candle]) -> int:
        batch = check_partition(symbol_code, timeframe, candles)
        with self._lock:
            merged, added = merge_new(self._read(symbol_code, timeframe), batch)
            if added:
                self._write(symbol_code, timeframe, merged)
        return added

    def _path(self, symbol_code: str, timeframe: str) -> Path:
        return self._candle_dir / f"{symbol_code.lower()}_{timeframe}.csv"

    def _read(self, symbol_code: str, timeframe: str) -> list[Candle]:
        path = self._path(symbol_code, timeframe)
        if not path.exists():
            return []
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        return [
            Candle(
                symbol=symbol_code,
                timeframe=timeframe,
                timestamp=datetime.fromisoformat(row.open_time),
                open=Decimal(row.open),
                high=Decimal(row.high),
                low=Decimal(row.low),
                close=Decimal(row.close),
                volume=Decimal(row.volume),
            )
            for row in df.itertuples(index=False)
        ]

    def _write(self, symbol_code: str, timeframe: str, candles: list[Candle]) -> None:
        path = self._path(symbol_code, timeframe)
        tmp_file = path.with_suffix(".csv.tmp")
        candles_to_frame(candles).to_csv(tmp_file, index=False)
        os.replace(tmp_file, path)


def signal_to_record(signal: Signal) -> dict[str, Any]:
    return {key: _encode(value) for key, value in asdict(signal).items()}


def signal_from_record(record: dict[str, Any]) -> Signal:
    values = dict(record)
    for key in _SIGNAL_DECIMALS:
        values[key] = _decimal_or_none(values.get(key))
    values["mode"] = TradingMode(values["mode"])
    values["direction"] = Direction(values["direction"])
    values["created_at"] = datetime.fromisoformat(values["created_at"])
    return Signal(**values)


def position_to_record(position: Position) -> dict[str, Any]:
    return {key: _encode(value) for key, value in asdict(position).items()}


def position_from_record(record: dict[str, Any]) -> Position:
    values = dict(record)
    for key in _POSITION_DECIMALS:
        values[key] = _decimal_or_none(values.get(key))
    for key in _POSITION_DATETIMES:
        raw = values.get(key)
        values[key] = datetime.fromisoformat(raw) if raw else None
    values["direction"] = Direction(values["direction"])
    values["status"] = PositionStatus(values["status"])
    values["exit_reason"] = ExitReason(values["exit_reason"]) if values.get("exit_reason") else None
    values["version"] = int(values.get("version", 0))
    return Position(**values)


def _encode(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _decimal_or_none(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    return Decimal(str(value))
