"""OHLCV frame normalisation and conversion to candles."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pandas as pd  # type: ignore[import-untyped]

from trading_ai.types import Candle

_REQUIRED_COLUMNS = [
    "open_time",
    "open",
    "high",
    "low",
    "close",
    "volume",
]
_PRICE_COLUMNS = ["open", "high", "low", "close"]
_NUMERIC_COLUMNS = [*_PRICE_COLUMNS, "volume"]
_COLUMN_ALIASES = {
    "timestamp": "open_time",
    "time": "open_time",
    "date": "open_time",
    "datetime": "open_time",
}


def load_ohlcv_csv(path: Path) -> pd.DataFrame:
    """Load OHLCV data from CSV and normalize schema."""
    df = pd.read_csv(path)
    return normalize_ohlcv(df)


def normalize_ohlcv(df: pd.DataFrame) -> pd.DataFrame:
    """Validate/normalize dataframe to the expected OHLCV shape.

    Column names are matched case-insensitively and ``timestamp``/``time``
    are accepted for ``open_time``. Integer times are read as epoch
    milliseconds. Rows with missing or non-positive prices, negative volume
    or a repeated ``open_time`` are dropped (last one wins).
    """
    renamed = df.rename(columns=lambda col: str(col).strip().lower())
    renamed = renamed.rename(
        columns={k: v for k, v in _COLUMN_ALIASES.items() if v not in renamed.columns}
    )
    missing = [col for col in _REQUIRED_COLUMNS if col not in renamed.columns]
    if missing:
        raise ValueError(f"missing_ohlcv_columns: {','.join(missing)}")

    normalized = renamed[_REQUIRED_COLUMNS].copy()
    normalized["open_time"] = _to_utc(normalized["open_time"])
    for col in _NUMERIC_COLUMNS:
        normalized[col] = pd.to_numeric(normalized[col], errors="coerce")

    normalized = normalized.dropna(subset=[*_NUMERIC_COLUMNS, "open_time"])
    positive = (normalized[_PRICE_COLUMNS] > 0).all(axis=1) & (normalized["volume"] >= 0)
    normalized = normalized[positive]
    normalized = normalized.drop_duplicates(subset="open_time", keep="last")
    normalized = normalized.sort_values("open_time").reset_index(drop=True)
    if not bool(normalized["open_time"].is_monotonic_increasing):
        raise ValueError("ohlcv_not_monotonic_after_normalization")
    return normalized


def frame_to_candles(df: pd.DataFrame, symbol: str, timeframe: str) -> list[Candle]:
    """Convert a normalized frame into candles, oldest first."""
    candles: list[Candle] = []
    for row in df.itertuples(index=False):
        candles.append(
            Candle(
                symbol=symbol,
                timeframe=timeframe,
                timestamp=row.open_time.to_pydatetime(),
                open=_decimal(row.open),
                high=_decimal(row.high),
                low=_decimal(row.low),
                close=_decimal(row.close),
                volume=_decimal(row.volume),
            )
        )
    return candles


def candles_to_frame(candles: list[Candle]) -> pd.DataFrame:
    """Inverse of ``frame_to_candles``; prices are kept as strings to stay exact."""
    return pd.DataFrame(
        {
            "open_time": [candle.timestamp.isoformat() for candle in candles],
            "open": [str(candle.open) for candle in candles],
            "high": [str(candle.high) for candle in candles],
            "low": [str(candle.low) for candle in candles],
            "close": [str(candle.close) for candle in candles],
            "volume": [str(candle.volume) for candle in candles],
        },
        columns=_REQUIRED_COLUMNS,
    )


def _to_utc(values: pd.Series) -> pd.Series:
    if pd.api.types.is_numeric_dtype(values):
        return pd.to_datetime(values, unit="ms", utc=True, errors="coerce")
    return pd.to_datetime(values, utc=True, errors="coerce")


def _decimal(value: object) -> Decimal:
    # str() first so floats keep their shortest repr instead of binary noise
    return Decimal(str(value))
