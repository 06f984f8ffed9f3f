from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

import pandas as pd
import pytest

from trading_ai.config import Settings
from trading_ai.data.binance import BinanceDataClient
from trading_ai.data.candles import frame_to_candles, load_ohlcv_csv, normalize_ohlcv
from trading_ai.errors import MarketDataUnavailable
from trading_ai.types import Timeframe


def test_normalize_ohlcv_accepts_timestamp_alias_and_sorts(tmp_path: Path) -> None:
    csv_path = tmp_path / "btc.csv"
    csv_path.write_text(
        "Timestamp,Open,High,Low,Close,Volume\n"
        "2024-01-01T02:00:00Z,102,103,101,102.5,7\n"
        "2024-01-01T00:00:00Z,100,101,99,100.5,5\n"
        "2024-01-01T01:00:00Z,101,102,100,101.5,6\n",
        encoding="utf-8",
    )
    df = load_ohlcv_csv(csv_path)
    assert list(df.columns) == ["open_time", "open", "high", "low", "close", "volume"]
    assert df["close"].tolist() == [100.5, 101.5, 102.5]
    assert str(df["open_time"].dt.tz) == "UTC"


def test_normalize_ohlcv_reads_epoch_millis_and_drops_bad_rows() -> None:
    df = pd.DataFrame(
        {
            "open_time": [1_704_067_200_000, 1_704_070_800_000, 1_704_070_800_000, 1_704_074_400_000],
            "open": [100, 101, 101.5, "x"],
            "high": [101, 102, 102.5, 103],
            "low": [99, 100, 100.5, 101],
            "close": [100.5, 101.5, 102.0, 102.5],
            "volume": [5, 6, 6.5, 7],
        }
    )
    normalized = normalize_ohlcv(df)
    assert len(normalized) == 2
    assert normalized["open_time"].iloc[0] == pd.Timestamp("2024-01-01T00:00:00Z")
    # duplicate open_time keeps the last row
    assert normalized["close"].iloc[1] == 102.0


def test_normalize_ohlcv_missing_columns() -> None:
    with pytest.raises(ValueError, match="missing_ohlcv_columns"):
        normalize_ohlcv(pd.DataFrame({"open_time": [1], "close": [1.0]}))


def test_frame_to_candles_keeps_decimal_repr() -> None:
    df = normalize_ohlcv(
        pd.DataFrame(
            {
                "open_time": ["2024-01-01T00:00:00Z"],
                "open": [0.1],
                "high": [0.3],
                "low": [0.1],
                "close": [0.2],
                "volume": [10],
            }
        )
    )
    candles = frame_to_candles(df, "BTCUSDT", "1h")
    assert len(candles) == 1
    assert candles[0].close == Decimal("0.2")
    assert candles[0].timestamp == datetime(2024, 1, 1, tzinfo=UTC)
    assert candles[0].timeframe == "1h"


class _FakeBinance:
    def __init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    def get_klines(self, **kwargs: object) -> list[list[object]]:
        self.calls.append(kwargs)
        return [
            [1_704_067_200_000, "100.1", "101", "99", "100.5", "12.5", 1_704_070_799_999, "0", 10, "0", "0", "0"],
            [1_704_070_800_000, "100.5", "102", "100", "101.5", "8", 1_704_074_399_999, "0", 10, "0", "0", "0"],
        ]


def test_binance_client_maps_timeframe_and_builds_candles() -> None:
    fake = _FakeBinance()
    client = BinanceDataClient(Settings(), client=fake)

    candles = client.fetch_candles("BTCUSDT", Timeframe.H1, 2)

    assert fake.calls == [{"symbol": "BTCUSDT", "interval": "1h", "limit": 2}]
    assert [c.close for c in candles] == [Decimal("100.5"), Decimal("101.5")]
    assert candles[0].timeframe == "1h"


class _OfflineBinance:
    def get_klines(self, **kwargs: object) -> list[list[object]]:
        raise ConnectionError("connection refused")


class _EmptyBinance:
    def get_klines(self, **kwargs: object) -> list[list[object]]:
        return []


def test_binance_client_failures_are_retryable_market_data_errors() -> None:
    offline = BinanceDataClient(Settings(), client=_OfflineBinance())
    with pytest.raises(MarketDataUnavailable) as excinfo:
        offline.fetch_candles("BTCUSDT", Timeframe.H1, 2)
    assert excinfo.value.retryable
    assert excinfo.value.details == {"symbol": "BTCUSDT", "timeframe": "1h"}

    empty = BinanceDataClient(Settings(), client=_EmptyBinance())
    with pytest.raises(MarketDataUnavailable, match="empty_ohlcv_response"):
        empty.fetch_ohlcv("BTCUSDT", "1h", 2)
