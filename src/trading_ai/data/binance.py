"""Binance market data client."""

from __future__ import annotations

import pandas as pd  # type: ignore[import-untyped]
from binance.client import Client  # type: ignore[import-untyped]
from binance.exceptions import BinanceAPIException, BinanceRequestException  # type: ignore[import-untyped]

from trading_ai.config import Settings
from trading_ai.data.candles import frame_to_candles, normalize_ohlcv
from trading_ai.errors import MarketDataUnavailable
from trading_ai.types import Candle, Timeframe
from trading_ai.utils.logging import get_logger

_KLINE_COLUMNS = [
    "open_time",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "close_time",
    "quote_asset_volume",
    "number_of_trades",
    "taker_buy_base_asset_volume",
    "taker_buy_quote_asset_volume",
    "ignore",
]


class BinanceDataClient:
    """Read-only spot kline client."""

    _INTERVAL_MAP = {
        Timeframe.M1: Client.KLINE_INTERVAL_1MINUTE,
        Timeframe.M5: Client.KLINE_INTERVAL_5MINUTE,
        Timeframe.M15: Client.KLINE_INTERVAL_15MINUTE,
        Timeframe.M30: Client.KLINE_INTERVAL_30MINUTE,
        Timeframe.H1: Client.KLINE_INTERVAL_1HOUR,
        Timeframe.H4: Client.KLINE_INTERVAL_4HOUR,
        Timeframe.D1: Client.KLINE_INTERVAL_1DAY,
        Timeframe.W1: Client.KLINE_INTERVAL_1WEEK,
    }

    def __init__(self, settings: Settings, client: Client | None = None) -> None:
        self._settings = settings
        self._logger = get_logger("trading_ai.data.binance")
        self._client = client

    def _connect(self) -> Client:
        # Client pings the API on construction, so build it on first use
        if self._client is None:
            self._client = Client(
                api_key=self._settings.binance_api_key or None,
                api_secret=self._settings.binance_api_secret or None,
                testnet=self._settings.binance_testnet,
            )
        return self._client

    def fetch_ohlcv(self, symbol: str, timeframe: Timeframe | str, limit: int) -> pd.DataFrame:
        """Fetch spot klines and return a normalized dataframe."""
        resolved = Timeframe.from_string(timeframe)
        details = {"symbol": symbol, "timeframe": resolved.value}
        # requests errors subclass OSError
        try:
            rows = self._connect().get_klines(
                symbol=symbol,
                interval=self._INTERVAL_MAP[resolved],
                limit=limit,
            )
        except (BinanceAPIException, BinanceRequestException, OSError) as exc:
            self._logger.warning("ohlcv_fetch_failed", error=str(exc), **details)
            raise MarketDataUnavailable(f"Binance klines request failed: {exc}", details) from exc
        df = pd.DataFrame(rows, columns=_KLINE_COLUMNS)
        if df.empty:
            raise MarketDataUnavailable("empty_ohlcv_response", details)

        # Binance reports open_time as epoch milliseconds
        df["open_time"] = pd.to_numeric(df["open_time"], errors="coerce")
        normalized = normalize_ohlcv(df)
        self._logger.info(
            "ohlcv_fetched",
            symbol=symbol,
            timeframe=resolved.value,
            rows=len(normalized),
        )
        return normalized

    def fetch_candles(self, symbol: str, timeframe: Timeframe | str, limit: int) -> list[Candle]:
        """Fetch klines as candles, oldest first."""
        resolved = Timeframe.from_string(timeframe)
        return frame_to_candles(self.fetch_ohlcv(symbol, resolved, limit), symbol, resolved.value)
