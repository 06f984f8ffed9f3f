"""Market data sources and OHLCV normalisation."""
