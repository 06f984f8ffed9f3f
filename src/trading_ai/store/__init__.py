"""Store package exports."""

from trading_ai.store.files import CsvCandleStore, JsonlSignalStore, JsonPositionStore
from trading_ai.store.memory import (
    InMemoryCandleStore,
    InMemoryPositionStore,
    InMemorySignalStore,
    InMemorySymbolRegistry,
)

__all__ = [
    "CsvCandleStore",
    "InMemoryCandleStore",
    "InMemoryPositionStore",
    "InMemorySignalStore",
    "InMemorySymbolRegistry",
    "JsonPositionStore",
    "JsonlSignalStore",
]
