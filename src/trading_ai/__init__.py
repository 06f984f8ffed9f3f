"""trading-ai: guarded AI trade signals and a position journal."""

__version__ = "0.3.0"
