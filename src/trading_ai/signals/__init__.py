"""Signal generation service."""
