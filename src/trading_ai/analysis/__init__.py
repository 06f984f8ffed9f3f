"""Market analysis context building."""
