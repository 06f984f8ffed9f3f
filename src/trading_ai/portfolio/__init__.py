"""Portfolio statistics."""
