"""Hard numeric guards for trade suggestions."""
