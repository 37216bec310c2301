"""Terminal surface for the exercise engine."""
