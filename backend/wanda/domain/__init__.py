"""Domain models and engines."""
