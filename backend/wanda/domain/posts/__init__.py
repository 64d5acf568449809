"""Community and official posts."""
