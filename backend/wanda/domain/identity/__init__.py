"""Members, roles and trust scores."""
