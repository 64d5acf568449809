"""Reports and moderator decisions."""
