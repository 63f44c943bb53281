"""Book marketplace service."""
