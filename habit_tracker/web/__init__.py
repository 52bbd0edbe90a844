"""Web layer package."""
