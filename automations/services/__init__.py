"""Local workflow store services."""
