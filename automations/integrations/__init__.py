"""Integration catalog, OAuth connect flow and dynamic field options."""
