"""Step config schemas."""
