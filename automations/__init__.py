"""Workflow automation steps: config schemas, editors and the engine contract."""

__version__ = "0.1.0"
