"""Execution context - the data a trigger hands to a workflow run."""

from __future__ import annotations

import re
from typing import Any

_TEMPLATE = re.compile(r"\{\{(.+?)\}\}")

# Roots searched for a bare field name such as "status" or "email"
_ENTITY_ROOTS = ("entity", "contact", "deal", "company", "trigger")


class ExecutionContext:
    """Holds runtime data for a workflow run.

    Trigger data is stored under ``trigger``; an ``entity`` (or ``contact``,
    ``deal``, ``company``) block is also promoted to the top level so filters
    can name fields directly.  Values are read with dotted paths and
    substituted into strings with ``{{variable}}`` templates.
    """

    def __init__(self, trigger_data: dict | None = None):
        self._data: dict[str, Any] = {}
        if trigger_data:
            self._data["trigger"] = trigger_data
            for root in _ENTITY_ROOTS[:-1]:
                if isinstance(trigger_data.get(root), dict):
                    self._data[root] = trigger_data[root]

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def set_variable(self, name: str, value: Any) -> None:
        self._data.setdefault("variables", {})[name] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get value by dotted key path (e.g. 'contact.first_name')."""
        current: Any = self._data
        for part in key.split("."):
            if isinstance(current, dict):
                current = current.get(part)
            else:
                return default
            if current is None:
                return default
        return current

    def lookup(self, field: str) -> Any:
        """Resolve a filter field, falling back to the entity roots for bare names."""
        value = self.get(field)
        if value is not None or "." in field:
            return value
        for root in _ENTITY_ROOTS:
            value = self.get(f"{root}.{field}")
            if value is not None:
                return value
        return None

    def resolve_template(self, text: str) -> str:
        """Replace {{variable}} placeholders with context values."""

        def replacer(match: re.Match) -> str:
            value = self.get(match.group(1).strip())
            return str(value) if value is not None else match.group(0)

        return _TEMPLATE.sub(replacer, text)

    def to_dict(self) -> dict:
        return dict(self._data)
