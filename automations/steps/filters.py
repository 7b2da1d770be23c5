"""Trigger filter builder and human-readable rule text."""

from __future__ import annotations

import uuid
from typing import Any

from ..schemas.steps import UNARY_OPERATORS

OPERATOR_LABELS: dict[str, str] = {
    "equals": "equals",
    "not_equals": "does not equal",
    "contains": "contains",
    "not_contains": "does not contain",
    "is_empty": "is empty",
    "is_not_empty": "is not empty",
    "greater_than": "is greater than",
    "less_than": "is less than",
    "is_true": "is true",
    "is_false": "is false",
}


def describe_rule(field: str, operator: str, value: Any = None) -> str:
    """``status equals "customer"`` style text for a single rule."""
    label = OPERATOR_LABELS.get(operator, operator.replace("_", " "))
    if operator in UNARY_OPERATORS:
        return f"{field} {label}"
    return f'{field} {label} "{"" if value is None else value}"'


class FilterBuilder:
    """Edits a trigger's ``filters`` list.

    Rows are addressed by id, keep their insertion order and are AND-joined:
    the first renders as "Where", every later one as "And". There is no OR.
    """

    def __init__(self, filters: list[dict] | None = None):
        self._rows: list[dict] = []
        for row in filters or []:
            row = dict(row)
            if not row.get("id"):
                row["id"] = uuid.uuid4().hex
            self._rows.append(row)

    @property
    def filters(self) -> list[dict]:
        return [dict(row) for row in self._rows]

    def __len__(self) -> int:
        return len(self._rows)

    def add(self, field: str = "", operator: str = "equals", value: str = "") -> dict:
        row = {"id": uuid.uuid4().hex, "field": field, "operator": operator, "value": value}
        self._rows.append(row)
        return dict(row)

    def update(self, filter_id: str, **changes: Any) -> dict:
        for row in self._rows:
            if row["id"] == filter_id:
                changes.pop("id", None)
                row.update(changes)
                if row.get("operator") in UNARY_OPERATORS:
                    row["value"] = ""
                return dict(row)
        raise KeyError(filter_id)

    def remove(self, filter_id: str) -> None:
        before = len(self._rows)
        self._rows = [row for row in self._rows if row["id"] != filter_id]
        if len(self._rows) == before:
            raise KeyError(filter_id)

    def describe(self) -> str:
        lines = []
        for row in self._rows:
            if not row.get("field"):
                continue
            joiner = "Where" if not lines else "And"
            lines.append(
                f"{joiner} {describe_rule(row['field'], row.get('operator', 'equals'), row.get('value'))}"
            )
        return "\n".join(lines)
