"""Config editors - one per step type.

An editor never holds state.  The panel keeps an editing *draft* (every key
the user has typed this session) and asks the editor for two things:

* ``apply(draft, changes)`` merges a change into the draft, clamping values;
* ``project(draft)`` returns the config that is actually persisted, restricted
  to the keys of the active slice (action type, delay strategy, ...).

Switching a slice back and forth therefore restores what was typed, while the
persisted config never carries keys of an inactive slice.
"""

from __future__ import annotations

import copy
from datetime import date
from typing import Any

from ..api.client import EmailTemplate
from ..integrations.catalog import INTEGRATIONS, Integration, ParamSpec
from ..schemas.steps import (
    ACTION_FIELDS,
    AUTH_FIELDS,
    DELAY_FIELDS,
    DELAY_SHARED_FIELDS,
    TRANSFORM_FIELDS,
    TRANSFORM_SHARED_FIELDS,
    UNARY_OPERATORS,
    AIAgentConfig,
    ConfigModel,
    HttpRequestConfig,
    LoopConfig,
    MergeConfig,
    ParallelConfig,
    TryCatchConfig,
)
from .filters import FilterBuilder, describe_rule

TRIGGER_LABELS: dict[str, str] = {
    "contact_created": "Contact Created",
    "contact_updated": "Contact Updated",
    "deal_created": "Deal Created",
    "deal_stage_changed": "Deal Stage Changed",
    "form_submitted": "Form Submitted",
    "email_opened": "Email Opened",
    "email_clicked": "Email Clicked",
    "webhook_received": "Webhook Received",
    "manual": "Manual Enrollment",
}

ACTION_LABELS: dict[str, str] = {
    "send_email": "Send Email",
    "update_field": "Update Field",
    "create_task": "Create Task",
    "add_tag": "Add Tag",
    "remove_tag": "Remove Tag",
    "send_notification": "Send Notification",
    "assign_owner": "Assign Owner",
    "enroll_workflow": "Enroll in Workflow",
    "update_lead_score": "Update Lead Score",
    "send_webhook": "Send Webhook",
    "send_sms": "Send SMS",
}

TRANSFORM_LABELS: dict[str, str] = {
    "transform_set": "Set Variables",
    "transform_map": "Map Data",
    "transform_filter": "Filter Array",
}

WEEKDAYS: dict[str, str] = {
    "0": "Sunday",
    "1": "Monday",
    "2": "Tuesday",
    "3": "Wednesday",
    "4": "Thursday",
    "5": "Friday",
    "6": "Saturday",
}


def _whole_number(value: Any, fallback: int) -> int:
    """Numeric form input as an int; blank or non-numeric input gives ``fallback``."""
    try:
        return int(float(value)) or fallback
    except (TypeError, ValueError, OverflowError):
        return fallback


class StepEditor:
    """Pass-through editor, also used for step types this client doesn't know."""

    step_type: str = ""

    def defaults(self) -> dict[str, Any]:
        return {}

    def allowed_keys(self, draft: dict[str, Any]) -> set[str] | None:
        """Wire keys of the active slice; ``None`` keeps every key."""
        return None

    def normalize(self, draft: dict[str, Any]) -> dict[str, Any]:
        return draft

    def apply(self, draft: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
        return self.normalize({**draft, **changes})

    def project(self, draft: dict[str, Any]) -> dict[str, Any]:
        allowed = self.allowed_keys(draft)
        return {
            key: value
            for key, value in draft.items()
            if value is not None and (allowed is None or key in allowed)
        }

    def preview(self, config: dict[str, Any]) -> str | None:
        return None


class SchemaEditor(StepEditor):
    """Plain field binding against a config schema."""

    model: type[ConfigModel] = ConfigModel
    default_config: dict[str, Any] = {}

    def defaults(self) -> dict[str, Any]:
        return copy.deepcopy(self.default_config)

    def allowed_keys(self, draft: dict[str, Any]) -> set[str] | None:
        return set(self.model.wire_keys())


class TriggerEditor(StepEditor):
    step_type = "trigger"

    def defaults(self) -> dict[str, Any]:
        return {"triggerType": "contact_created", "filters": []}

    def allowed_keys(self, draft: dict[str, Any]) -> set[str] | None:
        return {"triggerType", "filters"}

    def filter_builder(self, draft: dict[str, Any]) -> FilterBuilder:
        return FilterBuilder(draft.get("filters"))

    def preview(self, config: dict[str, Any]) -> str | None:
        trigger_type = config.get("triggerType")
        label = TRIGGER_LABELS.get(trigger_type, "Choose a trigger")
        conditions = FilterBuilder(config.get("filters")).describe()
        return f"{label}\n{conditions}" if conditions else label


class ActionEditor(StepEditor):
    step_type = "action"

    def defaults(self) -> dict[str, Any]:
        return {"actionType": "update_field"}

    def allowed_keys(self, draft: dict[str, Any]) -> set[str] | None:
        action_type = draft.get("actionType")
        return {"actionType", *ACTION_FIELDS.get(action_type, ())}

    def normalize(self, draft: dict[str, Any]) -> dict[str, Any]:
        due = draft.get("taskDueInDays")
        if due is not None:
            draft["taskDueInDays"] = max(0, _whole_number(due, 0))
        return draft

    def template_changes(self, template_id: str, templates: list[EmailTemplate]) -> dict[str, Any]:
        """Config changes for picking a template: its subject and body are copied in."""
        template = next((t for t in templates if t.id == template_id), None)
        if template is None:
            return {"emailTemplateId": ""}
        return {
            "emailTemplateId": template.id,
            "emailSubject": template.subject,
            "emailBody": template.body,
        }

    def preview(self, config: dict[str, Any]) -> str | None:
        action_type = config.get("actionType")
        label = ACTION_LABELS.get(action_type, "Choose an action")
        if action_type in ("add_tag", "remove_tag") and config.get("tagName"):
            return f'{label} "{config["tagName"]}"'
        if action_type == "send_email" and config.get("emailSubject"):
            return f'{label}: {config["emailSubject"]}'
        return label


class DelayEditor(StepEditor):
    step_type = "delay"

    _STRATEGY_DEFAULTS: dict[str, dict[str, Any]] = {
        "duration": {"delayValue": 1, "delayUnit": "days"},
        "until_date": {},
        "until_time": {"delayTime": "09:00"},
        "until_weekday": {"delayWeekday": "1"},
    }

    def defaults(self) -> dict[str, Any]:
        return {"delayType": "duration", "delayValue": 1, "delayUnit": "days"}

    def allowed_keys(self, draft: dict[str, Any]) -> set[str] | None:
        strategy = draft.get("delayType") or "duration"
        return {*DELAY_SHARED_FIELDS, *DELAY_FIELDS.get(strategy, ())}

    def normalize(self, draft: dict[str, Any]) -> dict[str, Any]:
        strategy = draft.get("delayType") or "duration"
        for key, value in self._STRATEGY_DEFAULTS.get(strategy, {}).items():
            draft.setdefault(key, value)
        if draft.get("delayValue") is not None:
            draft["delayValue"] = max(1, _whole_number(draft["delayValue"], 1))
        return draft

    def preview(self, config: dict[str, Any]) -> str | None:
        strategy = config.get("delayType") or "duration"
        if strategy == "until_date":
            raw = config.get("delayDate")
            if not raw:
                return "Wait until specific date"
            try:
                target = date.fromisoformat(str(raw))
            except ValueError:
                return f"Wait until {raw}"
            return f"Wait until {target:%b} {target.day}, {target.year}"
        if strategy == "until_time":
            return f"Wait until {config.get('delayTime', '09:00')}"
        if strategy == "until_weekday":
            day = WEEKDAYS.get(str(config.get("delayWeekday", "1")), "Monday")
            return f"Wait until next {day}"
        return f"Wait {config.get('delayValue', 1)} {config.get('delayUnit', 'days')}"


class ConditionEditor(StepEditor):
    """Edits the single rule of a yes/no branch.

    ``field``, ``operator`` and ``value`` changes are applied to the rule;
    a whole ``conditions`` list may also be passed through.
    """

    step_type = "condition"
    _RULE_KEYS = ("field", "operator", "value")

    def defaults(self) -> dict[str, Any]:
        return {"conditions": [{"field": "", "operator": "equals", "value": ""}]}

    def allowed_keys(self, draft: dict[str, Any]) -> set[str] | None:
        return {"conditions"}

    def apply(self, draft: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
        changes = dict(changes)
        rule_changes = {key: changes.pop(key) for key in self._RULE_KEYS if key in changes}
        draft = {**draft, **changes}
        if rule_changes:
            current = (draft.get("conditions") or [{}])[0]
            rule = {**current, **rule_changes}
            if rule.get("operator") in UNARY_OPERATORS:
                rule.pop("value", None)
            draft["conditions"] = [rule]
        return draft

    def rule(self, config: dict[str, Any]) -> dict[str, Any]:
        conditions = config.get("conditions") or []
        return conditions[0] if conditions else {}

    def preview(self, config: dict[str, Any]) -> str | None:
        rule = self.rule(config)
        if not rule.get("field"):
            return "Configure a condition"
        return "If " + describe_rule(rule["field"], rule.get("operator", "equals"), rule.get("value"))


class IntegrationEditor(StepEditor):
    """Three-phase wizard: choose an action, connect an account, fill parameters."""

    BASE_KEYS = ("action", "credentialId", "responseVariable")

    def __init__(self, step_type: str, integration: Integration):
        self.step_type = step_type
        self.integration = integration

    def defaults(self) -> dict[str, Any]:
        return {"responseVariable": self.integration.default_response_variable}

    def allowed_keys(self, draft: dict[str, Any]) -> set[str] | None:
        spec = self.integration.actions.get(draft.get("action"))
        return {*self.BASE_KEYS, *(spec.keys() if spec else ())}

    def phase(self, config: dict[str, Any]) -> str:
        if config.get("action") not in self.integration.actions:
            return "choose_action"
        if not config.get("credentialId"):
            return "connect"
        return "configure"

    def params(self, config: dict[str, Any]) -> tuple[ParamSpec, ...]:
        spec = self.integration.actions.get(config.get("action"))
        return spec.params if spec else ()

    def dynamic_params(self, config: dict[str, Any]) -> tuple[ParamSpec, ...]:
        return tuple(param for param in self.params(config) if param.dynamic)

    def preview(self, config: dict[str, Any]) -> str | None:
        spec = self.integration.actions.get(config.get("action"))
        if not spec:
            return f"{self.integration.label}: choose an action"
        return f"{self.integration.label}: {spec.label}"


class HttpRequestEditor(SchemaEditor):
    step_type = "http_request"
    model = HttpRequestConfig
    default_config = {
        "method": "GET",
        "url": "",
        "headers": [],
        "authentication": {"type": "none"},
    }

    # Nested objects merge instead of being replaced wholesale
    _NESTED = ("authentication", "responseHandling")

    def apply(self, draft: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
        merged = {**draft, **changes}
        for key in self._NESTED:
            if isinstance(changes.get(key), dict) and isinstance(draft.get(key), dict):
                merged[key] = {**draft[key], **changes[key]}
        return merged

    def project(self, draft: dict[str, Any]) -> dict[str, Any]:
        config = super().project(draft)
        if config.get("method", "GET") == "GET":
            config.pop("body", None)
        auth = config.get("authentication")
        if isinstance(auth, dict):
            auth_type = auth.get("type", "none")
            keep = {"type", *AUTH_FIELDS.get(auth_type, ())}
            config["authentication"] = {
                k: v for k, v in auth.items() if k in keep and v is not None
            }
        return config

    def add_header(self, draft: dict[str, Any], key: str = "", value: str = "") -> dict[str, Any]:
        headers = [*(draft.get("headers") or []), {"key": key, "value": value}]
        return self.apply(draft, {"headers": headers})

    def remove_header(self, draft: dict[str, Any], index: int) -> dict[str, Any]:
        headers = [h for i, h in enumerate(draft.get("headers") or []) if i != index]
        return self.apply(draft, {"headers": headers})

    def preview(self, config: dict[str, Any]) -> str | None:
        return f"{config.get('method', 'GET')} {config.get('url') or '(no URL)'}"


class TransformEditor(StepEditor):
    step_type = "transform"

    def defaults(self) -> dict[str, Any]:
        return {"actionType": "transform_set", "operations": []}

    def allowed_keys(self, draft: dict[str, Any]) -> set[str] | None:
        kind = draft.get("actionType") or "transform_set"
        return {*TRANSFORM_SHARED_FIELDS, *TRANSFORM_FIELDS.get(kind, ())}

    def normalize(self, draft: dict[str, Any]) -> dict[str, Any]:
        kind = draft.get("actionType") or "transform_set"
        if kind == "transform_set":
            draft.setdefault("operations", [])
        elif kind == "transform_map":
            draft.setdefault("mappings", [])
        return draft

    def preview(self, config: dict[str, Any]) -> str | None:
        kind = config.get("actionType") or "transform_set"
        count = len(config.get("operations") or config.get("mappings") or [])
        label = TRANSFORM_LABELS.get(kind, kind)
        return f"{label} ({count})" if count else label


class LoopEditor(SchemaEditor):
    step_type = "loop"
    model = LoopConfig
    default_config = {
        "sourceType": "variable",
        "itemVariable": "item",
        "indexVariable": "index",
        "mode": "sequential",
        "batchSize": 10,
        "maxIterations": 1000,
    }

    def preview(self, config: dict[str, Any]) -> str | None:
        source = config.get("sourceArray") or "(no source)"
        return f"For each {config.get('itemVariable', 'item')} in {source}"


class AIAgentEditor(SchemaEditor):
    step_type = "ai_agent"
    model = AIAgentConfig
    default_config = {
        "agentType": "auto",
        "includeEntityData": True,
        "includeVariables": True,
        "timeout": 60000,
        "parseAsJSON": False,
    }

    def preview(self, config: dict[str, Any]) -> str | None:
        prompt = (config.get("taskPrompt") or "").strip()
        if not prompt:
            return "Describe the agent's task"
        return prompt if len(prompt) <= 60 else prompt[:57] + "..."


class ParallelEditor(SchemaEditor):
    step_type = "parallel"
    model = ParallelConfig
    default_config = {"branches": [], "waitForAll": True, "timeout": 60000, "onTimeout": "continue"}

    def preview(self, config: dict[str, Any]) -> str | None:
        return f"Run {len(config.get('branches') or [])} branches in parallel"


class MergeEditor(SchemaEditor):
    step_type = "merge"
    model = MergeConfig
    default_config = {"strategy": "wait_all"}

    def preview(self, config: dict[str, Any]) -> str | None:
        if config.get("strategy") == "wait_any":
            return "Continue after the first branch"
        return "Wait for all branches"


class TryCatchEditor(SchemaEditor):
    step_type = "try_catch"
    model = TryCatchConfig
    default_config = {"maxRetries": 0, "errorVariable": "error"}

    def preview(self, config: dict[str, Any]) -> str | None:
        retries = config.get("maxRetries") or 0
        return f"Retry up to {retries} times" if retries else "Catch errors"


def integration_editors() -> dict[str, IntegrationEditor]:
    return {
        "integration_slack": IntegrationEditor("integration_slack", INTEGRATIONS["slack"]),
        "integration_google_sheets": IntegrationEditor(
            "integration_google_sheets", INTEGRATIONS["google_sheets"]
        ),
        "integration_notion": IntegrationEditor("integration_notion", INTEGRATIONS["notion"]),
    }


class EditorDraft:
    """Session state of one step's config editor.

    ``values`` remembers every key entered while the editor is open;
    ``config`` is what gets persisted.
    """

    def __init__(self, editor: StepEditor, config: dict[str, Any] | None = None):
        self.editor = editor
        self.values: dict[str, Any] = dict(config or {})

    @property
    def config(self) -> dict[str, Any]:
        return self.editor.project(self.values)

    def apply(self, changes: dict[str, Any]) -> dict[str, Any]:
        self.values = self.editor.apply(self.values, changes)
        return self.config

    def reset(self, config: dict[str, Any]) -> None:
        self.values = dict(config)
