"""Typed workflow step configuration schemas.

A step's ``config`` travels as an open JSON object, but every known step type
has a closed schema here.  Parsing rejects unknown keys and keys that belong to
an inactive slice (another action type, delay strategy, transform kind, auth
type or integration action), so stale keys can't leak into persisted configs.

Completeness is a separate concern: ``missing_fields()`` lists what a runnable
step still lacks.  Steps may be saved incomplete while they are being edited;
only activation requires them to be complete.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any, ClassVar, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from ..integrations.catalog import INTEGRATIONS

StepType = Literal[
    "trigger",
    "action",
    "delay",
    "condition",
    "parallel",
    "merge",
    "try_catch",
    "loop",
    "ai_agent",
    "http_request",
    "integration_slack",
    "integration_google_sheets",
    "integration_notion",
    "transform",
]

TriggerType = Literal[
    "contact_created",
    "contact_updated",
    "deal_created",
    "deal_stage_changed",
    "form_submitted",
    "email_opened",
    "email_clicked",
    "webhook_received",
    "manual",
]

ActionType = Literal[
    "send_email",
    "update_field",
    "create_task",
    "add_tag",
    "remove_tag",
    "send_notification",
    "assign_owner",
    "enroll_workflow",
    "update_lead_score",
    "send_webhook",
    "send_sms",
]

FilterOperator = Literal[
    "equals", "not_equals", "contains", "not_contains", "is_empty", "is_not_empty"
]
ConditionOperator = Literal[
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "is_empty",
    "is_not_empty",
    "greater_than",
    "less_than",
    "is_true",
    "is_false",
]
DelayType = Literal["duration", "until_date", "until_time", "until_weekday"]
DelayUnit = Literal["minutes", "hours", "days", "weeks"]
Weekday = Literal["0", "1", "2", "3", "4", "5", "6"]
TransformType = Literal["transform_set", "transform_map", "transform_filter"]
HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
HttpAuthType = Literal["none", "api_key", "bearer", "basic", "oauth2"]
AgentType = Literal["auto", "contact", "deal", "email", "task", "workflow", "general"]

STEP_TYPES: tuple[str, ...] = get_args(StepType)
TRIGGER_TYPES: tuple[str, ...] = get_args(TriggerType)
ACTION_TYPES: tuple[str, ...] = get_args(ActionType)
FILTER_OPERATORS: tuple[str, ...] = get_args(FilterOperator)
CONDITION_OPERATORS: tuple[str, ...] = get_args(ConditionOperator)
DELAY_TYPES: tuple[str, ...] = get_args(DelayType)
TRANSFORM_TYPES: tuple[str, ...] = get_args(TransformType)

# Operators that ignore the comparison value
UNARY_OPERATORS = frozenset({"is_empty", "is_not_empty", "is_true", "is_false"})

# Wire keys owned by each action type (besides ``actionType`` itself)
ACTION_FIELDS: dict[str, tuple[str, ...]] = {
    "send_email": (
        "emailTemplateId",
        "emailSubject",
        "emailBody",
        "useCustomEmail",
        "recipientEmail",
    ),
    "update_field": ("fieldName", "fieldValue"),
    "create_task": ("taskTitle", "taskDescription", "taskDueInDays", "taskAssignee"),
    "add_tag": ("tagName",),
    "remove_tag": ("tagName",),
    "send_notification": ("notificationMessage", "notificationUserId"),
    "assign_owner": ("taskAssignee",),
    "enroll_workflow": ("targetWorkflowId",),
    "update_lead_score": ("scoreMethod", "scorePoints", "scoreEventType", "scoreReason"),
    "send_webhook": ("webhookUrl", "webhookMethod", "webhookHeaders", "webhookBody"),
    "send_sms": ("message", "toField", "toNumber", "fromNumber"),
}

ACTION_REQUIRED: dict[str, tuple[str, ...]] = {
    "update_field": ("fieldName",),
    "create_task": ("taskTitle",),
    "add_tag": ("tagName",),
    "remove_tag": ("tagName",),
    "send_notification": ("notificationMessage",),
    "assign_owner": ("taskAssignee",),
    "enroll_workflow": ("targetWorkflowId",),
    "send_webhook": ("webhookUrl",),
    "send_sms": ("message",),
}

DELAY_FIELDS: dict[str, tuple[str, ...]] = {
    "duration": ("delayValue", "delayUnit"),
    "until_date": ("delayDate",),
    "until_time": ("delayTime",),
    "until_weekday": ("delayWeekday",),
}
DELAY_SHARED_FIELDS: tuple[str, ...] = (
    "delayType",
    "timezone",
    "businessHoursOnly",
    "businessHoursStart",
    "businessHoursEnd",
    "skipWeekends",
    "respectContactTimezone",
)

TRANSFORM_FIELDS: dict[str, tuple[str, ...]] = {
    "transform_set": ("operations",),
    "transform_map": ("sourceArray", "mappings"),
    "transform_filter": ("sourceArray", "filterCondition"),
}
TRANSFORM_SHARED_FIELDS: tuple[str, ...] = ("actionType", "resultVariable")

AUTH_FIELDS: dict[str, tuple[str, ...]] = {
    "none": (),
    "api_key": ("apiKey", "headerName"),
    "bearer": ("token",),
    "basic": ("username", "password"),
    "oauth2": ("credentialId",),
}
AUTH_REQUIRED: dict[str, str] = {
    "api_key": "apiKey",
    "bearer": "token",
    "basic": "username",
    "oauth2": "credentialId",
}

_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class StepConfigError(ValueError):
    """A step config failed structural validation."""

    def __init__(self, step_type: str, errors: list[str]):
        self.step_type = step_type
        self.errors = errors
        super().__init__(f"Invalid {step_type} config: " + "; ".join(errors))


def _blank(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


class ConfigModel(BaseModel):
    """Base for all config schemas: camelCase on the wire, closed key set."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def wire_key(cls, name: str) -> str:
        return cls.model_fields[name].alias or to_camel(name)

    @classmethod
    def wire_keys(cls) -> frozenset[str]:
        return frozenset(cls.wire_key(name) for name in cls.model_fields)

    def present_keys(self) -> set[str]:
        """Wire keys explicitly set to a non-null value."""
        keys = {
            self.wire_key(name)
            for name in self.model_fields_set
            if name in type(self).model_fields and getattr(self, name) is not None
        }
        if self.model_extra:
            keys.update(k for k, v in self.model_extra.items() if v is not None)
        return keys

    def get_key(self, key: str) -> Any:
        """Look up a value by wire key (declared or extra)."""
        for name in type(self).model_fields:
            if self.wire_key(name) == key:
                return getattr(self, name)
        return (self.model_extra or {}).get(key)

    def _check_slice(self, allowed: set[str] | frozenset[str], reason: str) -> None:
        foreign = sorted(self.present_keys() - set(allowed))
        if foreign:
            raise ValueError(f"{', '.join(foreign)} not allowed {reason}")

    def _missing(self, *keys: str) -> list[str]:
        return [key for key in keys if _blank(self.get_key(key))]

    def missing_fields(self) -> list[str]:
        return []

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Shared pieces ─────────────────────────────────────────────────────────


class FilterCondition(ConfigModel):
    """One row of a trigger filter. Rows are AND-joined."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    field: str = ""
    operator: FilterOperator = "equals"
    value: str = ""


class ConditionRule(ConfigModel):
    field: str = ""
    operator: ConditionOperator = "equals"
    value: Any = None

    def missing_fields(self) -> list[str]:
        missing = self._missing("field")
        if self.operator not in UNARY_OPERATORS and _blank(self.value):
            missing.append("value")
        return missing


class HeaderPair(ConfigModel):
    key: str = ""
    value: str = ""


class HttpAuth(ConfigModel):
    type: HttpAuthType = "none"
    api_key: str | None = None
    header_name: str | None = None
    token: str | None = None
    username: str | None = None
    password: str | None = None
    credential_id: str | None = None

    @model_validator(mode="after")
    def _auth_slice(self) -> HttpAuth:
        self._check_slice({"type", *AUTH_FIELDS[self.type]}, f"for {self.type} authentication")
        return self

    def missing_fields(self) -> list[str]:
        required = AUTH_REQUIRED.get(self.type)
        return self._missing(required) if required else []


class ResponseHandling(ConfigModel):
    extract_path: str | None = None
    save_to_variable: str | None = None


class SetOperation(ConfigModel):
    variable: str = ""
    value: Any = ""


class MapOperation(ConfigModel):
    source: str = Field("", alias="from")
    to: str = ""
    transform: str | None = None


# ── Per-type configs ──────────────────────────────────────────────────────


class TriggerConfig(ConfigModel):
    trigger_type: TriggerType | None = None
    filters: list[FilterCondition] = Field(default_factory=list)

    def missing_fields(self) -> list[str]:
        missing = self._missing("triggerType")
        for index, row in enumerate(self.filters):
            if not row.field:
                missing.append(f"filters[{index}].field")
        return missing


class ActionConfig(ConfigModel):
    action_type: ActionType | None = None
    email_template_id: str | None = None
    email_subject: str | None = None
    email_body: str | None = None
    use_custom_email: bool | None = None
    recipient_email: str | None = None
    field_name: str | None = None
    field_value: Any = None
    task_title: str | None = None
    task_description: str | None = None
    task_due_in_days: int | None = Field(None, ge=0)
    task_assignee: str | None = None
    tag_name: str | None = None
    notification_message: str | None = None
    notification_user_id: str | None = None
    target_workflow_id: str | None = None
    score_method: Literal["points", "event"] | None = None
    score_points: int | None = None
    score_event_type: str | None = None
    score_reason: str | None = None
    webhook_url: str | None = None
    webhook_method: Literal["GET", "POST", "PUT", "PATCH"] | None = None
    webhook_headers: dict[str, str] | None = None
    webhook_body: str | None = None
    message: str | None = None
    to_field: str | None = None
    to_number: str | None = None
    from_number: str | None = None

    @model_validator(mode="after")
    def _action_slice(self) -> ActionConfig:
        if self.action_type is None:
            self._check_slice({"actionType"}, "without an actionType")
        else:
            allowed = {"actionType", *ACTION_FIELDS[self.action_type]}
            self._check_slice(allowed, f"for action {self.action_type}")
        return self

    def missing_fields(self) -> list[str]:
        if self.action_type is None:
            return ["actionType"]
        missing = self._missing(*ACTION_REQUIRED.get(self.action_type, ()))
        if self.action_type == "send_email":
            if _blank(self.email_template_id):
                missing += self._missing("emailSubject", "emailBody")
            if self.use_custom_email:
                missing += self._missing("recipientEmail")
        elif self.action_type == "update_lead_score":
            if self.score_method == "event":
                missing += self._missing("scoreEventType")
            else:
                missing += self._missing("scorePoints")
        return missing


class DelayConfig(ConfigModel):
    delay_type: DelayType | None = None
    delay_value: int | None = Field(None, ge=1)
    delay_unit: DelayUnit | None = None
    delay_date: date | None = None
    delay_time: str | None = Field(None, pattern=_TIME_PATTERN)
    delay_weekday: Weekday | None = None
    timezone: str | None = None
    business_hours_only: bool | None = None
    business_hours_start: str | None = Field(None, pattern=_TIME_PATTERN)
    business_hours_end: str | None = Field(None, pattern=_TIME_PATTERN)
    skip_weekends: bool | None = None
    respect_contact_timezone: bool | None = None

    @property
    def strategy(self) -> str:
        return self.delay_type or "duration"

    @model_validator(mode="after")
    def _delay_slice(self) -> DelayConfig:
        allowed = {*DELAY_SHARED_FIELDS, *DELAY_FIELDS[self.strategy]}
        self._check_slice(allowed, f"for delay type {self.strategy}")
        return self

    def missing_fields(self) -> list[str]:
        return self._missing(*DELAY_FIELDS[self.strategy])


class ConditionConfig(ConfigModel):
    """Single-rule branch with a fixed yes/no fan-out."""

    conditions: list[ConditionRule] = Field(default_factory=list, max_length=1)

    @property
    def rule(self) -> ConditionRule | None:
        return self.conditions[0] if self.conditions else None

    def missing_fields(self) -> list[str]:
        if not self.conditions:
            return ["conditions"]
        return [f"conditions[0].{key}" for key in self.conditions[0].missing_fields()]


class ParallelConfig(ConfigModel):
    branches: list[str] | None = None
    wait_for_all: bool | None = None
    timeout: int | None = Field(None, ge=0)
    on_timeout: Literal["continue", "fail"] | None = None
    merge_step_id: str | None = None
    aggregate_results: bool | None = None
    result_variable: str | None = None

    def missing_fields(self) -> list[str]:
        missing = [] if self.branches and len(self.branches) >= 2 else ["branches"]
        if self.aggregate_results:
            missing += self._missing("resultVariable")
        return missing


class MergeConfig(ConfigModel):
    strategy: Literal["wait_all", "wait_any"] | None = None
    result_variable: str | None = None


class TryCatchConfig(ConfigModel):
    max_retries: int | None = Field(None, ge=0, le=10)
    retry_delay: int | None = Field(None, ge=0)
    error_variable: str | None = None


class LoopConfig(ConfigModel):
    source_type: Literal["variable", "field", "expression"] | None = None
    source_array: str | None = None
    item_variable: str | None = None
    index_variable: str | None = None
    mode: Literal["sequential", "parallel"] | None = None
    batch_size: int | None = Field(None, ge=1)
    max_iterations: int | None = Field(None, ge=1, le=10000)
    break_condition: ConditionRule | None = None
    aggregate_results: bool | None = None
    result_variable: str | None = None

    def missing_fields(self) -> list[str]:
        missing = self._missing("sourceArray")
        if self.aggregate_results:
            missing += self._missing("resultVariable")
        return missing


class AIAgentConfig(ConfigModel):
    task_prompt: str | None = None
    additional_context: str | None = None
    agent_type: AgentType | None = None
    system_prompt_override: str | None = None
    include_entity_data: bool | None = None
    include_variables: bool | None = None
    timeout: int | None = Field(None, ge=1000, le=600000)
    response_variable: str | None = None
    tool_history_variable: str | None = None
    parse_as_json: bool | None = Field(None, alias="parseAsJSON")

    def missing_fields(self) -> list[str]:
        return self._missing("taskPrompt")


class HttpRequestConfig(ConfigModel):
    method: HttpMethod | None = None
    url: str | None = None
    headers: list[HeaderPair] | None = None
    body: str | None = None
    authentication: HttpAuth | None = None
    response_handling: ResponseHandling | None = None

    @model_validator(mode="after")
    def _no_body_on_get(self) -> HttpRequestConfig:
        if (self.method or "GET") == "GET" and self.body is not None:
            raise ValueError("body not allowed for GET requests")
        return self

    def missing_fields(self) -> list[str]:
        missing = []
        url = (self.url or "").strip()
        if not (url.startswith(("http://", "https://")) or "{{" in url):
            missing.append("url")
        if self.authentication:
            missing += [f"authentication.{key}" for key in self.authentication.missing_fields()]
        return missing


class TransformConfig(ConfigModel):
    action_type: TransformType | None = None
    operations: list[SetOperation] | None = None
    mappings: list[MapOperation] | None = None
    source_array: str | None = None
    filter_condition: str | None = None
    result_variable: str | None = None

    @property
    def kind(self) -> str:
        return self.action_type or "transform_set"

    @model_validator(mode="after")
    def _transform_slice(self) -> TransformConfig:
        allowed = {*TRANSFORM_SHARED_FIELDS, *TRANSFORM_FIELDS[self.kind]}
        self._check_slice(allowed, f"for {self.kind}")
        return self

    def missing_fields(self) -> list[str]:
        if self.kind == "transform_set":
            ops = self.operations or []
            if not ops:
                return ["operations"]
            return [f"operations[{i}].variable" for i, op in enumerate(ops) if not op.variable]
        missing = self._missing(*TRANSFORM_FIELDS[self.kind], "resultVariable")
        return missing


class IntegrationConfig(ConfigModel):
    """Config of an integration node; action parameters come from the catalog."""

    model_config = ConfigDict(extra="allow")

    provider: ClassVar[str] = ""

    action: str | None = None
    credential_id: str | None = None
    response_variable: str | None = None

    @model_validator(mode="after")
    def _action_params(self) -> IntegrationConfig:
        integration = INTEGRATIONS[self.provider]
        if self.action is not None and self.action not in integration.actions:
            raise ValueError(f"unknown {integration.label} action {self.action!r}")
        params = set(integration.actions[self.action].keys()) if self.action else set()
        extras = {k for k, v in (self.model_extra or {}).items() if v is not None}
        foreign = sorted(extras - params)
        if foreign:
            where = f"for {self.action}" if self.action else "before an action is chosen"
            raise ValueError(f"{', '.join(foreign)} not allowed {where}")
        return self

    def missing_fields(self) -> list[str]:
        if not self.action:
            return ["action"]
        missing = self._missing("credentialId")
        spec = INTEGRATIONS[self.provider].actions[self.action]
        missing += self._missing(*(param.key for param in spec.params if param.required))
        return missing


class SlackConfig(IntegrationConfig):
    provider: ClassVar[str] = "slack"


class GoogleSheetsConfig(IntegrationConfig):
    provider: ClassVar[str] = "google_sheets"


class NotionConfig(IntegrationConfig):
    provider: ClassVar[str] = "notion"


class UnknownStepConfig(ConfigModel):
    """Pass-through config for step types this client doesn't know yet."""

    model_config = ConfigDict(extra="allow")


STEP_CONFIG_MODELS: dict[str, type[ConfigModel]] = {
    "trigger": TriggerConfig,
    "action": ActionConfig,
    "delay": DelayConfig,
    "condition": ConditionConfig,
    "parallel": ParallelConfig,
    "merge": MergeConfig,
    "try_catch": TryCatchConfig,
    "loop": LoopConfig,
    "ai_agent": AIAgentConfig,
    "http_request": HttpRequestConfig,
    "integration_slack": SlackConfig,
    "integration_google_sheets": GoogleSheetsConfig,
    "integration_notion": NotionConfig,
    "transform": TransformConfig,
}

INTEGRATION_STEP_TYPES: dict[str, str] = {
    "integration_slack": "slack",
    "integration_google_sheets": "google_sheets",
    "integration_notion": "notion",
}


def is_known_type(step_type: str) -> bool:
    return step_type in STEP_CONFIG_MODELS


def _format_errors(exc: ValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error["loc"])
        msg = error["msg"].removeprefix("Value error, ")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


def parse_step_config(step_type: str, config: dict[str, Any] | None) -> ConfigModel:
    """Validate a raw config against the schema for ``step_type``.

    Raises:
        StepConfigError: on unknown keys, wrong value types or keys that belong
            to an inactive slice.
    """
    model = STEP_CONFIG_MODELS.get(step_type, UnknownStepConfig)
    try:
        return model.model_validate(config or {})
    except ValidationError as exc:
        raise StepConfigError(step_type, _format_errors(exc)) from exc


def config_issues(step_type: str, config: dict[str, Any] | None) -> list[str]:
    """All problems that keep a step from running, as readable strings."""
    try:
        parsed = parse_step_config(step_type, config)
    except StepConfigError as exc:
        return exc.errors
    if not is_known_type(step_type):
        return []
    return [f"missing {key}" for key in parsed.missing_fields()]


# ── Step (wire model) ─────────────────────────────────────────────────────


class StepPosition(BaseModel):
    x: float = 0
    y: float = 0


class StepBranches(BaseModel):
    """Named outgoing paths; ``success`` is the try/catch name for ``next``."""

    model_config = ConfigDict(extra="forbid")

    success: str | None = None
    error: str | None = None
    yes: str | None = None
    no: str | None = None
    timeout: str | None = None
    parallel: list[str] | None = None


class Step(BaseModel):
    """A node of a workflow step graph as exchanged with the backend."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, validate_assignment=True
    )

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, frozen=True)
    type: str
    name: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    position: StepPosition | None = None
    next_step_ids: list[str] = Field(default_factory=list)
    branches: StepBranches | None = None
    execution_mode: Literal["sequential", "parallel"] | None = None

    @model_validator(mode="before")
    @classmethod
    def _single_next_step(cls, data: Any) -> Any:
        # Older payloads carry one ``nextStepId`` instead of the list
        if isinstance(data, dict) and ("nextStepId" in data or "next_step_id" in data):
            data = dict(data)
            legacy = data.pop("nextStepId", None) or data.pop("next_step_id", None)
            data.pop("next_step_id", None)
            if legacy and not (data.get("nextStepIds") or data.get("next_step_ids")):
                data["nextStepIds"] = [legacy]
        return data

    @model_validator(mode="after")
    def _default_name(self) -> Step:
        if not self.name:
            from ..steps.registry import default_name

            # object.__setattr__ skips validate_assignment re-running this hook
            object.__setattr__(self, "name", default_name(self.type, self.config))
        return self

    def typed_config(self) -> ConfigModel:
        return parse_step_config(self.type, self.config)

    def issues(self) -> list[str]:
        return config_issues(self.type, self.config)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
