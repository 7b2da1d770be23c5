"""Step config panel: edits one step and reports partial updates."""

from __future__ import annotations

import logging
from typing import Any, Callable

import httpx

from ..api.client import AutomationsClient, EmailTemplate, StepValidation, WorkflowSummary
from ..engine.graph import semantic_paths
from ..integrations.fields import DynamicFieldSelect
from ..integrations.oauth import OAuthConnectFlow, OAuthResult, PopupOpener
from ..schemas.steps import Step, StepConfigError, parse_step_config
from .editors import ActionEditor, EditorDraft, IntegrationEditor
from .options import OptionList
from .registry import StepTypeRegistry, default_name, registry as default_registry

logger = logging.getLogger(__name__)


class StepPanel:
    """Binds a ``Step`` to the editor registered for its type.

    Every edit is reported to ``on_change`` as a partial step update
    (``{"config": ...}``, ``{"name": ...}`` or ``{"type": ..., "config": ...}``).
    """

    def __init__(
        self,
        step: Step,
        *,
        on_change: Callable[[dict[str, Any]], None] | None = None,
        on_delete: Callable[[str], None] | None = None,
        registry: StepTypeRegistry | None = None,
    ):
        self.step = step
        self.on_change = on_change
        self.on_delete = on_delete
        self.registry = registry or default_registry
        self.info = self.registry.get(step.type)
        self.draft = EditorDraft(self.info.editor, step.config)
        self.confirming_delete = False
        self.validation: StepValidation | None = None
        self.oauth_flow: OAuthConnectFlow | None = None

    @property
    def editor(self):
        return self.info.editor

    @property
    def preview(self) -> str | None:
        return self.editor.preview(self.step.config)

    @property
    def paths(self) -> tuple[str, ...]:
        return semantic_paths(self.step.type)

    def _emit(self, update: dict[str, Any]) -> None:
        if self.on_change:
            self.on_change(update)

    # Editing
    def set_field(self, key: str, value: Any) -> dict[str, Any]:
        return self.update({key: value})

    def update(self, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply config changes; raises ``StepConfigError`` and keeps the old state."""
        previous = dict(self.draft.values)
        config = self.draft.apply(changes)
        try:
            parse_step_config(self.step.type, config)
        except StepConfigError:
            self.draft.reset(previous)
            raise
        self.step.config = config
        self._emit({"config": config})
        return config

    def rename(self, name: str) -> None:
        self.step.name = name
        self._emit({"name": name})

    def change_type(self, step_type: str) -> dict[str, Any]:
        """Switch the step type; the config restarts from the new type's defaults."""
        default_named = self.step.name == default_name(self.step.type, self.step.config)
        self.info = self.registry.get(step_type)
        config = self.editor.defaults()
        self.draft = EditorDraft(self.editor, config)
        self.step.type = step_type
        self.step.config = config
        update: dict[str, Any] = {"type": step_type, "config": config}
        if default_named:
            self.step.name = default_name(step_type, config)
            update["name"] = self.step.name
        self._emit(update)
        return update

    # Delete (two clicks)
    def request_delete(self) -> bool:
        """First call arms the confirmation, second call deletes."""
        if not self.confirming_delete:
            self.confirming_delete = True
            return False
        self.confirming_delete = False
        if self.on_delete:
            self.on_delete(self.step.id)
        return True

    def cancel_delete(self) -> None:
        self.confirming_delete = False

    # Remote
    async def refresh_validation(
        self, client: AutomationsClient, workflow_id: str
    ) -> StepValidation | None:
        try:
            self.validation = await client.get_step_validation(workflow_id, self.step.id)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Could not load validation for step %s: %s", self.step.id, e)
            self.validation = None
        return self.validation

    def _action_editor(self) -> ActionEditor:
        if not isinstance(self.editor, ActionEditor):
            raise TypeError(f"{self.step.type} steps have no action options")
        return self.editor

    def email_templates(
        self, client: AutomationsClient, workspace_id: str | None = None
    ) -> OptionList[EmailTemplate]:
        self._action_editor()
        return OptionList(lambda: client.list_email_templates(workspace_id), "email templates")

    def target_workflows(
        self,
        client: AutomationsClient,
        workflow_id: str | None = None,
        workspace_id: str | None = None,
    ) -> OptionList[WorkflowSummary]:
        """Active workflows a contact can be enrolled into, minus this one."""
        self._action_editor()

        async def fetch() -> list[WorkflowSummary]:
            workflows = await client.list_workflows(workspace_id, status="active")
            return [w for w in workflows if w.id != workflow_id]

        return OptionList(fetch, "workflows")

    def select_template(self, template_id: str, templates: list[EmailTemplate]) -> dict[str, Any]:
        return self.update(self._action_editor().template_changes(template_id, templates))

    def _integration_editor(self) -> IntegrationEditor:
        if not isinstance(self.editor, IntegrationEditor):
            raise TypeError(f"{self.step.type} steps have no connected account")
        return self.editor

    async def connect_account(
        self, client: AutomationsClient, opener: PopupOpener, **flow_options: Any
    ) -> OAuthResult:
        """Run the OAuth flow and store the new ``credentialId`` on success."""
        editor = self._integration_editor()
        self.oauth_flow = OAuthConnectFlow(
            client,
            editor.integration.integration_type,
            opener,
            action=self.step.config.get("action"),
            on_credential_created=lambda credential_id: self.set_field("credentialId", credential_id),
            **flow_options,
        )
        return await self.oauth_flow.run()

    def field_selects(
        self, client: AutomationsClient, workflow_id: str
    ) -> dict[str, DynamicFieldSelect]:
        """One option loader per dynamic parameter of the chosen action."""
        editor = self._integration_editor()
        selects = {}
        for param in editor.dynamic_params(self.step.config):
            selects[param.key] = DynamicFieldSelect(
                client,
                workflow_id,
                editor.integration.integration_type,
                param.dynamic.field_type,
                parent_required=bool(param.dynamic.parent_key and param.dynamic.parent_required),
            )
        return selects

    async def load_field_options(self, selects: dict[str, DynamicFieldSelect]) -> None:
        """Point every select at the current credential and parent values."""
        editor = self._integration_editor()
        config = self.step.config
        for param in editor.dynamic_params(config):
            select = selects.get(param.key)
            if select is None:
                continue
            parent_key = param.dynamic.parent_key
            await select.update(config.get("credentialId"), config.get(parent_key) if parent_key else None)
