"""Automations API client - typed wrapper for the workflow backend.

The client never reads ambient environment: an explicit ``ApiConfig`` is
passed at construction (``ApiConfig.from_settings()`` builds one from
``AUTOMATIONS_*`` settings).

Usage:
    async with AutomationsClient(ApiConfig.from_settings()) as client:
        creds = await client.list_credentials("slack")
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..config import AutomationSettings, settings

logger = logging.getLogger(__name__)


@dataclass
class ApiConfig:
    """Automations API configuration."""

    base_url: str
    token: str = ""
    workspace_id: str = ""
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, source: AutomationSettings | None = None) -> ApiConfig:
        source = source or settings
        return cls(
            base_url=source.api_url,
            token=source.api_token,
            workspace_id=source.workspace_id,
            timeout=source.request_timeout_seconds,
        )


class FieldOption(BaseModel):
    """One entry of a remote option list (channels, spreadsheets, ...)."""

    model_config = ConfigDict(extra="ignore")

    value: str
    label: str
    metadata: dict[str, Any] | None = None


class Credential(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="_id")
    name: str = ""
    type: str = ""
    created_at: datetime | None = Field(None, alias="createdAt")


class EmailTemplate(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="_id")
    name: str = ""
    subject: str = ""
    body: str = ""
    category: str | None = None


class WorkflowSummary(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="_id")
    name: str = ""
    status: str = ""


def _items(data: Any, key: str) -> list:
    """List payload from a bare list, ``{key: [...]}`` or ``{"data": ...}``."""
    if isinstance(data, dict):
        data = data.get("data", data)
    if isinstance(data, dict):
        data = data.get(key)
    return data or []


class StepValidation(BaseModel):
    """Informational ``/validation`` result; it never gates editing."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    can_open_config: bool = Field(True, alias="canOpenConfig")
    reason: str | None = None
    message: str | None = None


class AutomationsClient:
    """Async client for the workflow backend.

    The httpx client is created in ``__aenter__``; tests may assign
    ``_client`` directly.
    """

    def __init__(self, config: ApiConfig):
        self.config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> AutomationsClient:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url.rstrip("/"),
            timeout=self.config.timeout,
            headers=headers,
        )
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _workspace(self, workspace_id: str | None = None) -> str:
        wid = workspace_id or self.config.workspace_id
        if not wid:
            raise ValueError("workspace_id required")
        return wid

    # HTTP methods
    async def _get(self, endpoint: str, **params) -> Any:
        """Make GET request."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context.")
        params = {k: v for k, v in params.items() if v is not None}
        resp = await self._client.get(endpoint, params=params)
        resp.raise_for_status()
        return resp.json()

    async def _put(self, endpoint: str, data: dict | None = None) -> Any:
        """Make PUT request."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context.")
        resp = await self._client.put(endpoint, json=data)
        resp.raise_for_status()
        return resp.json()

    # Dynamic fields
    async def fetch_field_options(
        self,
        workflow_id: str,
        integration_type: str,
        field_type: str,
        credential_id: str,
        parent_value: str | None = None,
        workspace_id: str | None = None,
    ) -> list[FieldOption]:
        """Fetch the remote option list for a dynamic integration field."""
        wid = self._workspace(workspace_id)
        params: dict[str, Any] = {
            "integrationType": integration_type,
            "fieldType": field_type,
            "credentialId": credential_id,
        }
        if parent_value:
            params["parentData"] = json.dumps({"parentValue": parent_value})
        data = await self._get(f"/workspaces/{wid}/workflows/{workflow_id}/fields/fetch", **params)
        options = data.get("options", []) if isinstance(data, dict) else data
        return [FieldOption.model_validate(option) for option in options or []]

    # OAuth / credentials
    async def get_oauth_authorize_url(
        self,
        integration_type: str,
        action: str | None = None,
        nonce: str | None = None,
        workspace_id: str | None = None,
    ) -> str:
        data = await self._get(
            f"/integrations/{integration_type}/oauth/authorize",
            workspaceId=self._workspace(workspace_id),
            action=action,
            nonce=nonce,
        )
        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            raise ValueError(f"No authorize URL returned for {integration_type}")
        return url

    async def list_credentials(
        self, integration_type: str | None = None, workspace_id: str | None = None
    ) -> list[Credential]:
        """List stored credentials; the backend answers with a list or ``{credentials}``."""
        wid = self._workspace(workspace_id)
        data = await self._get(f"/workspaces/{wid}/credentials", type=integration_type)
        items = data.get("credentials", []) if isinstance(data, dict) else data
        return [Credential.model_validate(item) for item in items or []]

    # Workflows & steps
    async def get_step_validation(
        self, workflow_id: str, step_id: str, workspace_id: str | None = None
    ) -> StepValidation:
        wid = self._workspace(workspace_id)
        data = await self._get(f"/workspaces/{wid}/workflows/{workflow_id}/steps/{step_id}/validation")
        return StepValidation.model_validate(data or {})

    async def list_email_templates(self, workspace_id: str | None = None) -> list[EmailTemplate]:
        """Workspace email templates; an empty workspace gets the default set."""
        wid = self._workspace(workspace_id)
        items = _items(await self._get(f"/workspaces/{wid}/email-templates"), "templates")
        if not items:
            items = _items(await self._get(f"/workspaces/{wid}/email-templates/defaults"), "templates")
        return [EmailTemplate.model_validate(item) for item in items]

    async def list_workflows(
        self, workspace_id: str | None = None, status: str | None = None
    ) -> list[WorkflowSummary]:
        wid = self._workspace(workspace_id)
        items = _items(await self._get(f"/workspaces/{wid}/workflows"), "workflows")
        workflows = [WorkflowSummary.model_validate(item) for item in items]
        if status:
            workflows = [w for w in workflows if w.status == status]
        return workflows

    async def get_workflow(self, workflow_id: str, workspace_id: str | None = None) -> dict[str, Any]:
        wid = self._workspace(workspace_id)
        return await self._get(f"/workspaces/{wid}/workflows/{workflow_id}")

    async def update_workflow_steps(
        self, workflow_id: str, steps: list[dict[str, Any]], workspace_id: str | None = None
    ) -> dict[str, Any]:
        """Replace the workflow's step graph."""
        wid = self._workspace(workspace_id)
        logger.info("Pushing %d steps to workflow %s", len(steps), workflow_id)
        return await self._put(f"/workspaces/{wid}/workflows/{workflow_id}", {"steps": steps})
