"""Dynamic option lists for integration fields (channels, spreadsheets, pages...)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

import httpx

from ..api.client import AutomationsClient, FieldOption

logger = logging.getLogger(__name__)


class FieldSelectState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


@dataclass(frozen=True)
class FieldKey:
    integration_type: str
    field_type: str
    credential_id: str
    parent_value: str | None = None


class DynamicFieldSelect:
    """Loads the options of one dynamic field and tracks their state.

    Options are fetched once per distinct ``FieldKey``.  A key change cancels
    the in-flight request, and a generation counter drops any response that
    is no longer current.  Failures land in the ``error`` state and are never
    raised; ``retry()`` fetches the same key again.
    """

    def __init__(
        self,
        client: AutomationsClient,
        workflow_id: str,
        integration_type: str,
        field_type: str,
        *,
        parent_required: bool = False,
        workspace_id: str | None = None,
    ):
        self.client = client
        self.workflow_id = workflow_id
        self.integration_type = integration_type
        self.field_type = field_type
        self.parent_required = parent_required
        self.workspace_id = workspace_id

        self.state = FieldSelectState.IDLE
        self.options: list[FieldOption] = []
        self.error: str | None = None
        self.key: FieldKey | None = None
        self.fetch_count = 0
        self._generation = 0
        self._task: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def update(self, credential_id: str | None, parent_value: str | None = None) -> None:
        """Point the select at a credential/parent pair, fetching if it changed."""
        if not credential_id or (self.parent_required and not parent_value):
            self._cancel()
            self.key = None
            self.options = []
            self.error = None
            self.state = FieldSelectState.IDLE
            return

        key = FieldKey(self.integration_type, self.field_type, credential_id, parent_value or None)
        if key == self.key:
            if self.in_flight:
                await asyncio.wait({self._task})
            return

        self.key = key
        await self._start(key)

    async def retry(self) -> None:
        if self.key is None or self.in_flight:
            return
        await self._start(self.key)

    async def aclose(self) -> None:
        task = self._task
        self._cancel()
        if task is not None:
            await asyncio.wait({task})

    def _cancel(self) -> None:
        self._generation += 1
        if self.in_flight:
            self._task.cancel()
        self._task = None

    async def _start(self, key: FieldKey) -> None:
        self._cancel()
        generation = self._generation
        self.state = FieldSelectState.LOADING
        self.error = None
        self.fetch_count += 1
        task = asyncio.create_task(self._load(key, generation))
        self._task = task
        # asyncio.wait: a superseding update cancels the task without raising here
        await asyncio.wait({task})

    async def _load(self, key: FieldKey, generation: int) -> None:
        try:
            options = await self.client.fetch_field_options(
                self.workflow_id,
                key.integration_type,
                key.field_type,
                key.credential_id,
                parent_value=key.parent_value,
                workspace_id=self.workspace_id,
            )
        except (httpx.HTTPError, ValueError) as e:
            if generation == self._generation:
                logger.warning("Loading %s options failed: %s", key.field_type, e)
                self.options = []
                self.error = str(e) or type(e).__name__
                self.state = FieldSelectState.ERROR
            return

        if generation != self._generation:
            logger.debug("Discarding stale %s options", key.field_type)
            return
        self.options = options
        self.state = FieldSelectState.READY
