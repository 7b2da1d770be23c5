"""Remote option lists an action editor picks from (email templates, workflows)."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, TypeVar

import httpx

from ..integrations.fields import FieldSelectState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OptionList(Generic[T]):
    """Loads one list once and remembers how that went.

    A failed load leaves the list empty in the ``error`` state with the
    message kept in ``error``; the editor stays usable and ``retry()`` loads
    again.  Concurrent ``load()`` calls share a single request.
    """

    def __init__(self, fetch: Callable[[], Awaitable[list[T]]], label: str):
        self._fetch = fetch
        self.label = label
        self.state = FieldSelectState.IDLE
        self.items: list[T] = []
        self.error: str | None = None
        self.fetch_count = 0
        self._task: asyncio.Task | None = None

    @property
    def ready(self) -> bool:
        return self.state == FieldSelectState.READY

    async def load(self) -> list[T]:
        if self.state == FieldSelectState.READY:
            return self.items
        if self._task is None or self._task.done():
            self.state = FieldSelectState.LOADING
            self._task = asyncio.create_task(self._load())
        await self._task
        return self.items

    async def retry(self) -> list[T]:
        if self._task is not None and not self._task.done():
            await self._task
            return self.items
        self.state = FieldSelectState.IDLE
        return await self.load()

    async def _load(self) -> None:
        self.error = None
        self.fetch_count += 1
        try:
            items = await self._fetch()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Loading %s failed: %s", self.label, e)
            self.items = []
            self.error = str(e) or type(e).__name__
            self.state = FieldSelectState.ERROR
            return
        self.items = list(items)
        self.state = FieldSelectState.READY
