"""Shared fixtures: in-memory SQLite store and a mocked HTTP client."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import HTTPStatusError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from automations.api.client import ApiConfig, AutomationsClient
from automations.models import Base

SAMPLE_WORKSPACE_ID = "ws_test123"
SAMPLE_WORKFLOW_ID = "wf_test456"
SAMPLE_CREDENTIAL_ID = "cred_abc789"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def api_config():
    return ApiConfig(
        base_url="http://api.test/api",
        token="test_token",
        workspace_id=SAMPLE_WORKSPACE_ID,
    )


@pytest.fixture
def mock_http_client():
    """Create a mock httpx.AsyncClient."""
    client = AsyncMock()
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = {}
    response.raise_for_status = MagicMock()
    client.get = AsyncMock(return_value=response)
    client.put = AsyncMock(return_value=response)
    return client


@pytest.fixture
def api_client(api_config, mock_http_client):
    client = AutomationsClient(api_config)
    client._client = mock_http_client
    return client


@pytest.fixture
def mock_response():
    """Factory fixture to create mock HTTP responses."""
    def _create_response(data: Any, status_code: int = 200):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = data
        response.raise_for_status = MagicMock()
        if status_code >= 400:
            response.raise_for_status.side_effect = HTTPStatusError(
                f"HTTP {status_code}", request=MagicMock(), response=response
            )
        return response
    return _create_response


class FakePopup:
    """Stands in for a browser popup window."""

    def __init__(self, close_after_polls: int | None = None):
        self.close_after_polls = close_after_polls
        self.polls = 0
        self.close_calls = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        self.polls += 1
        if self.close_after_polls is not None and self.polls > self.close_after_polls:
            self._closed = True
        return self._closed

    def close(self) -> None:
        self.close_calls += 1
        self._closed = True


@pytest.fixture
def popup_factory():
    def _create(close_after_polls: int | None = None):
        popup = FakePopup(close_after_polls)
        opener = MagicMock(return_value=popup)
        return popup, opener
    return _create


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()
