"""Tests for the OAuth connect flow."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from automations.api.client import Credential
from automations.integrations.oauth import OAuthConnectFlow

AUTHORIZE_URL = "https://slack.com/oauth/v2/authorize?state=abc"


def _cred(cred_id: str, hour: int) -> Credential:
    return Credential(_id=cred_id, type="slack", createdAt=datetime(2024, 1, 15, hour, tzinfo=timezone.utc))


def _client(before: list[Credential], after: list[Credential] | None = None):
    client = MagicMock()
    client.list_credentials = AsyncMock(side_effect=[before, after if after is not None else before])
    client.get_oauth_authorize_url = AsyncMock(return_value=AUTHORIZE_URL)
    return client


def _flow(client, opener, callback=None, **kwargs) -> OAuthConnectFlow:
    kwargs.setdefault("poll_interval", 0.01)
    kwargs.setdefault("timeout", 2)
    return OAuthConnectFlow(
        client, "slack", opener, action="post_message", on_credential_created=callback, **kwargs
    )


@pytest.mark.asyncio
async def test_new_credential_reported_once(popup_factory):
    popup, opener = popup_factory(close_after_polls=2)
    client = _client([_cred("old", 9)], [_cred("old", 9), _cred("new1", 10), _cred("new2", 11)])
    callback = MagicMock()

    result = await _flow(client, opener, callback).run()

    assert result.connected
    assert result.credential_id == "new2"
    callback.assert_called_once_with("new2")
    opener.assert_called_once_with(AUTHORIZE_URL, 600, 700)


@pytest.mark.asyncio
async def test_nonce_sent_with_authorize_request(popup_factory):
    popup, opener = popup_factory(close_after_polls=0)
    client = _client([])
    flow = _flow(client, opener)
    await flow.run()
    client.get_oauth_authorize_url.assert_called_once_with("slack", "post_message", flow.nonce, None)


@pytest.mark.asyncio
async def test_closed_without_new_credential(popup_factory):
    popup, opener = popup_factory(close_after_polls=1)
    client = _client([_cred("old", 9)])
    callback = MagicMock()

    result = await _flow(client, opener, callback).run()

    assert result.status == "cancelled"
    assert result.credential_id is None
    callback.assert_not_called()


@pytest.mark.asyncio
async def test_older_credential_ignored(popup_factory):
    popup, opener = popup_factory(close_after_polls=1)
    client = _client([_cred("old", 9)], [_cred("old", 9), _cred("older", 8)])
    result = await _flow(client, opener).run()
    assert result.status == "cancelled"


@pytest.mark.asyncio
async def test_push_completion(popup_factory):
    popup, opener = popup_factory()
    client = _client([_cred("old", 9)])
    callback = MagicMock()
    flow = _flow(client, opener, callback)

    task = asyncio.create_task(flow.run())
    while not opener.called:
        await asyncio.sleep(0.01)
    assert flow.complete("wrong-nonce", "cred_x") is False
    assert flow.complete(flow.nonce, "cred_pushed") is True
    assert flow.complete(flow.nonce, "cred_again") is False
    result = await task

    assert result.credential_id == "cred_pushed"
    assert popup.close_calls == 1
    callback.assert_called_once_with("cred_pushed")
    # Pushed result wins; no fallback listing
    assert client.list_credentials.await_count == 1


@pytest.mark.asyncio
async def test_blocked_popup():
    client = _client([])
    opener = MagicMock(return_value=None)
    callback = MagicMock()
    result = await _flow(client, opener, callback).run()
    assert result.status == "blocked"
    callback.assert_not_called()


@pytest.mark.asyncio
async def test_timeout_closes_popup(popup_factory, caplog):
    popup, opener = popup_factory()
    client = _client([])
    callback = MagicMock()

    result = await _flow(client, opener, callback, timeout=0.05).run()

    assert result.status == "timed_out"
    assert popup.close_calls == 1
    callback.assert_not_called()
    assert "timed out" in caplog.text


@pytest.mark.asyncio
async def test_network_failure(popup_factory):
    popup, opener = popup_factory()
    client = _client([])
    client.list_credentials = AsyncMock(side_effect=httpx.ConnectError("unreachable"))
    result = await _flow(client, opener).run()
    assert result.status == "failed"
    assert "unreachable" in result.error
    opener.assert_not_called()
