"""Tests for the OpenAI key check behind the admin diagnostics."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import APIStatusError

from breathwork.services.diagnostics import check_openai_key


def _models_client(list_models: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.models.list = list_models
    return client


@pytest.mark.asyncio
async def test_missing_key_is_reported() -> None:
    status = await check_openai_key()

    assert not status.success
    assert not status.api_key_present
    assert status.error == "OPENAI_API_KEY is not set"


@pytest.mark.asyncio
async def test_valid_key_counts_models(test_settings, monkeypatch) -> None:
    monkeypatch.setattr(test_settings, "openai_api_key", "sk-live-abcdef123")
    list_models = AsyncMock(return_value=SimpleNamespace(data=["gpt-4o", "tts-1", "gpt-4o-mini"]))

    with patch("breathwork.services.diagnostics._get_client", return_value=_models_client(list_models)):
        status = await check_openai_key()

    assert status.success
    assert status.api_key_prefix == "sk-live..."
    assert status.models_count == 3


@pytest.mark.asyncio
async def test_rejected_key_reports_status(test_settings, monkeypatch) -> None:
    monkeypatch.setattr(test_settings, "openai_api_key", "sk-bad")
    response = httpx.Response(401, request=httpx.Request("GET", "https://api.openai.com/v1/models"))
    list_models = AsyncMock(side_effect=APIStatusError("invalid api key", response=response, body=None))

    with patch("breathwork.services.diagnostics._get_client", return_value=_models_client(list_models)):
        status = await check_openai_key()

    assert not status.success
    assert status.api_key_present
    assert status.status_code == 401
    assert status.error == "invalid api key"
