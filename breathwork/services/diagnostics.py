"""Provider health checks for the operator dashboard."""

from __future__ import annotations

from loguru import logger
from openai import APIConnectionError, APIStatusError, AsyncOpenAI
from pydantic import BaseModel

from breathwork.config.settings import settings

KEY_PREFIX_LENGTH = 7


class OpenAIKeyStatus(BaseModel):
    success: bool
    api_key_present: bool
    api_key_prefix: str | None = None
    status_code: int | None = None
    models_count: int = 0
    error: str | None = None


def _get_client() -> AsyncOpenAI:
    return AsyncOpenAI(api_key=settings.openai_api_key)


async def check_openai_key() -> OpenAIKeyStatus:
    """List models with the configured key. Never raises; failures are reported in the result."""
    key = settings.openai_api_key
    if not key:
        logger.warning("[DIAGNOSTICS] OPENAI_API_KEY is not set")
        return OpenAIKeyStatus(success=False, api_key_present=False, error="OPENAI_API_KEY is not set")

    prefix = f"{key[:KEY_PREFIX_LENGTH]}..."
    try:
        page = await _get_client().models.list()
    except APIStatusError as e:
        logger.warning(f"[DIAGNOSTICS] OpenAI key rejected: {e.status_code} {e.message}")
        return OpenAIKeyStatus(
            success=False,
            api_key_present=True,
            api_key_prefix=prefix,
            status_code=e.status_code,
            error=e.message,
        )
    except APIConnectionError as e:
        logger.warning(f"[DIAGNOSTICS] OpenAI unreachable: {e}")
        return OpenAIKeyStatus(success=False, api_key_present=True, api_key_prefix=prefix, error=str(e))

    return OpenAIKeyStatus(
        success=True,
        api_key_present=True,
        api_key_prefix=prefix,
        status_code=200,
        models_count=len(page.data),
    )
