"""Text-to-speech through the OpenAI audio API."""

from __future__ import annotations

from loguru import logger
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from breathwork.config.settings import VALID_VOICES, settings
from breathwork.services.errors import FunctionError, FunctionNotConfiguredError

MIN_SPEED = 0.25
MAX_SPEED = 4.0


def _get_client() -> AsyncOpenAI:
    return AsyncOpenAI(api_key=settings.openai_api_key)


async def generate_speech(text: str, voice: str = "nova", speed: float = 0.85) -> bytes:
    """Synthesize ``text`` and return mp3 bytes.

    Raises:
        FunctionError: 400 for bad input, 500 when not configured, provider status otherwise
    """
    text = (text or "").strip()
    if not text:
        raise FunctionError(400, "Text is required")
    if voice not in VALID_VOICES:
        raise FunctionError(400, f"Invalid voice '{voice}'. Valid voices: {', '.join(VALID_VOICES)}")
    if not settings.openai_api_key:
        logger.error("[SPEECH] OPENAI_API_KEY not configured")
        raise FunctionNotConfiguredError("Speech generation service not configured on server.")

    speed = max(MIN_SPEED, min(MAX_SPEED, speed))
    logger.debug(f"[SPEECH] Generating speech ({len(text)} chars)", voice=voice, speed=speed)

    try:
        response = await _get_client().audio.speech.create(
            model=settings.tts_model,
            voice=voice,
            input=text,
            speed=speed,
            response_format="mp3",
        )
    except APIStatusError as e:
        logger.error(f"[SPEECH] Provider error {e.status_code}: {e.message}")
        # Provider auth/quota problems are server faults from the caller's point of view
        status_code = e.status_code if e.status_code >= 500 else 502
        raise FunctionError(status_code, "Failed to generate speech from provider.") from e
    except APIConnectionError as e:
        logger.error(f"[SPEECH] Provider unreachable: {e}")
        raise FunctionError(502, "Failed to generate speech from provider.") from e

    audio = response.content
    if not audio:
        logger.error("[SPEECH] Received empty audio buffer from provider")
        raise FunctionError(500, "AI provider returned empty audio data.")
    return audio
