"""Client for the speech and guidance functions.

The session engine reaches text-to-speech and text generation only through
this client. Every call carries the user's bearer token, and every failure
is rewrapped into VoiceServiceError:
- 401 -> VoiceAuthenticationError (prompt re-authentication)
- other 4xx -> non-retryable
- 5xx / network errors -> retryable, retried once before giving up
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from breathwork.config.settings import settings
from breathwork.integrations.voice.errors import VoiceAuthenticationError, VoiceServiceError

DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_RETRIES = 1


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        message = data.get("error") or data.get("message") or data.get("detail")
        if isinstance(message, dict):
            message = message.get("message") or message.get("error")
        if isinstance(message, str) and message:
            return message
    return f"Server error: {response.status_code} {response.reason_phrase}"


def _raise_for_response(response: httpx.Response) -> None:
    if response.is_success:
        return
    message = _error_message(response)
    if response.status_code == 401:
        raise VoiceAuthenticationError(message)
    retryable = response.status_code >= 500
    raise VoiceServiceError(message, status_code=response.status_code, retryable=retryable)


class VoiceServiceClient:
    """Async client for generate-speech, generate-breathing-guidance,
    generate-custom-exercise and analyze-mood."""

    def __init__(
        self,
        access_token: str | None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.access_token = access_token or ""
        self.base_url = (base_url or settings.voice_service_url).rstrip("/")
        self.max_retries = max_retries
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> VoiceServiceClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _post(self, function_name: str, payload: dict[str, Any]) -> httpx.Response:
        if not self.access_token:
            raise VoiceAuthenticationError()

        url = f"{self.base_url}/{function_name}"
        headers = {"Authorization": f"Bearer {self.access_token}"}

        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.post(url, json=payload, headers=headers)
                _raise_for_response(response)
            except httpx.RequestError as e:
                error = VoiceServiceError(f"Network error calling {function_name}: {e}", retryable=True)
            except VoiceServiceError as e:
                error = e
            else:
                return response

            if not error.retryable or attempt >= self.max_retries:
                raise error
            logger.warning(
                f"[VOICE] {function_name} failed (attempt {attempt + 1}/{self.max_retries + 1}): {error.message}. Retrying..."
            )

        raise VoiceServiceError(f"{function_name} failed after all retries", retryable=True)

    async def _post_json(self, function_name: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._post(function_name, payload)
        try:
            data = response.json()
        except ValueError as e:
            raise VoiceServiceError(f"{function_name} returned invalid JSON", status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise VoiceServiceError(f"{function_name} returned unexpected payload", status_code=response.status_code)
        return data

    async def synthesize_speech(self, text: str, voice: str = "nova", speed: float = 0.85) -> bytes:
        """Synthesize speech. Returns mpeg audio bytes."""
        response = await self._post(
            "generate-speech",
            {"text": text.strip(), "voice": voice, "speed": speed},
        )
        audio = response.content
        if not audio:
            raise VoiceServiceError("Empty audio data received from server", status_code=response.status_code)
        logger.debug(f"[VOICE] Synthesized {len(audio)} bytes", voice=voice, text_length=len(text))
        return audio

    async def generate_guidance_text(
        self,
        stress_level: int,
        phase_key: str,
        user_name: str | None,
        step_number: int,
    ) -> str:
        data = await self._post_json(
            "generate-breathing-guidance",
            {
                "stressLevel": stress_level,
                "phase": phase_key,
                "userName": user_name,
                "currentStep": step_number,
            },
        )
        guidance_text = data.get("guidanceText")
        if not isinstance(guidance_text, str) or not guidance_text.strip():
            raise VoiceServiceError("Guidance response is missing guidanceText")
        return guidance_text.strip()

    async def generate_custom_exercise(self, mood_text: str, first_name: str) -> dict[str, Any]:
        """Return the raw custom-exercise payload; shape is validated by the caller."""
        return await self._post_json(
            "generate-custom-exercise",
            {"moodText": mood_text, "firstName": first_name},
        )

    async def analyze_mood(self, mood_text: str) -> str:
        data = await self._post_json("analyze-mood", {"moodText": mood_text})
        mood = data.get("mood")
        if not isinstance(mood, str) or not mood:
            raise VoiceServiceError("Mood response is missing mood")
        return mood
