"""Spoken narration: synthesize text, play it, resolve when playback ends."""

from __future__ import annotations

import uuid

from loguru import logger

from breathwork.exercise.audio import AudioChannel, AudioClip
from breathwork.exercise.errors import NarrationError, PlaybackError
from breathwork.integrations.voice.client import VoiceServiceClient
from breathwork.integrations.voice.errors import VoiceServiceError

CACHE_KEY_LENGTH = 50


class AudioCache:
    """Synthesized clips for one driver, keyed by (voice, first 50 chars of text)."""

    def __init__(self) -> None:
        self._clips: dict[tuple[str, str], AudioClip] = {}

    @staticmethod
    def key(voice: str, text: str) -> tuple[str, str]:
        return voice, text[:CACHE_KEY_LENGTH]

    def get(self, voice: str, text: str) -> AudioClip | None:
        return self._clips.get(self.key(voice, text))

    def put(self, voice: str, text: str, clip: AudioClip) -> None:
        self._clips[self.key(voice, text)] = clip

    def drain(self) -> list[AudioClip]:
        clips = list(self._clips.values())
        self._clips.clear()
        return clips

    def clear(self) -> None:
        for clip in self.drain():
            clip.release()

    def __len__(self) -> int:
        return len(self._clips)


class NarrationDriver:
    def __init__(
        self,
        voice_client: VoiceServiceClient,
        channel: AudioChannel,
        voice: str = "nova",
        speed: float = 0.85,
        volume: float = 1.0,
    ):
        self.voice_client = voice_client
        self.channel = channel
        self.voice = voice
        self.speed = speed
        self.volume = volume
        self.cache = AudioCache()
        self._paused = False

    async def _clip_for(self, text: str, voice: str, speed: float) -> AudioClip:
        clip = self.cache.get(voice, text)
        if clip is not None and not clip.released:
            return clip

        try:
            data = await self.voice_client.synthesize_speech(text, voice=voice, speed=speed)
        except VoiceServiceError as e:
            raise NarrationError(f"Speech synthesis failed: {e.message}") from e

        clip = AudioClip(clip_id=uuid.uuid4().hex, data=data)
        self.cache.put(voice, text, clip)
        return clip

    async def speak(self, text: str, voice: str | None = None, speed: float | None = None) -> None:
        """Speak ``text`` and return once playback has finished.

        Raises:
            NarrationError: If synthesis fails or the player reports an error
        """
        text = (text or "").strip()
        if not text:
            return

        voice = voice or self.voice
        clip = await self._clip_for(text, voice, self.speed if speed is None else speed)

        try:
            await self.channel.load(clip)
            await self.channel.set_volume(self.volume)
            await self.channel.play()
            await self.channel.wait_until_ended()
        except PlaybackError as e:
            raise NarrationError(f"Narration playback failed: {e}") from e
        logger.debug(f"[NARRATION] Finished: {text[:40]!r}")

    async def pause(self) -> None:
        if self.channel.is_playing:
            self._paused = True
            await self.channel.pause()

    async def resume(self) -> None:
        if self._paused:
            self._paused = False
            await self.channel.resume()

    async def stop(self) -> None:
        self._paused = False
        await self.channel.unload()

    async def clear_cache(self) -> None:
        for clip in self.cache.drain():
            await self.channel.release(clip)
