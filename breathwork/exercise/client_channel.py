"""Audio channel that plays on the connected client.

Playback commands are sent over the session websocket; the client reports
``audio.ended`` / ``audio.error`` back with the token of the clip it was
playing. Events carrying an old token are ignored.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from breathwork.exercise.audio import AudioChannel, AudioClip
from breathwork.exercise.errors import PlaybackError

SendFn = Callable[[dict[str, Any]], Awaitable[None]]


class ClientAudioChannel(AudioChannel):
    def __init__(self, name: str, send: SendFn):
        super().__init__()
        self.name = name
        self._send = send
        self._token = 0
        self._ended: asyncio.Future[None] | None = None
        self._waiting = False

    @property
    def token(self) -> int:
        return self._token

    async def _command(self, command: str, **fields: Any) -> None:
        await self._send({"type": f"audio.{command}", "channel": self.name, "token": self._token, **fields})

    async def load(self, clip: AudioClip) -> None:
        self._resolve_pending()
        self._token += 1
        self.source = clip
        self.is_playing = False
        fields: dict[str, Any] = {"clip_id": clip.clip_id, "mime_type": clip.mime_type, "loop": self.loop}
        if clip.data is not None:
            fields["data"] = base64.b64encode(clip.data).decode("ascii")
        else:
            fields["url"] = clip.url
        await self._command("load", **fields)

    async def play(self) -> None:
        if self.source is None or self.source.released:
            raise PlaybackError(f"Nothing loaded on {self.name} channel")
        self._ended = asyncio.get_running_loop().create_future()
        await self._command("play", volume=self.volume)
        self.is_playing = True

    async def wait_until_ended(self) -> None:
        if self._ended is None:
            return
        self._waiting = True
        try:
            await self._ended
        finally:
            self._waiting = False

    async def pause(self) -> None:
        if self.source is None:
            return
        self.is_playing = False
        await self._command("pause")

    async def resume(self) -> None:
        if self.source is None:
            return
        self.is_playing = True
        await self._command("resume")

    async def unload(self) -> None:
        if self.source is None:
            return
        self._resolve_pending()
        self.source = None
        self.is_playing = False
        await self._command("unload")

    async def set_volume(self, volume: float) -> None:
        self.volume = max(0.0, min(1.0, volume))
        if self.source is not None:
            await self._command("volume", volume=round(self.volume, 4))

    async def release(self, clip: AudioClip) -> None:
        await self._send({"type": "audio.release", "channel": self.name, "clip_id": clip.clip_id})
        clip.release()

    def handle_event(self, event: str, token: int | None, message: str | None = None) -> None:
        """Apply an ``ended`` / ``error`` report from the client."""
        if token != self._token or self._ended is None or self._ended.done():
            logger.debug(f"[AUDIO] Ignoring stale {event} on {self.name} (token={token}, current={self._token})")
            return

        self.is_playing = False
        if event == "ended":
            self._ended.set_result(None)
        elif event == "error":
            error_message = message or "playback failed"
            logger.warning(f"[AUDIO] {self.name} channel reported playback error: {error_message}")
            if self._waiting:
                self._ended.set_exception(PlaybackError(error_message))
            else:
                self._ended.set_result(None)

    def _resolve_pending(self) -> None:
        if self._ended is not None and not self._ended.done():
            self._ended.set_result(None)
