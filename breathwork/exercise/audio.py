"""Audio playback abstraction used by the narration and music drivers.

A channel is one logical player (voice or music). The engine never touches
a concrete player; the websocket transport provides ClientAudioChannel and
tests provide in-memory fakes.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

FADE_STEPS = 60


@dataclass
class AudioClip:
    """Synthesized or fetched audio that a channel can load.

    Either ``data`` (inline bytes) or ``url`` is set.
    """

    clip_id: str
    data: bytes | None = None
    url: str | None = None
    mime_type: str = "audio/mpeg"
    released: bool = field(default=False, init=False)

    def release(self) -> None:
        self.data = None
        self.released = True


class AudioChannel(ABC):
    """One audio player.

    ``play`` raises PlaybackError when playback is refused. ``wait_until_ended``
    resolves when the loaded clip finishes, and raises PlaybackError if the
    player reports an error first.
    """

    name: str = "audio"

    def __init__(self) -> None:
        self.volume: float = 1.0
        self.loop: bool = False
        self.is_playing: bool = False
        self.source: AudioClip | None = None

    @abstractmethod
    async def load(self, clip: AudioClip) -> None:
        raise NotImplementedError

    @abstractmethod
    async def play(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def wait_until_ended(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def pause(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def resume(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def unload(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def set_volume(self, volume: float) -> None:
        raise NotImplementedError

    async def release(self, clip: AudioClip) -> None:
        """Tell the player a cached clip is gone. No-op by default."""
        clip.release()


async def fade(channel: AudioChannel, start: float, end: float, duration: float, steps: int = FADE_STEPS) -> None:
    """Linear volume ramp from ``start`` to ``end`` over ``duration`` seconds.

    Cancelling the task leaves the volume wherever the ramp had reached.
    """
    start = max(0.0, min(1.0, start))
    end = max(0.0, min(1.0, end))
    if duration <= 0 or steps <= 0:
        await channel.set_volume(end)
        return

    interval = duration / steps
    for step in range(1, steps + 1):
        await asyncio.sleep(interval)
        await channel.set_volume(start + (end - start) * step / steps)
