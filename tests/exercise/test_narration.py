"""Tests for the narration driver and its audio cache."""

import pytest

from breathwork.exercise.audio import AudioClip
from breathwork.exercise.errors import NarrationError
from breathwork.exercise.narration import AudioCache
from breathwork.integrations.voice.errors import VoiceServiceError


def test_cache_key_uses_voice_and_first_fifty_chars() -> None:
    cache = AudioCache()
    clip = AudioClip(clip_id="a", data=b"x")
    text = "a" * 50

    cache.put("nova", text + " tail one", clip)

    assert cache.get("nova", text + " tail two") is clip
    assert cache.get("shimmer", text) is None
    assert len(cache) == 1


def test_cache_clear_releases_clips() -> None:
    cache = AudioCache()
    clip = AudioClip(clip_id="a", data=b"x")
    cache.put("nova", "hello", clip)

    cache.clear()

    assert clip.released
    assert clip.data is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_speak_plays_clip_to_the_end(narrator, voice_client, voice_channel) -> None:
    await narrator.speak("Breathe in slowly")

    assert voice_client.spoken == ["Breathe in slowly"]
    assert [event[0] for event in voice_channel.events] == ["load", "play"]
    assert voice_channel.volume == 1.0
    assert not voice_channel.is_playing


@pytest.mark.asyncio
async def test_speak_reuses_cached_clip(narrator, voice_client, voice_channel) -> None:
    await narrator.speak("inhale")
    await narrator.speak("inhale")

    assert voice_client.spoken == ["inhale"]
    assert voice_channel.loaded[0] is voice_channel.loaded[1]


@pytest.mark.asyncio
async def test_speak_ignores_blank_text(narrator, voice_client, voice_channel) -> None:
    await narrator.speak("   ")
    assert voice_client.spoken == []
    assert voice_channel.events == []


@pytest.mark.asyncio
async def test_synthesis_failure_raises_narration_error(narrator, voice_client) -> None:
    voice_client.speech_error = VoiceServiceError("Voice provider error", status_code=502)
    with pytest.raises(NarrationError):
        await narrator.speak("hello")


@pytest.mark.asyncio
async def test_playback_failure_raises_narration_error(narrator, voice_channel) -> None:
    voice_channel.fail_play = True
    with pytest.raises(NarrationError):
        await narrator.speak("hello")


@pytest.mark.asyncio
async def test_player_error_while_waiting_raises_narration_error(narrator, voice_channel) -> None:
    voice_channel.fail_wait = True
    with pytest.raises(NarrationError):
        await narrator.speak("hello")


@pytest.mark.asyncio
async def test_clear_cache_releases_through_channel(narrator, voice_channel) -> None:
    await narrator.speak("one")
    await narrator.speak("two")

    await narrator.clear_cache()

    assert len(voice_channel.released) == 2
    assert all(clip.released for clip in voice_channel.released)
    assert len(narrator.cache) == 0


@pytest.mark.asyncio
async def test_pause_and_resume_only_when_playing(narrator, voice_channel) -> None:
    await narrator.pause()
    await narrator.resume()
    assert voice_channel.events == []

    voice_channel.auto_end = False
    voice_channel.source = AudioClip(clip_id="a", data=b"x")
    voice_channel.is_playing = True

    await narrator.pause()
    await narrator.resume()

    assert voice_channel.events == [("pause",), ("resume",)]
