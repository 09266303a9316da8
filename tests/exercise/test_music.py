"""Tests for the music driver.

Tests cover:
- Missing and inactive tracks mean silence, never an error
- Loading, switching and retuning tracks
- Playback refusal is swallowed
- Pause, resume and stop, including pauses that cut a transition short
- Category tracks for custom exercises
"""

import asyncio

import pytest

from breathwork.exercise.models import MusicSetting, MusicTrack
from breathwork.exercise.music import MusicDriver


def _track(track_id: str, active: bool = True) -> MusicTrack:
    return MusicTrack(
        id=track_id,
        name=f"Track {track_id}",
        file_url=f"https://cdn.example.com/{track_id}.mp3",
        duration_seconds=180,
        is_active=active,
    )


def _setting(stage_key: str, track: MusicTrack | None, volume: float | None = 0.3) -> MusicSetting:
    return MusicSetting(
        stage_key=stage_key,
        music_track_id=track.id if track else None,
        volume=volume,
        fade_in_seconds=0.0,
        fade_out_seconds=0.0,
        track=track,
    )


@pytest.fixture(autouse=True)
def fast_default_fades(monkeypatch):
    monkeypatch.setattr("breathwork.exercise.music.DEFAULT_FADE_SECONDS", 0.01)


@pytest.mark.asyncio
async def test_stage_without_track_plays_nothing(music_channel, music_library_cls) -> None:
    library = music_library_cls({"opening_preparation": _setting("opening_preparation", None)})
    driver = MusicDriver(music_channel, library, stress_level=3)

    await driver.start_for_stage("opening_preparation")
    await driver.start_for_stage("closing")

    assert music_channel.loaded == []
    assert driver.current_track_id is None
    assert not driver.is_playing


@pytest.mark.asyncio
async def test_inactive_track_plays_nothing(music_channel, music_library_cls) -> None:
    library = music_library_cls({"closing": _setting("closing", _track("t1", active=False))})
    driver = MusicDriver(music_channel, library, stress_level=3)

    await driver.start_for_stage("closing")

    assert music_channel.loaded == []


@pytest.mark.asyncio
async def test_track_loads_looping_and_fades_to_volume(music_channel, music_library_cls) -> None:
    library = music_library_cls({"closing": _setting("closing", _track("t1"), volume=0.4)})
    driver = MusicDriver(music_channel, library, stress_level=3)

    await driver.start_for_stage("closing")

    assert music_channel.events[:2] == [("load", "t1", True), ("play", "t1")]
    assert music_channel.loaded[0].url == "https://cdn.example.com/t1.mp3"
    assert music_channel.volumes[0] == 0.0
    assert music_channel.volume == pytest.approx(0.4)
    assert driver.current_track_id == "t1"


@pytest.mark.asyncio
async def test_missing_volume_uses_default(music_channel, music_library_cls) -> None:
    library = music_library_cls({"closing": _setting("closing", _track("t1"), volume=None)})
    driver = MusicDriver(music_channel, library, stress_level=3, default_volume=0.1)

    await driver.start_for_stage("closing")

    assert music_channel.volume == pytest.approx(0.1)


@pytest.mark.asyncio
async def test_switching_tracks_reloads(music_channel, music_library_cls) -> None:
    library = music_library_cls(
        {
            "opening_preparation": _setting("opening_preparation", _track("t1")),
            "grounding_breathwork": _setting("grounding_breathwork", _track("t2"), volume=0.5),
        }
    )
    driver = MusicDriver(music_channel, library, stress_level=3)

    await driver.start_for_stage("opening_preparation")
    await driver.start_for_stage("grounding_breathwork")

    assert [clip.clip_id for clip in music_channel.loaded] == ["t1", "t2"]
    assert driver.current_track_id == "t2"
    assert music_channel.volume == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_same_track_retunes_without_reload(music_channel, music_library_cls) -> None:
    track = _track("t1")
    library = music_library_cls(
        {
            "opening_preparation": _setting("opening_preparation", track, volume=0.2),
            "grounding_breathwork": _setting("grounding_breathwork", track, volume=0.6),
        }
    )
    driver = MusicDriver(music_channel, library, stress_level=3)

    await driver.start_for_stage("opening_preparation")
    await driver.start_for_stage("grounding_breathwork")

    assert len(music_channel.loaded) == 1
    assert music_channel.volume == pytest.approx(0.6)


@pytest.mark.asyncio
async def test_playback_refusal_is_silent(fake_channel_cls, music_library_cls) -> None:
    channel = fake_channel_cls("music", fail_play=True)
    library = music_library_cls({"closing": _setting("closing", _track("t1"))})
    driver = MusicDriver(channel, library, stress_level=3)

    await driver.start_for_stage("closing")

    assert driver.current_track_id is None
    assert not driver.is_playing


@pytest.mark.asyncio
async def test_library_failure_means_silence(music_channel, music_library_cls) -> None:
    driver = MusicDriver(music_channel, music_library_cls(error=RuntimeError("db down")), stress_level=3)

    await driver.start_for_stage("closing")

    assert music_channel.loaded == []


@pytest.mark.asyncio
async def test_fade_out_unloads(music_channel, music_library_cls) -> None:
    library = music_library_cls({"closing": _setting("closing", _track("t1"))})
    driver = MusicDriver(music_channel, library, stress_level=3)
    await driver.start_for_stage("closing")

    await driver.fade_out()

    assert music_channel.events[-1] == ("unload",)
    assert music_channel.volume == 0.0
    assert driver.current_track_id is None


@pytest.mark.asyncio
async def test_pause_resume_restores_volume(music_channel, music_library_cls) -> None:
    library = music_library_cls({"closing": _setting("closing", _track("t1"), volume=0.3)})
    driver = MusicDriver(music_channel, library, stress_level=3)
    await driver.start_for_stage("closing")

    await driver.pause()
    assert not driver.is_playing

    await driver.resume()
    assert driver.is_playing
    assert music_channel.volume == pytest.approx(0.3)


@pytest.mark.asyncio
async def test_stop_cuts_music(music_channel, music_library_cls) -> None:
    library = music_library_cls({"closing": _setting("closing", _track("t1"))})
    driver = MusicDriver(music_channel, library, stress_level=3)
    await driver.start_for_stage("closing")

    await driver.stop()

    assert music_channel.source is None
    assert driver.current_track_id is None


@pytest.mark.asyncio
async def test_pause_during_cross_fade_finishes_switch_on_resume(music_channel, music_library_cls, wait_until) -> None:
    library = music_library_cls(
        {
            "opening_preparation": MusicSetting("opening_preparation", "t1", 0.3, 0.0, 0.3, _track("t1")),
            "grounding_breathwork": _setting("grounding_breathwork", _track("t2"), volume=0.5),
        }
    )
    driver = MusicDriver(music_channel, library, stress_level=3)
    await driver.start_for_stage("opening_preparation")

    driver.start_for_stage("grounding_breathwork")
    await asyncio.sleep(0.05)
    await driver.pause()

    assert music_channel.source.clip_id == "t1"
    assert not driver.is_playing

    await driver.resume()

    await wait_until(lambda: driver.current_track_id == "t2")
    await wait_until(lambda: music_channel.volume == pytest.approx(0.5))
    assert music_channel.source.clip_id == "t2"
    assert driver.is_playing


@pytest.mark.asyncio
async def test_pause_before_playback_starts_plays_stage_on_resume(music_channel, music_library_cls, wait_until) -> None:
    library = music_library_cls({"closing": _setting("closing", _track("t1"), volume=0.4)})
    driver = MusicDriver(music_channel, library, stress_level=3)

    driver.start_for_stage("closing")
    await driver.pause()
    await asyncio.sleep(0.02)
    assert music_channel.loaded == []

    await driver.resume()

    await wait_until(lambda: driver.current_track_id == "t1")
    await wait_until(lambda: music_channel.volume == pytest.approx(0.4))
    assert driver.is_playing


@pytest.mark.asyncio
async def test_category_track_loops_at_default_volume(music_channel, music_library_cls) -> None:
    library = music_library_cls(tracks_by_category={"ambient": _track("amb")})
    driver = MusicDriver(music_channel, library, stress_level=2, default_volume=0.1)

    await driver.start_for_category("ambient")

    assert library.category_calls == ["ambient"]
    assert music_channel.events[:2] == [("load", "amb", True), ("play", "amb")]
    assert music_channel.volume == pytest.approx(0.1)
    assert driver.current_track_id == "amb"


@pytest.mark.asyncio
async def test_unknown_category_is_silent(music_channel, music_library_cls) -> None:
    driver = MusicDriver(music_channel, music_library_cls(), stress_level=2)

    await driver.start_for_category("polka")

    assert music_channel.loaded == []
    assert driver.current_track_id is None
