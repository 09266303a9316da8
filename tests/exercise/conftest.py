"""In-memory collaborators for the session engine."""

import asyncio

import pytest
import pytest_asyncio

from breathwork.exercise.audio import AudioChannel, AudioClip
from breathwork.exercise.errors import PlaybackError
from breathwork.exercise.generators import PlanGenerator
from breathwork.exercise.models import ExercisePlan, MusicSetting, MusicTrack
from breathwork.exercise.music import MusicLibrary
from breathwork.exercise.narration import NarrationDriver
from breathwork.exercise.recorder import CompletionRecorder
from breathwork.exercise.sequencer import SessionSequencer


class FakeChannel(AudioChannel):
    """Player that ends clips immediately unless ``auto_end`` is off."""

    def __init__(self, name: str = "voice", auto_end: bool = True, fail_play: bool = False):
        super().__init__()
        self.name = name
        self.auto_end = auto_end
        self.fail_play = fail_play
        self.fail_wait = False
        self.events: list[tuple] = []
        self.loaded: list[AudioClip] = []
        self.volumes: list[float] = []
        self.released: list[AudioClip] = []
        self._ended: asyncio.Event | None = None

    async def load(self, clip: AudioClip) -> None:
        self.source = clip
        self.is_playing = False
        self.loaded.append(clip)
        self.events.append(("load", clip.clip_id, self.loop))

    async def play(self) -> None:
        if self.fail_play:
            raise PlaybackError("playback refused")
        self.is_playing = True
        self.events.append(("play", self.source.clip_id))
        self._ended = asyncio.Event()
        if self.auto_end:
            self._ended.set()

    async def wait_until_ended(self) -> None:
        if self._ended is not None:
            await self._ended.wait()
        if self.fail_wait:
            raise PlaybackError("decode error")
        self.is_playing = False

    def finish(self) -> None:
        if self._ended is not None:
            self._ended.set()

    async def pause(self) -> None:
        self.is_playing = False
        self.events.append(("pause",))

    async def resume(self) -> None:
        self.is_playing = True
        self.events.append(("resume",))

    async def unload(self) -> None:
        self.source = None
        self.is_playing = False
        self.events.append(("unload",))
        if self._ended is not None:
            self._ended.set()

    async def set_volume(self, volume: float) -> None:
        self.volume = volume
        self.volumes.append(volume)

    async def release(self, clip: AudioClip) -> None:
        self.released.append(clip)
        clip.release()


class FakeVoiceClient:
    def __init__(self):
        self.spoken: list[str] = []
        self.guidance_calls: list[tuple[str, int]] = []
        self.guidance_gates: dict[int, asyncio.Event] = {}
        self.speech_error: Exception | None = None
        self.guidance_error: Exception | None = None
        self.custom_payload: dict | None = None
        self.custom_error: Exception | None = None
        self.mood = "Tired"
        self.mood_error: Exception | None = None

    async def synthesize_speech(self, text: str, voice: str = "nova", speed: float = 0.85) -> bytes:
        self.spoken.append(text)
        if self.speech_error is not None:
            raise self.speech_error
        return b"ID3-fake-audio"

    async def generate_guidance_text(self, stress_level, phase_key, user_name, step_number) -> str:
        self.guidance_calls.append((phase_key, step_number))
        call_number = len(self.guidance_calls)
        gate = self.guidance_gates.get(step_number)
        if gate is not None:
            await gate.wait()
        if self.guidance_error is not None:
            raise self.guidance_error
        return f"Guidance {call_number} for {phase_key}"

    async def generate_custom_exercise(self, mood_text: str, first_name: str) -> dict:
        if self.custom_error is not None:
            raise self.custom_error
        return self.custom_payload

    async def analyze_mood(self, mood_text: str) -> str:
        if self.mood_error is not None:
            raise self.mood_error
        return self.mood


class StaticGenerator(PlanGenerator):
    def __init__(self, plan: ExercisePlan, requires_mood_text: bool = False):
        self.plan = plan
        self.requires_mood_text = requires_mood_text
        self.calls = 0

    async def generate(self, first_name, stress_level=None, mood_text=None) -> ExercisePlan:
        self.calls += 1
        return self.plan


class FakeMusicLibrary(MusicLibrary):
    def __init__(
        self,
        settings_by_stage: dict[str, MusicSetting] | None = None,
        error: Exception | None = None,
        tracks_by_category: dict[str, MusicTrack] | None = None,
    ):
        self.settings_by_stage = settings_by_stage or {}
        self.error = error
        self.tracks_by_category = tracks_by_category or {}
        self.category_calls: list[str] = []

    async def load_settings(self, stress_level: int) -> dict[str, MusicSetting]:
        if self.error is not None:
            raise self.error
        return dict(self.settings_by_stage)

    async def track_for_category(self, category: str) -> MusicTrack | None:
        self.category_calls.append(category)
        if self.error is not None:
            raise self.error
        return self.tracks_by_category.get(category)


@pytest.fixture
def voice_client() -> FakeVoiceClient:
    return FakeVoiceClient()


@pytest.fixture
def voice_channel() -> FakeChannel:
    return FakeChannel("voice")


@pytest.fixture
def music_channel() -> FakeChannel:
    return FakeChannel("music")


@pytest.fixture
def fake_channel_cls():
    return FakeChannel


@pytest.fixture
def static_generator_cls():
    return StaticGenerator


@pytest.fixture
def music_library_cls():
    return FakeMusicLibrary


@pytest.fixture
def recorded() -> list[tuple]:
    return []


@pytest.fixture
def recorder(recorded) -> CompletionRecorder:
    def insert(user_id, stress_score, notes):
        recorded.append((user_id, stress_score, notes))
        return f"entry-{len(recorded)}"

    return CompletionRecorder(insert_fn=insert)


@pytest.fixture
def narrator(voice_client, voice_channel) -> NarrationDriver:
    return NarrationDriver(voice_client, voice_channel, voice="nova", speed=0.85)


@pytest_asyncio.fixture
async def make_sequencer(voice_client, narrator, recorder):
    created: list[SessionSequencer] = []

    def _make(generator, music_factory=None, first_name="Jane", tick_seconds=0.01, narration_timeout=1.0):
        async def lookup(user_id):
            return first_name

        sequencer = SessionSequencer(
            "user-1",
            generator,
            narrator,
            recorder,
            voice_client=voice_client,
            music_factory=music_factory,
            profile_lookup=lookup,
            tick_seconds=tick_seconds,
            narration_timeout=narration_timeout,
        )
        created.append(sequencer)
        return sequencer

    yield _make

    for sequencer in created:
        await sequencer.teardown()


@pytest.fixture
def wait_until():
    async def _wait_until(predicate, timeout: float = 3.0, interval: float = 0.005):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not reached before timeout")
            await asyncio.sleep(interval)

    return _wait_until
