"""Session state machine for guided breathing exercises.

One SessionSequencer drives one user session:

    Idle -> Welcoming -> AwaitingMoodInput -> Analyzing -> Running <-> Paused
                      \\-> Idle (fixed level)              Running -> Completing -> Completed
    Completed -> Running (repeat), Running/Paused -> Idle (stop)

A single ticker task advances ``elapsed_seconds`` once per tick and is the
only periodic driver of segment transitions; the timer is authoritative and
narration never holds it back. Every async continuation captures the
session generation (and segment index where relevant) and re-checks it
before touching state, so work started before a stop cannot leak into the
next run.

Long-running actions (mount, mood analysis, start, repeat) are scheduled as
tasks so the transport keeps receiving playback events while they run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from loguru import logger
from sqlalchemy import select

from breathwork.config.settings import settings
from breathwork.db.models import User
from breathwork.db.session import get_session
from breathwork.exercise.errors import (
    GenerationFailedError,
    InvalidTransitionError,
    NarrationError,
)
from breathwork.exercise.generators import PlanGenerator
from breathwork.exercise.guidance import fallback_guidance
from breathwork.exercise.models import (
    ExercisePlan,
    PhaseKind,
    PhaseStep,
    SessionSnapshot,
    SessionState,
    Stage,
)
from breathwork.exercise.music import MusicDriver
from breathwork.exercise.narration import NarrationDriver
from breathwork.exercise.recorder import CompletionRecorder
from breathwork.integrations.voice.client import VoiceServiceClient
from breathwork.integrations.voice.errors import VoiceAuthenticationError, VoiceServiceError

INHALE_SCALE = 1.4
EXHALE_SCALE = 1.0

VOICE_FAILED_NOTICE = "Voice generation failed. Continuing with text guidance."
GENERATION_FAILED_NOTICE = "We couldn't create your exercise. Please try again."
REAUTH_NOTICE = "Your session has expired. Please sign in again."
MALFORMED_PLAN_NOTICE = "This exercise contained an invalid step and was stopped."

Listener = Callable[[SessionSnapshot], Awaitable[None]]
ProfileLookup = Callable[[str], Awaitable[str | None]]
NarrationProducer = Coroutine[Any, Any, str | None]
MusicFactory = Callable[[int], MusicDriver]


def _first_name_sync(user_id: str) -> str | None:
    with get_session() as session:
        return session.execute(select(User.first_name).where(User.id == user_id)).scalar_one_or_none()


async def lookup_first_name(user_id: str) -> str | None:
    return await asyncio.to_thread(_first_name_sync, user_id)


def completion_notes(plan: ExercisePlan) -> str:
    if plan.interpreted_mood:
        return f"Completed {plan.display_name} for feeling {plan.interpreted_mood.lower()}."
    return f"Completed a {plan.display_name} at stress level {plan.stress_score}."


class SessionSequencer:
    def __init__(
        self,
        user_id: str,
        generator: PlanGenerator,
        narrator: NarrationDriver,
        recorder: CompletionRecorder,
        voice_client: VoiceServiceClient | None = None,
        music_factory: MusicFactory | None = None,
        profile_lookup: ProfileLookup | None = None,
        tick_seconds: float = 1.0,
        narration_timeout: float | None = None,
    ):
        self.user_id = user_id
        self.generator = generator
        self.narrator = narrator
        self.recorder = recorder
        self.voice_client = voice_client
        self.music_factory = music_factory
        self.profile_lookup = profile_lookup or lookup_first_name
        self.tick_seconds = tick_seconds
        self.narration_timeout = (
            settings.narration_timeout_seconds if narration_timeout is None else narration_timeout
        )

        self.state = SessionState.IDLE
        self.plan: ExercisePlan | None = None
        self.first_name: str | None = None
        self.music: MusicDriver | None = None
        self.generation = 0
        self.elapsed_seconds = 0
        self.segment_index = -1
        self.instruction = ""
        self.guidance_text = ""
        self.animation_scale = 1.0
        self.phase_duration_seconds = 0
        self.notice: str | None = None
        self.requires_reauth = False

        self._listeners: list[Listener] = []
        self._ticker: asyncio.Task | None = None
        self._flow: asyncio.Task | None = None
        self._narration: asyncio.Task | None = None
        self._pending_narration: tuple[NarrationProducer, int, int] | None = None
        self._paused_at: float | None = None
        self._paused_total = 0.0

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> SessionSnapshot:
        total = self.plan.total_duration_seconds if self.plan else 0
        elapsed = min(self.elapsed_seconds, total)
        progress = (elapsed / total * 100.0) if total else 0.0
        return SessionSnapshot(
            state=self.state,
            display_name=self.plan.display_name if self.plan else None,
            instruction=self.instruction,
            guidance_text=self.guidance_text,
            animation_scale=self.animation_scale,
            phase_duration_seconds=self.phase_duration_seconds,
            segment_index=self.segment_index,
            segment_count=len(self.plan.segments) if self.plan else 0,
            elapsed_seconds=elapsed,
            remaining_seconds=max(0, total - elapsed),
            total_seconds=total,
            progress=round(min(100.0, progress), 1),
            music_playing=bool(self.music and self.music.is_playing),
            notice=self.notice,
            requires_reauth=self.requires_reauth,
        )

    async def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                await listener(snapshot)
            except Exception as e:
                logger.warning(f"[SESSION] Listener failed: {e}")

    async def _set_state(self, state: SessionState) -> None:
        logger.debug(f"[SESSION] {self.state.value} -> {state.value}", user_id=self.user_id)
        self.state = state
        await self._notify()

    @property
    def resting_state(self) -> SessionState:
        """Where the session waits for the user after a stop or failed analysis."""
        if self.generator.requires_mood_text and self.plan is None:
            return SessionState.AWAITING_MOOD_INPUT
        return SessionState.IDLE

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def mount(self) -> asyncio.Task:
        if self.state != SessionState.IDLE or self.generation != 0:
            raise InvalidTransitionError("mount", self.state.value)
        return self._spawn_flow(self._welcome(self.generation))

    def submit_mood(self, mood_text: str) -> asyncio.Task:
        if not self.generator.requires_mood_text:
            raise InvalidTransitionError("submit mood", self.state.value)
        if self.state not in (SessionState.AWAITING_MOOD_INPUT, SessionState.IDLE, SessionState.COMPLETED):
            raise InvalidTransitionError("submit mood", self.state.value)
        if not mood_text or not mood_text.strip():
            raise ValueError("Mood text is required")

        self.generation += 1
        self.state = SessionState.ANALYZING
        self.notice = None
        self.requires_reauth = False
        return self._spawn_flow(self._analyze(mood_text.strip(), self.generation))

    def start(self, stress_level: int | None = None) -> asyncio.Task:
        """Start a run.

        Fixed-level sessions generate the plan for ``stress_level``; mood
        sessions retake the plan kept from the previous run.
        """
        if self.state not in (SessionState.IDLE, SessionState.COMPLETED):
            raise InvalidTransitionError("start", self.state.value)
        if self.generator.requires_mood_text and self.plan is None:
            raise InvalidTransitionError("start without a mood", self.state.value)

        self.generation += 1
        self.notice = None
        if self.generator.requires_mood_text:
            return self._spawn_flow(self._begin_run(self.plan, self.generation))
        return self._spawn_flow(self._generate_and_run(stress_level, self.generation))

    def repeat(self) -> asyncio.Task:
        if self.state != SessionState.COMPLETED or self.plan is None:
            raise InvalidTransitionError("repeat", self.state.value)
        self.generation += 1
        self.notice = None
        return self._spawn_flow(self._begin_run(self.plan, self.generation))

    async def pause(self) -> None:
        if self.state != SessionState.RUNNING:
            raise InvalidTransitionError("pause", self.state.value)
        await self._cancel(self._ticker)
        self._ticker = None
        self.state = SessionState.PAUSED
        self._paused_at = asyncio.get_running_loop().time()
        await self.narrator.pause()
        if self.music:
            await self.music.pause()
        await self._notify()

    async def resume(self) -> None:
        if self.state != SessionState.PAUSED:
            raise InvalidTransitionError("resume", self.state.value)
        self._end_pause_clock()
        self.state = SessionState.RUNNING
        await self.narrator.resume()
        if self.music:
            await self.music.resume()
        self._ticker = asyncio.create_task(self._tick_loop(self.generation))
        await self._notify()

    async def stop(self) -> None:
        """Cancel everything immediately and return to rest. The plan is kept for a retake."""
        if self.state == SessionState.IDLE:
            return
        self.generation += 1
        await self._halt()
        self._reset_progress()
        self.notice = None
        logger.info("[SESSION] Stopped", user_id=self.user_id)
        await self._set_state(self.resting_state)

    async def teardown(self) -> None:
        """Release everything; the sequencer is unusable afterwards."""
        self.generation += 1
        self._listeners.clear()
        await self._halt()
        await self.narrator.clear_cache()
        await self.recorder.drain()
        logger.debug("[SESSION] Torn down", user_id=self.user_id)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def _spawn_flow(self, coro) -> asyncio.Task:
        if self._flow is not None and not self._flow.done():
            self._flow.cancel()
        self._flow = asyncio.create_task(coro)
        return self._flow

    async def _welcome(self, generation: int) -> None:
        await self._set_state(SessionState.WELCOMING)
        try:
            self.first_name = await self.profile_lookup(self.user_id)
        except Exception as e:
            logger.warning(f"[SESSION] Could not load profile for {self.user_id}: {e}")
            self.first_name = None

        name = self.first_name or "there"
        if self.generator.requires_mood_text:
            welcome = (
                f"Welcome, {name}. How are you feeling today? "
                "Please describe your mood or how you're feeling in your own words."
            )
        else:
            welcome = f"Welcome, {name}. Choose how stressed you feel, and we'll begin when you're ready."
        await self._speak_bounded(welcome, generation)

        if generation == self.generation:
            await self._set_state(self.resting_state)

    async def _analyze(self, mood_text: str, generation: int) -> None:
        await self._notify()
        try:
            plan = await self.generator.generate(self.first_name, mood_text=mood_text)
        except GenerationFailedError as e:
            if generation != self.generation:
                return
            logger.warning(f"[SESSION] Plan generation failed: {e.message}")
            self.requires_reauth = e.requires_reauth
            self.notice = REAUTH_NOTICE if e.requires_reauth else GENERATION_FAILED_NOTICE
            await self._notify()
            apology = (
                f"I'm sorry, {self.first_name or 'friend'}. I wasn't able to prepare your exercise just now. "
                "Please tell me again how you're feeling."
            )
            await self._speak_bounded(apology, generation)
            if generation == self.generation:
                await self._set_state(SessionState.AWAITING_MOOD_INPUT)
            return

        if generation != self.generation:
            return
        self.plan = plan
        await self._notify()
        await self._speak_bounded(plan.intro_narration, generation)
        if generation != self.generation:
            return
        await self._begin_run(plan, generation)

    async def _generate_and_run(self, stress_level: int | None, generation: int) -> None:
        try:
            plan = await self.generator.generate(self.first_name, stress_level=stress_level)
        except GenerationFailedError as e:
            if generation == self.generation:
                self.requires_reauth = e.requires_reauth
                self.notice = GENERATION_FAILED_NOTICE
                await self._set_state(SessionState.IDLE)
            return
        if generation != self.generation:
            return
        self.plan = plan
        await self._speak_bounded(plan.intro_narration, generation)
        if generation != self.generation:
            return
        await self._begin_run(plan, generation)

    async def _begin_run(self, plan: ExercisePlan, generation: int) -> None:
        await self._cancel(self._ticker)
        await self._cancel(self._narration)
        self._drop_pending_narration()

        self.plan = plan
        self._reset_progress()
        self._prepare_music(plan)
        self.state = SessionState.RUNNING
        logger.info(
            f"[SESSION] Running {plan.display_name}",
            user_id=self.user_id,
            total_seconds=plan.total_duration_seconds,
            segments=len(plan.segments),
        )

        if not await self._enter_segment(0, generation):
            return
        await self._notify()
        self._ticker = asyncio.create_task(self._tick_loop(generation))

    def _prepare_music(self, plan: ExercisePlan) -> None:
        if self.music_factory is None:
            return
        if plan.is_staged:
            if self.music is None or self.music.stress_level != plan.stress_score:
                self.music = self.music_factory(plan.stress_score)
        elif plan.music_category:
            if self.music is None:
                self.music = self.music_factory(plan.stress_score)
            self.music.start_for_category(plan.music_category)

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    async def _tick_loop(self, generation: int) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            if generation != self.generation or self.state != SessionState.RUNNING or self.plan is None:
                return

            self.elapsed_seconds += 1
            last_index = len(self.plan.segments) - 1

            if self.elapsed_seconds >= self.plan.total_duration_seconds:
                # Zero-length segments left at the end are malformed and must still abort
                while self.segment_index < last_index:
                    if not await self._enter_segment(self.segment_index + 1, generation):
                        return
                self._begin_completion(generation)
                return

            target = self.plan.segment_index_at(self.elapsed_seconds)
            while self.segment_index < target:
                if not await self._enter_segment(self.segment_index + 1, generation):
                    return
            await self._notify()

    async def _enter_segment(self, index: int, generation: int) -> bool:
        segment = self.plan.segments[index]
        if not segment.is_well_formed:
            logger.error(
                f"[SESSION] Malformed segment at index {index}: {segment!r}. Stopping exercise.",
                user_id=self.user_id,
            )
            await self._abort(generation)
            return False

        self.segment_index = index
        self.phase_duration_seconds = segment.duration_seconds

        if isinstance(segment, Stage):
            self.instruction = segment.label
            self.guidance_text = segment.description
            if self.music:
                self.music.start_for_stage(segment.key)
            self._queue_narration(self._stage_narration(segment, index, generation), generation, index)
        elif isinstance(segment, PhaseStep):
            kind = segment.phase_kind
            self.instruction = kind.value.capitalize()
            if kind == PhaseKind.INHALE:
                self.animation_scale = INHALE_SCALE
            elif kind == PhaseKind.EXHALE:
                self.animation_scale = EXHALE_SCALE
            self._queue_narration(self._phase_narration(kind), generation, index)
        return True

    def _begin_completion(self, generation: int) -> None:
        self.state = SessionState.COMPLETING
        self._spawn_flow(self._complete(generation))

    async def _complete(self, generation: int) -> None:
        plan = self.plan
        await self._cancel(self._narration)
        self._drop_pending_narration()
        if self.music:
            self.music.fade_out()

        self.recorder.record(self.user_id, plan.stress_score, completion_notes(plan))
        self.elapsed_seconds = plan.total_duration_seconds
        self.animation_scale = 1.0
        self.instruction = ""
        await self._notify()

        await self._speak_bounded(plan.completion_narration, generation)
        if generation == self.generation:
            logger.info(f"[SESSION] Completed {plan.display_name}", user_id=self.user_id)
            await self._set_state(SessionState.COMPLETED)

    async def _abort(self, generation: int) -> None:
        """Malformed plan: stop without completion narration and without recording."""
        await self._cancel(self._narration)
        self._drop_pending_narration()
        await self.narrator.stop()
        if self.music:
            await self.music.stop()
        if generation != self.generation:
            return
        self.animation_scale = 1.0
        self.notice = MALFORMED_PLAN_NOTICE
        await self._set_state(SessionState.COMPLETED)

    # ------------------------------------------------------------------
    # Narration
    # ------------------------------------------------------------------

    def _is_current(self, generation: int, index: int) -> bool:
        return (
            generation == self.generation
            and index == self.segment_index
            and self.state in (SessionState.RUNNING, SessionState.PAUSED)
        )

    def _queue_narration(self, producer: NarrationProducer, generation: int, index: int) -> None:
        # Latest wins: a still-queued producer for an earlier segment is dropped unawaited
        self._drop_pending_narration()
        self._pending_narration = (producer, generation, index)
        if self._narration is None or self._narration.done():
            self._narration = asyncio.create_task(self._narration_loop())

    def _drop_pending_narration(self) -> None:
        if self._pending_narration is not None:
            self._pending_narration[0].close()
            self._pending_narration = None

    async def _narration_loop(self) -> None:
        while self._pending_narration is not None:
            producer, generation, index = self._pending_narration
            self._pending_narration = None
            if not self._is_current(generation, index):
                producer.close()
                continue

            text = await producer
            if not text or not self._is_current(generation, index):
                continue
            await self._speak_bounded(text, generation)

    async def _phase_narration(self, kind: PhaseKind) -> str:
        return kind.value

    async def _stage_narration(self, stage: Stage, index: int, generation: int) -> str | None:
        text = await self._guidance_for(stage, index)
        if not self._is_current(generation, index):
            return None
        self.guidance_text = text
        await self._notify()
        return text

    async def _guidance_for(self, stage: Stage, index: int) -> str:
        if self.voice_client is None:
            return fallback_guidance(stage.key, self.first_name)
        try:
            return await self.voice_client.generate_guidance_text(
                self.plan.stress_score, stage.key, self.first_name, index + 1
            )
        except VoiceAuthenticationError as e:
            logger.warning(f"[SESSION] Guidance needs re-authentication: {e.message}")
            self.requires_reauth = True
        except VoiceServiceError as e:
            logger.warning(f"[SESSION] Guidance generation failed for {stage.key}, using static text: {e.message}")
        return fallback_guidance(stage.key, self.first_name)

    def _paused_seconds(self) -> float:
        total = self._paused_total
        if self._paused_at is not None:
            total += asyncio.get_running_loop().time() - self._paused_at
        return total

    def _end_pause_clock(self) -> None:
        if self._paused_at is not None:
            self._paused_total += asyncio.get_running_loop().time() - self._paused_at
            self._paused_at = None

    async def _await_narration(self, speech: asyncio.Task) -> None:
        """Wait for ``speech``. Only time spent outside a pause counts toward the timeout.

        Raises:
            asyncio.TimeoutError: If narration runs longer than the timeout while unpaused
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        paused_before = self._paused_seconds()
        try:
            while True:
                active = loop.time() - started - (self._paused_seconds() - paused_before)
                remaining = self.narration_timeout - active
                if remaining <= 0:
                    raise asyncio.TimeoutError()
                done, _ = await asyncio.wait({speech}, timeout=remaining)
                if done:
                    return speech.result()
        finally:
            if not speech.done():
                speech.cancel()
                await asyncio.wait({speech})

    async def _speak_bounded(self, text: str | None, generation: int) -> bool:
        if not text or not text.strip():
            return True
        try:
            await self._await_narration(asyncio.create_task(self.narrator.speak(text)))
        except (NarrationError, asyncio.TimeoutError) as e:
            logger.warning(f"[NARRATION] {str(e) or 'Narration timed out'}; continuing with text guidance")
            # Keep the re-authentication notice visible
            if generation == self.generation and self.notice != REAUTH_NOTICE:
                self.notice = VOICE_FAILED_NOTICE
                await self._notify()
            return False
        return True

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def _cancel(self, task: asyncio.Task | None) -> None:
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _halt(self) -> None:
        for task in (self._ticker, self._narration, self._flow):
            await self._cancel(task)
        self._ticker = None
        self._narration = None
        self._flow = None
        self._end_pause_clock()
        self._drop_pending_narration()
        await self.narrator.stop()
        if self.music:
            await self.music.stop()

    def _reset_progress(self) -> None:
        self.elapsed_seconds = 0
        self.segment_index = -1
        self.instruction = ""
        self.guidance_text = ""
        self.animation_scale = 1.0
        self.phase_duration_seconds = 0
