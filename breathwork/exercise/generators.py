"""Plan generation strategies.

A generator turns the user's input (a stress level, or free-text mood) into
an ExercisePlan. The sequencer holds exactly one generator per session and
does not care which one it is beyond ``requires_mood_text``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from breathwork.exercise.errors import GenerationFailedError
from breathwork.exercise.models import ExercisePlan, PhaseStep
from breathwork.exercise.presets import build_preset_plan, get_preset
from breathwork.exercise.stages import DEFAULT_STRESS_LEVEL, build_stage_plan
from breathwork.integrations.voice.client import VoiceServiceClient
from breathwork.integrations.voice.errors import VoiceAuthenticationError, VoiceServiceError

MIN_CUSTOM_STEPS = 4
MAX_CUSTOM_STEPS = 8


class PlanGenerator(ABC):
    """Base class for plan generators."""

    requires_mood_text: bool = False

    @abstractmethod
    async def generate(
        self,
        first_name: str | None,
        stress_level: int | None = None,
        mood_text: str | None = None,
    ) -> ExercisePlan:
        """Build a plan for the user.

        Raises:
            GenerationFailedError: If no plan can be produced. No substitute plan is returned.
        """
        raise NotImplementedError


class FixedLevelGenerator(PlanGenerator):
    """Stress level -> staged plan from the fixed table."""

    async def generate(
        self,
        first_name: str | None,
        stress_level: int | None = None,
        mood_text: str | None = None,
    ) -> ExercisePlan:
        level = DEFAULT_STRESS_LEVEL if stress_level is None else stress_level
        return build_stage_plan(level, first_name)


class CustomPatternStep(BaseModel):
    # Kept raw; the sequencer rejects malformed steps when it reaches them
    phase: Any = None
    duration: Any = None


class CustomExercisePayload(BaseModel):
    """Shape of the generate-custom-exercise response."""

    model_config = ConfigDict(populate_by_name=True)

    interpreted_mood: str = Field(alias="interpretedMood", min_length=1)
    exercise_name: str = Field(alias="exerciseName", min_length=1)
    introductory_guidance: str = Field(alias="introductoryGuidance")
    completion_guidance: str = Field(alias="completionGuidance")
    stress_score: int = Field(alias="stressScore", ge=1, le=5)
    music_category: str | None = Field(default=None, alias="musicCategory")
    pattern: list[CustomPatternStep] = Field(min_length=MIN_CUSTOM_STEPS, max_length=MAX_CUSTOM_STEPS)

    @field_validator("introductory_guidance", "completion_guidance")
    @classmethod
    def validate_narration(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("narration must not be empty")
        return value.strip()


class CustomExerciseGenerator(PlanGenerator):
    """Mood text -> remotely generated custom phase plan."""

    requires_mood_text = True

    def __init__(self, voice_client: VoiceServiceClient):
        self.voice_client = voice_client

    async def generate(
        self,
        first_name: str | None,
        stress_level: int | None = None,
        mood_text: str | None = None,
    ) -> ExercisePlan:
        if not mood_text or not mood_text.strip():
            raise GenerationFailedError("Mood text is required")

        try:
            raw = await self.voice_client.generate_custom_exercise(mood_text.strip(), first_name or "there")
        except VoiceAuthenticationError as e:
            logger.warning(f"[GENERATOR] Custom exercise needs re-authentication: {e.message}")
            raise GenerationFailedError(e.message, requires_reauth=True) from e
        except VoiceServiceError as e:
            logger.error(f"[GENERATOR] Custom exercise generation failed: {e.message}")
            raise GenerationFailedError(e.message) from e

        try:
            payload = CustomExercisePayload.model_validate(raw)
        except ValidationError as e:
            logger.error(f"[GENERATOR] Malformed custom exercise response: {e}")
            raise GenerationFailedError("Received malformed exercise data") from e

        logger.info(
            "[GENERATOR] Custom exercise generated",
            exercise_name=payload.exercise_name,
            interpreted_mood=payload.interpreted_mood,
            step_count=len(payload.pattern),
        )
        return ExercisePlan(
            display_name=payload.exercise_name,
            intro_narration=payload.introductory_guidance,
            completion_narration=payload.completion_guidance,
            stress_score=payload.stress_score,
            steps=tuple(PhaseStep(step.phase, step.duration) for step in payload.pattern),
            music_category=payload.music_category,
            interpreted_mood=payload.interpreted_mood,
        )


class MoodPresetGenerator(PlanGenerator):
    """Mood text -> classified mood label -> canned pattern."""

    requires_mood_text = True

    def __init__(self, voice_client: VoiceServiceClient):
        self.voice_client = voice_client

    async def generate(
        self,
        first_name: str | None,
        stress_level: int | None = None,
        mood_text: str | None = None,
    ) -> ExercisePlan:
        if not mood_text or not mood_text.strip():
            raise GenerationFailedError("Mood text is required")

        try:
            mood = await self.voice_client.analyze_mood(mood_text.strip())
        except VoiceAuthenticationError as e:
            raise GenerationFailedError(e.message, requires_reauth=True) from e
        except VoiceServiceError as e:
            logger.error(f"[GENERATOR] Mood analysis failed: {e.message}")
            raise GenerationFailedError(e.message) from e

        preset = get_preset(mood)
        if preset is None:
            raise GenerationFailedError(f"Unrecognized mood: {mood}")
        logger.info(f"[GENERATOR] Mood classified as {preset.mood}")
        return build_preset_plan(preset, first_name)
