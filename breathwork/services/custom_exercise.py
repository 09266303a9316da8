"""Custom breathing exercise generation from a free-text mood."""

from __future__ import annotations

from typing import Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic_ai import Agent

from breathwork.config.settings import settings
from breathwork.services.errors import FunctionError, FunctionNotConfiguredError
from breathwork.services.model import get_model
from breathwork.services.prompt_loader import load_prompt


class PatternStepOutput(BaseModel):
    phase: Literal["inhale", "hold", "exhale"]
    duration: int = Field(ge=1, le=30, description="Duration in whole seconds")


class CustomExerciseOutput(BaseModel):
    """Custom exercise, serialized with camelCase keys for the session engine."""

    model_config = ConfigDict(populate_by_name=True)

    interpreted_mood: str = Field(alias="interpretedMood", description="1-3 word mood description")
    exercise_name: str = Field(alias="exerciseName")
    introductory_guidance: str = Field(alias="introductoryGuidance")
    completion_guidance: str = Field(alias="completionGuidance")
    stress_score: int = Field(alias="stressScore", ge=1, le=5)
    music_category: Literal["background", "nature", "feelings", "health"] | None = Field(
        default=None, alias="musicCategory"
    )
    pattern: list[PatternStepOutput] = Field(min_length=4, max_length=8)


async def generate_custom_exercise(mood_text: str, first_name: str | None = None) -> CustomExerciseOutput:
    """Interpret ``mood_text`` and design an exercise for it.

    Raises:
        FunctionError: On missing input, missing configuration, or any generation failure
    """
    mood_text = (mood_text or "").strip()
    if not mood_text:
        raise FunctionError(400, "moodText is required")
    if not settings.openai_api_key:
        raise FunctionNotConfiguredError("Exercise generation service not configured on server.")

    system_prompt = load_prompt("custom_exercise.txt") + f"\n\nThe user's first name is {first_name or 'there'}."
    agent = Agent(
        model=get_model(settings.exercise_model),
        system_prompt=system_prompt,
        output_type=CustomExerciseOutput,
    )

    try:
        result = await agent.run(f'User input: "{mood_text}"')
    except Exception as e:
        logger.error(f"[EXERCISE] Custom exercise generation failed: {e}")
        raise FunctionError(502, "Failed to generate custom exercise.") from e

    exercise = result.output
    logger.info(
        "[EXERCISE] Custom exercise generated",
        exercise_name=exercise.exercise_name,
        step_count=len(exercise.pattern),
        stress_score=exercise.stress_score,
    )
    return exercise
