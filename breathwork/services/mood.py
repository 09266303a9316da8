"""Classify free-text mood into one of the preset mood labels."""

from __future__ import annotations

from typing import Literal

from loguru import logger
from pydantic import BaseModel
from pydantic_ai import Agent

from breathwork.config.settings import settings
from breathwork.exercise.presets import VALID_MOODS
from breathwork.services.errors import FunctionError, FunctionNotConfiguredError
from breathwork.services.model import get_model
from breathwork.services.prompt_loader import load_prompt

MoodLabel = Literal["Anxious", "Stressed", "Tired", "Sad", "Angry", "Calm", "Energized"]


class MoodOutput(BaseModel):
    mood: MoodLabel


async def analyze_mood(mood_text: str) -> str:
    """Return one of VALID_MOODS.

    Raises:
        FunctionError: If the text is empty, the service is not configured, or classification fails
    """
    mood_text = (mood_text or "").strip()
    if not mood_text:
        raise FunctionError(400, "moodText is required")
    if not settings.openai_api_key:
        raise FunctionNotConfiguredError("Mood analysis service not configured on server.")

    agent = Agent(
        model=get_model(settings.guidance_model),
        system_prompt=load_prompt("mood_analysis.txt"),
        output_type=MoodOutput,
    )
    try:
        result = await agent.run(f'User input: "{mood_text}"')
    except Exception as e:
        logger.error(f"[MOOD] Mood analysis failed: {e}")
        raise FunctionError(502, "Failed to analyze mood.") from e

    mood = result.output.mood
    if mood not in VALID_MOODS:
        raise FunctionError(502, f"Mood analysis returned an unknown mood: {mood}")
    logger.debug(f"[MOOD] Classified mood as {mood}")
    return mood
