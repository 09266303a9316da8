"""Per-stage guidance text for staged breathing sessions."""

from __future__ import annotations

from loguru import logger
from pydantic import BaseModel, Field
from pydantic_ai import Agent

from breathwork.config.settings import settings
from breathwork.exercise.guidance import fallback_guidance
from breathwork.services.model import get_model
from breathwork.services.prompt_loader import load_prompt


class GuidanceOutput(BaseModel):
    text: str = Field(description="2-3 sentences of spoken guidance")


class GuidanceResult(BaseModel):
    guidance_text: str
    source: str  # "ai" | "fallback"


async def generate_guidance(
    stress_level: int,
    phase: str,
    user_name: str | None = None,
    current_step: int = 1,
) -> GuidanceResult:
    """Generate guidance for one stage. Falls back to static text, never raises."""
    if not settings.openai_api_key:
        logger.warning("[GUIDANCE] OPENAI_API_KEY not configured, using fallback text")
        return GuidanceResult(guidance_text=fallback_guidance(phase, user_name), source="fallback")

    user_message = f"""Generate breathing exercise guidance for:
- Stage: {phase}
- User's stress level: {stress_level}/5
- User's name: {user_name or 'the user'}
- Step: {current_step}"""

    try:
        agent = Agent(
            model=get_model(settings.guidance_model),
            system_prompt=load_prompt("breathing_guidance.txt"),
            output_type=GuidanceOutput,
        )
        result = await agent.run(user_message)
        text = result.output.text.strip()
        if not text:
            raise ValueError("Empty guidance text")
    except Exception as e:
        logger.warning(f"[GUIDANCE] Generation failed for {phase}, using fallback text: {e}")
        return GuidanceResult(guidance_text=fallback_guidance(phase, user_name), source="fallback")

    logger.debug(f"[GUIDANCE] Generated guidance for {phase}", stress_level=stress_level)
    return GuidanceResult(guidance_text=text, source="ai")
