"""Speech, guidance and music functions consumed by the breathing session engine.

Failures are raised as FunctionError and rendered as ``{"error": message}``.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from breathwork.api.dependencies.auth import get_current_user_id
from breathwork.exercise.music import tracks_for_category
from breathwork.services.custom_exercise import generate_custom_exercise
from breathwork.services.guidance import generate_guidance
from breathwork.services.mood import analyze_mood
from breathwork.services.speech import generate_speech

router = APIRouter(prefix="/functions", tags=["functions"])


class GenerateSpeechRequest(BaseModel):
    text: str = Field(max_length=4096)
    voice: str = "nova"
    speed: float = 0.85


class GuidanceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stress_level: int = Field(alias="stressLevel", ge=1, le=5)
    phase: str = Field(min_length=1)
    user_name: str | None = Field(default=None, alias="userName")
    current_step: int = Field(default=1, alias="currentStep", ge=1)


class CustomExerciseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mood_text: str = Field(alias="moodText")
    first_name: str | None = Field(default=None, alias="firstName")


class MoodRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mood_text: str = Field(alias="moodText")


class FetchMusicRequest(BaseModel):
    category: str = Field(min_length=1)


@router.post("/generate-speech")
async def generate_speech_endpoint(request: GenerateSpeechRequest, user_id: str = Depends(get_current_user_id)):
    audio = await generate_speech(request.text, voice=request.voice, speed=request.speed)
    logger.debug(f"[FUNCTIONS] Speech generated for user_id={user_id}", size=len(audio))
    return Response(content=audio, media_type="audio/mpeg")


@router.post("/generate-breathing-guidance")
async def generate_guidance_endpoint(request: GuidanceRequest, user_id: str = Depends(get_current_user_id)):
    result = await generate_guidance(
        request.stress_level,
        request.phase,
        user_name=request.user_name,
        current_step=request.current_step,
    )
    return {"guidanceText": result.guidance_text, "source": result.source}


@router.post("/generate-custom-exercise")
async def generate_custom_exercise_endpoint(
    request: CustomExerciseRequest,
    user_id: str = Depends(get_current_user_id),
):
    exercise = await generate_custom_exercise(request.mood_text, request.first_name)
    return exercise.model_dump(by_alias=True)


@router.post("/analyze-mood")
async def analyze_mood_endpoint(request: MoodRequest, user_id: str = Depends(get_current_user_id)):
    return {"mood": await analyze_mood(request.mood_text)}


@router.post("/fetch-music")
async def fetch_music_endpoint(request: FetchMusicRequest, user_id: str = Depends(get_current_user_id)):
    """Active background tracks for a music category."""
    tracks = await asyncio.to_thread(tracks_for_category, request.category)
    logger.debug(f"[FUNCTIONS] {len(tracks)} tracks for category {request.category!r}")
    return [
        {"id": track.id, "name": track.name, "url": track.file_url, "duration": track.duration_seconds}
        for track in tracks
    ]
