"""Breathing session endpoints.

The websocket hosts one SessionSequencer per connection. The client sends
commands (start, submit_mood, pause, resume, stop, repeat) and playback
reports (audio.ended / audio.error); the server pushes a snapshot after
every state change plus audio.* commands for the ``voice`` and ``music``
channels.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from loguru import logger
from pydantic import BaseModel

from breathwork.api.dependencies.auth import authenticate_token
from breathwork.config.settings import VALID_VOICES, settings
from breathwork.exercise.client_channel import ClientAudioChannel
from breathwork.exercise.errors import InvalidTransitionError
from breathwork.exercise.generators import (
    CustomExerciseGenerator,
    FixedLevelGenerator,
    MoodPresetGenerator,
    PlanGenerator,
)
from breathwork.exercise.models import SessionSnapshot
from breathwork.exercise.music import MusicDriver, SqlMusicLibrary
from breathwork.exercise.narration import NarrationDriver
from breathwork.exercise.recorder import CompletionRecorder
from breathwork.exercise.sequencer import SessionSequencer
from breathwork.exercise.stages import build_stage_plan
from breathwork.integrations.voice.client import VoiceServiceClient

router = APIRouter(prefix="/breathing", tags=["breathing"])

VARIANTS = ("level", "custom", "mood")


class StagePreview(BaseModel):
    key: str
    label: str
    description: str
    duration_seconds: int


class PlanPreviewResponse(BaseModel):
    display_name: str
    stress_level: int
    total_duration_seconds: int
    stages: list[StagePreview]


@router.get("/plan", response_model=PlanPreviewResponse)
def preview_plan(stress_level: int = Query(ge=1, le=5)) -> PlanPreviewResponse:
    plan = build_stage_plan(stress_level)
    return PlanPreviewResponse(
        display_name=plan.display_name,
        stress_level=plan.stress_score,
        total_duration_seconds=plan.total_duration_seconds,
        stages=[
            StagePreview(
                key=stage.key,
                label=stage.label,
                description=stage.description,
                duration_seconds=stage.duration_seconds,
            )
            for stage in plan.stages
        ],
    )


@router.get("/voices")
def list_voices() -> dict[str, Any]:
    return {"voices": list(VALID_VOICES), "default": settings.default_voice}


def build_generator(variant: str, voice_client: VoiceServiceClient) -> PlanGenerator:
    if variant == "custom":
        return CustomExerciseGenerator(voice_client)
    if variant == "mood":
        return MoodPresetGenerator(voice_client)
    return FixedLevelGenerator()


def create_voice_client(token: str) -> VoiceServiceClient:
    return VoiceServiceClient(access_token=token)


class SessionConnection:
    """Serializes outgoing messages; drops them once the socket is gone."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.closed = False
        self._lock = asyncio.Lock()

    async def send(self, message: dict[str, Any]) -> None:
        if self.closed:
            return
        async with self._lock:
            try:
                await self.websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug(f"[SESSION] Dropping message after disconnect: {e}")
                self.closed = True

    async def send_snapshot(self, snapshot: SessionSnapshot) -> None:
        await self.send({"type": "snapshot", "session": snapshot.model_dump(mode="json")})

    async def send_error(self, message: str) -> None:
        await self.send({"type": "error", "message": message})


async def handle_command(
    sequencer: SessionSequencer,
    channels: dict[str, ClientAudioChannel],
    message: dict[str, Any],
    connection: SessionConnection,
) -> None:
    command = message.get("type")
    try:
        if command == "start":
            stress_level = message.get("stress_level")
            sequencer.start(int(stress_level) if stress_level is not None else None)
        elif command == "submit_mood":
            sequencer.submit_mood(str(message.get("text") or ""))
        elif command == "pause":
            await sequencer.pause()
        elif command == "resume":
            await sequencer.resume()
        elif command == "stop":
            await sequencer.stop()
        elif command == "repeat":
            sequencer.repeat()
        elif command in ("audio.ended", "audio.error"):
            channel = channels.get(message.get("channel"))
            if channel is None:
                await connection.send_error(f"Unknown audio channel: {message.get('channel')}")
                return
            channel.handle_event(command.split(".", 1)[1], message.get("token"), message.get("message"))
        else:
            await connection.send_error(f"Unknown command: {command}")
    except InvalidTransitionError as e:
        await connection.send_error(str(e))
    except (ValueError, TypeError) as e:
        await connection.send_error(f"Invalid {command} command: {e}")


@router.websocket("/session")
async def breathing_session(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    variant: str = Query(default="level"),
    voice: str | None = Query(default=None),
):
    try:
        user_id = authenticate_token(token)
    except HTTPException as e:
        logger.warning(f"[SESSION] Rejected websocket: {e.detail}")
        code = 4403 if e.status_code == status.HTTP_403_FORBIDDEN else 4401
        await websocket.close(code=code, reason=str(e.detail))
        return
    if variant not in VARIANTS:
        await websocket.close(code=4400, reason=f"Unknown variant: {variant}")
        return

    await websocket.accept()
    logger.info(f"[SESSION] Connected user_id={user_id}", variant=variant)

    connection = SessionConnection(websocket)
    voice_client = create_voice_client(token)
    voice_channel = ClientAudioChannel("voice", connection.send)
    music_channel = ClientAudioChannel("music", connection.send)
    channels = {"voice": voice_channel, "music": music_channel}
    library = SqlMusicLibrary()

    narrator = NarrationDriver(
        voice_client,
        voice_channel,
        voice=voice if voice in VALID_VOICES else settings.default_voice,
        speed=settings.narration_speed,
    )
    sequencer = SessionSequencer(
        user_id,
        build_generator(variant, voice_client),
        narrator,
        CompletionRecorder(),
        voice_client=voice_client,
        music_factory=lambda level: MusicDriver(music_channel, library, level),
    )
    sequencer.add_listener(connection.send_snapshot)
    sequencer.mount()

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await connection.send_error("Messages must be JSON objects")
                continue
            if not isinstance(message, dict):
                await connection.send_error("Messages must be JSON objects")
                continue
            await handle_command(sequencer, channels, message, connection)
    except WebSocketDisconnect:
        logger.info(f"[SESSION] Disconnected user_id={user_id}")
    finally:
        connection.closed = True
        await sequencer.teardown()
        await voice_client.aclose()
