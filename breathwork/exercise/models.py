"""Domain types for the breathing-exercise session engine.

Plans are immutable value objects built once per session. A plan is either
a phase plan (short inhale/hold/exhale steps) or a staged plan (multi-minute
guided stages); the sequencer walks both the same way, over the fixed total
computed at construction.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from itertools import accumulate

from pydantic import BaseModel, Field


class PhaseKind(str, Enum):
    INHALE = "inhale"
    HOLD = "hold"
    EXHALE = "exhale"


class SessionState(str, Enum):
    IDLE = "idle"
    WELCOMING = "welcoming"
    AWAITING_MOOD_INPUT = "awaiting_mood_input"
    ANALYZING = "analyzing"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETING = "completing"
    COMPLETED = "completed"


@dataclass(frozen=True)
class PhaseStep:
    """One inhale/hold/exhale unit.

    Steps are stored as given; well-formedness is checked by the sequencer
    when the step is entered.
    """

    kind: PhaseKind | str
    duration_seconds: int

    @property
    def is_well_formed(self) -> bool:
        duration = self.duration_seconds
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            return False
        return _coerce_kind(self.kind) is not None

    @property
    def phase_kind(self) -> PhaseKind | None:
        return _coerce_kind(self.kind)


@dataclass(frozen=True)
class Stage:
    """A multi-minute segment of a guided session (e.g. body awareness)."""

    key: str
    label: str
    description: str
    duration_seconds: int

    @property
    def is_well_formed(self) -> bool:
        duration = self.duration_seconds
        return isinstance(duration, int) and not isinstance(duration, bool) and duration > 0


Segment = PhaseStep | Stage


@dataclass(frozen=True)
class ExercisePlan:
    """Full ordered script for one session.

    Exactly one of ``steps`` / ``stages`` is non-empty. The total duration
    is fixed here and never recomputed while the session runs.
    """

    display_name: str
    intro_narration: str
    completion_narration: str
    stress_score: int
    steps: tuple[PhaseStep, ...] = ()
    stages: tuple[Stage, ...] = ()
    music_category: str | None = None
    interpreted_mood: str | None = None
    total_duration_seconds: int = field(init=False)

    def __post_init__(self) -> None:
        if bool(self.steps) == bool(self.stages):
            raise ValueError("ExercisePlan needs exactly one of steps or stages")
        if not 1 <= self.stress_score <= 5:
            raise ValueError(f"stress_score must be within 1..5, got {self.stress_score}")
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "stages", tuple(self.stages))
        object.__setattr__(self, "total_duration_seconds", sum(self.segment_durations))

    @property
    def is_staged(self) -> bool:
        return bool(self.stages)

    @property
    def segments(self) -> tuple[Segment, ...]:
        return self.stages if self.stages else self.steps

    @property
    def segment_durations(self) -> list[int]:
        # Malformed durations count as zero so boundaries stay monotonic
        return [segment_duration(segment) for segment in self.segments]

    def segment_index_at(self, elapsed_seconds: int) -> int:
        """Index of the segment active at ``elapsed_seconds`` (clamped to the last one)."""
        ends = list(accumulate(self.segment_durations))
        index = bisect_right(ends, elapsed_seconds)
        return min(index, len(ends) - 1)


def segment_duration(segment: Segment) -> int:
    duration = segment.duration_seconds
    if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
        return 0
    return duration


def _coerce_kind(kind: PhaseKind | str) -> PhaseKind | None:
    if isinstance(kind, PhaseKind):
        return kind
    if not isinstance(kind, str):
        return None
    try:
        return PhaseKind(kind.strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class MusicTrack:
    id: str
    name: str
    file_url: str
    duration_seconds: int
    is_active: bool


@dataclass(frozen=True)
class MusicSetting:
    """Music choice for one (stage, stress level) pair.

    ``music_track_id`` of None means the stage plays without music. Omitted
    volume and fades fall back to the music driver's defaults.
    """

    stage_key: str
    music_track_id: str | None
    volume: float | None = None
    fade_in_seconds: float | None = None
    fade_out_seconds: float | None = None
    track: MusicTrack | None = None


class SessionSnapshot(BaseModel):
    """UI-facing view of a running session."""

    state: SessionState
    display_name: str | None = None
    instruction: str = ""
    guidance_text: str = ""
    animation_scale: float = 1.0
    phase_duration_seconds: int = 0
    segment_index: int = -1
    segment_count: int = 0
    elapsed_seconds: int = 0
    remaining_seconds: int = 0
    total_seconds: int = 0
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    music_playing: bool = False
    notice: str | None = None
    requires_reauth: bool = False
