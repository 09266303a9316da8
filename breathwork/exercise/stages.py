"""Fixed stress-level session plans.

Stress level selects how many of the canonical stages are used and how long
each one lasts. First and last stages are shortened relative to the middle
ones. The lookup is pure and deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass

from breathwork.exercise.models import ExercisePlan, Stage

EDGE_STAGE_FACTOR = 0.6
DEFAULT_STRESS_LEVEL = 3


@dataclass(frozen=True)
class StressLevelConfig:
    stage_count: int
    base_duration_seconds: int
    multiplier: float
    label: str


STRESS_LEVEL_CONFIGS: dict[int, StressLevelConfig] = {
    1: StressLevelConfig(stage_count=4, base_duration_seconds=45, multiplier=1.0, label="Quick Relief"),
    2: StressLevelConfig(stage_count=5, base_duration_seconds=60, multiplier=1.2, label="Moderate Relief"),
    3: StressLevelConfig(stage_count=6, base_duration_seconds=75, multiplier=1.4, label="Deep Relief"),
    4: StressLevelConfig(stage_count=7, base_duration_seconds=90, multiplier=1.6, label="Extended Relief"),
    5: StressLevelConfig(stage_count=8, base_duration_seconds=105, multiplier=1.8, label="Complete Relief"),
}

BASE_STAGES: tuple[Stage, ...] = (
    Stage("opening_preparation", "Welcome & Preparation", "Getting comfortable and ready to begin", 0),
    Stage("grounding_breathwork", "Grounding Breath", "Simple breathing to center yourself", 0),
    Stage("body_awareness", "Body Scan", "Releasing tension throughout your body", 0),
    Stage("breathing_with_intention", "Deep Breathing", "Focused breathing for relaxation", 0),
    Stage("guided_visualization", "Peaceful Imagery", "Calming mental visualization", 0),
    Stage("deep_stillness", "Quiet Meditation", "Resting in peaceful stillness", 0),
    Stage("affirmations", "Positive Affirmations", "Reinforcing your well-being", 0),
    Stage("closing", "Gentle Return", "Coming back to full awareness", 0),
)

STAGE_KEYS: tuple[str, ...] = tuple(stage.key for stage in BASE_STAGES)


def clamp_stress_level(stress_level: int) -> int:
    return max(1, min(5, int(stress_level)))


def get_level_config(stress_level: int) -> StressLevelConfig:
    return STRESS_LEVEL_CONFIGS[clamp_stress_level(stress_level)]


def build_stages(stress_level: int) -> tuple[Stage, ...]:
    """Truncate and scale the canonical stage list for a stress level.

    Example: level 3 -> 6 stages, edges round(75 * 1.4 * 0.6) = 63s, middle 105s.
    """
    config = get_level_config(stress_level)
    selected = BASE_STAGES[: config.stage_count]
    last_index = len(selected) - 1

    stages = []
    for index, stage in enumerate(selected):
        factor = EDGE_STAGE_FACTOR if index in (0, last_index) else 1.0
        duration = round(config.base_duration_seconds * config.multiplier * factor)
        stages.append(Stage(stage.key, stage.label, stage.description, duration))
    return tuple(stages)


def completion_text(first_name: str | None) -> str:
    return f"{first_name or 'You'}, you've done something wonderful for yourself. Carry this peace with you."


def build_stage_plan(stress_level: int, first_name: str | None = None) -> ExercisePlan:
    """Build the fixed staged plan for a stress level. Never fails."""
    level = clamp_stress_level(stress_level)
    config = STRESS_LEVEL_CONFIGS[level]
    return ExercisePlan(
        display_name=f"{config.label} Session",
        intro_narration="",
        completion_narration=completion_text(first_name),
        stress_score=level,
        stages=build_stages(level),
    )
