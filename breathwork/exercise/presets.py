"""Canned breathing patterns for each recognized mood.

Each preset is a short pattern repeated for a fixed number of cycles, so a
mood always yields the same plan.
"""

from __future__ import annotations

from dataclasses import dataclass

from breathwork.exercise.models import ExercisePlan, PhaseKind, PhaseStep

PRESET_CYCLES = 5

INHALE = PhaseKind.INHALE
HOLD = PhaseKind.HOLD
EXHALE = PhaseKind.EXHALE


@dataclass(frozen=True)
class MoodPreset:
    mood: str
    name: str
    pattern: tuple[tuple[PhaseKind, int], ...]
    intro: str
    reassurance: str
    stress_score: int


MOOD_PRESETS: dict[str, MoodPreset] = {
    "Anxious": MoodPreset(
        mood="Anxious",
        name="4-7-8 Breathing",
        pattern=((INHALE, 4), (HOLD, 7), (EXHALE, 8)),
        intro="This is a powerful technique for calming your nervous system. Let's begin.",
        reassurance="alleviate your anxiety",
        stress_score=4,
    ),
    "Stressed": MoodPreset(
        mood="Stressed",
        name="Box Breathing",
        pattern=((INHALE, 4), (HOLD, 4), (EXHALE, 4), (HOLD, 4)),
        intro="It will help you regulate your breath and clear your mind. Let us start.",
        reassurance="relieve your stress",
        stress_score=4,
    ),
    "Tired": MoodPreset(
        mood="Tired",
        name="Energizing Breath",
        pattern=((INHALE, 4), (EXHALE, 2), (INHALE, 4), (EXHALE, 2), (INHALE, 4), (EXHALE, 2)),
        intro="This rhythmic breathing will help awaken your senses. Let's get started.",
        reassurance="boost your energy",
        stress_score=3,
    ),
    "Sad": MoodPreset(
        mood="Sad",
        name="Coherent Breathing",
        pattern=((INHALE, 5), (EXHALE, 5)),
        intro="This gentle rhythm can help create a sense of balance and peace. Let us begin.",
        reassurance="gently lift your mood",
        stress_score=3,
    ),
    "Angry": MoodPreset(
        mood="Angry",
        name="Calming Breath",
        pattern=((INHALE, 4), (EXHALE, 8)),
        intro="Focusing on a longer exhale can help soothe feelings of anger. Let us start.",
        reassurance="find a sense of calm",
        stress_score=5,
    ),
    "Calm": MoodPreset(
        mood="Calm",
        name="Equal Breathing",
        pattern=((INHALE, 4), (EXHALE, 4)),
        intro="This simple practice will help maintain your peaceful state. Let us begin.",
        reassurance="deepen your sense of peace",
        stress_score=2,
    ),
    "Energized": MoodPreset(
        mood="Energized",
        name="Power Breath",
        pattern=((INHALE, 6), (HOLD, 2), (EXHALE, 4)),
        intro="This technique can help you focus your energy. Let's begin.",
        reassurance="channel your positive energy",
        stress_score=1,
    ),
}

VALID_MOODS: tuple[str, ...] = tuple(MOOD_PRESETS)


def get_preset(mood: str) -> MoodPreset | None:
    """Case-insensitive preset lookup."""
    for name, preset in MOOD_PRESETS.items():
        if name.lower() == (mood or "").strip().lower():
            return preset
    return None


def build_preset_plan(preset: MoodPreset, first_name: str | None = None, cycles: int = PRESET_CYCLES) -> ExercisePlan:
    name = first_name or "there"
    steps = tuple(PhaseStep(kind, duration) for _ in range(cycles) for kind, duration in preset.pattern)
    intro = (
        f"Thank you for sharing, {name}. I understand you're feeling {preset.mood.lower()}. "
        f"I will guide you through {preset.name} to help you {preset.reassurance}. {preset.intro}"
    )
    return ExercisePlan(
        display_name=preset.name,
        intro_narration=intro,
        completion_narration=(
            f"Well done, {name}. Whenever you're ready, you may repeat this session or close the screen."
        ),
        stress_score=preset.stress_score,
        steps=steps,
        interpreted_mood=preset.mood,
    )
