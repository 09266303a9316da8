"""Statistics and AI-written insights over a user's stress history."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger
from pydantic import BaseModel
from pydantic_ai import Agent

from breathwork.config.settings import settings
from breathwork.db.models import StressEntry
from breathwork.services.model import get_model
from breathwork.services.prompt_loader import load_prompt

TREND_WINDOW = 7
MAX_NOTES = 10
HIGH_STRESS_THRESHOLD = 4
LOW_STRESS_THRESHOLD = 2


class StressAnalysisError(Exception):
    """Raised when the narrative analysis cannot be generated."""


class StressStats(BaseModel):
    total: int
    average: float
    high_stress: int
    low_stress: int
    trend: float


@dataclass
class StressAnalysis:
    analysis: str
    stats: StressStats


def _mean(scores: Sequence[int]) -> float:
    return sum(scores) / len(scores) if scores else 0.0


def compute_stats(entries: Sequence[StressEntry]) -> StressStats:
    """Summarize entries ordered newest first.

    Trend is the mean of the newest 7 scores minus the mean of the 7 before
    them; an empty window counts as 0.
    """
    scores = [entry.stress_score for entry in entries]
    recent = scores[:TREND_WINDOW]
    previous = scores[TREND_WINDOW : TREND_WINDOW * 2]
    return StressStats(
        total=len(scores),
        average=round(_mean(scores), 1),
        high_stress=sum(1 for score in scores if score >= HIGH_STRESS_THRESHOLD),
        low_stress=sum(1 for score in scores if score <= LOW_STRESS_THRESHOLD),
        trend=round(_mean(recent) - _mean(previous), 1),
    )


def recent_notes(entries: Sequence[StressEntry], limit: int = MAX_NOTES) -> list[str]:
    notes = [f'Stress {entry.stress_score}/5: "{entry.notes.strip()}"' for entry in entries if entry.notes and entry.notes.strip()]
    return notes[:limit]


def _trend_label(trend: float) -> str:
    if trend > 0:
        return "Increasing"
    if trend < 0:
        return "Decreasing"
    return "Stable"


def build_summary(stats: StressStats, notes: list[str]) -> str:
    high_pct = stats.high_stress / stats.total * 100 if stats.total else 0.0
    low_pct = stats.low_stress / stats.total * 100 if stats.total else 0.0
    notes_text = "\n".join(notes) if notes else "No detailed notes provided"
    return f"""STRESS DATA SUMMARY:
- Total entries: {stats.total}
- Average stress level: {stats.average:.1f}/5
- High stress days (4-5): {stats.high_stress} ({high_pct:.1f}%)
- Low stress days (1-2): {stats.low_stress} ({low_pct:.1f}%)
- Recent trend: {_trend_label(stats.trend)} ({stats.trend:.1f} change)

RECENT STRESS NOTES:
{notes_text}"""


async def analyze_stress(entries: Sequence[StressEntry]) -> StressAnalysis:
    """Compute stats and ask the model for a narrative.

    Raises:
        ValueError: If there are no entries
        StressAnalysisError: If the narrative cannot be generated
    """
    if not entries:
        raise ValueError("No stress entries provided")

    stats = compute_stats(entries)
    if not settings.openai_api_key:
        raise StressAnalysisError("AI analysis service not configured on server")

    agent = Agent(
        model=get_model(settings.guidance_model),
        system_prompt=load_prompt("stress_analysis.txt"),
    )
    try:
        result = await agent.run(build_summary(stats, recent_notes(entries)))
    except Exception as e:
        logger.error(f"[INSIGHTS] Failed to generate stress analysis: {e}")
        raise StressAnalysisError("Failed to generate AI analysis") from e

    logger.info("[INSIGHTS] Stress analysis generated", total=stats.total, average=stats.average)
    return StressAnalysis(analysis=str(result.output).strip(), stats=stats)
