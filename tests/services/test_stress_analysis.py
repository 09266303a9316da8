"""Tests for stress statistics and insight generation."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from breathwork.db.models import StressEntry
from breathwork.services.stress_analysis import (
    StressAnalysisError,
    analyze_stress,
    build_summary,
    compute_stats,
    recent_notes,
)


def _entries(*scores: int, notes: str | None = None) -> list[StressEntry]:
    """Entries ordered newest first."""
    return [StressEntry(user_id="user-1", stress_score=score, notes=notes) for score in scores]


def test_compute_stats_counts_and_average() -> None:
    stats = compute_stats(_entries(5, 4, 3, 2, 1))
    assert stats.total == 5
    assert stats.average == 3.0
    assert stats.high_stress == 2
    assert stats.low_stress == 2
    assert stats.trend == 0.0


def test_trend_compares_newest_week_to_previous() -> None:
    newest = [4] * 7
    older = [2] * 7
    assert compute_stats(_entries(*newest, *older)).trend == 2.0
    assert compute_stats(_entries(*older, *newest)).trend == -2.0


def test_trend_with_short_history_uses_zero_for_empty_window() -> None:
    assert compute_stats(_entries(3, 3)).trend == 3.0


def test_recent_notes_skips_blank_and_limits() -> None:
    entries = _entries(3, notes="Deadline at work") + _entries(2, notes="   ") + _entries(*[1] * 12, notes="ok")
    notes = recent_notes(entries)
    assert notes[0] == 'Stress 3/5: "Deadline at work"'
    assert len(notes) == 10


def test_build_summary_mentions_trend_direction() -> None:
    stats = compute_stats(_entries(*[5] * 7, *[1] * 7))
    summary = build_summary(stats, [])
    assert "Recent trend: Increasing (4.0 change)" in summary
    assert "No detailed notes provided" in summary


@pytest.mark.asyncio
async def test_analyze_stress_requires_entries() -> None:
    with pytest.raises(ValueError):
        await analyze_stress([])


@pytest.mark.asyncio
async def test_analyze_stress_without_api_key() -> None:
    with pytest.raises(StressAnalysisError, match="not configured"):
        await analyze_stress(_entries(3))


@pytest.mark.asyncio
async def test_analyze_stress_returns_narrative(test_settings, monkeypatch) -> None:
    monkeypatch.setattr(test_settings, "openai_api_key", "sk-test")
    agent = MagicMock()
    agent.run = AsyncMock(return_value=MagicMock(output="  You are doing well.  "))

    with (
        patch("breathwork.services.stress_analysis.get_model"),
        patch("breathwork.services.stress_analysis.Agent", return_value=agent),
    ):
        result = await analyze_stress(_entries(4, 2, notes="Busy week"))

    assert result.analysis == "You are doing well."
    assert result.stats.total == 2
    prompt = agent.run.call_args.args[0]
    assert "Total entries: 2" in prompt
    assert 'Stress 4/5: "Busy week"' in prompt


@pytest.mark.asyncio
async def test_analyze_stress_model_failure(test_settings, monkeypatch) -> None:
    monkeypatch.setattr(test_settings, "openai_api_key", "sk-test")
    agent = MagicMock()
    agent.run = AsyncMock(side_effect=RuntimeError("rate limited"))

    with (
        patch("breathwork.services.stress_analysis.get_model"),
        patch("breathwork.services.stress_analysis.Agent", return_value=agent),
    ):
        with pytest.raises(StressAnalysisError):
            await analyze_stress(_entries(4))
