"""Stress tracking endpoints and AI insights."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import select

from breathwork.api.dependencies.auth import get_current_user_id
from breathwork.db.models import StressEntry
from breathwork.db.session import get_session
from breathwork.services.stress_analysis import StressAnalysisError, StressStats, analyze_stress

router = APIRouter(prefix="/stress", tags=["stress"])


class StressEntryCreate(BaseModel):
    stress_score: int = Field(ge=1, le=5)
    notes: str | None = Field(default=None, max_length=2000)


class StressEntryResponse(BaseModel):
    id: str
    stress_score: int
    notes: str | None
    created_at: datetime


class StressInsightsResponse(BaseModel):
    analysis: str
    stats: StressStats


def _entry_response(entry: StressEntry) -> StressEntryResponse:
    return StressEntryResponse(
        id=entry.id,
        stress_score=entry.stress_score,
        notes=entry.notes,
        created_at=entry.created_at,
    )


@router.post("/entries", response_model=StressEntryResponse, status_code=status.HTTP_201_CREATED)
def create_entry(request: StressEntryCreate, user_id: str = Depends(get_current_user_id)) -> StressEntryResponse:
    notes = (request.notes or "").strip() or None
    with get_session() as session:
        entry = StressEntry(user_id=user_id, stress_score=request.stress_score, notes=notes)
        session.add(entry)
        session.flush()
        logger.info(f"[STRESS] Entry created for user_id={user_id}", stress_score=request.stress_score)
        return _entry_response(entry)


@router.get("/entries", response_model=list[StressEntryResponse])
def list_entries(
    days: int | None = Query(default=None, ge=1, le=3650),
    user_id: str = Depends(get_current_user_id),
) -> list[StressEntryResponse]:
    """List the user's entries, newest first, optionally limited to the last ``days`` days."""
    with get_session() as session:
        query = select(StressEntry).where(StressEntry.user_id == user_id)
        if days is not None:
            cutoff = datetime.now(timezone.utc) - timedelta(days=days)
            query = query.where(StressEntry.created_at >= cutoff)
        entries = session.execute(query.order_by(StressEntry.created_at.desc())).scalars().all()
        return [_entry_response(entry) for entry in entries]


@router.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entry(entry_id: str, user_id: str = Depends(get_current_user_id)) -> None:
    with get_session() as session:
        entry = session.get(StressEntry, entry_id)
        if entry is None or entry.user_id != user_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stress entry not found")
        session.delete(entry)
        logger.info(f"[STRESS] Entry {entry_id} deleted for user_id={user_id}")


@router.get("/insights", response_model=StressInsightsResponse)
async def get_insights(user_id: str = Depends(get_current_user_id)) -> StressInsightsResponse:
    """Statistics and an AI-written narrative over the user's history.

    Raises:
        HTTPException: 400 if the user has no entries, 502 if the narrative fails
    """
    with get_session() as session:
        entries = (
            session.execute(
                select(StressEntry)
                .where(StressEntry.user_id == user_id)
                .order_by(StressEntry.created_at.desc())
            )
            .scalars()
            .all()
        )
        session.expunge_all()

    if not entries:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No stress entries to analyze")

    try:
        result = await analyze_stress(entries)
    except StressAnalysisError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return StressInsightsResponse(analysis=result.analysis, stats=result.stats)
