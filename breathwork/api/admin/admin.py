"""Operator endpoints: analytics, user listing, and flushing non-admin users."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel
from sqlalchemy import delete, func, select

from breathwork.api.dependencies.auth import is_admin_email, require_admin
from breathwork.db.models import StressEntry, User
from breathwork.db.session import check_database_connection, get_session
from breathwork.services.diagnostics import OpenAIKeyStatus, check_openai_key

router = APIRouter(prefix="/admin", tags=["admin"])


class AnalyticsResponse(BaseModel):
    total_users: int
    total_stress_entries: int
    average_stress: float
    recent_activity: int
    active_users: int


class AdminUserResponse(BaseModel):
    id: str
    email: str
    display_name: str
    first_name: str | None
    last_name: str | None
    created_at: datetime
    last_login_at: datetime | None
    stress_entries_count: int
    last_stress_entry: datetime | None


class FlushResponse(BaseModel):
    message: str
    deleted_count: int


class DiagnosticsResponse(BaseModel):
    openai: OpenAIKeyStatus
    database_ok: bool
    checked_at: datetime


@router.get("/analytics", response_model=AnalyticsResponse)
def get_analytics(_admin_id: str = Depends(require_admin)) -> AnalyticsResponse:
    """Totals, average stress, entries in the last 7 days, users active in the last 30."""
    now = datetime.now(timezone.utc)
    with get_session() as session:
        total_users = session.execute(select(func.count(User.id))).scalar_one()
        total_entries, average = session.execute(
            select(func.count(StressEntry.id), func.avg(StressEntry.stress_score))
        ).one()
        recent_activity = session.execute(
            select(func.count(StressEntry.id)).where(StressEntry.created_at >= now - timedelta(days=7))
        ).scalar_one()
        active_users = session.execute(
            select(func.count(func.distinct(StressEntry.user_id))).where(
                StressEntry.created_at >= now - timedelta(days=30)
            )
        ).scalar_one()

    return AnalyticsResponse(
        total_users=total_users,
        total_stress_entries=total_entries,
        average_stress=round(float(average or 0.0), 1),
        recent_activity=recent_activity,
        active_users=active_users,
    )


@router.get("/users", response_model=list[AdminUserResponse])
def list_users(_admin_id: str = Depends(require_admin)) -> list[AdminUserResponse]:
    with get_session() as session:
        entry_stats = (
            select(
                StressEntry.user_id,
                func.count(StressEntry.id).label("entry_count"),
                func.max(StressEntry.created_at).label("last_entry"),
            )
            .group_by(StressEntry.user_id)
            .subquery()
        )
        rows = session.execute(
            select(User, entry_stats.c.entry_count, entry_stats.c.last_entry)
            .outerjoin(entry_stats, entry_stats.c.user_id == User.id)
            .order_by(User.created_at.desc())
        ).all()

        return [
            AdminUserResponse(
                id=user.id,
                email=user.email,
                display_name=user.display_name,
                first_name=user.first_name,
                last_name=user.last_name,
                created_at=user.created_at,
                last_login_at=user.last_login_at,
                stress_entries_count=entry_count or 0,
                last_stress_entry=last_entry,
            )
            for user, entry_count, last_entry in rows
        ]


@router.post("/users/flush", response_model=FlushResponse)
def flush_non_admin_users(admin_id: str = Depends(require_admin)) -> FlushResponse:
    """Delete every user except the operator, with their stress entries."""
    with get_session() as session:
        users = session.execute(select(User.id, User.email)).all()
        doomed = [user_id for user_id, email in users if user_id != admin_id and not is_admin_email(email)]

        if doomed:
            session.execute(delete(StressEntry).where(StressEntry.user_id.in_(doomed)))
            session.execute(delete(User).where(User.id.in_(doomed)))

    logger.warning(f"[ADMIN] Flushed {len(doomed)} non-admin users", admin_id=admin_id)
    return FlushResponse(message=f"Flushed {len(doomed)} non-admin users", deleted_count=len(doomed))


@router.get("/diagnostics", response_model=DiagnosticsResponse)
async def get_diagnostics(_admin_id: str = Depends(require_admin)) -> DiagnosticsResponse:
    """Check the OpenAI key and the database connection."""
    openai_status = await check_openai_key()
    try:
        await asyncio.to_thread(check_database_connection)
        database_ok = True
    except Exception as e:
        logger.error(f"[ADMIN] Database check failed: {e}")
        database_ok = False

    return DiagnosticsResponse(
        openai=openai_status,
        database_ok=database_ok,
        checked_at=datetime.now(timezone.utc),
    )
