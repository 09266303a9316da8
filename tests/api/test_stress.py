"""Tests for stress entry endpoints and insights."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from breathwork.db.models import StressEntry
from breathwork.services.stress_analysis import StressAnalysis, StressAnalysisError, StressStats


def _add_entry(db_session, user, score: int, days_ago: int = 0, notes: str | None = None) -> StressEntry:
    entry = StressEntry(
        user_id=user.id,
        stress_score=score,
        notes=notes,
        created_at=datetime.now(timezone.utc) - timedelta(days=days_ago),
    )
    db_session.add(entry)
    db_session.commit()
    return entry


def test_create_entry(client, auth_headers, user, db_session) -> None:
    response = client.post("/stress/entries", headers=auth_headers, json={"stress_score": 4, "notes": " Busy "})

    assert response.status_code == 201
    body = response.json()
    assert body["stress_score"] == 4
    assert body["notes"] == "Busy"
    assert db_session.get(StressEntry, body["id"]).user_id == user.id


def test_create_entry_validates_score(client, auth_headers) -> None:
    response = client.post("/stress/entries", headers=auth_headers, json={"stress_score": 6})
    assert response.status_code == 422


def test_create_entry_requires_auth(client, db_engine) -> None:
    assert client.post("/stress/entries", json={"stress_score": 3}).status_code == 401


def test_list_entries_newest_first_and_days_filter(client, auth_headers, user, db_session) -> None:
    _add_entry(db_session, user, 2, days_ago=10)
    _add_entry(db_session, user, 5, days_ago=1)
    _add_entry(db_session, user, 3, days_ago=0)

    response = client.get("/stress/entries", headers=auth_headers)
    assert [entry["stress_score"] for entry in response.json()] == [3, 5, 2]

    recent = client.get("/stress/entries", headers=auth_headers, params={"days": 7})
    assert [entry["stress_score"] for entry in recent.json()] == [3, 5]


def test_list_entries_only_own(client, auth_headers, admin_user, db_session) -> None:
    _add_entry(db_session, admin_user, 3)
    assert client.get("/stress/entries", headers=auth_headers).json() == []


def test_delete_entry(client, auth_headers, user, db_session) -> None:
    entry = _add_entry(db_session, user, 3)

    response = client.delete(f"/stress/entries/{entry.id}", headers=auth_headers)

    assert response.status_code == 204
    assert client.get("/stress/entries", headers=auth_headers).json() == []


def test_delete_other_users_entry(client, auth_headers, admin_user, db_session) -> None:
    entry = _add_entry(db_session, admin_user, 3)
    response = client.delete(f"/stress/entries/{entry.id}", headers=auth_headers)
    assert response.status_code == 404


def test_insights_without_entries(client, auth_headers) -> None:
    assert client.get("/stress/insights", headers=auth_headers).status_code == 400


def test_insights(client, auth_headers, user, db_session) -> None:
    _add_entry(db_session, user, 4, notes="Deadline")
    stats = StressStats(total=1, average=4.0, high_stress=1, low_stress=0, trend=4.0)
    analysis = AsyncMock(return_value=StressAnalysis(analysis="Keep going.", stats=stats))

    with patch("breathwork.api.stress.analyze_stress", analysis):
        response = client.get("/stress/insights", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["analysis"] == "Keep going."
    assert response.json()["stats"]["high_stress"] == 1
    entries = analysis.call_args.args[0]
    assert [entry.notes for entry in entries] == ["Deadline"]


def test_insights_failure(client, auth_headers, user, db_session) -> None:
    _add_entry(db_session, user, 4)
    failing = AsyncMock(side_effect=StressAnalysisError("Failed to generate AI analysis"))

    with patch("breathwork.api.stress.analyze_stress", failing):
        response = client.get("/stress/insights", headers=auth_headers)

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to generate AI analysis"
