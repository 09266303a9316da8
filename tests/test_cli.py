"""Tests for the breathwork CLI."""

from sqlalchemy import select
from typer.testing import CliRunner

from breathwork.cli import app
from breathwork.core.security import verify_password
from breathwork.db.models import User

runner = CliRunner()


def test_plan_prints_stages_and_total() -> None:
    result = runner.invoke(app, ["plan", "3"])

    assert result.exit_code == 0
    assert "Deep Relief Session" in result.output
    assert "Total: 9:06" in result.output


def test_plan_rejects_out_of_range_level() -> None:
    result = runner.invoke(app, ["plan", "7"])
    assert result.exit_code == 1


def test_create_admin_then_reset_password(db_session) -> None:
    created = runner.invoke(app, ["create-admin", "Admin@Example.com", "first-pass", "--first-name", "Ada"])
    assert created.exit_code == 0
    assert "created" in created.output

    updated = runner.invoke(app, ["create-admin", "admin@example.com", "second-pass"])
    assert updated.exit_code == 0
    assert "updated" in updated.output

    admin = db_session.execute(select(User).where(User.email == "admin@example.com")).scalar_one()
    assert admin.first_name == "Ada"
    assert verify_password("second-pass", admin.password_hash)
