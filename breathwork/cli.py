"""Breathwork developer CLI."""

import os

import typer
import uvicorn
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from sqlalchemy import select

from breathwork.config.settings import settings
from breathwork.core.security import hash_password
from breathwork.db.models import Base, User
from breathwork.db.session import get_engine, get_session
from breathwork.exercise.stages import STRESS_LEVEL_CONFIGS, build_stage_plan

console = Console()

app = typer.Typer(
    name="breathwork",
    help="Breathwork backend CLI",
    add_completion=False,
)

DEFAULT_HOST = os.getenv("SERVER_HOST", "127.0.0.1")


def _format_duration(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"


@app.command()
def serve(
    host: str = typer.Option(DEFAULT_HOST, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Run the FastAPI server."""
    logger.info(f"Starting FastAPI server on {host}:{port} (reload={reload})")
    uvicorn.run("breathwork.main:app", host=host, port=port, reload=reload)


@app.command()
def plan(level: int = typer.Argument(..., help="Stress level 1-5")) -> None:
    """Show the staged session for a stress level."""
    if level not in STRESS_LEVEL_CONFIGS:
        console.print(f"[red]Stress level must be between 1 and 5, got {level}[/red]")
        raise typer.Exit(code=1)

    session_plan = build_stage_plan(level)
    table = Table(title=f"{session_plan.display_name} (level {level})")
    table.add_column("#", justify="right")
    table.add_column("Stage")
    table.add_column("Description")
    table.add_column("Duration", justify="right")

    for index, stage in enumerate(session_plan.stages, start=1):
        table.add_row(str(index), stage.label, stage.description, _format_duration(stage.duration_seconds))

    console.print(table)
    console.print(f"Total: [bold]{_format_duration(session_plan.total_duration_seconds)}[/bold]")


@app.command()
def create_admin(
    email: str = typer.Argument(..., help="Admin email (must match ADMIN_EMAIL)"),
    password: str = typer.Argument(..., help="Admin password"),
    first_name: str | None = typer.Option(None, "--first-name", help="First name used in narration"),
) -> None:
    """Create the operator account, or reset its password if it exists."""
    normalized_email = email.lower().strip()
    if settings.admin_email and normalized_email != settings.admin_email.lower().strip():
        console.print(f"[yellow]Warning: {normalized_email} does not match ADMIN_EMAIL ({settings.admin_email})[/yellow]")

    Base.metadata.create_all(bind=get_engine())
    with get_session() as session:
        user = session.execute(select(User).where(User.email == normalized_email)).scalar_one_or_none()
        if user is None:
            user = User(email=normalized_email, first_name=first_name)
            session.add(user)
            action = "created"
        else:
            action = "updated"
        user.password_hash = hash_password(password)
        user.is_active = True

    console.print(Panel(Text(f"Admin account {action}: {normalized_email}", style="bold green"), border_style="green"))


if __name__ == "__main__":
    app()
