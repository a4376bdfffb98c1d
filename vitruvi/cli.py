"""Vitruvi CLI.

Commands:
- init-db: Create database tables
- create-user: Provision an account on a given plan
- set-plan: Move a user to another plan (resets scan usage)
- portfolio: Print a user's portfolio summary and risk ranking
- serve: Run the API with uvicorn
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from vitruvi.config import get_config
from vitruvi.core.logging import configure_logging
from vitruvi.db import store
from vitruvi.db.connection import close_db, connect_db, get_session, init_db
from vitruvi.db.models import Base
from vitruvi.models import PlanTier
from vitruvi.portfolio.aggregator import compare_projects, summarize_portfolio, top_risk_projects
from vitruvi.subscriptions import subscription_for_plan
from vitruvi.web.auth import hash_password

app = typer.Typer(
    name="vitruvi",
    help="VitruviAI - construction site analysis backend",
    no_args_is_help=True,
)

console = Console()

PLAN_CHOICES = ", ".join(p.value for p in PlanTier)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs")):
    configure_logging("DEBUG" if verbose else "WARNING")


def _parse_plan(plan: str) -> PlanTier:
    try:
        return PlanTier(plan.lower())
    except ValueError:
        raise typer.BadParameter(f"Unknown plan '{plan}'. Choose one of: {PLAN_CHOICES}")


@app.command(name="init-db")
def init_db_cmd(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        if drop:
            engine = await connect_db()
            console.print("[yellow]Dropping existing tables...[/yellow]")
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
        console.print("[green]Creating tables...[/green]")
        await init_db()
        await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="create-user")
def create_user_cmd(
    email: str = typer.Argument(..., help="Login email"),
    name: str = typer.Option(..., "--name", help="Display name"),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, confirmation_prompt=True
    ),
    plan: str = typer.Option("free", "--plan", help=f"Plan tier ({PLAN_CHOICES})"),
    phone: str | None = typer.Option(None, "--phone", help="Phone number for SMS alerts"),
):
    """Create a user account."""
    tier = _parse_plan(plan)

    async def _create():
        try:
            async with get_session() as session:
                if await store.get_user_by_email(session, email):
                    return None
                user = await store.create_user(
                    session,
                    email=email,
                    password_hash=hash_password(password),
                    name=name,
                    phone=phone,
                    subscription=subscription_for_plan(tier),
                )
                return user.id
        finally:
            await close_db()

    user_id = asyncio.run(_create())
    if user_id is None:
        console.print(f"[red]✗ A user with email {email} already exists[/red]")
        raise typer.Exit(1)
    console.print(f"[bold green]✓[/bold green] Created {email} ({tier.value}) id={user_id}")


@app.command(name="set-plan")
def set_plan_cmd(
    email: str = typer.Argument(..., help="User email"),
    plan: str = typer.Argument(..., help=f"Plan tier ({PLAN_CHOICES})"),
):
    """Change a user's plan. Scan usage starts again from zero."""
    tier = _parse_plan(plan)

    async def _set():
        try:
            async with get_session() as session:
                user = await store.get_user_by_email(session, email)
                if user is None:
                    return False
                await store.set_subscription(session, user, subscription_for_plan(tier))
                return True
        finally:
            await close_db()

    if not asyncio.run(_set()):
        console.print(f"[red]✗ No user with email {email}[/red]")
        raise typer.Exit(1)
    console.print(f"[bold green]✓[/bold green] {email} is now on the {tier.value} plan")


@app.command()
def portfolio(
    email: str = typer.Argument(..., help="User email"),
    limit: int = typer.Option(5, "--limit", help="Projects in the risk ranking"),
):
    """Show a user's portfolio summary."""

    async def _load():
        try:
            async with get_session() as session:
                user = await store.get_user_by_email(session, email)
                if user is None:
                    return None
                return await store.list_all_projects(session, user.id)
        finally:
            await close_db()

    projects = asyncio.run(_load())
    if projects is None:
        console.print(f"[red]✗ No user with email {email}[/red]")
        raise typer.Exit(1)

    summary = summarize_portfolio(projects)
    table = Table(title=f"Portfolio: {email}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    for key, value in summary.items():
        table.add_row(key.replace("_", " ").title(), str(value))
    console.print(table)

    ranked = top_risk_projects(compare_projects(projects), limit)
    if not ranked:
        console.print("[dim]No analyzed projects yet[/dim]")
        return

    risks = Table(title="Top Risks")
    risks.add_column("Project", style="cyan")
    risks.add_column("Progress", justify="right")
    risks.add_column("Budget %", justify="right")
    risks.add_column("Safety", justify="right")
    risks.add_column("Risk")
    risks.add_column("Status")
    colors = {"high": "red", "medium": "yellow", "low": "green"}
    for row in ranked:
        risks.add_row(
            row.name,
            f"{row.progress:g}%",
            f"{row.budget_spent_pct:g}%",
            f"{row.safety_score:g}",
            f"[{colors[row.risk_level]}]{row.risk_level}[/{colors[row.risk_level]}]",
            row.status,
        )
    console.print(risks)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the API server."""
    import uvicorn

    typer.echo(f"Starting VitruviAI API on http://{host}:{port}")
    uvicorn.run("vitruvi.web.app:app", host=host, port=port, reload=reload, workers=1)


if __name__ == "__main__":
    app()
