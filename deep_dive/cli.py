"""
Deep Dive — Command Line Interface

All commands are defined here using Typer + Rich.
Entry point: deep-dive (defined in pyproject.toml [project.scripts])

Commands:
  add-lead      — Create a lead in the local SQLite store
  run           — Run a deep dive for a stored lead
  show          — Show a lead's deep dive result and social profiles
  canonicalize  — Classify and canonicalize a URL

Usage:
  deep-dive add-lead "Avery Lin" --handle @avlinfilms --platform YouTube
  deep-dive run 1 --no-ai
  deep-dive show 1
  deep-dive canonicalize https://twitter.com/avlinfilms/status/1
"""

import asyncio
import json
import sys

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from deep_dive import __version__

app = typer.Typer(
    name="deep-dive",
    help="[bold cyan]Deep Dive[/bold cyan] — lead identity resolution and profile discovery",
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


def _run_async(coro):
    """Run an async coroutine from a sync Typer command."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user.[/yellow]")
        sys.exit(0)


async def _open_store():
    from deep_dive.core.config import settings
    from deep_dive.database.sqlite_store import SQLiteLeadStore

    store = SQLiteLeadStore(settings.resolved_database_path)
    await store.connect()
    return store


# ── Commands ────────────────────────────────────────────────────


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version"),
) -> None:
    """Deep Dive — lead identity resolution and profile discovery"""
    from deep_dive.core.config import settings
    from deep_dive.core.logging import setup_logging

    if version:
        console.print(f"[bold cyan]Deep Dive[/bold cyan] v{__version__}")
        raise typer.Exit()
    setup_logging(settings.log_level, settings.log_format, settings.data_dir / "logs")


@app.command("add-lead")
def add_lead(
    name: str = typer.Argument(..., help="Lead full name"),
    handle: str | None = typer.Option(None, "--handle", "-h", help="Known handle or profile URL"),
    platform: str | None = typer.Option(None, "--platform", "-p", help="Platform of the handle"),
    role: str | None = typer.Option(None, "--role", "-r", help="Role or title"),
    country: str | None = typer.Option(None, "--country", "-c", help="Country"),
    website: str | None = typer.Option(None, "--website", "-w", help="Known website"),
    notes: str | None = typer.Option(None, "--notes", help="Free-text notes"),
) -> None:
    """Create a lead in the local store."""
    _run_async(_async_add_lead(name, handle, platform, role, country, website, notes))


async def _async_add_lead(
    name: str,
    handle: str | None,
    platform: str | None,
    role: str | None,
    country: str | None,
    website: str | None,
    notes: str | None,
) -> None:
    from deep_dive.database.models import Lead

    store = await _open_store()
    try:
        lead = await store.save_lead(
            Lead(
                name=name,
                handle=handle,
                platform=platform,
                role=role,
                country=country,
                website=website,
                notes=notes,
            )
        )
    finally:
        await store.disconnect()
    console.print(f"Created lead [bold cyan]{lead.id}[/bold cyan]: {escape(lead.name)}")
    console.print(f"Run: [bold cyan]deep-dive run {lead.id}[/bold cyan]")


@app.command()
def run(
    lead_id: int = typer.Argument(..., help="Lead ID"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip the completion backend; use fallbacks only"),
) -> None:
    """[bold]Run a deep dive[/bold] for a stored lead."""
    _run_async(_async_run(lead_id, no_ai))


async def _async_run(lead_id: int, no_ai: bool = False) -> None:
    from deep_dive.engine.orchestrator import DeepDiveService, run_deep_dive_job
    from deep_dive.providers import NullCompletionProvider

    store = await _open_store()
    service = DeepDiveService.from_settings(store, NullCompletionProvider()) if no_ai else None
    try:
        result = await run_deep_dive_job(lead_id, store, service)
    except Exception as e:
        console.print(f"[red]Deep dive failed:[/red] {escape(f'{type(e).__name__}: {e}')}")
        raise typer.Exit(1) from e
    finally:
        await store.disconnect()

    if result is None:
        console.print(f"[red]Lead not found: {lead_id}[/red]")
        raise typer.Exit(1)

    _display_profiles(result.profiles)
    console.print(
        Panel(
            f"[bold]Summary:[/bold] {escape(result.summary)}\n"
            f"[bold]Outreach angle:[/bold] {escape(result.outreach_angle)}\n"
            f"[bold]Next step:[/bold] {escape(result.next_step)}\n"
            f"[bold]Confidence:[/bold] {result.confidence:.2f}\n"
            f"[bold]Emails:[/bold] {', '.join(e.email for e in result.emails_found) or '—'}",
            title="[bold cyan]Deep Dive Complete[/bold cyan]",
            border_style="green",
        )
    )
    for warning in result.search_warnings:
        console.print(f"[yellow]⚠ {escape(warning)}[/yellow]")


@app.command()
def show(
    lead_id: int = typer.Argument(..., help="Lead ID"),
    raw: bool = typer.Option(False, "--raw", help="Print the stored deep dive data as JSON"),
) -> None:
    """Show a lead's stored deep dive result."""
    _run_async(_async_show(lead_id, raw))


async def _async_show(lead_id: int, raw: bool) -> None:
    store = await _open_store()
    try:
        lead = await store.get_lead(lead_id)
        profiles = await store.list_social_profiles(lead_id) if lead else []
    finally:
        await store.disconnect()

    if lead is None:
        console.print(f"[red]Lead not found: {lead_id}[/red]")
        raise typer.Exit(1)

    if raw:
        console.print_json(json.dumps(lead.deep_dive_data, default=str))
        return

    status_color = {"complete": "green", "failed": "red", "running": "yellow"}.get(
        lead.deep_dive_status, "white"
    )
    console.print(
        Panel(
            f"[bold]Name:[/bold] {escape(lead.name)}\n"
            f"[bold]Status:[/bold] [{status_color}]{lead.deep_dive_status}[/{status_color}]\n"
            f"[bold]Website:[/bold] {escape(lead.website or '—')}\n"
            f"[bold]Email:[/bold] {escape(lead.email or '—')}\n"
            f"[bold]Last run:[/bold] {lead.deep_dive_last_run_at or '—'}"
            + (f"\n[bold]Error:[/bold] {escape(lead.deep_dive_error)}" if lead.deep_dive_error else ""),
            title=f"[bold cyan]Lead {lead.id}[/bold cyan]",
        )
    )

    table = Table(title="[bold cyan]Social Profiles[/bold cyan]", box=box.ROUNDED)
    table.add_column("Type", style="cyan")
    table.add_column("URL", style="white")
    table.add_column("Handle", style="dim")
    table.add_column("Source", style="dim")
    table.add_column("Strategy", justify="center")
    for profile in profiles:
        identity = profile.metadata.get("identity_validation") or {}
        table.add_row(
            profile.profile_type,
            escape(profile.url),
            escape(profile.handle or ""),
            profile.source,
            identity.get("strategy", "—"),
        )
    console.print(table)


@app.command()
def canonicalize(
    url: str = typer.Argument(..., help="Raw profile URL"),
    profile_type_name: str | None = typer.Option(
        None, "--type", "-t", help="Force a profile type instead of classifying the URL"
    ),
) -> None:
    """Classify a URL and print its canonical profile form."""
    from deep_dive.core.constants import ProfileType
    from deep_dive.utils.urls import canonicalize as canonical_url
    from deep_dive.utils.urls import classify, extract_handle, normalize_url

    if profile_type_name:
        try:
            forced = ProfileType(profile_type_name.lower())
        except ValueError:
            choices = ", ".join(t.value for t in ProfileType)
            console.print(f"[red]Unknown profile type:[/red] {escape(profile_type_name)} (choose from {choices})")
            raise typer.Exit(2) from None
    else:
        forced = None

    normalized = normalize_url(url)
    profile_type = None
    if normalized:
        profile_type = forced or classify(normalized)
    canonical = canonical_url(normalized, profile_type) if profile_type else None
    if canonical is None:
        console.print(f"[red]Rejected:[/red] {escape(url)}")
        raise typer.Exit(1)

    console.print(f"[bold]Type:[/bold] {profile_type.value}")
    console.print(f"[bold]Canonical:[/bold] {escape(canonical)}")
    handle = extract_handle(canonical, profile_type)
    if handle:
        console.print(f"[bold]Handle:[/bold] {escape(handle)}")


def _display_profiles(profiles: dict[str, list[str]]) -> None:
    table = Table(title="[bold cyan]Profiles Found[/bold cyan]", box=box.ROUNDED)
    table.add_column("Type", style="cyan")
    table.add_column("URLs", style="white")
    for profile_type, urls in profiles.items():
        if urls:
            table.add_row(profile_type, "\n".join(escape(u) for u in urls))
    console.print(table)


if __name__ == "__main__":
    app()
