"""CLI entry point for magicrelease."""

from __future__ import annotations

import logging
from datetime import date as date_type
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from magicrelease.changelog.parser import get_latest_version
from magicrelease.config import DEFAULT_CONFIG_TEMPLATE, MagicReleaseConfig, load_config
from magicrelease.errors import MagicReleaseError
from magicrelease.generator import MagicRelease

app = typer.Typer(
    name="magicr",
    help="Generate Keep a Changelog entries from your git history.",
    no_args_is_help=True,
)

config_app = typer.Typer(help="Manage magicrelease configuration.")
app.add_typer(config_app, name="config")

CONFIG_FILENAME = "magicrelease.yaml"

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# Global state
_config: MagicReleaseConfig | None = None


def _get_config() -> MagicReleaseConfig:
    if _config is None:
        return load_config()
    return _config


def _fail(error: Exception) -> None:
    rprint(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to magicrelease.yaml")
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except MagicReleaseError as e:
        _fail(e)
    level = logging.DEBUG if verbose else _LOG_LEVELS[_config.log_level]
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _build(cfg: MagicReleaseConfig) -> MagicRelease:
    try:
        return MagicRelease(cfg, cwd=Path.cwd())
    except MagicReleaseError as e:
        _fail(e)


def _without_ai(cfg: MagicReleaseConfig) -> MagicReleaseConfig:
    return cfg.model_copy(update={"llm": cfg.llm.model_copy(update={"provider": "none"})})


@app.command()
def generate(
    from_ref: str | None = typer.Option(None, "--from", help="Start of range (exclusive)"),
    to_ref: str | None = typer.Option(None, "--to", help="End of range (default HEAD)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print instead of writing"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip LLM categorization"),
) -> None:
    """Add new commits to the Unreleased section of the changelog."""
    cfg = _get_config()
    if no_ai:
        cfg = _without_ai(cfg)
    mr = _build(cfg)

    try:
        text = mr.generate_sync(
            from_ref=from_ref, to_ref=to_ref, dry_run=dry_run, use_ai=not no_ai
        )
    except MagicReleaseError as e:
        _fail(e)

    if dry_run:
        rprint("[yellow](dry run, nothing written)[/yellow]\n")
        rprint(Syntax(text, "markdown"))
    else:
        rprint(f"[green]Updated[/green] {mr.changelog_path}")


@app.command()
def release(
    version: str | None = typer.Argument(None, help="Version to release (default: suggested)"),
    date: str | None = typer.Option(None, "--date", help="Release date, YYYY-MM-DD"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print instead of writing"),
) -> None:
    """Promote the Unreleased section to a dated version."""
    if date is not None:
        try:
            date_type.fromisoformat(date)
        except ValueError:
            _fail(ValueError(f"Invalid date {date!r}: expected YYYY-MM-DD"))

    mr = _build(_without_ai(_get_config()))
    try:
        text = mr.release(version=version, date=date, dry_run=dry_run)
    except MagicReleaseError as e:
        _fail(e)

    if dry_run:
        rprint("[yellow](dry run, nothing written)[/yellow]\n")
        rprint(Syntax(text, "markdown"))
    else:
        released = get_latest_version(text) or version
        rprint(f"[green]Released[/green] {released} in {mr.changelog_path}")
        if released:
            rprint(f"Tag it with: git tag {mr.tag_name(released)}")


@app.command("next-version")
def next_version() -> None:
    """Show the suggested next version."""
    mr = _build(_without_ai(_get_config()))
    try:
        plan = mr.plan_next_version()
    except MagicReleaseError as e:
        _fail(e)

    table = Table(show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value", style="cyan")
    table.add_row("Current", plan.current_version or "-")
    table.add_row("Next", plan.next_version)
    table.add_row("Tag", mr.tag_name(plan.next_version))
    table.add_row("Release type", plan.release_type)
    table.add_row("First release", "yes" if plan.is_first_release else "no")
    rprint(Panel(table, title="Next Version", border_style="blue"))


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default magicrelease.yaml in current directory."""
    target = Path(CONFIG_FILENAME)
    if target.exists() and not force:
        rprint(f"[yellow]{CONFIG_FILENAME} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")
