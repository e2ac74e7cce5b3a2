"""CLI entry point for the workshop lifecycle core."""

from __future__ import annotations

import json

import click

from .domain.transitions import VALIDATORS


@click.group()
def main() -> None:
    """Workshop repair lifecycle."""


@main.command()
@click.option("--config", default=None, help="Config file path")
@click.option("--log-level", default=None, help="Override log level")
@click.option(
    "--log-format",
    type=click.Choice(["json", "console"]),
    default=None,
    help="Override log format",
)
def demo(config: str | None, log_level: str | None, log_format: str | None) -> None:
    """Run one order through the full lifecycle in memory."""
    import asyncio

    from .main import run_demo

    overrides: dict = {}
    observability: dict = {}
    if log_level:
        observability["log_level"] = log_level
    if log_format:
        observability["log_format"] = log_format
    if observability:
        overrides["observability"] = observability

    asyncio.run(run_demo(config_path=config, overrides=overrides))


@main.command()
@click.option(
    "--machine",
    type=click.Choice(sorted(VALIDATORS)),
    default="order",
    help="State machine to print",
)
def transitions(machine: str) -> None:
    """Print a status transition table."""
    validator = VALIDATORS[machine]
    click.echo(f"{machine} transitions:")
    for status in validator.statuses():
        targets = sorted(s.value for s in validator.allowed_transitions(status))
        label = ", ".join(targets) if targets else "(terminal)"
        click.echo(f"  {status.value:<20} -> {label}")


@main.command("show-config")
@click.option("--config", default=None, help="Config file path")
def show_config(config: str | None) -> None:
    """Print the effective settings as JSON."""
    from .core.config import load_settings

    settings = load_settings(config_path=config)
    settings.validate_settings()
    click.echo(json.dumps(settings.model_dump(), indent=2))
