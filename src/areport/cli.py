"""CLI commands for validating areport configuration and inspecting run artifacts."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .artifacts import load_last_run, load_summary
from .config import DEFAULT_CONFIG_NAME, ReporterConfig, describe_config, load_config, validate_channels
from .console import ConsoleRenderer
from .errors import ConfigurationError
from .replay import load_events, replay as replay_events
from .reporter import RunReporter

APP_HELP = "areport test-run reporter entry point."

app = typer.Typer(help=APP_HELP)


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Python logging level for areport diagnostics (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Configure logging before any command runs."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        typer.echo(f"Unknown log level: {log_level}")
        raise typer.Exit(code=2)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _load(config: str, *, required: bool) -> ReporterConfig:
    config_path = Path(config)
    if not required and not config_path.exists():
        return ReporterConfig()
    try:
        return load_config(config_path)
    except ConfigurationError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error


def _output_dir(output_dir: Optional[Path], config: str) -> Path:
    if output_dir is not None:
        return output_dir
    return _load(config, required=False).output_dir


@app.command()
def validate(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the reporter configuration file.",
    )
) -> None:
    """Validate configuration and list enabled channels that would skip their work."""
    reporter_config = _load(config, required=True)
    typer.echo(f"Loaded configuration from {config}")
    typer.echo(json.dumps(describe_config(reporter_config), indent=2))

    issues = validate_channels(reporter_config)
    if not issues:
        typer.echo("All enabled channels are configured.")
        return
    for issue in issues:
        typer.echo(f"- {issue.channel}: {issue.message}")
        typer.echo(f"  Hint: {issue.hint}")
    raise typer.Exit(code=1)


@app.command()
def replay(
    events: Path = typer.Argument(..., help="JSON-lines file of recorded runner events."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the reporter configuration file (optional).",
    ),
) -> None:
    """Feed recorded runner events through the reporter and run the post-run pipeline."""
    reporter_config = _load(config, required=False)
    try:
        recorded = load_events(events)
    except ConfigurationError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error

    outcome = replay_events(RunReporter(reporter_config, repo_root=Path.cwd()), recorded)
    raise typer.Exit(code=outcome.exit_code)


@app.command("last-run")
def last_run(
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Reporter output directory (defaults to output_dir from the config).",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the reporter configuration file (optional).",
    ),
) -> None:
    """Print the status of the previous run and the ids of its failing tests."""
    try:
        status = load_last_run(_output_dir(output_dir, config))
    except ConfigurationError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error

    typer.echo(f"Last run: {status.status}")
    for test_id in status.failed_tests:
        typer.echo(f"- {test_id}")
    if status.status == "failed":
        raise typer.Exit(code=1)


@app.command()
def summary(
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Reporter output directory (defaults to output_dir from the config).",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the reporter configuration file (optional).",
    ),
) -> None:
    """Re-render the summary written by the previous run."""
    try:
        run_summary = load_summary(_output_dir(output_dir, config))
    except ConfigurationError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error

    console = ConsoleRenderer(show_stack_trace=False)
    console.summary(run_summary)
    console.failures(run_summary.failures)


if __name__ == "__main__":
    app()
