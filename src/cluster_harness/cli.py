"""Typer CLI entrypoint."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from .config import HarnessConfig, apply_env_overrides, default_config, load_harness_config
from .exceptions import HarnessError, PrerequisiteError
from .logging_utils import configure_logging
from .orchestrator import LifecycleOrchestrator, manual_teardown
from .paths import HarnessPaths
from .preflight import validate_prerequisites

app = typer.Typer(help="Ephemeral cluster end-to-end harness")
console = Console(stderr=True)


def _load(config: Optional[Path]) -> HarnessConfig:
    if config is None:
        return apply_env_overrides(default_config())
    return load_harness_config(config)


@app.command("preflight")
def preflight() -> None:
    try:
        report = validate_prerequisites()
    except PrerequisiteError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    for entry in report["commands"]:
        typer.echo(f"{entry['name']}: {entry['path']}")


@app.command("run")
def run(
    config: Optional[Path] = typer.Option(None, help="Harness config YAML"),
    root: Path = typer.Option(Path(".harness"), help="Directory for logs and state"),
    run_id: Optional[str] = typer.Option(None, help="Run identifier"),
    skip_cleanup: bool = typer.Option(False, help="Leave the environment running for inspection"),
    log_format: str = typer.Option("text", help="Console log format: text or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every poll attempt"),
) -> None:
    harness_config = _load(config)
    if skip_cleanup:
        harness_config = harness_config.model_copy(update={"skip_cleanup": True})
    paths = HarnessPaths(root.resolve())
    configure_logging(paths.logs / "harness.log", log_format=log_format, verbose=verbose)
    orchestrator = LifecycleOrchestrator(harness_config, paths)
    try:
        result = orchestrator.run(run_id)
    except HarnessError as exc:
        typer.secho(f"Scenario failed: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Scenario {result.run_id} verified[/green] (image {result.handle.image_reference})")


@app.command("teardown")
def teardown(
    config: Optional[Path] = typer.Option(None, help="Harness config YAML"),
    root: Path = typer.Option(Path(".harness"), help="Directory for logs and state"),
) -> None:
    failures = manual_teardown(HarnessPaths(root.resolve()), _load(config))
    if failures:
        for failure in failures:
            typer.secho(failure, fg=typer.colors.YELLOW)
    typer.echo("Teardown invoked.")


if __name__ == "__main__":  # pragma: no cover
    app()
