"""Command line interface for flowsmith."""

import json
import sys
from pathlib import Path
from typing import Any, Optional

import click

from flowsmith.catalog import HttpNodeCatalog, NodeCatalog, StaticNodeCatalog
from flowsmith.core.exceptions import InputValidationError
from flowsmith.core.models import Job
from flowsmith.core.settings import load_settings
from flowsmith.generation.blueprints import BLUEPRINT_SHAPES, match_blueprint
from flowsmith.generation.patterns import detect_pattern
from flowsmith.service.coordinator import Coordinator
from flowsmith.service.jobs import parse_job

from .logging_config import configure_logging


def _load_job(job_file: str) -> Job:
    """Read and validate a job file, exiting with a readable error if it is invalid."""
    try:
        with open(job_file, encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as e:
        click.echo(f"Error: {job_file} is not valid JSON: {e}", err=True)
        sys.exit(1)

    if not isinstance(payload, dict):
        click.echo(f"Error: {job_file} must contain a JSON object", err=True)
        sys.exit(1)

    try:
        return parse_job(payload)
    except InputValidationError as e:
        click.echo(f"Error: {e}", err=True)
        for error in e.errors:
            click.echo(f"  - {error['field']}: {error['message']}", err=True)
        sys.exit(1)


def _write_json(data: Any, output: Optional[str]) -> None:
    text = json.dumps(data, indent=2)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        click.echo(f"Wrote {output}", err=True)
    else:
        click.echo(text)


@click.group()
@click.version_option(package_name="flowsmith")
def main() -> None:
    """Generate automation workflows from business process descriptions."""
    pass


@main.command()
@click.argument("job_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--settings", "settings_file", type=click.Path(dir_okay=False), help="Settings JSON file")
@click.option("--verbose", "-v", is_flag=True, help="Show progress logs")
def analyze(job_file: str, settings_file: Optional[str], verbose: bool) -> None:
    """Score a job's complexity without generating anything."""
    configure_logging(verbose)
    job = _load_job(job_file)
    settings = load_settings(Path(settings_file) if settings_file else None)

    coordinator = Coordinator(settings)
    analysis = coordinator.analyze(job)
    match = match_blueprint(job)
    report = {
        "score": analysis.score,
        "classification": analysis.classification,
        "recommendedTier": analysis.recommended_tier,
        "reasoning": analysis.reasoning,
        "factors": [
            {"name": f.name, "weight": f.weight, "contribution": f.contribution} for f in analysis.factors
        ],
        "pattern": detect_pattern(job).name,
        "blueprint": match.blueprint if match else None,
    }
    click.echo(json.dumps(report, indent=2))


@main.command()
@click.argument("job_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the workflow here instead of stdout")
@click.option("--settings", "settings_file", type=click.Path(dir_okay=False), help="Settings JSON file")
@click.option("--catalog-url", help="Base URL of a node documentation service (default: bundled catalog)")
@click.option("--verbose", "-v", is_flag=True, help="Show progress logs and the cost report")
def generate(
    job_file: str, output: Optional[str], settings_file: Optional[str], catalog_url: Optional[str], verbose: bool
) -> None:
    """Generate a workflow for a job file."""
    configure_logging(verbose)
    job = _load_job(job_file)
    settings = load_settings(Path(settings_file) if settings_file else None)
    catalog: NodeCatalog = HttpNodeCatalog(catalog_url) if catalog_url else StaticNodeCatalog()

    coordinator = Coordinator(settings, catalog=catalog)

    def on_progress(percent: int, stage: str) -> None:
        if verbose:
            click.echo(f"[{percent:3d}%] {stage}", err=True)

    result = coordinator.generate(job, progress_callback=on_progress)

    if verbose:
        click.echo(json.dumps(coordinator.cost_report(), indent=2), err=True)

    if result["status"] != "completed":
        click.echo(f"Generation failed ({result.get('reasonCode')}): {result.get('error')}", err=True)
        for issue in result.get("validation", {}).get("errors", []):
            node = f" [{issue['nodeId']}]" if "nodeId" in issue else ""
            click.echo(f"  - {issue['code']}{node}: {issue['message']}", err=True)
        for failure in result.get("routeFailures", []):
            click.echo(f"  - {failure['route']}: {failure['message']}", err=True)
            if failure.get("user_action"):
                click.echo(f"    {failure['user_action']}", err=True)
            if verbose and failure.get("technical_details"):
                click.echo(f"    Technical details: {failure['technical_details']}", err=True)
        sys.exit(1)

    metadata = result["workflow"]["metadata"]
    summary = f"Generated via {metadata['generationPath']} path"
    if metadata.get("modelUsed"):
        summary += f" using {metadata['modelUsed']}"
    click.echo(f"{summary} (cost ${metadata['costUsd']:.4f})", err=True)
    _write_json(result["workflow"], output)


@main.command()
def blueprints() -> None:
    """List the registered blueprint shapes."""
    for name, steps in BLUEPRINT_SHAPES.items():
        click.echo(f"{name:<22} trigger -> {' -> '.join(steps)}")
