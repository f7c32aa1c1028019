"""Analyze subcommand group."""

import asyncio
import json
import os
from pathlib import Path

import click

from ..analysis import (
    AnalysisError,
    AnalysisEvent,
    PipelineAnalysisRunner,
    analyze_task,
)
from ..config import ConfigError
from .context import ProjectContext, pass_context


@click.group()
def analyze():
    """Analyze pipeline task files.

    Extracts stages, artifact reads/writes and LLM calls from task sources.
    """
    pass


@analyze.command("task")
@click.argument("task_path", type=click.Path(dir_okay=False, path_type=Path))
def analyze_task_cmd(task_path: Path):
    """Print the analysis of one task file as JSON.

    Set PIPEDASH_DEBUG=1 to get the full traceback on analysis errors.

    Examples:
        pipedash analyze task pipeline-config/content/tasks/research.js
    """
    try:
        code = task_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise click.ClickException(f"Task file not found: {task_path}")

    try:
        analysis = analyze_task(code, str(task_path.resolve()))
    except AnalysisError as e:
        if os.environ.get("PIPEDASH_DEBUG") == "1":
            raise
        raise click.ClickException(f"Error analyzing task:\n{e}")

    click.echo(json.dumps(analysis.to_dict(), indent=2))


@analyze.command("pipeline")
@click.argument("slug")
@click.option(
    "--concurrency",
    "-c",
    type=click.IntRange(min=1),
    help="Max concurrent LLM requests (default: analysis.concurrency from pipedash.yaml)",
)
@pass_context
def analyze_pipeline(ctx: ProjectContext, slug: str, concurrency: int):
    """Analyze every task of a pipeline and deduce artifact schemas.

    Writes analysis/<task>.analysis.json and schemas/<artifact>.*.json into
    the pipeline directory.

    Examples:
        pipedash analyze pipeline content
        pipedash analyze pipeline content --concurrency 4
    """
    try:
        location = ctx.locate_pipeline(slug)
    except ConfigError as e:
        raise click.ClickException(str(e))

    settings = ctx.config.analysis
    if concurrency is not None:
        settings = settings.model_copy(update={"concurrency": concurrency})

    runner = PipelineAnalysisRunner(
        ctx.lock,
        ctx.create_client(),
        settings=settings,
        llm=ctx.config.llm,
        on_event=_print_event,
    )

    try:
        summary = asyncio.run(runner.run(location))
    except AnalysisError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"\nDone: {summary.tasks_analyzed} tasks, "
        f"{summary.artifacts_processed} schemas ({summary.duration_ms}ms)"
    )


def _print_event(event: AnalysisEvent):
    data = event.data
    if event.type == "started":
        click.echo(
            f"Analyzing pipeline '{data['pipelineSlug']}': "
            f"{data['totalTasks']} tasks, {data['totalArtifacts']} JSON artifacts"
        )
    elif event.type == "task:start":
        click.echo(f"[{data['taskIndex'] + 1}/{data['totalTasks']}] {data['taskId']}")
    elif event.type == "artifact:complete":
        click.echo(f"  ✓ {data['artifactName']}")
    elif event.type == "task:complete":
        for name in data.get("resolvedReads", []):
            click.echo(f"  ← {name} (resolved read)")
        for name in data.get("resolvedWrites", []):
            click.echo(f"  → {name} (resolved write)")
