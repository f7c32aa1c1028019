"""Schemas subcommand group."""

import asyncio
import json
import sys
from pathlib import Path

import click

from ..analysis import ArtifactWrite, is_json_artifact
from ..analysis.enrichers import (
    build_schema_prompt_section,
    deduce_artifact_schema,
    load_schema_files,
    write_schema_files,
)
from ..config import ConfigError, LLMSettings
from ..llm import ChatClient
from .context import ProjectContext, pass_context

# Base delay between deduction attempts; attempt N waits N * RETRY_DELAY
RETRY_DELAY = 1.0


@click.group()
def schemas():
    """Deduce and inspect artifact schemas."""
    pass


@schemas.command("deduce")
@click.option(
    "--analysis",
    "-a",
    "analysis_path",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to the task's .analysis.json file",
)
@click.option(
    "--task",
    "-t",
    "task_path",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to the task source file",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="Output directory; schema files go to <output>/schemas/",
)
@click.option(
    "--retries",
    type=click.IntRange(min=1),
    help="Attempts per artifact (default: analysis.schema_retries from pipedash.yaml)",
)
@pass_context
def schemas_deduce(
    ctx: ProjectContext, analysis_path: Path, task_path: Path, output: Path, retries: int
):
    """Deduce JSON schemas for the JSON artifacts a task writes.

    Examples:
        pipedash schemas deduce -a analysis/research.analysis.json -t tasks/research.js
        pipedash schemas deduce -a research.analysis.json -t research.js -o pipeline-config/content
    """
    try:
        with open(analysis_path, encoding="utf-8") as f:
            analysis_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise click.ClickException(f"Cannot read analysis file: {analysis_path}\nDetails: {e}")

    writes = _artifact_writes(analysis_data)

    try:
        task_code = task_path.read_text(encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Cannot read task file: {task_path}\nDetails: {e}")

    try:
        output.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise click.ClickException(f"Cannot create output directory: {output}\nDetails: {e}")

    json_artifacts = [w for w in writes if is_json_artifact(w.file_name)]
    click.echo(f"Found {len(json_artifacts)} JSON artifacts to process\n")
    click.echo(f"Task file: {task_path}")
    click.echo(f"Output directory: {output}\n")

    succeeded, failed = asyncio.run(
        _deduce_all(
            ctx.create_client(),
            ctx.config.llm,
            task_code,
            json_artifacts,
            output,
            retries or ctx.config.analysis.schema_retries,
        )
    )

    skipped = [w for w in writes if not is_json_artifact(w.file_name)]
    if skipped:
        click.echo("\nSkipped non-JSON artifacts:")
        for artifact in skipped:
            click.echo(f"  - {artifact.file_name}")

    click.echo(f"\nSummary: {succeeded} succeeded, {failed} failed")
    if failed:
        sys.exit(1)


def _artifact_writes(analysis_data) -> list[ArtifactWrite]:
    """Artifact writes listed in serialized analysis data."""
    artifacts = analysis_data.get("artifacts") if isinstance(analysis_data, dict) else None
    writes = artifacts.get("writes") if isinstance(artifacts, dict) else None
    if not isinstance(writes, list) or not all(
        isinstance(w, dict) and isinstance(w.get("fileName"), str) for w in writes
    ):
        raise click.ClickException("Invalid analysis format. Expected 'artifacts.writes' array.")
    return [ArtifactWrite(file_name=w["fileName"], stage=w.get("stage", "")) for w in writes]


async def _deduce_all(
    client: ChatClient,
    llm: LLMSettings,
    task_code: str,
    artifacts: list[ArtifactWrite],
    output: Path,
    attempts: int,
) -> tuple[int, int]:
    """Deduce and write schemas one artifact at a time; returns (succeeded, failed)."""
    succeeded = 0
    failed = 0

    for i, artifact in enumerate(artifacts, 1):
        click.echo(f"[{i}/{len(artifacts)}] Processing: {artifact.file_name}")

        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                result = await deduce_artifact_schema(
                    client, task_code, artifact, provider=llm.provider, model=llm.model
                )
                write_schema_files(output, artifact.file_name, result)
                click.echo("  ✓ Schema deduced and validated")
                last_error = None
                break
            except Exception as e:
                last_error = e
                if attempt < attempts:
                    click.echo(f"  ⚠ Attempt {attempt} failed, retrying...")
                    await asyncio.sleep(RETRY_DELAY * attempt)

        if last_error is None:
            succeeded += 1
        else:
            click.echo(f"  ✗ Failed: {last_error}", err=True)
            failed += 1

    return succeeded, failed


@schemas.command("show")
@click.argument("pipeline_slug")
@click.argument("artifact")
@click.option("--prompt", is_flag=True, help="Print as a markdown prompt section")
@pass_context
def schemas_show(ctx: ProjectContext, pipeline_slug: str, artifact: str, prompt: bool):
    """Show the stored schema, sample and meta for an artifact.

    Examples:
        pipedash schemas show content research-output.json
        pipedash schemas show content research-output.json --prompt
    """
    try:
        location = ctx.locate_pipeline(pipeline_slug)
    except ConfigError as e:
        raise click.ClickException(str(e))

    stored = load_schema_files(location.config_dir, artifact)
    if not stored.exists:
        raise click.ClickException(
            f"No schema found for {artifact} in pipeline '{pipeline_slug}' "
            f"(run: pipedash analyze pipeline {pipeline_slug})"
        )

    if prompt:
        click.echo(build_schema_prompt_section([(artifact, stored)]))
        return

    click.echo("Schema:")
    click.echo(json.dumps(stored.schema, indent=2))
    if stored.sample is not None:
        click.echo("\nSample:")
        click.echo(json.dumps(stored.sample, indent=2))
    if stored.meta is not None:
        click.echo("\nMeta:")
        click.echo(json.dumps(stored.meta, indent=2))
