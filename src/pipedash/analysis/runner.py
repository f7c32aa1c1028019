"""Whole-pipeline analysis runs.

Analyzes every task listed in a pipeline's pipeline.json, persists each
analysis, resolves dynamic artifact references and deduces schemas for the
JSON artifacts the tasks write:

    runner = PipelineAnalysisRunner(lock, LLMClient(), on_event=print)
    summary = await runner.run(locate_pipeline(config, root, "content"))

Tasks are processed strictly in pipeline order. Within a task, LLM requests
(resolutions, then schema deductions) run concurrently up to
``AnalysisSettings.concurrency``; writes to the same artifact's schema files
are serialized.

Events (``AnalysisEvent.type``): started, task:start, artifact:start,
artifact:complete, task:complete, complete, error. task:complete also carries the
file names adopted from dynamic references (resolvedReads, resolvedWrites).
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable

from ..config import AnalysisSettings, LLMSettings, PipelineLocation, validate_slug
from ..llm import ChatClient
from .analyzer import analyze_task
from .enrichers import (
    deduce_artifact_schema,
    resolve_artifact_reference,
    schema_base_name,
    write_analysis_file,
    write_schema_files,
)
from .errors import AnalysisLockedError, PipelineAnalysisError
from .lock import AnalysisLock
from .types import AnalysisEvent, ArtifactRead, ArtifactWrite, TaskAnalysis, UnresolvedRef

logger = logging.getLogger(__name__)

EventCallback = Callable[[AnalysisEvent], None]


def is_json_artifact(file_name: str) -> bool:
    """Only JSON artifacts get schemas."""
    return file_name.endswith(".json")


@dataclass
class TaskWork:
    """A task's source and its static analysis, ready for enrichment."""

    task_id: str
    task_file: Path
    code: str
    analysis: TaskAnalysis


@dataclass
class PipelineRunSummary:
    pipeline_slug: str
    tasks_analyzed: int
    artifacts_processed: int
    duration_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "pipelineSlug": self.pipeline_slug,
            "tasksAnalyzed": self.tasks_analyzed,
            "artifactsProcessed": self.artifacts_processed,
            "durationMs": self.duration_ms,
        }


class PipelineAnalysisRunner:
    """Runs analysis for one pipeline at a time, gated by an AnalysisLock."""

    def __init__(
        self,
        lock: AnalysisLock,
        client: ChatClient,
        settings: AnalysisSettings | None = None,
        llm: LLMSettings | None = None,
        on_event: EventCallback | None = None,
    ):
        """Initialize the runner.

        Args:
            lock: Process-wide analysis lock
            client: Chat completion client for resolution and deduction
            settings: Concurrency and adoption threshold (default: AnalysisSettings())
            llm: Provider and model to request (default: LLMSettings())
            on_event: Optional callback receiving progress events
        """
        self.lock = lock
        self.client = client
        self.settings = settings or AnalysisSettings()
        self.llm = llm or LLMSettings()
        self.on_event = on_event

    async def run(self, location: PipelineLocation) -> PipelineRunSummary:
        """Analyze a whole pipeline.

        Raises:
            AnalysisLockedError: If another pipeline analysis holds the lock
            PipelineAnalysisError: If a task fails to analyze or an artifact
                schema cannot be deduced or written (after an ``error`` event)
        """
        slug = validate_slug(location.slug)
        result = self.lock.acquire(slug)
        if not result.acquired:
            raise AnalysisLockedError(slug, result.held_by)

        start = time.monotonic()
        try:
            return await self._run_locked(location, start)
        except PipelineAnalysisError as e:
            data: dict[str, Any] = {"message": str(e)}
            if e.task_id is not None:
                data["taskId"] = e.task_id
            if e.artifact_name is not None:
                data["artifactName"] = e.artifact_name
            self._emit("error", data)
            raise
        except Exception as e:
            self._emit("error", {"message": f"Unexpected error: {e}"})
            raise
        finally:
            self.lock.release(slug)

    async def _run_locked(self, location: PipelineLocation, start: float) -> PipelineRunSummary:
        slug = location.slug
        try:
            task_ids = location.task_ids()
        except ValueError as e:
            raise PipelineAnalysisError(str(e)) from e

        work = [self._analyze(location, task_id) for task_id in task_ids]

        known_artifacts = list(
            dict.fromkeys(w.file_name for item in work for w in item.analysis.artifacts.writes)
        )
        total_artifacts = sum(
            1
            for item in work
            for w in item.analysis.artifacts.writes
            if is_json_artifact(w.file_name)
        )

        self._emit(
            "started",
            {"pipelineSlug": slug, "totalTasks": len(work), "totalArtifacts": total_artifacts},
        )

        # Created here so they bind to the running loop
        self._semaphore = asyncio.Semaphore(self.settings.concurrency)
        self._artifact_locks: dict[str, asyncio.Lock] = {}

        artifacts_processed = 0
        for task_index, item in enumerate(work):
            progress = {"taskId": item.task_id, "taskIndex": task_index, "totalTasks": len(work)}
            self._emit("task:start", progress)
            written, resolved = await self._process_task(
                location.config_dir, item, known_artifacts, total_artifacts
            )
            artifacts_processed += written
            self._emit("task:complete", {**progress, **resolved})

        summary = PipelineRunSummary(
            pipeline_slug=slug,
            tasks_analyzed=len(work),
            artifacts_processed=artifacts_processed,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        logger.info(
            f"Analyzed pipeline '{slug}': {summary.tasks_analyzed} tasks, "
            f"{summary.artifacts_processed} schemas in {summary.duration_ms}ms"
        )
        self._emit("complete", summary.to_dict())
        return summary

    def _analyze(self, location: PipelineLocation, task_id: str) -> TaskWork:
        task_file = location.task_file(task_id)
        try:
            code = task_file.read_text(encoding="utf-8")
            analysis = analyze_task(code, str(task_file))
        except Exception as e:
            raise PipelineAnalysisError(
                f"Failed to analyze task '{task_id}': {e}", task_id=task_id
            ) from e
        logger.debug(
            f"Analyzed task '{task_id}': {len(analysis.stages)} stages, "
            f"{len(analysis.artifacts.writes)} writes"
        )
        return TaskWork(task_id=task_id, task_file=task_file, code=code, analysis=analysis)

    async def _process_task(
        self,
        pipeline_dir: Path,
        item: TaskWork,
        known_artifacts: list[str],
        total_artifacts: int,
    ) -> tuple[int, dict[str, list[str]]]:
        """Persist, resolve and deduce for one task.

        Returns the number of schemas written and the adopted resolutions as
        ``{"resolvedReads": [...], "resolvedWrites": [...]}``. Resolved reads
        are reported only; resolved writes also get schemas.
        """
        analysis_data = item.analysis.to_dict(task_file_path=str(item.task_file))
        try:
            await asyncio.to_thread(write_analysis_file, pipeline_dir, item.task_id, analysis_data)
        except Exception as e:
            raise PipelineAnalysisError(
                f"Failed to write analysis for task '{item.task_id}': {e}", task_id=item.task_id
            ) from e

        resolved_reads, resolved_writes = await self._resolve_references(item, known_artifacts)
        writes = [*item.analysis.artifacts.writes, *resolved_writes]
        json_writes = [w for w in writes if is_json_artifact(w.file_name)]

        await _gather_all(
            self._deduce_and_write(pipeline_dir, item, artifact, index, total_artifacts)
            for index, artifact in enumerate(json_writes)
        )
        resolved = {
            "resolvedReads": [r.file_name for r in resolved_reads],
            "resolvedWrites": [w.file_name for w in resolved_writes],
        }
        return len(json_writes), resolved

    async def _resolve_references(
        self, item: TaskWork, known_artifacts: list[str]
    ) -> tuple[list[ArtifactRead], list[ArtifactWrite]]:
        """Adopted resolutions of a task's dynamic reads and writes.

        The task's TaskAnalysis is left untouched.
        """
        artifacts = item.analysis.artifacts
        read_resolutions = await _gather_all(
            self._resolve(item, ref, known_artifacts) for ref in artifacts.unresolved_reads
        )
        write_resolutions = await _gather_all(
            self._resolve(item, ref, known_artifacts) for ref in artifacts.unresolved_writes
        )

        threshold = self.settings.confidence_threshold
        reads = []
        for ref, resolution in zip(artifacts.unresolved_reads, read_resolutions):
            if resolution.is_adoptable_at(threshold):
                required = ref.required if ref.required is not None else True
                reads.append(ArtifactRead(resolution.resolved_file_name, ref.stage, required))
        writes = []
        for ref, resolution in zip(artifacts.unresolved_writes, write_resolutions):
            if resolution.is_adoptable_at(threshold):
                writes.append(ArtifactWrite(resolution.resolved_file_name, ref.stage))

        total = len(artifacts.unresolved_reads) + len(artifacts.unresolved_writes)
        if total:
            logger.info(
                f"Task '{item.task_id}': adopted {len(reads) + len(writes)} of {total} "
                f"dynamic artifact references"
            )
        return reads, writes

    async def _resolve(self, item: TaskWork, ref: UnresolvedRef, known_artifacts: list[str]):
        async with self._semaphore:
            return await resolve_artifact_reference(
                self.client,
                item.code,
                ref,
                known_artifacts,
                provider=self.llm.provider,
                model=self.llm.model,
            )

    async def _deduce_and_write(
        self,
        pipeline_dir: Path,
        item: TaskWork,
        artifact: ArtifactWrite,
        index: int,
        total_artifacts: int,
    ) -> None:
        progress = {
            "taskId": item.task_id,
            "artifactName": artifact.file_name,
            "artifactIndex": index,
            "totalArtifacts": total_artifacts,
        }
        try:
            async with self._semaphore:
                self._emit("artifact:start", progress)
                deduced = await deduce_artifact_schema(
                    self.client,
                    item.code,
                    artifact,
                    provider=self.llm.provider,
                    model=self.llm.model,
                )
            async with self._artifact_lock(artifact.file_name):
                await asyncio.to_thread(write_schema_files, pipeline_dir, artifact.file_name, deduced)
        except Exception as e:
            raise PipelineAnalysisError(
                f"Failed to deduce schema for artifact '{artifact.file_name}': {e}",
                task_id=item.task_id,
                artifact_name=artifact.file_name,
            ) from e
        self._emit("artifact:complete", progress)

    def _artifact_lock(self, file_name: str) -> asyncio.Lock:
        base = schema_base_name(file_name)
        if base not in self._artifact_locks:
            self._artifact_locks[base] = asyncio.Lock()
        return self._artifact_locks[base]

    def _emit(self, event_type: str, data: dict[str, Any]) -> None:
        logger.debug(f"event {event_type}: {data}")
        if self.on_event:
            self.on_event(AnalysisEvent(type=event_type, data=data))


async def _gather_all(aws: Iterable[Awaitable]) -> list:
    """gather(), cancelling the remaining awaitables when one fails."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
