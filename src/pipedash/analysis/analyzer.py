"""Task analysis entry point."""

from .extractors import (
    extract_artifact_reads,
    extract_artifact_writes,
    extract_llm_calls,
    extract_stages,
)
from .parser import parse_task_source
from .types import ArtifactReferences, TaskAnalysis


def analyze_task(code: str, file_name: str = "<task>") -> TaskAnalysis:
    """Analyze task source code.

    Parses once and runs the stage, artifact and model-call extractors over
    the same tree.

    Example:
        analysis = analyze_task('''
            export function ingestion({ io, llm }) {
              const content = io.readArtifact("input.json");
              const result = llm.deepseek.chat(content);
              io.writeArtifact("output.json", result);
            }
        ''')
        analysis.stages   # (Stage(name="ingestion", order=2, is_async=False),)
        analysis.models   # (ModelCall(provider="deepseek", method="chat", stage="ingestion"),)

    Raises:
        ParseError: On syntax errors
        StageResolutionError: If an artifact or LLM call is outside every
            exported function
    """
    parsed = parse_task_source(code, file_name)

    reads = extract_artifact_reads(parsed)
    writes = extract_artifact_writes(parsed)

    return TaskAnalysis(
        stages=tuple(extract_stages(parsed)),
        artifacts=ArtifactReferences(
            reads=tuple(reads.reads),
            writes=tuple(writes.writes),
            unresolved_reads=tuple(reads.unresolved),
            unresolved_writes=tuple(writes.unresolved),
        ),
        models=tuple(extract_llm_calls(parsed)),
    )
