"""Pipeline dashboard toolkit: task analysis and schema inference.

Provides:

- pipedash.analysis: Static analysis of pipeline task files (stages,
  artifacts, model calls) and LLM-assisted enrichment
- pipedash.llm: Chat completion client for OpenAI-compatible providers
- pipedash.config: pipedash.yaml loading and pipeline location

Quick start:
    from pipedash.analysis import analyze_task

    analysis = analyze_task(open("tasks/research.js").read())
    for stage in analysis.stages:
        print(stage.name, stage.is_async)
"""

__version__ = "0.1.0"

# Convenient imports - explicit re-exports
from .analysis import (
    analyze_task as analyze_task,
)
