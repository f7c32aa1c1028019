"""Extractors that walk a parsed task file."""

from .artifacts import extract_artifact_reads, extract_artifact_writes
from .models import collect_llm_aliases, extract_llm_calls
from .stages import extract_stages

__all__ = [
    "extract_stages",
    "extract_artifact_reads",
    "extract_artifact_writes",
    "extract_llm_calls",
    "collect_llm_aliases",
]
