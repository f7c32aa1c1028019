"""Task analysis: static extraction from task sources plus LLM enrichment.

    from pipedash.analysis import analyze_task

    analysis = analyze_task(source, "tasks/research.js")
    analysis.to_dict()  # {"stages": [...], "artifacts": {...}, "models": [...]}
"""

from .analyzer import analyze_task
from .errors import (
    AnalysisError,
    AnalysisLockedError,
    InvalidAnalysisDataError,
    InvalidSchemaDataError,
    LockNotHeldError,
    ParseError,
    PipelineAnalysisError,
    SchemaDeductionError,
    SchemaValidationError,
    StageResolutionError,
)
from .lock import AnalysisLock, AnalysisLockState
from .runner import PipelineAnalysisRunner, PipelineRunSummary, is_json_artifact
from .types import (
    AnalysisEvent,
    ArtifactRead,
    ArtifactReferences,
    ArtifactResolution,
    ArtifactWrite,
    DeducedSchema,
    LockResult,
    ModelCall,
    SourceLocation,
    Stage,
    TaskAnalysis,
    UnresolvedRef,
)

__all__ = [
    "analyze_task",
    "AnalysisLock",
    "AnalysisLockState",
    "PipelineAnalysisRunner",
    "PipelineRunSummary",
    "is_json_artifact",
    # Records
    "TaskAnalysis",
    "Stage",
    "ArtifactRead",
    "ArtifactWrite",
    "ArtifactReferences",
    "UnresolvedRef",
    "SourceLocation",
    "ModelCall",
    "ArtifactResolution",
    "DeducedSchema",
    "LockResult",
    "AnalysisEvent",
    # Errors
    "AnalysisError",
    "ParseError",
    "StageResolutionError",
    "SchemaDeductionError",
    "SchemaValidationError",
    "InvalidAnalysisDataError",
    "InvalidSchemaDataError",
    "LockNotHeldError",
    "AnalysisLockedError",
    "PipelineAnalysisError",
]
