"""Records produced by task analysis.

Attributes are snake_case; ``to_dict()`` produces the camelCase JSON shapes
stored in ``analysis/<task>.analysis.json`` and consumed by the dashboard.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Stage:
    """An exported top-level function of a task file."""

    name: str
    order: int  # source line of the export; ordering key only
    is_async: bool

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "order": self.order, "isAsync": self.is_async}


@dataclass(frozen=True)
class ArtifactRead:
    file_name: str
    stage: str
    required: bool

    def to_dict(self) -> dict[str, Any]:
        return {"fileName": self.file_name, "stage": self.stage, "required": self.required}


@dataclass(frozen=True)
class ArtifactWrite:
    file_name: str
    stage: str

    def to_dict(self) -> dict[str, Any]:
        return {"fileName": self.file_name, "stage": self.stage}


@dataclass(frozen=True)
class SourceLocation:
    line: int  # 1-indexed
    column: int  # 0-indexed

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True)
class UnresolvedRef:
    """An artifact call whose filename argument is not a literal.

    ``required`` is only meaningful for reads and is None for writes.
    """

    expression: str
    code_context: str
    stage: str
    location: SourceLocation
    required: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "expression": self.expression,
            "codeContext": self.code_context,
            "stage": self.stage,
        }
        if self.required is not None:
            data["required"] = self.required
        data["location"] = self.location.to_dict()
        return data


@dataclass(frozen=True)
class ModelCall:
    provider: str
    method: str
    stage: str

    def to_dict(self) -> dict[str, Any]:
        return {"provider": self.provider, "method": self.method, "stage": self.stage}


@dataclass(frozen=True)
class ArtifactReferences:
    reads: tuple[ArtifactRead, ...] = ()
    writes: tuple[ArtifactWrite, ...] = ()
    unresolved_reads: tuple[UnresolvedRef, ...] = ()
    unresolved_writes: tuple[UnresolvedRef, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "reads": [r.to_dict() for r in self.reads],
            "writes": [w.to_dict() for w in self.writes],
            "unresolvedReads": [u.to_dict() for u in self.unresolved_reads],
            "unresolvedWrites": [u.to_dict() for u in self.unresolved_writes],
        }


@dataclass(frozen=True)
class TaskAnalysis:
    """Execution contract of one task file: stages, artifacts and model calls."""

    stages: tuple[Stage, ...]
    artifacts: ArtifactReferences
    models: tuple[ModelCall, ...]

    def to_dict(self, task_file_path: Optional[str] = None) -> dict[str, Any]:
        """Serialize to the on-disk analysis shape.

        Args:
            task_file_path: Included as ``taskFilePath`` when given (the
                analysis writer requires it).
        """
        data: dict[str, Any] = {}
        if task_file_path is not None:
            data["taskFilePath"] = task_file_path
        data["stages"] = [s.to_dict() for s in self.stages]
        data["artifacts"] = self.artifacts.to_dict()
        data["models"] = [m.to_dict() for m in self.models]
        return data


@dataclass(frozen=True)
class ArtifactResolution:
    """Outcome of LLM-assisted resolution of one dynamic artifact reference."""

    resolved_file_name: Optional[str]
    confidence: float
    reasoning: str

    # Minimum confidence at which callers adopt a resolution
    ADOPTION_THRESHOLD = 0.7

    @property
    def is_adoptable(self) -> bool:
        return self.is_adoptable_at(self.ADOPTION_THRESHOLD)

    def is_adoptable_at(self, threshold: float) -> bool:
        return self.resolved_file_name is not None and self.confidence >= threshold

    def to_dict(self) -> dict[str, Any]:
        return {
            "resolvedFileName": self.resolved_file_name,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


@dataclass
class DeducedSchema:
    """JSON Schema, validated example and reasoning for one artifact."""

    schema: dict[str, Any]
    example: Any
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {"schema": self.schema, "example": self.example, "reasoning": self.reasoning}


@dataclass
class LockResult:
    """Result of AnalysisLock.acquire()."""

    acquired: bool
    held_by: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        if self.acquired:
            return {"acquired": True}
        return {"acquired": False, "heldBy": self.held_by}


@dataclass
class AnalysisEvent:
    """Progress event emitted by a pipeline analysis run."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)
