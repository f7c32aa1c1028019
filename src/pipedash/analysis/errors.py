"""Exceptions raised by the task analysis subsystem.

Everything derived from AnalysisError is fatal for the file or artifact being
processed. Best-effort paths (artifact reference resolution) never raise; they
return data instead, so callers can tell the two classes apart by type.
"""

import json
from typing import Any, Optional


class AnalysisError(Exception):
    """Base class for fatal task analysis errors."""


class ParseError(AnalysisError):
    """Task source could not be parsed.

    The underlying parser diagnostic is attached as ``__cause__`` (a
    ``SyntaxError``). ``line`` and ``column`` are 1-indexed.
    """

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.column = column


class StageResolutionError(AnalysisError):
    """A qualifying call was found outside every exported function."""

    def __init__(self, kind: str, line: int, column: int):
        super().__init__(
            f"{kind} call found outside an exported function at {line}:{column}"
        )
        self.kind = kind
        self.line = line
        self.column = column


class SchemaDeductionError(AnalysisError):
    """The LLM returned something that cannot be used as a deduced schema."""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


class SchemaValidationError(SchemaDeductionError):
    """The deduced example does not validate against the deduced schema."""

    def __init__(self, file_name: str, errors: list[dict[str, Any]]):
        super().__init__(
            f"Generated example for {file_name!r} does not validate against schema: "
            f"{json.dumps(errors)}",
            file_name=file_name,
        )
        self.errors = errors


class InvalidAnalysisDataError(AnalysisError, ValueError):
    """Analysis data failed pre-flight shape validation."""

    def __init__(self, field: str, expected: str, actual: Any):
        actual_type = _type_name(actual)
        super().__init__(
            f"Invalid analysis_data.{field}: expected {expected} but got {actual_type}"
        )
        self.field = field
        self.actual_type = actual_type


class InvalidSchemaDataError(AnalysisError, ValueError):
    """Deduced schema data failed pre-flight shape validation."""

    def __init__(self, field: str, expected: str, actual: Any):
        actual_type = _type_name(actual)
        super().__init__(
            f"Invalid deduced_data.{field}: expected {expected} but got {actual_type}"
        )
        self.field = field
        self.actual_type = actual_type


class LockNotHeldError(AnalysisError, RuntimeError):
    """Release attempted without holding the analysis lock."""


class AnalysisLockedError(AnalysisError):
    """Another pipeline analysis is already in progress."""

    def __init__(self, pipeline_slug: str, held_by: str):
        super().__init__(
            f"Cannot analyze '{pipeline_slug}': analysis already running for '{held_by}'"
        )
        self.pipeline_slug = pipeline_slug
        self.held_by = held_by


class PipelineAnalysisError(AnalysisError):
    """A whole-pipeline analysis run stopped on a task or artifact failure.

    The failing exception is attached as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        task_id: Optional[str] = None,
        artifact_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.task_id = task_id
        self.artifact_name = artifact_name


def _type_name(value: Any) -> str:
    if value is None:
        return "None"
    return type(value).__name__
