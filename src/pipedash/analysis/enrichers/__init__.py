"""Enrichers: LLM-assisted resolution and schema deduction, plus writers."""

from .analysis_writer import validate_analysis_data, write_analysis_file
from .resolver import FAILED_RESOLUTION_REASONING, resolve_artifact_reference
from .schema_deducer import ValidatorRegistry, deduce_artifact_schema
from .schema_writer import (
    SchemaFiles,
    StoredSchema,
    build_schema_prompt_section,
    load_schema_files,
    schema_base_name,
    write_schema_files,
)

__all__ = [
    "write_analysis_file",
    "validate_analysis_data",
    "resolve_artifact_reference",
    "FAILED_RESOLUTION_REASONING",
    "deduce_artifact_schema",
    "ValidatorRegistry",
    "write_schema_files",
    "load_schema_files",
    "schema_base_name",
    "SchemaFiles",
    "StoredSchema",
    "build_schema_prompt_section",
]
