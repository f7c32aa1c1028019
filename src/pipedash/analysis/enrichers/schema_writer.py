"""Persist deduced schemas to ``<pipeline>/schemas/``.

Each artifact gets three files:
- ``<base>.schema.json``: the JSON Schema, verbatim, with no extra keys
- ``<base>.sample.json``: the example data
- ``<base>.meta.json``: provenance (source, generatedAt, reasoning)

``<base>`` is the artifact filename without its final extension, so
"data.backup.json" becomes "data.backup". The three files are written
independently, meta last; a crash in between leaves the set incomplete.
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from ..errors import InvalidSchemaDataError
from ..types import DeducedSchema
from .files import iso_timestamp, write_json

logger = logging.getLogger(__name__)

SCHEMAS_DIR = "schemas"
META_SOURCE = "llm-deduction"


@dataclass
class SchemaFiles:
    schema: Path
    sample: Path
    meta: Path


def schema_base_name(artifact_name: str) -> str:
    """Artifact filename without its final extension."""
    return Path(artifact_name).stem


def schema_paths(pipeline_dir: Path, artifact_name: str) -> SchemaFiles:
    schemas_dir = Path(pipeline_dir) / SCHEMAS_DIR
    base = schema_base_name(artifact_name)
    return SchemaFiles(
        schema=schemas_dir / f"{base}.schema.json",
        sample=schemas_dir / f"{base}.sample.json",
        meta=schemas_dir / f"{base}.meta.json",
    )


def validate_deduced_data(deduced_data: Any) -> None:
    """Check deduced data before writing.

    The schema must be an object, the example any non-null JSON value
    (primitives included), the reasoning a string (possibly empty).

    Raises:
        InvalidSchemaDataError: Naming the offending field and its type
    """
    if not isinstance(deduced_data, Mapping):
        raise InvalidSchemaDataError("<root>", "an object", deduced_data)
    if not isinstance(deduced_data.get("schema"), Mapping):
        raise InvalidSchemaDataError("schema", "an object", deduced_data.get("schema"))
    if deduced_data.get("example") is None:
        raise InvalidSchemaDataError("example", "a non-null value", None)
    if not isinstance(deduced_data.get("reasoning"), str):
        raise InvalidSchemaDataError("reasoning", "a string", deduced_data.get("reasoning"))


def write_schema_files(
    pipeline_dir: Path,
    artifact_name: str,
    deduced_data: Union[DeducedSchema, Mapping],
) -> SchemaFiles:
    """Write the schema, sample and meta files for an artifact.

    Existing files for the same base name are overwritten.

    Raises:
        InvalidSchemaDataError: If the data has the wrong shape
    """
    if isinstance(deduced_data, DeducedSchema):
        deduced_data = deduced_data.to_dict()
    validate_deduced_data(deduced_data)

    paths = schema_paths(pipeline_dir, artifact_name)
    paths.schema.parent.mkdir(parents=True, exist_ok=True)

    write_json(paths.schema, deduced_data["schema"])
    write_json(paths.sample, deduced_data["example"])
    write_json(
        paths.meta,
        {
            "source": META_SOURCE,
            "generatedAt": iso_timestamp(),
            "reasoning": deduced_data["reasoning"],
        },
    )

    logger.info(f"Wrote schema files for {artifact_name} -> {paths.schema.parent}")
    return paths


@dataclass
class StoredSchema:
    """Schema files read back from disk; missing members are None."""

    schema: Optional[dict[str, Any]]
    sample: Any
    meta: Optional[dict[str, Any]]

    @property
    def exists(self) -> bool:
        return self.schema is not None


def load_schema_files(pipeline_dir: Path, artifact_name: str) -> StoredSchema:
    """Read the schema, sample and meta files for an artifact."""
    paths = schema_paths(pipeline_dir, artifact_name)
    return StoredSchema(
        schema=_read_json(paths.schema),
        sample=_read_json(paths.sample),
        meta=_read_json(paths.meta),
    )


def _read_json(path: Path) -> Any:
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def build_schema_prompt_section(contexts: Iterable[tuple[str, StoredSchema]]) -> str:
    """Markdown section describing referenced artifacts, for LLM prompts.

    Args:
        contexts: (artifact filename, stored schema) pairs; entries without
            both a schema and a sample are skipped

    Returns:
        "## Referenced Files" section, or "" when nothing is usable
    """
    sections = []
    for file_name, stored in contexts:
        if not stored.exists or stored.sample is None:
            continue
        sections.append(
            f"### @{file_name}\n\n"
            f"**JSON Schema:**\n\n```json\n{json.dumps(stored.schema, indent=2)}\n```\n\n"
            f"**Sample Data:**\n\n```json\n{json.dumps(stored.sample, indent=2)}\n```"
        )
    if not sections:
        return ""
    return "## Referenced Files\n\n" + "\n\n".join(sections)
