"""pipedash configuration.

Handles pipedash.yaml loading and pipeline location:
- content → pipeline-config/content/pipeline.json, tasks in pipeline-config/content/tasks

Example pipedash.yaml:

    pipelines:
      content:
        config_dir: pipeline-config/content
    llm:
      provider: deepseek
      model: deepseek-chat
    analysis:
      concurrency: 1
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .llm.defaults import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_MODEL,
    DEFAULT_PROVIDER,
    DEFAULT_TIMEOUT,
)

CONFIG_FILENAME = "pipedash.yaml"

# Pipelines not listed in pipedash.yaml live here, one directory per slug
DEFAULT_PIPELINES_DIR = Path("pipeline-config")

SLUG_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class ConfigError(ValueError):
    """Invalid or missing project/pipeline configuration."""


class PipelineEntry(BaseModel):
    """Where a pipeline's pipeline.json and task files live."""

    config_dir: Path
    tasks_dir: Optional[Path] = None


class LLMSettings(BaseModel):
    """LLM used by analysis (artifact resolution, schema deduction)."""

    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES

    @field_validator("max_retries")
    @classmethod
    def max_retries_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v


class AnalysisSettings(BaseModel):
    """Pipeline analysis run settings."""

    # Max concurrent outbound LLM requests per run
    concurrency: int = 1
    confidence_threshold: float = 0.7
    # Attempts per artifact for `pipedash schemas deduce`
    schema_retries: int = 3

    @field_validator("concurrency", "schema_retries")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("confidence_threshold")
    @classmethod
    def threshold_in_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("confidence_threshold must be between 0 and 1")
        return v


class PipedashConfig(BaseModel):
    """Project configuration, validated from pipedash.yaml."""

    pipelines: dict[str, PipelineEntry] = Field(default_factory=dict)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)


def find_project_root(start: Path) -> Optional[Path]:
    """Find project root by looking for pipedash.yaml in start and its parents."""
    current = start.resolve()
    while True:
        if (current / CONFIG_FILENAME).exists():
            return current
        if current == current.parent:
            return None
        current = current.parent


def load_config(config_path: Optional[Path]) -> PipedashConfig:
    """Load pipedash.yaml, or defaults when the path is None or missing.

    Raises:
        ConfigError: If the file is not valid YAML or fails validation
    """
    if config_path is None or not config_path.exists():
        return PipedashConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    try:
        return PipedashConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e


# =============================================================================
# Pipeline Location
# =============================================================================


@dataclass
class PipelineLocation:
    """Resolved directories of one pipeline."""

    slug: str
    config_dir: Path
    tasks_dir: Path

    @property
    def pipeline_json(self) -> Path:
        return self.config_dir / "pipeline.json"

    def task_ids(self) -> list[str]:
        """Task ids listed in pipeline.json, in pipeline order.

        Raises:
            ConfigError: If pipeline.json is missing, unparseable, or has no
                tasks list
        """
        try:
            with open(self.pipeline_json) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to read pipeline.json: {e}") from e

        tasks = data.get("tasks") if isinstance(data, dict) else None
        if not isinstance(tasks, list) or not all(isinstance(t, str) for t in tasks):
            raise ConfigError("Invalid pipeline.json: tasks array not found")
        return tasks

    def task_file(self, task_id: str) -> Path:
        """Source file of a task: tasks/<id>.js, else tasks/<id>/index.js."""
        flat = self.tasks_dir / f"{task_id}.js"
        if flat.exists():
            return flat
        nested = self.tasks_dir / task_id / "index.js"
        if nested.exists():
            return nested
        return flat


def validate_slug(slug: str) -> str:
    if not slug or not SLUG_PATTERN.match(slug):
        raise ConfigError(
            f"Invalid slug format {slug!r}: only alphanumeric, hyphens, and underscores allowed"
        )
    return slug


def locate_pipeline(config: PipedashConfig, project_root: Path, slug: str) -> PipelineLocation:
    """Resolve a pipeline slug to its directories.

    Pipelines listed in pipedash.yaml use their configured directories
    (relative to the project root); others fall back to
    pipeline-config/<slug>.
    """
    validate_slug(slug)
    entry = config.pipelines.get(slug)
    if entry is not None:
        config_dir = project_root / entry.config_dir
        tasks_dir = project_root / entry.tasks_dir if entry.tasks_dir else config_dir / "tasks"
    else:
        config_dir = project_root / DEFAULT_PIPELINES_DIR / slug
        tasks_dir = config_dir / "tasks"

    if not config_dir.is_dir():
        raise ConfigError(f"Pipeline '{slug}' not found (expected {config_dir})")
    return PipelineLocation(slug=slug, config_dir=config_dir, tasks_dir=tasks_dir)
