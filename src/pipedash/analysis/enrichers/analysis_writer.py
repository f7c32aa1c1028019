"""Persist task analyses to ``<pipeline>/analysis/<task>.analysis.json``."""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..errors import InvalidAnalysisDataError
from .files import iso_timestamp, write_json

logger = logging.getLogger(__name__)

ANALYSIS_DIR = "analysis"


def validate_analysis_data(analysis_data: Any) -> None:
    """Check the shape of analysis data before anything touches the disk.

    Raises:
        InvalidAnalysisDataError: Naming the offending field and its type
    """
    if not isinstance(analysis_data, Mapping):
        raise InvalidAnalysisDataError("<root>", "an object", analysis_data)

    task_file_path = analysis_data.get("taskFilePath")
    if not isinstance(task_file_path, str) or not task_file_path:
        raise InvalidAnalysisDataError("taskFilePath", "a string", task_file_path)

    if not isinstance(analysis_data.get("stages"), list):
        raise InvalidAnalysisDataError("stages", "a list", analysis_data.get("stages"))

    artifacts = analysis_data.get("artifacts")
    if not isinstance(artifacts, Mapping):
        raise InvalidAnalysisDataError("artifacts", "an object", artifacts)

    for key in ("reads", "writes"):
        if not isinstance(artifacts.get(key), list):
            raise InvalidAnalysisDataError(f"artifacts.{key}", "a list", artifacts.get(key))

    for key in ("unresolvedReads", "unresolvedWrites"):
        if key in artifacts and not isinstance(artifacts[key], list):
            raise InvalidAnalysisDataError(f"artifacts.{key}", "a list", artifacts[key])

    if not isinstance(analysis_data.get("models"), list):
        raise InvalidAnalysisDataError("models", "a list", analysis_data.get("models"))


def write_analysis_file(pipeline_dir: Path, task_name: str, analysis_data: Mapping) -> Path:
    """Write one task's analysis, stamped with ``analyzedAt``.

    Args:
        pipeline_dir: Pipeline directory
        task_name: Task name (e.g. "research")
        analysis_data: Serialized analysis including ``taskFilePath``
            (see TaskAnalysis.to_dict)

    Returns:
        Path of the written file

    Raises:
        InvalidAnalysisDataError: If the data has the wrong shape
    """
    validate_analysis_data(analysis_data)

    analysis_dir = Path(pipeline_dir) / ANALYSIS_DIR
    analysis_dir.mkdir(parents=True, exist_ok=True)

    output = {**analysis_data, "analyzedAt": iso_timestamp()}
    path = analysis_dir / f"{task_name}.analysis.json"
    write_json(path, output)

    logger.info(f"Wrote analysis for task '{task_name}' -> {path}")
    return path
