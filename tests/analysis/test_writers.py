"""Tests for the analysis and schema writers."""

import json
import re

import pytest

from pipedash.analysis import analyze_task
from pipedash.analysis.enrichers import (
    build_schema_prompt_section,
    load_schema_files,
    schema_base_name,
    write_analysis_file,
    write_schema_files,
)
from pipedash.analysis.errors import InvalidAnalysisDataError, InvalidSchemaDataError
from pipedash.analysis.types import DeducedSchema

ISO_TIMESTAMP = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


def analysis_data(**overrides):
    data = analyze_task(
        'export function a({ io }) { io.writeArtifact("out.json", "{}"); }'
    ).to_dict(task_file_path="tasks/a.js")
    data.update(overrides)
    return data


class TestWriteAnalysisFile:
    """Tests for write_analysis_file."""

    def test_writes_pretty_json_with_timestamp(self, tmp_path):
        path = write_analysis_file(tmp_path, "research", analysis_data())

        assert path == tmp_path / "analysis" / "research.analysis.json"
        text = path.read_text()
        assert text.startswith('{\n  "taskFilePath"')
        written = json.loads(text)
        assert written["taskFilePath"] == "tasks/a.js"
        assert written["artifacts"]["writes"] == [{"fileName": "out.json", "stage": "a"}]
        assert ISO_TIMESTAMP.match(written["analyzedAt"])

    def test_overwrites_previous_analysis(self, tmp_path):
        write_analysis_file(tmp_path, "research", analysis_data(models=[{"x": 1}]))
        path = write_analysis_file(tmp_path, "research", analysis_data())
        assert json.loads(path.read_text())["models"] == []

    def test_unresolved_lists_are_optional(self, tmp_path):
        data = analysis_data()
        del data["artifacts"]["unresolvedReads"]
        del data["artifacts"]["unresolvedWrites"]
        write_analysis_file(tmp_path, "research", data)

    @pytest.mark.parametrize(
        "overrides, field, actual",
        [
            ({"taskFilePath": None}, "taskFilePath", "None"),
            ({"taskFilePath": 12}, "taskFilePath", "int"),
            ({"stages": {}}, "stages", "dict"),
            ({"artifacts": []}, "artifacts", "list"),
            ({"artifacts": {"reads": [], "writes": "x"}}, "artifacts.writes", "str"),
            ({"artifacts": {"reads": None, "writes": []}}, "artifacts.reads", "None"),
            (
                {"artifacts": {"reads": [], "writes": [], "unresolvedReads": {}}},
                "artifacts.unresolvedReads",
                "dict",
            ),
            ({"models": "deepseek"}, "models", "str"),
        ],
    )
    def test_invalid_data_rejected_before_io(self, tmp_path, overrides, field, actual):
        with pytest.raises(InvalidAnalysisDataError) as exc_info:
            write_analysis_file(tmp_path, "research", analysis_data(**overrides))

        assert exc_info.value.field == field
        assert f"Invalid analysis_data.{field}" in str(exc_info.value)
        assert f"but got {actual}" in str(exc_info.value)
        assert not (tmp_path / "analysis").exists()

    def test_non_mapping_rejected(self, tmp_path):
        with pytest.raises(InvalidAnalysisDataError):
            write_analysis_file(tmp_path, "research", ["not", "a", "dict"])


SCHEMA = {"$schema": "http://json-schema.org/draft-07/schema#", "type": "object"}


class TestWriteSchemaFiles:
    """Tests for write_schema_files."""

    def test_writes_three_files(self, tmp_path):
        files = write_schema_files(
            tmp_path, "research-output.json", {"schema": SCHEMA, "example": {"a": 1}, "reasoning": "r"}
        )

        schemas_dir = tmp_path / "schemas"
        assert files.schema == schemas_dir / "research-output.schema.json"
        assert json.loads(files.schema.read_text()) == SCHEMA
        assert json.loads(files.sample.read_text()) == {"a": 1}
        meta = json.loads(files.meta.read_text())
        assert meta["source"] == "llm-deduction"
        assert meta["reasoning"] == "r"
        assert ISO_TIMESTAMP.match(meta["generatedAt"])

    def test_strips_only_final_extension(self, tmp_path):
        files = write_schema_files(
            tmp_path, "data.backup.json", {"schema": SCHEMA, "example": {}, "reasoning": ""}
        )
        assert files.schema.name == "data.backup.schema.json"
        assert files.sample.name == "data.backup.sample.json"
        assert files.meta.name == "data.backup.meta.json"

    def test_accepts_deduced_schema(self, tmp_path):
        files = write_schema_files(tmp_path, "a.json", DeducedSchema(SCHEMA, [1, 2], "why"))
        assert json.loads(files.sample.read_text()) == [1, 2]

    @pytest.mark.parametrize("example", [0, False, "", "text", []])
    def test_primitive_examples_allowed(self, tmp_path, example):
        files = write_schema_files(
            tmp_path, "a.json", {"schema": SCHEMA, "example": example, "reasoning": ""}
        )
        assert json.loads(files.sample.read_text()) == example

    def test_overwrites_silently(self, tmp_path):
        write_schema_files(tmp_path, "a.json", {"schema": SCHEMA, "example": 1, "reasoning": "old"})
        files = write_schema_files(
            tmp_path, "a.json", {"schema": SCHEMA, "example": 2, "reasoning": "new"}
        )
        assert json.loads(files.meta.read_text())["reasoning"] == "new"

    @pytest.mark.parametrize(
        "data, field",
        [
            ({"example": {}, "reasoning": ""}, "schema"),
            ({"schema": [], "example": {}, "reasoning": ""}, "schema"),
            ({"schema": SCHEMA, "example": None, "reasoning": ""}, "example"),
            ({"schema": SCHEMA, "reasoning": ""}, "example"),
            ({"schema": SCHEMA, "example": {}}, "reasoning"),
        ],
    )
    def test_invalid_data_rejected_before_io(self, tmp_path, data, field):
        with pytest.raises(InvalidSchemaDataError) as exc_info:
            write_schema_files(tmp_path, "a.json", data)
        assert exc_info.value.field == field
        assert not (tmp_path / "schemas").exists()


class TestLoadSchemaFiles:
    """Tests for load_schema_files and build_schema_prompt_section."""

    def test_round_trip(self, tmp_path):
        write_schema_files(tmp_path, "a.json", {"schema": SCHEMA, "example": {"x": 1}, "reasoning": ""})
        stored = load_schema_files(tmp_path, "a.json")
        assert stored.exists
        assert stored.schema == SCHEMA
        assert stored.sample == {"x": 1}
        assert stored.meta["source"] == "llm-deduction"

    def test_missing_files(self, tmp_path):
        stored = load_schema_files(tmp_path, "missing.json")
        assert not stored.exists
        assert stored.sample is None
        assert stored.meta is None

    def test_prompt_section(self, tmp_path):
        write_schema_files(tmp_path, "a.json", {"schema": SCHEMA, "example": {"x": 1}, "reasoning": ""})
        section = build_schema_prompt_section(
            [("a.json", load_schema_files(tmp_path, "a.json")), ("b.json", load_schema_files(tmp_path, "b.json"))]
        )
        assert section.startswith("## Referenced Files\n\n### @a.json")
        assert "**JSON Schema:**" in section
        assert '"x": 1' in section
        assert "@b.json" not in section

    def test_prompt_section_empty(self):
        assert build_schema_prompt_section([]) == ""

    def test_schema_base_name(self):
        assert schema_base_name("data.backup.json") == "data.backup"
        assert schema_base_name("notes") == "notes"
