"""Tests for artifact read/write extraction."""

from textwrap import dedent

import pytest

from pipedash.analysis.errors import StageResolutionError
from pipedash.analysis.extractors import extract_artifact_reads, extract_artifact_writes
from pipedash.analysis.parser import parse_task_source
from pipedash.analysis.types import ArtifactRead, ArtifactWrite, SourceLocation


def reads_of(code: str):
    return extract_artifact_reads(parse_task_source(dedent(code)))


def writes_of(code: str):
    return extract_artifact_writes(parse_task_source(dedent(code)))


class TestArtifactReads:
    """Tests for extract_artifact_reads."""

    def test_string_literal(self):
        result = reads_of("""\
            export async function ingestion({ io }) {
              const data = await io.readArtifact("input.json");
            }
        """)
        assert result.reads == [ArtifactRead(file_name="input.json", stage="ingestion", required=True)]
        assert result.unresolved == []

    def test_single_quotes_and_escapes(self):
        result = reads_of("""\
            export function a({ io }) {
              io.readArtifact('it\\'s.json');
            }
        """)
        assert result.reads[0].file_name == "it's.json"

    def test_read_inside_try_is_optional(self):
        """Reads nested in a try statement are not required."""
        result = reads_of("""\
            export async function load({ io }) {
              try {
                await io.readArtifact("cache.json");
              } catch (e) {}
            }
        """)
        assert result.reads[0].required is False

    def test_read_inside_nested_try_is_optional(self):
        result = reads_of("""\
            export async function load({ io }) {
              try {
                if (ready) {
                  try {
                    for (const x of xs) {
                      await io.readArtifact("deep.json");
                    }
                  } finally {}
                }
              } catch {}
            }
        """)
        assert result.reads[0].required is False

    def test_read_inside_catch_is_optional(self):
        result = reads_of("""\
            export async function load({ io }) {
              try {
                risky();
              } catch (e) {
                await io.readArtifact("fallback.json");
              }
            }
        """)
        assert result.reads[0].required is False

    def test_read_outside_try_is_required(self):
        """A try elsewhere in the stage does not affect other reads."""
        result = reads_of("""\
            export async function load({ io }) {
              try { risky(); } catch {}
              await io.readArtifact("main.json");
            }
        """)
        assert result.reads[0].required is True

    def test_template_without_placeholders(self):
        result = reads_of("""\
            export const load = async ({ io }) => {
              await io.readArtifact(`plain.json`);
            };
        """)
        assert result.reads[0].file_name == "plain.json"
        assert result.reads[0].stage == "load"

    def test_template_placeholder_kept_verbatim(self):
        """Template placeholders stay in the filename as written."""
        result = reads_of("""\
            export async function load({ io }, name) {
              await io.readArtifact(`file-${name}.json`);
            }
        """)
        assert result.reads[0].file_name == "file-${name}.json"
        assert result.unresolved == []

    def test_identifier_argument_is_unresolved(self):
        code = dedent("""\
            export async function load({ io }) {
              const a = 1;
              const name = pick();
              const data = await io.readArtifact(name);
              const b = 2;
              const c = 3;
            }
        """)
        result = extract_artifact_reads(parse_task_source(code))

        assert result.reads == []
        assert len(result.unresolved) == 1
        ref = result.unresolved[0]
        assert ref.expression == "name"
        assert ref.stage == "load"
        assert ref.required is True
        line_text = code.splitlines()[3]
        assert ref.location == SourceLocation(line=4, column=line_text.index("io.readArtifact"))
        assert ref.code_context == "\n".join(code.splitlines()[1:6])

    @pytest.mark.parametrize(
        "argument",
        ["getName()", "config.output", "prefix + '.json'", "names[0]"],
    )
    def test_dynamic_expressions_are_unresolved(self, argument):
        result = reads_of(f"""\
            export function load({{ io }}) {{
              io.readArtifact({argument});
            }}
        """)
        assert result.reads == []
        assert result.unresolved[0].expression == argument

    def test_read_outside_stage_raises(self):
        with pytest.raises(StageResolutionError) as exc_info:
            reads_of("""\
                const data = io.readArtifact("x.json");
                export function stage() {}
            """)
        assert exc_info.value.line == 1
        assert "1:13" in str(exc_info.value)

    def test_read_in_unexported_helper_raises(self):
        with pytest.raises(StageResolutionError):
            reads_of("""\
                function helper(io) {
                  return io.readArtifact("x.json");
                }
                export function stage({ io }) { return helper(io); }
            """)

    def test_ignores_other_objects(self):
        result = reads_of("""\
            export function stage({ fs }) {
              fs.readArtifact("x.json");
              readArtifact("y.json");
            }
        """)
        assert result.reads == []
        assert result.unresolved == []

    def test_reads_in_multiple_stages(self):
        result = reads_of("""\
            export function a({ io }) { io.readArtifact("a.json"); }
            export function b({ io }) { io.readArtifact("b.json"); }
        """)
        assert [(r.file_name, r.stage) for r in result.reads] == [
            ("a.json", "a"),
            ("b.json", "b"),
        ]


class TestArtifactWrites:
    """Tests for extract_artifact_writes."""

    def test_string_literal(self):
        result = writes_of("""\
            export async function output({ io }, data) {
              await io.writeArtifact("result.json", JSON.stringify(data));
            }
        """)
        assert result.writes == [ArtifactWrite(file_name="result.json", stage="output")]

    def test_writes_inside_try_are_recorded(self):
        result = writes_of("""\
            export async function output({ io }) {
              try {
                await io.writeArtifact("result.json", "{}");
              } catch {}
            }
        """)
        assert result.writes == [ArtifactWrite(file_name="result.json", stage="output")]

    def test_dynamic_write_is_unresolved_without_required(self):
        result = writes_of("""\
            export async function output({ io }, outputName) {
              await io.writeArtifact(outputName, "{}");
            }
        """)
        assert result.writes == []
        ref = result.unresolved[0]
        assert ref.expression == "outputName"
        assert ref.required is None
        assert "required" not in ref.to_dict()

    def test_write_outside_stage_raises(self):
        with pytest.raises(StageResolutionError):
            writes_of("""\
                export const value = 1;
                io.writeArtifact("x.json", value);
            """)

    def test_write_in_exported_non_function_raises(self):
        with pytest.raises(StageResolutionError):
            writes_of("""\
                export const handlers = { run: ({ io }) => io.writeArtifact("x.json", "") };
            """)
