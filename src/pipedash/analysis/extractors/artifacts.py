"""Artifact extraction: ``io.readArtifact`` / ``io.writeArtifact`` call sites.

Each call is either resolved (its filename argument is a literal) or recorded
as an UnresolvedRef carrying the argument's source text and a five line code
window, for later LLM-assisted resolution.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from tree_sitter import Node

from ..errors import StageResolutionError
from ..nodes import (
    call_arguments,
    get_stage_name,
    is_identifier,
    is_inside_try,
    literal_string,
    member_parts,
    traverse,
)
from ..parser import ParsedSource
from ..types import ArtifactRead, ArtifactWrite, SourceLocation, UnresolvedRef

logger = logging.getLogger(__name__)

IO_OBJECT = "io"
READ_METHOD = "readArtifact"
WRITE_METHOD = "writeArtifact"


@dataclass
class ArtifactReads:
    reads: list[ArtifactRead] = field(default_factory=list)
    unresolved: list[UnresolvedRef] = field(default_factory=list)


@dataclass
class ArtifactWrites:
    writes: list[ArtifactWrite] = field(default_factory=list)
    unresolved: list[UnresolvedRef] = field(default_factory=list)


def extract_artifact_reads(parsed: ParsedSource) -> ArtifactReads:
    """Extract ``io.readArtifact(...)`` calls.

    A read is required unless the call sits inside a try statement, at any
    nesting depth.

    Raises:
        StageResolutionError: If a call is outside every exported function
    """
    result = ArtifactReads()

    for call in _artifact_calls(parsed, READ_METHOD):
        stage = _require_stage(parsed, call, READ_METHOD)
        required = not is_inside_try(call)
        argument = _first_argument(call)
        file_name = literal_string(argument, parsed)

        if file_name is not None:
            result.reads.append(ArtifactRead(file_name=file_name, stage=stage, required=required))
        else:
            result.unresolved.append(
                _unresolved(parsed, call, argument, stage, required=required)
            )

    logger.debug(
        f"{parsed.file_name}: {len(result.reads)} reads, {len(result.unresolved)} unresolved"
    )
    return result


def extract_artifact_writes(parsed: ParsedSource) -> ArtifactWrites:
    """Extract ``io.writeArtifact(...)`` calls.

    Raises:
        StageResolutionError: If a call is outside every exported function
    """
    result = ArtifactWrites()

    for call in _artifact_calls(parsed, WRITE_METHOD):
        stage = _require_stage(parsed, call, WRITE_METHOD)
        argument = _first_argument(call)
        file_name = literal_string(argument, parsed)

        if file_name is not None:
            result.writes.append(ArtifactWrite(file_name=file_name, stage=stage))
        else:
            result.unresolved.append(_unresolved(parsed, call, argument, stage))

    logger.debug(
        f"{parsed.file_name}: {len(result.writes)} writes, {len(result.unresolved)} unresolved"
    )
    return result


def _artifact_calls(parsed: ParsedSource, method: str) -> list[Node]:
    calls: list[Node] = []

    def visit_call(node):
        parts = member_parts(node.child_by_field_name("function"))
        if parts is None:
            return
        obj, name = parts
        if name == method and is_identifier(obj, IO_OBJECT):
            calls.append(node)

    traverse(parsed.root, {"call_expression": visit_call})
    return calls


def _require_stage(parsed: ParsedSource, call: Node, method: str) -> str:
    stage = get_stage_name(call)
    if stage is None:
        raise StageResolutionError(
            f"{IO_OBJECT}.{method}", parsed.line(call), parsed.column(call)
        )
    return stage


def _first_argument(call: Node) -> Optional[Node]:
    arguments = call_arguments(call)
    return arguments[0] if arguments else None


def _unresolved(
    parsed: ParsedSource,
    call: Node,
    argument: Optional[Node],
    stage: str,
    required: Optional[bool] = None,
) -> UnresolvedRef:
    line = parsed.line(call)
    return UnresolvedRef(
        expression=parsed.text(argument) if argument is not None else "",
        code_context=parsed.context_window(line),
        stage=stage,
        required=required,
        location=SourceLocation(line=line, column=parsed.column(call)),
    )
