"""Stage extraction: exported top-level functions of a task file."""

from ..nodes import exported_functions, is_async, is_named_export, traverse
from ..parser import ParsedSource
from ..types import Stage


def extract_stages(parsed: ParsedSource) -> list[Stage]:
    """Extract exported function stages.

    Recognizes ``export [async] function name() {}`` and
    ``export const name = [async] () => {}`` (or a function expression).
    Exported non-function bindings are ignored.

    Returns:
        Stages sorted by ``order``, the source line of the export statement.
    """
    stages: list[Stage] = []

    def visit_export(node):
        if not is_named_export(node):
            return
        for name, function in exported_functions(node):
            stages.append(
                Stage(name=name, order=parsed.line(node), is_async=is_async(function))
            )

    traverse(parsed.root, {"export_statement": visit_export})
    return sorted(stages, key=lambda stage: stage.order)
