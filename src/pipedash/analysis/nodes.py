"""Syntax tree helpers shared by the extractors."""

import re
from typing import Callable, Iterator, Optional

from tree_sitter import Node

from .parser import ParsedSource

Visitor = Callable[[Node], None]

EXPORTED_FUNCTION_KINDS = frozenset({"function_declaration", "generator_function_declaration"})
BINDING_KINDS = frozenset({"lexical_declaration", "variable_declaration"})
# "function" is the function expression kind in older grammar releases
FUNCTION_VALUE_KINDS = frozenset(
    {"arrow_function", "function_expression", "function", "generator_function"}
)


def walk(root: Node) -> Iterator[Node]:
    """Yield every node under ``root`` in pre-order, source order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def traverse(root: Node, visitors: dict[str, Visitor]) -> None:
    """Call ``visitors[node.type]`` for every node that has a visitor."""
    for node in walk(root):
        visitor = visitors.get(node.type)
        if visitor is not None:
            visitor(node)


def find_ancestor(node: Node, predicate: Callable[[Node], bool]) -> Optional[Node]:
    current = node.parent
    while current is not None:
        if predicate(current):
            return current
        current = current.parent
    return None


def is_inside_try(node: Node) -> bool:
    """True if any ancestor is a try statement (block, catch or finally)."""
    return find_ancestor(node, lambda n: n.type == "try_statement") is not None


def is_named_export(node: Node) -> bool:
    return node.type == "export_statement" and not any(
        child.type == "default" for child in node.children
    )


def is_async(node: Node) -> bool:
    return any(child.type == "async" for child in node.children)


def exported_functions(export: Node) -> Iterator[tuple[str, Node]]:
    """Yield ``(name, function_node)`` for each function an export declares.

    Handles ``export function name() {}`` and
    ``export const name = () => {}`` / ``= function () {}``. Non-function
    bindings are skipped.
    """
    declaration = export.child_by_field_name("declaration")
    if declaration is None:
        return
    if declaration.type in EXPORTED_FUNCTION_KINDS:
        name = declaration.child_by_field_name("name")
        if name is not None:
            yield name.text.decode("utf-8"), declaration
    elif declaration.type in BINDING_KINDS:
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            if (
                name is not None
                and name.type == "identifier"
                and value is not None
                and value.type in FUNCTION_VALUE_KINDS
            ):
                yield name.text.decode("utf-8"), value


def get_stage_name(node: Node) -> Optional[str]:
    """Name of the exported function that lexically contains ``node``.

    Returns None when the node is not inside a named export, or is inside an
    exported binding whose value is not a function.
    """
    export = find_ancestor(node, lambda n: n.type == "export_statement")
    if export is None or not is_named_export(export):
        return None
    for name, function in exported_functions(export):
        if function.start_byte <= node.start_byte and node.end_byte <= function.end_byte:
            return name
    return None


def call_arguments(call: Node) -> list[Node]:
    """Argument nodes of a call, comments excluded.

    A tagged template (``io.readArtifact`file.json```) has the template
    itself as its only argument.
    """
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return []
    if arguments.type == "template_string":
        return [arguments]
    return [child for child in arguments.named_children if child.type != "comment"]


def member_parts(node: Node) -> Optional[tuple[Node, str]]:
    """Split ``object.property`` into (object node, property name)."""
    if node is None or node.type != "member_expression":
        return None
    obj = node.child_by_field_name("object")
    prop = node.child_by_field_name("property")
    if obj is None or prop is None or prop.type != "property_identifier":
        return None
    return obj, prop.text.decode("utf-8")


def is_identifier(node: Optional[Node], name: Optional[str] = None) -> bool:
    if node is None or node.type != "identifier":
        return False
    return name is None or node.text.decode("utf-8") == name


def literal_string(node: Optional[Node], parsed: ParsedSource) -> Optional[str]:
    """Static string value of a literal argument, or None.

    String literals and template literals without substitutions yield their
    cooked value. Template literals with substitutions yield their source
    text with the ``${...}`` placeholders kept verbatim, so downstream
    readers can see the naming pattern.
    """
    if node is None:
        return None
    if node.type == "string":
        return decode_escapes(parsed.text(node)[1:-1])
    if node.type == "template_string":
        inner = parsed.text(node)[1:-1]
        if any(child.type == "template_substitution" for child in node.named_children):
            return inner
        return decode_escapes(inner)
    return None


_ESCAPE = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|.)", re.DOTALL
)
_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
    "\n": "",
    "\r\n": "",
    "\r": "",
}


def decode_escapes(raw: str) -> str:
    """Apply JavaScript string escape sequences."""

    def replace(match: re.Match) -> str:
        seq = match.group(1)
        if seq.startswith("u{"):
            return chr(int(seq[2:-1], 16))
        if seq[0] in "ux" and len(seq) > 1:
            return chr(int(seq[1:], 16))
        return _SIMPLE_ESCAPES.get(seq, seq)

    return _ESCAPE.sub(replace, raw)
