"""Task source parsing.

Task files are JavaScript ES modules. They are parsed with tree-sitter's
JavaScript grammar (JSX included). tree-sitter recovers from syntax errors
instead of failing, so any ERROR or missing node in the resulting tree is
reported as a ParseError at the first such node.
"""

import logging
from typing import Optional

import tree_sitter_javascript as tsjs
from tree_sitter import Language, Node, Parser, Tree

from .errors import ParseError

logger = logging.getLogger(__name__)

JS_LANGUAGE = Language(tsjs.language())

FUNCTION_KINDS = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "function_expression",
        "function",
        "generator_function",
        "arrow_function",
        "method_definition",
    }
)
BLOCK_SCOPE_KINDS = frozenset({"program", "statement_block"})


class ParsedSource:
    """A parsed task file: the syntax tree plus the text it came from.

    Nodes only carry byte offsets, so text and location lookups go through
    this object.
    """

    def __init__(self, code: str, tree: Tree, file_name: str = "<task>"):
        self.code = code
        self.tree = tree
        self.file_name = file_name
        self._source = code.encode("utf-8")
        # tree-sitter rows only break on \n
        self._lines = [line[:-1] if line.endswith("\r") else line for line in code.split("\n")]
        if self._lines and self._lines[-1] == "":
            self._lines.pop()

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def text(self, node: Node) -> str:
        """Source text spanned by a node."""
        return self._source[node.start_byte : node.end_byte].decode("utf-8")

    def line(self, node: Node) -> int:
        """1-indexed line of the node's start."""
        return node.start_point[0] + 1

    def column(self, node: Node) -> int:
        """0-indexed character column of the node's start."""
        line_start = self._source.rfind(b"\n", 0, node.start_byte) + 1
        return len(self._source[line_start : node.start_byte].decode("utf-8", errors="replace"))

    def line_text(self, line: int) -> str:
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1]
        return ""

    def context_window(self, line: int, before: int = 2, after: int = 2) -> str:
        """Lines around ``line`` (1-indexed), clamped to the file bounds."""
        index = line - 1
        start = max(0, index - before)
        return "\n".join(self._lines[start : index + after + 1])


def parse_task_source(code: str, file_name: str = "<task>") -> ParsedSource:
    """Parse task source code.

    Besides grammar errors, a few early errors that module code must not
    contain are rejected: ``return`` outside a function, ``await`` in a
    non-async function and duplicate lexical declarations in one scope.

    Args:
        code: JavaScript module source
        file_name: Name used in diagnostics

    Returns:
        ParsedSource wrapping the syntax tree

    Raises:
        ParseError: If the source has a syntax error. The parser diagnostic
            is chained as a SyntaxError cause.
    """
    parser = Parser(JS_LANGUAGE)
    tree = parser.parse(code.encode("utf-8"))
    parsed = ParsedSource(code=code, tree=tree, file_name=file_name)

    if tree.root_node.has_error:
        node = _first_error_node(tree.root_node) or tree.root_node
        _raise_syntax_error(parsed, node, _describe(parsed, node))

    early = _first_early_error(parsed)
    if early is not None:
        _raise_syntax_error(parsed, *early)

    logger.debug(f"Parsed {file_name} ({parsed.line_count} lines)")
    return parsed


def _raise_syntax_error(parsed: ParsedSource, node: Node, diagnostic: str) -> None:
    line = parsed.line(node)
    column = parsed.column(node) + 1
    cause = SyntaxError(diagnostic, (parsed.file_name, line, column, parsed.line_text(line)))
    raise ParseError(
        f"Failed to parse task source code at line {line}, column {column}: {diagnostic}",
        line=line,
        column=column,
    ) from cause


def _first_error_node(root: Node) -> Optional[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


def _describe(parsed: ParsedSource, node: Node) -> str:
    if node.is_missing:
        return f"missing {node.type!r}"
    snippet = parsed.text(node).strip().splitlines()
    if not snippet:
        return "unexpected end of input"
    token = snippet[0]
    if len(token) > 30:
        token = token[:30] + "..."
    return f"unexpected token {token!r}"


def _first_early_error(parsed: ParsedSource) -> Optional[tuple[Node, str]]:
    """First early error in source order, as ``(node, diagnostic)``."""
    stack = [parsed.root]
    while stack:
        node = stack.pop()
        if node.type == "return_statement" and _enclosing_function(node) is None:
            return node, "'return' outside of function"
        if node.type == "await_expression":
            function = _enclosing_function(node)
            if function is not None and not _is_async_function(function):
                return node, "'await' is only allowed within async functions"
        if node.type in BLOCK_SCOPE_KINDS:
            duplicate = _duplicate_declaration(parsed, node)
            if duplicate is not None:
                name = parsed.text(duplicate)
                return duplicate, f"Identifier '{name}' has already been declared"
        stack.extend(reversed(node.children))
    return None


def _enclosing_function(node: Node) -> Optional[Node]:
    current = node.parent
    while current is not None:
        if current.type in FUNCTION_KINDS:
            return current
        current = current.parent
    return None


def _is_async_function(node: Node) -> bool:
    return any(child.type == "async" for child in node.children)


def _duplicate_declaration(parsed: ParsedSource, scope: Node) -> Optional[Node]:
    """Second identifier bound twice by let/const/class (or top-level function) in a scope.

    Only plain identifier bindings are checked; destructuring patterns are not.
    """
    seen: set[str] = set()
    for name in _scope_bindings(scope):
        text = parsed.text(name)
        if text in seen:
            return name
        seen.add(text)
    return None


def _scope_bindings(scope: Node):
    for statement in scope.named_children:
        if statement.type == "export_statement":
            statement = statement.child_by_field_name("declaration")
            if statement is None:
                continue
        if statement.type == "lexical_declaration":
            for declarator in statement.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name = declarator.child_by_field_name("name")
                if name is not None and name.type == "identifier":
                    yield name
        elif statement.type == "class_declaration" or (
            # Module top-level functions are lexical; in function bodies they may repeat
            scope.type == "program"
            and statement.type in ("function_declaration", "generator_function_declaration")
        ):
            name = statement.child_by_field_name("name")
            if name is not None:
                yield name
