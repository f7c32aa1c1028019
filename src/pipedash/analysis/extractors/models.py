"""Model-call extraction: calls into the ``llm`` capability object.

Two passes over the tree:

1. Collect destructuring aliases, ``const { deepseek } = llm;``
2. Match ``llm.<provider>.<method>(...)`` and ``<alias>.<method>(...)``

Aliases are collected file-wide, so an alias declared in one stage is also
recognized in another.
"""

import logging

from tree_sitter import Node

from ..errors import StageResolutionError
from ..nodes import get_stage_name, is_identifier, member_parts, traverse
from ..parser import ParsedSource
from ..types import ModelCall

logger = logging.getLogger(__name__)

LLM_OBJECT = "llm"


def collect_llm_aliases(parsed: ParsedSource) -> dict[str, str]:
    """Map local names destructured from ``llm`` to their provider names.

    ``const { deepseek } = llm`` maps deepseek -> deepseek;
    ``const { deepseek: ds } = llm`` maps ds -> deepseek.
    """
    aliases: dict[str, str] = {}

    def visit_declarator(node):
        pattern = node.child_by_field_name("name")
        value = node.child_by_field_name("value")
        if pattern is None or pattern.type != "object_pattern":
            return
        if not is_identifier(value, LLM_OBJECT):
            return
        for prop in pattern.named_children:
            if prop.type == "shorthand_property_identifier_pattern":
                name = parsed.text(prop)
                aliases[name] = name
            elif prop.type == "object_assignment_pattern":
                left = prop.child_by_field_name("left")
                if left is not None and left.type == "shorthand_property_identifier_pattern":
                    name = parsed.text(left)
                    aliases[name] = name
            elif prop.type == "pair_pattern":
                key = prop.child_by_field_name("key")
                local = prop.child_by_field_name("value")
                if key is not None and key.type == "property_identifier" and is_identifier(local):
                    aliases[parsed.text(local)] = parsed.text(key)

    traverse(parsed.root, {"variable_declarator": visit_declarator})
    return aliases


def extract_llm_calls(parsed: ParsedSource) -> list[ModelCall]:
    """Extract LLM provider method calls in source order.

    Raises:
        StageResolutionError: If a call is outside every exported function
    """
    aliases = collect_llm_aliases(parsed)
    calls: list[ModelCall] = []

    def visit_call(node: Node):
        parts = member_parts(node.child_by_field_name("function"))
        if parts is None:
            return
        obj, method = parts

        provider = None
        direct = member_parts(obj)
        if direct is not None and is_identifier(direct[0], LLM_OBJECT):
            provider = direct[1]
        elif obj.type == "identifier" and parsed.text(obj) in aliases:
            provider = aliases[parsed.text(obj)]

        if provider is None:
            return

        stage = get_stage_name(node)
        if stage is None:
            raise StageResolutionError("LLM", parsed.line(node), parsed.column(node))
        calls.append(ModelCall(provider=provider, method=method, stage=stage))

    traverse(parsed.root, {"call_expression": visit_call})
    logger.debug(f"{parsed.file_name}: {len(calls)} LLM calls, {len(aliases)} aliases")
    return calls
