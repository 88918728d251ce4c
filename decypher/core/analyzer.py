"""Collection of string literals and object literals from a parsed program."""

from dataclasses import dataclass, field
from typing import Iterator, Optional

from decypher.core.nodes import (
    identifier_name,
    is_node,
    iter_children,
    member_property_name,
    property_key,
    quasi_text,
)


@dataclass
class StringLiteralInfo:
    """A string or template literal found in the program."""
    value: str
    length: int
    line: Optional[int] = None
    owner: Optional[str] = None
    is_template: bool = False


@dataclass
class PropertyInfo:
    """Information about an object property."""
    key: Optional[str]
    is_method: bool
    value: Optional[dict] = None


@dataclass
class ObjectExpressionInfo:
    """An object literal found in the program."""
    node: dict
    properties: list[PropertyInfo] = field(default_factory=list)
    owner: Optional[str] = None

    @property
    def property_count(self) -> int:
        return len(self.properties)

    def get(self, key: str) -> Optional[PropertyInfo]:
        for prop in self.properties:
            if prop.key == key:
                return prop
        return None


def _line_of(node: dict) -> Optional[int]:
    loc = node.get("loc")
    if isinstance(loc, dict):
        return (loc.get("start") or {}).get("line")
    return None


def _owner_name(target: Optional[dict]) -> Optional[str]:
    """Name a value is stored under: x = ..., obj.x = ..."""
    return identifier_name(target) or member_property_name(target)


def template_text(template: dict) -> str:
    """Template literal text with each interpolation shown as ${name} or ${...}."""
    quasis = template.get("quasis") or []
    expressions = template.get("expressions") or []
    parts = []
    for i, quasi in enumerate(quasis):
        parts.append(quasi_text(quasi))
        if i < len(expressions):
            name = identifier_name(expressions[i])
            parts.append("${%s}" % name if name else "${...}")
    return "".join(parts)


def _walk_with_owner(program: dict) -> Iterator[tuple[dict, Optional[str]]]:
    """Pre-order walk yielding (node, owner) where owner names the binding or
    property a node is directly assigned to."""
    stack: list[tuple[dict, Optional[str]]] = [(program, None)]
    while stack:
        node, owner = stack.pop()
        yield node, owner

        node_type = node.get("type")
        children: list[tuple[dict, Optional[str]]] = []

        if node_type == "VariableDeclarator":
            name = identifier_name(node.get("id"))
            if is_node(node.get("init")):
                children.append((node["init"], name))
        elif node_type == "Property":
            if is_node(node.get("key")) and node.get("computed"):
                children.append((node["key"], None))
            if is_node(node.get("value")):
                children.append((node["value"], property_key(node)))
        elif node_type == "AssignmentExpression":
            if is_node(node.get("left")):
                children.append((node["left"], None))
            if is_node(node.get("right")):
                children.append((node["right"], _owner_name(node.get("left"))))
        else:
            children = [(child, None) for child in iter_children(node)]

        stack.extend(reversed(children))


class Analyzer:
    """Finds literal values and object shapes in an ESTree program."""

    def __init__(self, program: dict):
        self.program = program

    def find_string_literals(self) -> list[StringLiteralInfo]:
        """Collect every string literal and template literal in source order.

        Template literals are reported whole, with interpolations shown as
        placeholders.
        """
        literals = []
        for node, owner in _walk_with_owner(self.program):
            node_type = node.get("type")
            if node_type == "Literal" and isinstance(node.get("value"), str):
                value = node["value"]
            elif node_type == "TemplateLiteral":
                value = template_text(node)
            else:
                continue

            if not value:
                continue
            literals.append(StringLiteralInfo(
                value=value,
                length=len(value),
                line=_line_of(node),
                owner=owner,
                is_template=node_type == "TemplateLiteral",
            ))
        return literals

    def find_object_expressions(self) -> list[ObjectExpressionInfo]:
        """Collect every object literal, nested ones included."""
        objects = []
        for node, owner in _walk_with_owner(self.program):
            if node.get("type") != "ObjectExpression":
                continue

            properties = []
            for prop in node.get("properties") or []:
                if not is_node(prop, "Property"):
                    continue
                value = prop.get("value")
                properties.append(PropertyInfo(
                    key=property_key(prop),
                    is_method=bool(prop.get("method")) or prop.get("kind") in ("get", "set"),
                    value=value,
                ))

            objects.append(ObjectExpressionInfo(node=node, properties=properties, owner=owner))
        return objects
