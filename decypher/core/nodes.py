"""Helpers for walking ESTree dictionaries."""

from typing import Iterator, Optional

# Keys that hold metadata rather than child nodes
_SKIP_KEYS = {"loc", "range", "regex"}

FUNCTION_TYPES = ("FunctionExpression", "ArrowFunctionExpression", "FunctionDeclaration")


def is_node(value, *types: str) -> bool:
    """Check that value is an AST node, optionally of one of the given types."""
    if not isinstance(value, dict) or "type" not in value:
        return False
    return not types or value["type"] in types


def iter_children(node: dict) -> Iterator[dict]:
    """Yield the direct child nodes of a node in source order."""
    for key, value in node.items():
        if key in _SKIP_KEYS:
            continue
        if is_node(value):
            yield value
        elif isinstance(value, list):
            for item in value:
                if is_node(item):
                    yield item


def walk(node: dict) -> Iterator[dict]:
    """Pre-order traversal over every node below (and including) node."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        children = list(iter_children(current))
        stack.extend(reversed(children))


def string_value(node: Optional[dict]) -> Optional[str]:
    """Return the value of a string literal node."""
    if is_node(node, "Literal") and isinstance(node.get("value"), str):
        return node["value"]
    return None


def template_is_static(node: dict) -> bool:
    """A template literal without interpolations."""
    return is_node(node, "TemplateLiteral") and not node.get("expressions")


def quasi_text(quasi: dict) -> str:
    """Text of a template element, cooked when the parser provides it."""
    value = quasi.get("value")
    if isinstance(value, dict):
        text = value.get("cooked")
        if text is None:
            text = value.get("raw")
        return text or ""
    if isinstance(value, str):
        return value
    return ""


def identifier_name(node: Optional[dict]) -> Optional[str]:
    if is_node(node, "Identifier"):
        return node.get("name")
    return None


def property_key(prop: dict) -> Optional[str]:
    """Return the static key of an object property."""
    if not is_node(prop, "Property") or prop.get("computed"):
        return None
    key = prop.get("key")
    name = identifier_name(key)
    if name is not None:
        return name
    if is_node(key, "Literal") and key.get("value") is not None:
        value = key["value"]
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    return None


def member_property_name(member: Optional[dict]) -> Optional[str]:
    """Name of a non-computed member access (obj.name)."""
    if not is_node(member, "MemberExpression") or member.get("computed"):
        return None
    return identifier_name(member.get("property"))


def function_body_statements(func: dict) -> list[dict]:
    """Statements of a function body; expression-bodied arrows have none."""
    body = func.get("body")
    if is_node(body, "BlockStatement"):
        return body.get("body") or []
    return []


def first_return_argument(func: dict) -> Optional[dict]:
    """Argument of the first direct return statement of a function.

    Expression-bodied arrow functions return their body expression.
    """
    body = func.get("body")
    if is_node(func, "ArrowFunctionExpression") and is_node(body) and not is_node(body, "BlockStatement"):
        return body

    for stmt in function_body_statements(func):
        if is_node(stmt, "ReturnStatement") and stmt.get("argument") is not None:
            return stmt["argument"]
    return None
