"""Schema recovery from builder call chains (k.object(), k.string().describe(), ...)."""

from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional

from decypher.core.nodes import (
    identifier_name,
    is_node,
    member_property_name,
    property_key,
    string_value,
    template_is_static,
    quasi_text,
)

BUILDER_METHODS = {"object", "strictObject", "array", "string", "number", "boolean", "enum"}

_OBJECT_METHODS = {"object", "strictObject"}

# Chained refinements that do not change the base type
SCHEMA_MODIFIERS = {
    "optional", "nullable", "nullish", "default", "catch", "readonly",
    "min", "max", "length", "int", "positive", "nonnegative", "negative",
    "url", "email", "uuid", "regex", "trim", "strict", "passthrough", "refine",
}

_TYPE_TAGS = {
    "string": "string",
    "number": "number",
    "boolean": "boolean",
    "object": "object",
    "strictObject": "object",
    "array": "array",
    "enum": "string",
}


@dataclass
class SchemaTree:
    """Reduced JSON-Schema node: type, properties, required, description."""
    type: Optional[str] = None
    properties: Optional[dict[str, "SchemaTree"]] = None
    required: Optional[list[str]] = None
    description: Optional[str] = None

    def __post_init__(self):
        if self.required:
            known = self.properties or {}
            missing = [name for name in self.required if name not in known]
            if missing:
                raise ValueError(f"Required names missing from properties: {missing}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.type is not None:
            data["type"] = self.type
        if self.properties is not None:
            data["properties"] = {name: child.to_dict() for name, child in self.properties.items()}
        if self.required:
            data["required"] = list(self.required)
        if self.description is not None:
            data["description"] = self.description
        return data

    def with_description(self, description: str) -> "SchemaTree":
        return replace(self, description=description)


class SchemaRecovery:
    """Reinterpret builder-style call chains as SchemaTree values.

    Named references are looked up through ``environment.get_schema`` and
    description identifiers through ``environment.get_string_value``.
    """

    def __init__(self, environment: Any = None, namespaces: Iterable[str] = ("k",)):
        self.environment = environment
        self.namespaces = set(namespaces)

    def parse_builder_call(self, call: dict) -> Optional[SchemaTree]:
        """Parse a top-level builder call such as k.object({...}) or k.string()."""
        method = self._namespace_method(call)
        if method not in BUILDER_METHODS:
            return None

        if method in _OBJECT_METHODS:
            args = call.get("arguments") or []
            if len(args) != 1 or not is_node(args[0], "ObjectExpression"):
                return None
            return self.parse_object_schema(args[0])

        return SchemaTree(type=_TYPE_TAGS[method])

    def parse_object_schema(self, obj_expr: dict) -> SchemaTree:
        """Parse an object literal as an object schema.

        Every discovered property is marked required; optional fields are not
        distinguished.
        """
        properties: dict[str, SchemaTree] = {}
        required: list[str] = []

        for prop in obj_expr.get("properties") or []:
            key = property_key(prop)
            if key is None:
                continue

            value = self.parse_schema_value(prop.get("value"))
            properties[key] = value if value is not None else SchemaTree()
            if key not in required:
                required.append(key)

        return SchemaTree(
            type="object",
            properties=properties,
            required=required or None,
        )

    def parse_schema_value(self, expr: Optional[dict]) -> Optional[SchemaTree]:
        """Resolve a property value expression to a schema node."""
        if is_node(expr, "Identifier"):
            if self.environment is None:
                return None
            return self.environment.get_schema(expr["name"])

        if not is_node(expr, "CallExpression"):
            return None

        callee = expr.get("callee")
        method = member_property_name(callee)

        # k.string().describe("...")
        if method == "describe":
            base = self.parse_schema_value(callee.get("object")) or SchemaTree()
            args = expr.get("arguments") or []
            description = self._describe_text(args[0]) if args else None
            if description is None:
                return base
            return base.with_description(description)

        namespace_method = self._namespace_method(expr)
        if namespace_method is not None:
            if namespace_method in _OBJECT_METHODS:
                parsed = self.parse_builder_call(expr)
                if parsed is not None:
                    return parsed
            return SchemaTree(type=_TYPE_TAGS.get(namespace_method))

        # Modifier chains such as k.string().optional() keep the receiver's type
        if method in SCHEMA_MODIFIERS:
            return self.parse_schema_value(callee.get("object"))

        return None

    def _namespace_method(self, call: dict) -> Optional[str]:
        if not is_node(call, "CallExpression"):
            return None
        callee = call.get("callee")
        method = member_property_name(callee)
        if method is None:
            return None
        if identifier_name(callee.get("object")) not in self.namespaces:
            return None
        return method

    def _describe_text(self, arg: dict) -> Optional[str]:
        text = string_value(arg)
        if text is not None:
            return text
        if template_is_static(arg):
            return "".join(quasi_text(q) for q in arg.get("quasis") or [])
        name = identifier_name(arg)
        if name is not None and self.environment is not None:
            return self.environment.get_string_value(name)
        return None
