"""Value environment: what each short-named binding actually holds.

The environment is built in three passes over one program:

1. Collect top-level declarations (recursing into function declarations).
   Functions are bound to the value of their first direct ``return``.
2. Merge the assignments harvested from delayed-initialization closures
   (``T(() => { a = "..."; b = 42; })``) in discovery order.
3. Resolve ``Reference`` bindings to a fixed point over immutable snapshots,
   bounded by ``max_resolution_rounds`` so cycles terminate.
"""

import math
import re
from decimal import Decimal
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from decypher.config import Config
from decypher.core.analyzer import template_text
from decypher.core.nodes import identifier_name, is_node, string_value
from decypher.core.parser import Range, node_range, parse_javascript
from decypher.core.schemas import SchemaRecovery, SchemaTree
from decypher.debug import debug_log

_MARKER_PATTERN = re.compile(r"\$\{([A-Za-z_$][\w$]*)\}")


def _is_concat(expr: Optional[dict]) -> bool:
    return is_node(expr, "BinaryExpression") and expr.get("operator") == "+"


def _concat_operands(expr: dict) -> list[dict]:
    """Flatten a chain of ``+`` into its operands, left to right."""
    operands = []
    stack = [expr]
    while stack:
        node = stack.pop()
        if _is_concat(node):
            stack.append(node.get("right"))
            stack.append(node.get("left"))
        else:
            operands.append(node)
    return operands


class ValueKind(str, Enum):
    """Kinds of values a binding can hold."""
    STRING = "string"
    TEMPLATE_LITERAL = "template_literal"
    NUMBER = "number"
    BOOLEAN = "boolean"
    REFERENCE = "reference"
    SCHEMA = "schema"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class SymbolValue:
    """Tagged value held by a binding."""
    kind: ValueKind
    value: Any = None

    @classmethod
    def string(cls, text: str) -> "SymbolValue":
        return cls(ValueKind.STRING, text)

    @classmethod
    def template(cls, text: str) -> "SymbolValue":
        return cls(ValueKind.TEMPLATE_LITERAL, text)

    @classmethod
    def number(cls, value: float) -> "SymbolValue":
        return cls(ValueKind.NUMBER, float(value))

    @classmethod
    def boolean(cls, value: bool) -> "SymbolValue":
        return cls(ValueKind.BOOLEAN, bool(value))

    @classmethod
    def reference(cls, name: str) -> "SymbolValue":
        return cls(ValueKind.REFERENCE, name)

    @classmethod
    def schema(cls, tree: SchemaTree) -> "SymbolValue":
        return cls(ValueKind.SCHEMA, tree)

    @classmethod
    def unresolved(cls) -> "SymbolValue":
        return UNRESOLVED

    @property
    def is_reference(self) -> bool:
        return self.kind is ValueKind.REFERENCE

    @property
    def text(self) -> Optional[str]:
        """Textual payload of string and template values."""
        if self.kind in (ValueKind.STRING, ValueKind.TEMPLATE_LITERAL):
            return self.value
        return None


UNRESOLVED = SymbolValue(ValueKind.UNRESOLVED)


@dataclass
class DelayedInitBlock:
    """Assignments captured from one deferred-initialization closure."""
    assignments: list[tuple[str, SymbolValue]] = field(default_factory=list)
    span: Optional[Range] = None


def js_number_text(number: float) -> str:
    """Format a number the way JavaScript's String(number) does."""
    number = float(number)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "Infinity" if number > 0 else "-Infinity"
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))

    mantissa, _, exponent = repr(number).partition("e")
    if not exponent:
        return mantissa
    power = int(exponent)
    if -7 < power < 21:
        return format(Decimal(repr(number)), "f")
    return f"{mantissa}e{'+' if power > 0 else '-'}{abs(power)}"


def format_js_value(value: SymbolValue) -> Optional[str]:
    """Render a scalar value the way JavaScript interpolation prints it."""
    if value.kind is ValueKind.NUMBER:
        return js_number_text(value.value)
    if value.kind is ValueKind.BOOLEAN:
        return "true" if value.value else "false"
    return value.text


class ValueEnvironment:
    """Name to value table for one program."""

    def __init__(self, program: dict, config: Optional[Config] = None):
        self.config = config or Config()
        self.bindings: dict[str, SymbolValue] = {}
        self.delayed_blocks: list[DelayedInitBlock] = []
        self.resolution_rounds = 0
        self.schema_recovery = SchemaRecovery(self, self.config.schema_namespaces)
        self._program = program
        self._harvested: dict[str, SymbolValue] = {}
        self._blocks_merged = False
        self._build()

    @classmethod
    def from_source(cls, source_code: str, config: Optional[Config] = None) -> "ValueEnvironment":
        """Parse source code and build its environment."""
        config = config or Config()
        return cls(parse_javascript(source_code, config.use_babel_parser).program, config)

    def __contains__(self, name: str) -> bool:
        return name in self.bindings

    def __len__(self) -> int:
        return len(self.bindings)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def _build(self) -> None:
        for stmt in self._program.get("body") or []:
            self._visit_statement(stmt)

        debug_log("debug", "Environment pass 1 complete", {
            "bindings": len(self.bindings),
            "delayed_blocks": len(self.delayed_blocks),
        })

        self.merge_delayed_blocks()
        self.resolve_references()

        debug_log("debug", "Environment built", {
            "bindings": len(self.bindings),
            "resolution_rounds": self.resolution_rounds,
        })

    def _visit_statement(self, stmt: dict) -> None:
        stmt_type = stmt.get("type") if isinstance(stmt, dict) else None

        if stmt_type == "VariableDeclaration":
            for declarator in stmt.get("declarations") or []:
                name = identifier_name(declarator.get("id"))
                init = declarator.get("init")
                if name is not None and init is not None:
                    self.bindings[name] = self.evaluate(init)

        elif stmt_type == "FunctionDeclaration":
            self._visit_function_declaration(stmt)

        elif stmt_type == "ExpressionStatement":
            # Only the side effect (delayed-init capture) matters here
            expression = stmt.get("expression")
            for part in _flatten_sequence(expression):
                if is_node(part, "CallExpression"):
                    self.evaluate(part)

    def _visit_function_declaration(self, func: dict) -> None:
        body = func.get("body")
        statements = body.get("body") if is_node(body, "BlockStatement") else []

        for stmt in statements or []:
            if is_node(stmt, "VariableDeclaration", "FunctionDeclaration", "ExpressionStatement"):
                self._visit_statement(stmt)

        name = identifier_name(func.get("id"))
        if name is None:
            return

        # First return wins; conditional returns later in the body are ignored
        for stmt in statements or []:
            if is_node(stmt, "ReturnStatement") and stmt.get("argument") is not None:
                self.bindings[name] = self.evaluate(stmt["argument"])
                break

    def evaluate(self, expr: Optional[dict]) -> SymbolValue:
        """Evaluate an expression node into a SymbolValue."""
        if not is_node(expr):
            return UNRESOLVED

        expr_type = expr["type"]

        if expr_type == "Literal":
            value = expr.get("value")
            if isinstance(value, str):
                return SymbolValue.string(value)
            if isinstance(value, bool):
                return SymbolValue.boolean(value)
            if isinstance(value, (int, float)):
                return SymbolValue.number(value)
            return UNRESOLVED

        if expr_type == "TemplateLiteral":
            return SymbolValue.template(template_text(expr))

        if expr_type == "Identifier":
            return SymbolValue.reference(expr["name"])

        if expr_type == "UnaryExpression":
            return self._evaluate_unary(expr)

        if expr_type == "CallExpression":
            if self._is_delayed_init_call(expr):
                self._capture_delayed_init(expr)
                return UNRESOLVED
            tree = self.schema_recovery.parse_schema_value(expr)
            if tree is not None:
                return SymbolValue.schema(tree)
            return UNRESOLVED

        return UNRESOLVED

    def _evaluate_unary(self, expr: dict) -> SymbolValue:
        argument = expr.get("argument")
        operator = expr.get("operator")
        if not is_node(argument, "Literal") or not isinstance(argument.get("value"), (int, float)):
            return UNRESOLVED

        value = argument["value"]
        # Minifiers write true/false as !0/!1
        if operator == "!":
            return SymbolValue.boolean(not value)
        if operator == "-" and not isinstance(value, bool):
            return SymbolValue.number(-value)
        return UNRESOLVED

    def _is_delayed_init_call(self, call: dict) -> bool:
        name = identifier_name(call.get("callee"))
        if name is None:
            return False
        return name in self.config.delayed_init_names or (len(name) == 1 and name.isupper())

    def _capture_delayed_init(self, call: dict) -> None:
        args = call.get("arguments") or []
        if not args:
            return

        closure = args[0]
        if not is_node(closure, "ArrowFunctionExpression", "FunctionExpression"):
            return
        if closure.get("params"):
            return

        assignments: list[tuple[str, SymbolValue]] = []
        body = closure.get("body")
        if is_node(body, "BlockStatement"):
            expressions = [
                stmt.get("expression")
                for stmt in body.get("body") or []
                if is_node(stmt, "ExpressionStatement")
            ]
        else:
            expressions = [body]

        for expression in expressions:
            for part in _flatten_sequence(expression):
                if is_node(part, "AssignmentExpression"):
                    self._harvest_assignment(part, assignments)

        if assignments:
            self.delayed_blocks.append(DelayedInitBlock(
                assignments=assignments,
                span=node_range(closure),
            ))
            debug_log("debug", f"Captured delayed-init block with {len(assignments)} assignments")

    def _harvest_assignment(
        self,
        assignment: dict,
        assignments: list[tuple[str, SymbolValue]],
    ) -> SymbolValue:
        name = identifier_name(assignment.get("left"))
        right = assignment.get("right")

        # a = b = "x" binds both names
        if is_node(right, "AssignmentExpression") and right.get("operator") == "=":
            value = self._harvest_assignment(right, assignments)
        else:
            value = self.evaluate(right)

        if name is not None and assignment.get("operator") == "=":
            assignments.append((name, value))
            self._harvested[name] = value
        return value

    def merge_delayed_blocks(self) -> None:
        """Insert captured delayed-init assignments; later writers win."""
        if self._blocks_merged:
            return
        for block in self.delayed_blocks:
            for name, value in block.assignments:
                self.bindings[name] = value
        self._blocks_merged = True
        self._harvested.clear()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_references(self) -> int:
        """Replace Reference bindings with their targets' values.

        Each round reads from a snapshot taken at its start, and a reference is
        only replaced by a non-reference value. Returns the number of rounds run.
        """
        rounds = 0
        for _ in range(self.config.max_resolution_rounds):
            rounds += 1
            snapshot = dict(self.bindings)
            changed = False

            for name, value in snapshot.items():
                if not value.is_reference:
                    continue
                target = snapshot.get(value.value)
                if target is not None and not target.is_reference:
                    self.bindings[name] = target
                    changed = True

            if not changed:
                break

        self.resolution_rounds = rounds
        return rounds

    def resolve_template(self, text: str) -> str:
        """Substitute ${name} markers until a pass changes nothing.

        Unresolvable markers are left as written.
        """
        result = text
        for _ in range(self.config.max_resolution_rounds):
            updated = _MARKER_PATTERN.sub(self._substitute_marker, result)
            if updated == result:
                break
            result = updated
        return result

    def _substitute_marker(self, match: re.Match) -> str:
        value = self._follow(match.group(1))
        if value is None:
            return match.group(0)
        rendered = format_js_value(value)
        return rendered if rendered is not None else match.group(0)

    def _follow(self, name: str) -> Optional[SymbolValue]:
        """Look a name up, following leftover references without revisiting."""
        seen = {name}
        value = self.bindings.get(name)
        while value is not None and value.is_reference and value.value not in seen:
            seen.add(value.value)
            value = self.bindings.get(value.value)
        return value

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_value(self, name: str) -> Optional[SymbolValue]:
        return self.bindings.get(name)

    def get_string_value(self, name: str) -> Optional[str]:
        value = self._follow(name)
        return value.text if value is not None else None

    def get_schema(self, name: str) -> Optional[SchemaTree]:
        value = self._follow(name)
        if value is None:
            value = self._harvested.get(name)
        if value is not None and value.kind is ValueKind.SCHEMA:
            return value.value
        return None

    def resolve_expression(self, expr: Optional[dict]) -> Optional[str]:
        """Resolve an expression to text using the environment."""
        text = string_value(expr)
        if text is not None:
            return text

        if is_node(expr, "TemplateLiteral"):
            return self.resolve_template(template_text(expr))

        name = identifier_name(expr)
        if name is not None:
            value = self.get_string_value(name)
            return self.resolve_template(value) if value is not None else None

        # Calls to a bound zero-argument function yield its first return value
        if is_node(expr, "CallExpression") and not expr.get("arguments"):
            callee = identifier_name(expr.get("callee"))
            if callee is not None:
                value = self.get_string_value(callee)
                return self.resolve_template(value) if value is not None else None

        if _is_concat(expr):
            parts = []
            for operand in _concat_operands(expr):
                text = self.resolve_expression(operand)
                if text is None:
                    return None
                parts.append(text)
            return "".join(parts)

        return None

    def iter_text_values(self) -> Iterator[tuple[str, str]]:
        """Yield (name, fully resolved text) for string and template bindings."""
        for name, value in self.bindings.items():
            text = value.text
            if text is not None:
                yield name, self.resolve_template(text)

    def summary(self) -> dict[str, int]:
        """Count bindings by kind."""
        counts = {kind.value: 0 for kind in ValueKind}
        for value in self.bindings.values():
            counts[value.kind.value] += 1
        counts["delayed_blocks"] = len(self.delayed_blocks)
        counts["resolution_rounds"] = self.resolution_rounds
        return counts


def _flatten_sequence(expr: Optional[dict]) -> list[dict]:
    """Split comma expressions (a = 1, b = 2) into their parts."""
    if is_node(expr, "SequenceExpression"):
        parts = []
        for item in expr.get("expressions") or []:
            parts.extend(_flatten_sequence(item))
        return parts
    if is_node(expr):
        return [expr]
    return []
