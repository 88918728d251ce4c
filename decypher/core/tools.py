"""Tool record building.

Tool names and descriptions are discovered in the regenerated program text,
where adjacent declarations are easy to match, and in tool-shaped object
literals of the AST. Records found by both channels are fused, then upgraded
with the best matching assembled document.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from decypher.config import Config
from decypher.core.analyzer import Analyzer, ObjectExpressionInfo
from decypher.core.classifier import (
    DEFAULT_TOOL_RULES,
    DocumentCategory,
    ToolRule,
    is_code_fragment,
    is_tool_prompt_for,
    is_valid_tool_description,
)
from decypher.core.environment import ValueEnvironment, ValueKind
from decypher.core.fragments import ExtractedDocument
from decypher.core.nodes import FUNCTION_TYPES, first_return_argument, is_node
from decypher.core.parser import fix_surrogates
from decypher.core.schemas import SchemaTree
from decypher.debug import debug_log

PLACEHOLDER_PREFIXES = ("Tool:", "A powerful search tool")

# The terminator is a lookahead so "var a = "Read", b = "Write";" yields both
_NAME_DECLARATION = re.compile(
    r'(?:\b(?:var|let|const)\s+|,\s*)([\w$]+)\s*=\s*"([A-Z][a-zA-Z]+)"\s*(?=([,;]))'
)

# Quoted strings and statement ends, scanned left to right
_STATEMENT_TOKEN = re.compile(r'"(?:[^"\\\n]|\\.)*"|`(?:[^`\\]|\\.)*`|;')

_FOLLOWING_TEMPLATE = re.compile(
    r'\s*(?:(?:var|let|const)\s+)?[\w$]+\s*=\s*`((?:[^`\\]|\\.)*)`'
)

_QUOTED_SPAN = re.compile(r'`((?:[^`\\]|\\.)*)`|"((?:[^"\\\n]|\\.)*)"')

_INPUT_SCHEMA = re.compile(r"inputSchema:\s*([\w$]+)")

_JS_ESCAPE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|.)", re.DOTALL)

_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


@dataclass
class ToolProperties:
    """Behavioral flags declared on a tool object."""
    is_strict: bool = False
    is_enabled: bool = True
    is_read_only: bool = False
    is_concurrency_safe: bool = False
    user_facing_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "is_strict": self.is_strict,
            "is_enabled": self.is_enabled,
            "is_read_only": self.is_read_only,
            "is_concurrency_safe": self.is_concurrency_safe,
        }
        if self.user_facing_name is not None:
            data["user_facing_name"] = self.user_facing_name
        return data


@dataclass
class ToolRecord:
    """A recovered tool: name, documentation, schema and confidence."""
    name: str
    short_description: str = ""
    full_prompt: str = ""
    input_schema: Optional[SchemaTree] = None
    output_schema: Optional[SchemaTree] = None
    properties: ToolProperties = field(default_factory=ToolProperties)
    confidence: float = 0.0
    enriched: bool = field(default=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.name:
            raise ValueError("ToolRecord requires a non-empty name")

    @property
    def is_placeholder(self) -> bool:
        text = self.full_prompt or self.short_description
        return not text or text.startswith(PLACEHOLDER_PREFIXES)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "name": self.name,
            "short_description": self.short_description,
            "full_prompt": self.full_prompt,
        }
        if self.input_schema is not None:
            data["input_schema"] = self.input_schema.to_dict()
        if self.output_schema is not None:
            data["output_schema"] = self.output_schema.to_dict()
        data["properties"] = self.properties.to_dict()
        data["confidence"] = round(self.confidence, 2)
        return data


def compute_confidence(
    name: str,
    short_description: str,
    full_prompt: str,
    schema: Optional[SchemaTree],
) -> float:
    """Add up independent evidence weights, capped at 1.0."""
    score = 0.0
    if name:
        score += 0.2
    if len(short_description) >= 20:
        score += 0.2
    if len(full_prompt) >= 100:
        score += 0.4
    if schema is not None:
        score += 0.2
    return min(round(score, 2), 1.0)


def unescape_js(text: str) -> str:
    """Decode backslash escapes of a JavaScript string body."""

    def replace(match: re.Match) -> str:
        escape = match.group(1)
        if escape.startswith("u{"):
            code_point = int(escape[2:-1], 16)
            if code_point > 0x10FFFF:
                # Not a valid code point; keep the escape as written
                return match.group(0)
            return chr(code_point)
        if escape[0] in "ux" and len(escape) > 1:
            return chr(int(escape[1:], 16))
        if escape == "\n":
            # Line continuation
            return ""
        return _SIMPLE_ESCAPES.get(escape, escape)

    return fix_surrogates(_JS_ESCAPE.sub(replace, text))


class ToolRecordBuilder:
    """Fuses text discovery, object literals and documents into tool records."""

    def __init__(
        self,
        environment: ValueEnvironment,
        analyzer: Analyzer,
        documents: Sequence[ExtractedDocument],
        config: Optional[Config] = None,
        rules: Sequence[ToolRule] = DEFAULT_TOOL_RULES,
    ):
        self.environment = environment
        self.analyzer = analyzer
        self.documents = list(documents)
        self.config = config or environment.config
        self.rules = rules

    def build(self, regenerated_text: str) -> list[ToolRecord]:
        """Run every channel and return the final records in discovery order."""
        records: dict[str, ToolRecord] = {}

        for record in self.discover_from_text(regenerated_text):
            self._add(records, record)
        text_count = len(records)

        for record in self.discover_from_objects():
            self._add(records, record)

        debug_log("debug", "Tool candidates discovered", {
            "text_channel": text_count,
            "total": len(records),
        })

        result = list(records.values())
        self.enrich(result)

        debug_log("info", f"Built {len(result)} tool records", {
            record.name: record.confidence for record in result
        })
        return result

    def _add(self, records: dict[str, ToolRecord], record: ToolRecord) -> None:
        existing = records.get(record.name)
        records[record.name] = record if existing is None else fuse_records(existing, record)

    # ------------------------------------------------------------------
    # Regenerated text channel
    # ------------------------------------------------------------------

    def is_likely_tool_name(self, name: str) -> bool:
        """Allow-listed names, or capitalized words that are not constants."""
        if name in self.config.known_tools:
            return True
        if len(name) < 3 or len(name) > 20:
            return False
        if name.startswith(tuple(self.config.excluded_name_prefixes)):
            return False
        return name[0].isupper()

    def discover_from_text(self, code: str) -> list[ToolRecord]:
        records = []
        for match in _NAME_DECLARATION.finditer(code):
            var_name, tool_name, terminator = match.groups()
            if not self.is_likely_tool_name(tool_name):
                continue

            description = self.find_description(code, match, terminator)
            schema = self.find_input_schema(code, var_name)

            if description:
                description = self.environment.resolve_template(unescape_js(description))
                full_prompt = description
                short_description = description[:self.config.short_description_length]
            else:
                full_prompt = ""
                short_description = f"Tool: {tool_name}"

            record = ToolRecord(
                name=tool_name,
                short_description=short_description,
                full_prompt=full_prompt,
                input_schema=schema,
            )
            record.confidence = compute_confidence(
                record.name,
                "" if record.is_placeholder else short_description,
                full_prompt,
                schema,
            )
            debug_log("debug", f"Tool name {tool_name} bound to {var_name}", {
                "description_length": len(full_prompt),
                "has_schema": schema is not None,
                "confidence": record.confidence,
            })
            records.append(record)
        return records

    def find_description(self, code: str, match: re.Match, terminator: str) -> Optional[str]:
        """Try the co-declared, following-template and proximity strategies in order."""
        after = match.end() + 1
        if terminator == ",":
            description = self._co_declared_description(code, after)
            if description:
                return description

        following = _FOLLOWING_TEMPLATE.match(code, after)
        if following:
            return following.group(1)[:self.config.description_max_span]

        return self._nearby_description(code, match.start(2))

    def _co_declared_description(self, code: str, start: int) -> Optional[str]:
        """First prose string literal later in the same declaration statement."""
        end = min(len(code), start + self.config.description_window_after)
        for token in _STATEMENT_TOKEN.finditer(code, start, end):
            text = token.group(0)
            if text == ";":
                return None
            if text.startswith('"'):
                body = text[1:-1]
                if any(ch.isspace() for ch in body):
                    return body
        return None

    def _nearby_description(self, code: str, position: int) -> Optional[str]:
        """First quoted prose span of a plausible length around a name occurrence."""
        start = max(0, position - self.config.description_window_before)
        end = min(len(code), position + self.config.description_window_after)
        min_span = self.config.description_min_span
        max_span = self.config.description_max_span

        for span in _QUOTED_SPAN.finditer(code, start, end):
            body = span.group(1) if span.group(1) is not None else span.group(2)
            if not min_span <= len(body) <= max_span:
                continue
            if is_code_fragment(body) or not is_valid_tool_description(body):
                continue
            return body
        return None

    def find_input_schema(self, code: str, var_name: str) -> Optional[SchemaTree]:
        """Schema bound to the identifier a tool object declares as inputSchema."""
        anchor = re.compile(r"name:\s*%s\s*," % re.escape(var_name))
        for occurrence in anchor.finditer(code):
            window = code[occurrence.end():occurrence.end() + self.config.description_window_after]
            linked = _INPUT_SCHEMA.search(window)
            if linked is None:
                continue
            schema = self.environment.get_schema(linked.group(1))
            if schema is not None:
                return schema
        return None

    # ------------------------------------------------------------------
    # AST object channel
    # ------------------------------------------------------------------

    def discover_from_objects(self) -> list[ToolRecord]:
        records = []
        for obj in self.analyzer.find_object_expressions():
            if not self.is_tool_object(obj):
                continue
            record = self.record_from_object(obj)
            if record is not None:
                records.append(record)
        return records

    @staticmethod
    def _is_function_property(obj: ObjectExpressionInfo, key: str) -> bool:
        prop = obj.get(key)
        return prop is not None and (prop.is_method or is_node(prop.value, *FUNCTION_TYPES))

    def is_tool_object(self, obj: ObjectExpressionInfo) -> bool:
        """A name plus a description or prompt function, or an input schema."""
        if obj.get("name") is None:
            return False
        return (
            self._is_function_property(obj, "description")
            or self._is_function_property(obj, "prompt")
            or obj.get("inputSchema") is not None
        )

    def record_from_object(self, obj: ObjectExpressionInfo) -> Optional[ToolRecord]:
        name = self.environment.resolve_expression(obj.get("name").value)
        if not name:
            return None

        full_prompt = self._returned_text(obj, "prompt") or ""
        short_description = self._returned_text(obj, "description")
        if short_description is None:
            short_description = full_prompt[:self.config.short_description_length]

        input_schema = self._schema_property(obj, "inputSchema")
        record = ToolRecord(
            name=name,
            short_description=short_description,
            full_prompt=full_prompt,
            input_schema=input_schema,
            output_schema=self._schema_property(obj, "outputSchema"),
            properties=self._tool_properties(obj),
        )
        record.confidence = compute_confidence(name, short_description, full_prompt, input_schema)
        debug_log("debug", f"Tool object {name}", {"confidence": record.confidence})
        return record

    def _returned_text(self, obj: ObjectExpressionInfo, key: str) -> Optional[str]:
        prop = obj.get(key)
        if prop is None:
            return None
        if is_node(prop.value, *FUNCTION_TYPES):
            return self.environment.resolve_expression(first_return_argument(prop.value))
        return self.environment.resolve_expression(prop.value)

    def _schema_property(self, obj: ObjectExpressionInfo, key: str) -> Optional[SchemaTree]:
        prop = obj.get(key)
        if prop is None:
            return None
        return self.environment.schema_recovery.parse_schema_value(prop.value)

    def _flag(self, obj: ObjectExpressionInfo, key: str) -> Optional[bool]:
        prop = obj.get(key)
        if prop is None:
            return None
        expr = prop.value
        if is_node(expr, *FUNCTION_TYPES):
            expr = first_return_argument(expr)
        value = self.environment.evaluate(expr)
        if value.kind is ValueKind.BOOLEAN:
            return value.value
        return None

    def _tool_properties(self, obj: ObjectExpressionInfo) -> ToolProperties:
        properties = ToolProperties()
        for key, attribute in (
            ("strict", "is_strict"),
            ("isEnabled", "is_enabled"),
            ("isReadOnly", "is_read_only"),
            ("isConcurrencySafe", "is_concurrency_safe"),
        ):
            flag = self._flag(obj, key)
            if flag is not None:
                setattr(properties, attribute, flag)

        properties.user_facing_name = self._returned_text(obj, "userFacingName")
        return properties

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    def find_best_document(self, tool_name: str) -> Optional[ExtractedDocument]:
        """Longest document for a tool: associated, then rule-matched, then mentioned."""
        strategies = (
            lambda doc: doc.associated_tool == tool_name,
            lambda doc: is_tool_prompt_for(doc.content, tool_name, self.rules),
            lambda doc: (
                doc.category is DocumentCategory.TOOL
                and tool_name in doc.content[:200]
                and doc.length > 200
                and is_valid_tool_description(doc.content)
            ),
        )
        for matches in strategies:
            candidates = [doc for doc in self.documents if matches(doc)]
            if candidates:
                return max(candidates, key=lambda doc: doc.length)
        return None

    def should_replace(self, record: ToolRecord, document: ExtractedDocument) -> bool:
        current = len(record.full_prompt or record.short_description)
        return (
            document.length >= current * self.config.enrichment_length_ratio
            or record.confidence < self.config.enrichment_confidence_threshold
            or record.is_placeholder
        )

    def enrich(self, records: list[ToolRecord]) -> None:
        """Upgrade each record at most once from its best matching document."""
        for record in records:
            if record.enriched:
                continue
            record.enriched = True

            document = self.find_best_document(record.name)
            if document is None or not self.should_replace(record, document):
                continue

            previous = len(record.full_prompt)
            record.full_prompt = document.content
            record.short_description = document.content[:self.config.short_description_length]
            record.confidence = max(record.confidence, 1.0)
            debug_log("debug", f"Enriched tool {record.name} from {document.id}", {
                "previous_length": previous,
                "new_length": document.length,
            })


def fuse_records(first: ToolRecord, second: ToolRecord) -> ToolRecord:
    """Combine two records for the same tool without lowering confidence."""
    primary, secondary = first, second
    if len(second.full_prompt) > len(first.full_prompt):
        primary, secondary = second, first

    short_description = primary.short_description
    if primary.is_placeholder or not short_description:
        if not secondary.is_placeholder and secondary.short_description:
            short_description = secondary.short_description

    fused = ToolRecord(
        name=first.name,
        short_description=short_description,
        full_prompt=primary.full_prompt,
        input_schema=first.input_schema or second.input_schema,
        output_schema=first.output_schema or second.output_schema,
        # Declared flags only come from object literals
        properties=second.properties,
    )
    evidence = compute_confidence(
        fused.name,
        "" if fused.is_placeholder else fused.short_description,
        fused.full_prompt,
        fused.input_schema,
    )
    fused.confidence = max(evidence, first.confidence, second.confidence)
    return fused
