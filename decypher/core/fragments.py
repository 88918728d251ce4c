"""Documentation fragment assembly.

Candidates come from two channels: raw literals found in the AST, and the
resolved string values of the value environment (which sees text hidden behind
aliases and template interpolation). Candidates are then associated with tools,
tagged as sections, merged when split, and deduplicated.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from decypher.config import Config
from decypher.core.analyzer import Analyzer
from decypher.core.classifier import (
    DEFAULT_TOOL_RULES,
    DocumentCategory,
    ToolRule,
    associate_tool,
    categorize,
    is_likely_prompt,
)
from decypher.core.environment import ValueEnvironment
from decypher.debug import debug_log

INCOMPLETE_ENDINGS = ("...", " -", " *", " `", "\\")

CLOSING_CHARS = set(".!?\"')]}`")

CONTINUATION_ANCHORS = ("Example", "Usage")

_HEADING = re.compile(r"^#{1,6}\s+(.+)$")


@dataclass
class DocumentContext:
    """Where a document sits: on its own, in a tool's docs, or in a larger prompt."""
    kind: str = "standalone"
    tool: Optional[str] = None
    parent: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def standalone(cls) -> "DocumentContext":
        return cls()

    @classmethod
    def tool_documentation(cls, tool: str) -> "DocumentContext":
        return cls(kind="tool_documentation", tool=tool)

    @classmethod
    def section(cls, parent: str, name: str) -> "DocumentContext":
        return cls(kind="section", parent=parent, name=name)

    def to_dict(self) -> dict[str, Any]:
        if self.kind == "tool_documentation":
            return {"type": self.kind, "tool": self.tool}
        if self.kind == "section":
            return {"type": self.kind, "parent": self.parent, "name": self.name}
        return {"type": self.kind}


@dataclass
class ExtractedDocument:
    """A recovered documentation text."""
    id: str
    content: str
    category: DocumentCategory
    context: DocumentContext = field(default_factory=DocumentContext)
    associated_tool: Optional[str] = None
    merged_fragment_ids: list[str] = field(default_factory=list)

    @property
    def length(self) -> int:
        return len(self.content)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "content": self.content,
            "length": self.length,
            "category": self.category.value,
            "context": self.context.to_dict(),
        }
        if self.associated_tool is not None:
            data["associated_tool"] = self.associated_tool
        if self.merged_fragment_ids:
            data["merged_fragment_ids"] = list(self.merged_fragment_ids)
        return data


def is_incomplete_fragment(content: str) -> bool:
    """Check if a text looks cut off mid-sentence."""
    stripped = content.strip()
    if not stripped:
        return False

    if stripped.endswith(INCOMPLETE_ENDINGS):
        return True

    if stripped[-1] not in CLOSING_CHARS:
        # Fenced code and example blocks end without punctuation
        return not (stripped.endswith("```") or re.search(r"</[\w-]+>$", stripped))

    return False


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


def is_continuation(first: str, second: str, indent_tolerance: int = 2) -> bool:
    """Check if second reads as the continuation of first."""
    first_lines = first.splitlines()
    second_lines = second.splitlines()

    if first_lines and second_lines:
        first_indent = _indent(first_lines[-1])
        second_indent = _indent(second_lines[0])
        if first_indent > 0 and abs(first_indent - second_indent) <= indent_tolerance:
            return True

    first_end = first[-50:]
    second_start = second[:50]
    return any(anchor in first_end and anchor in second_start for anchor in CONTINUATION_ANCHORS)


class FragmentAssembler:
    """Builds the deduplicated document set for one program."""

    def __init__(
        self,
        environment: ValueEnvironment,
        analyzer: Analyzer,
        config: Optional[Config] = None,
        rules: Sequence[ToolRule] = DEFAULT_TOOL_RULES,
    ):
        self.environment = environment
        self.analyzer = analyzer
        self.config = config or environment.config
        self.rules = rules

    def assemble(self) -> list[ExtractedDocument]:
        """Run every stage and return the final documents."""
        candidates = self.collect_literal_candidates()
        literal_count = len(candidates)
        candidates.extend(self.collect_environment_candidates())

        debug_log("debug", "Fragment candidates collected", {
            "literals": literal_count,
            "environment": len(candidates) - literal_count,
        })

        self.associate_tools(candidates)
        self.tag_sections(candidates)
        merged = self.merge_fragments(candidates)
        documents = self.deduplicate(merged)

        debug_log("info", f"Assembled {len(documents)} documents from {len(candidates)} candidates")
        return documents

    def collect_literal_candidates(self) -> list[ExtractedDocument]:
        documents = []
        for idx, literal in enumerate(self.analyzer.find_string_literals()):
            if not is_likely_prompt(literal.value, self.config.literal_min_prompt_length):
                continue
            documents.append(ExtractedDocument(
                id=f"lit_{idx}",
                content=literal.value,
                category=categorize(literal.value),
            ))
        return documents

    def collect_environment_candidates(self) -> list[ExtractedDocument]:
        documents = []
        for name, text in self.environment.iter_text_values():
            if not is_likely_prompt(text, self.config.symbol_min_prompt_length):
                continue
            documents.append(ExtractedDocument(
                id=f"sym_{name}",
                content=text,
                category=categorize(text),
            ))
        return documents

    def associate_tools(self, documents: list[ExtractedDocument]) -> None:
        """Tag Tool documents with the first rule that claims them."""
        for document in documents:
            if document.category is not DocumentCategory.TOOL:
                continue
            tool = associate_tool(document.content, self.rules)
            if tool is not None:
                document.associated_tool = tool
                document.context = DocumentContext.tool_documentation(tool)

    def tag_sections(self, documents: list[ExtractedDocument]) -> None:
        """Headed documents following a System document are sections of it."""
        parent: Optional[ExtractedDocument] = None
        for document in documents:
            if document.category is DocumentCategory.SYSTEM:
                parent = document
                continue
            if parent is None or document.associated_tool is not None:
                continue

            first_line = document.content.lstrip().split("\n", 1)[0]
            match = _HEADING.match(first_line)
            if match:
                document.context = DocumentContext.section(parent.id, match.group(1).strip())

    def merge_fragments(self, documents: list[ExtractedDocument]) -> list[ExtractedDocument]:
        """Join incomplete documents with continuations found a few positions later."""
        result = []
        used: set[int] = set()
        window = self.config.merge_window

        for i, document in enumerate(documents):
            if i in used:
                continue
            used.add(i)

            content = document.content
            merged_ids = [document.id]

            if is_incomplete_fragment(content):
                for j in range(i + 1, min(i + window + 1, len(documents))):
                    if j in used:
                        continue
                    other = documents[j]
                    if is_continuation(content, other.content, self.config.indent_tolerance):
                        content += other.content
                        merged_ids.append(other.id)
                        used.add(j)
                        debug_log("debug", f"Merged fragment {other.id} into {document.id}")

            document.content = content
            document.merged_fragment_ids = merged_ids if len(merged_ids) > 1 else []
            result.append(document)

        return result

    def deduplicate(self, documents: list[ExtractedDocument]) -> list[ExtractedDocument]:
        """Drop documents sharing a prefix key, keeping the longer one in place."""
        key_length = self.config.dedup_key_length
        positions: dict[str, int] = {}
        result: list[ExtractedDocument] = []

        for document in documents:
            key = document.content[:key_length]
            existing = positions.get(key)
            if existing is None:
                positions[key] = len(result)
                result.append(document)
            elif document.length > result[existing].length:
                result[existing] = document

        return result
