"""End-to-end semantic extraction for one JavaScript source."""

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from decypher.config import Config
from decypher.core.analyzer import Analyzer
from decypher.core.configs import ConfigExtractor, ConfigValue
from decypher.core.environment import ValueEnvironment
from decypher.core.fragments import ExtractedDocument, FragmentAssembler
from decypher.core.generator import regenerate_code
from decypher.core.parser import ParseResult, parse_javascript
from decypher.core.strings import InterestingString, StringExtractor
from decypher.core.tools import ToolRecord, ToolRecordBuilder
from decypher.debug import debug_log


@dataclass
class ExtractionSummary:
    """Counts describing one extraction run."""
    documents: int = 0
    tools: int = 0
    configs: int = 0
    strings: int = 0
    bindings: int = 0
    resolution_rounds: int = 0
    parse_errors: int = 0
    document_categories: dict[str, int] = field(default_factory=dict)
    config_categories: dict[str, int] = field(default_factory=dict)
    average_tool_confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": self.documents,
            "tools": self.tools,
            "configs": self.configs,
            "strings": self.strings,
            "bindings": self.bindings,
            "resolution_rounds": self.resolution_rounds,
            "parse_errors": self.parse_errors,
            "document_categories": dict(self.document_categories),
            "config_categories": dict(self.config_categories),
            "average_tool_confidence": round(self.average_tool_confidence, 2),
        }


@dataclass
class ExtractionResult:
    """Everything recovered from one program."""
    documents: list[ExtractedDocument]
    tools: list[ToolRecord]
    configs: list[ConfigValue]
    strings: list[InterestingString]
    environment: ValueEnvironment
    parse_errors: list[str] = field(default_factory=list)

    def summary(self) -> ExtractionSummary:
        confidences = [tool.confidence for tool in self.tools]
        return ExtractionSummary(
            documents=len(self.documents),
            tools=len(self.tools),
            configs=len(self.configs),
            strings=len(self.strings),
            bindings=len(self.environment),
            resolution_rounds=self.environment.resolution_rounds,
            parse_errors=len(self.parse_errors),
            document_categories=dict(Counter(doc.category.value for doc in self.documents)),
            config_categories=dict(Counter(value.category.value for value in self.configs)),
            average_tool_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
        )


class Extractor:
    """Wires parsing, value resolution, fragment assembly and tool building."""

    def __init__(self, source_code: str, config: Optional[Config] = None):
        self.source_code = source_code
        self.config = config or Config()

    @classmethod
    def from_file(cls, file_path: Path, config: Optional[Config] = None) -> "Extractor":
        return cls(file_path.read_text(encoding="utf-8"), config)

    def run(self) -> ExtractionResult:
        parse_result: ParseResult = parse_javascript(self.source_code, self.config.use_babel_parser)
        program = parse_result.program

        environment = ValueEnvironment(program, self.config)
        analyzer = Analyzer(program)

        documents = FragmentAssembler(environment, analyzer, self.config).assemble()

        regenerated = regenerate_code(self.source_code, self.config.beautify_indent_size)
        tools = ToolRecordBuilder(environment, analyzer, documents, self.config).build(regenerated)

        configs = ConfigExtractor(analyzer, self.config).extract()
        strings = StringExtractor(analyzer, self.config).extract()

        result = ExtractionResult(
            documents=documents,
            tools=tools,
            configs=configs,
            strings=strings,
            environment=environment,
            parse_errors=parse_result.errors,
        )
        debug_log("info", "Extraction complete", result.summary().to_dict())
        return result


def extract_source(source_code: str, config: Optional[Config] = None) -> ExtractionResult:
    """Run a full extraction over source code."""
    return Extractor(source_code, config).run()
