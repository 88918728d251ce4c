"""Interesting string extraction: URLs, paths, messages and code snippets."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from decypher.config import Config
from decypher.core.analyzer import Analyzer
from decypher.debug import debug_log

MIN_RELEVANCE = 0.3


class StringCategory(str, Enum):
    URL = "Url"
    PATH = "Path"
    ERROR_MESSAGE = "ErrorMessage"
    LOG_MESSAGE = "LogMessage"
    DOCUMENTATION = "Documentation"
    CODE_SNIPPET = "CodeSnippet"
    OTHER = "Other"


@dataclass
class InterestingString:
    value: str
    length: int
    category: StringCategory
    relevance: float

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "length": self.length,
            "category": self.category.value,
            "relevance": self.relevance,
        }


def categorize_string(value: str) -> tuple[StringCategory, float]:
    """Return the category of a string and how relevant it is."""
    length = len(value)

    if value.startswith(("http://", "https://")):
        return StringCategory.URL, 0.9
    if value.startswith("/") or "\\" in value or "./" in value:
        return StringCategory.PATH, 0.7
    if value.startswith(("Error:", "Failed")):
        return StringCategory.ERROR_MESSAGE, 0.8
    if "[INFO]" in value or "[ERROR]" in value or "[DEBUG]" in value:
        return StringCategory.LOG_MESSAGE, 0.6
    if length > 50 and ("/**" in value or "///" in value):
        return StringCategory.DOCUMENTATION, 0.5
    if "function" in value or "const " in value or "=>" in value:
        return StringCategory.CODE_SNIPPET, 0.4
    if 20 < length < 200:
        return StringCategory.OTHER, 0.3
    return StringCategory.OTHER, 0.0


class StringExtractor:
    """Ranks the program's string literals by how informative they are."""

    def __init__(self, analyzer: Analyzer, config: Optional[Config] = None):
        self.analyzer = analyzer
        self.config = config or Config()

    def extract(self) -> list[InterestingString]:
        strings = []
        for literal in self.analyzer.find_string_literals():
            if literal.length < 5:
                continue
            category, relevance = categorize_string(literal.value)
            if relevance < MIN_RELEVANCE:
                continue
            strings.append(InterestingString(
                value=literal.value,
                length=literal.length,
                category=category,
                relevance=relevance,
            ))

        strings.sort(key=lambda s: s.relevance, reverse=True)
        strings = strings[:self.config.strings_limit]

        debug_log("debug", f"Extracted {len(strings)} interesting strings")
        return strings
