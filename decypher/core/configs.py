"""Configuration value extraction (model names, endpoints, environment keys)."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from decypher.config import Config
from decypher.core.analyzer import Analyzer, StringLiteralInfo
from decypher.debug import debug_log

CONFIG_MARKERS = [
    "claude-sonnet",
    "claude-opus",
    "anthropic",
    ".com/",
    "http://",
    "https://",
    "/api/",
    "VERSION",
    "CLAUDE_",
    "API_KEY",
]


class ConfigCategory(str, Enum):
    MODEL = "Model"
    API = "API"
    TELEMETRY = "Telemetry"
    PATH = "Path"
    TIMEOUT = "Timeout"
    FEATURE = "Feature"
    OTHER = "Other"


@dataclass
class ConfigValue:
    """A configuration value found in the program."""
    key: str
    value: str
    value_type: str
    category: ConfigCategory

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "value_type": self.value_type,
            "category": self.category.value,
        }


def categorize_config(value: str) -> ConfigCategory:
    if "sonnet" in value or "opus" in value or "haiku" in value:
        return ConfigCategory.MODEL
    if "/api/" in value or "anthropic.com" in value:
        return ConfigCategory.API
    if "telemetry" in value or "metric" in value:
        return ConfigCategory.TELEMETRY
    if "/" in value or "\\" in value:
        return ConfigCategory.PATH
    if "timeout" in value or "ms" in value:
        return ConfigCategory.TIMEOUT
    if "feature" in value or "flag" in value:
        return ConfigCategory.FEATURE
    return ConfigCategory.OTHER


class ConfigExtractor:
    """Finds short literals that look like configuration."""

    def __init__(self, analyzer: Analyzer, config: Optional[Config] = None):
        self.analyzer = analyzer
        self.config = config or Config()

    def is_likely_config(self, literal: StringLiteralInfo) -> bool:
        if literal.is_template or literal.length > self.config.config_max_length:
            return False
        return any(marker in literal.value for marker in CONFIG_MARKERS)

    def extract(self) -> list[ConfigValue]:
        configs = []
        for idx, literal in enumerate(self.analyzer.find_string_literals()):
            if not self.is_likely_config(literal):
                continue
            configs.append(ConfigValue(
                key=literal.owner or f"config_{idx}",
                value=literal.value,
                value_type="string",
                category=categorize_config(literal.value),
            ))

        debug_log("debug", f"Extracted {len(configs)} configuration values")
        return configs
