"""Configuration management for decypher."""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Load .env from multiple locations
# 1. Current working directory
load_dotenv()
# 2. Project directory (where this package is installed)
_package_dir = Path(__file__).parent
load_dotenv(_package_dir.parent / ".env")
# 3. Home directory config
load_dotenv(Path.home() / ".config" / "decypher" / ".env")


# Tool identities recognized without the shape test, in association priority order
KNOWN_TOOLS = [
    "Bash", "Read", "Write", "Edit", "Grep", "Glob", "Task",
    "TodoWrite", "NotebookEdit", "WebFetch", "WebSearch",
    "Skill", "SlashCommand", "AskUserQuestion", "ExitPlanMode",
    "BashOutput", "KillShell", "LSP", "ListMcpResources", "ReadMcpResource",
]


class Config(BaseSettings):
    """Configuration for decypher."""

    # Parsing
    use_babel_parser: bool = Field(
        default=True,
        description="Parse with @babel/parser through Node.js when available, falling back to esprima",
    )

    # Value environment
    delayed_init_names: list[str] = Field(
        default_factory=lambda: ["lazy_init"],
        description="Callee names treated as delayed-initialization wrappers (single uppercase letters always are)",
    )
    max_resolution_rounds: int = Field(
        default=10,
        ge=1,
        description="Upper bound on reference and template resolution rounds",
    )

    # Schema recovery
    schema_namespaces: list[str] = Field(
        default_factory=lambda: ["k", "z"],
        description="Identifiers exposing schema builder methods (object, string, ...)",
    )

    # Classification
    literal_min_prompt_length: int = Field(
        default=80,
        description="Minimum length for a raw AST literal to be considered documentation",
    )
    symbol_min_prompt_length: int = Field(
        default=60,
        description="Minimum length for a resolved environment value to be considered documentation",
    )

    # Fragment assembly
    merge_window: int = Field(default=5, ge=0, description="How many following candidates to scan for a continuation")
    indent_tolerance: int = Field(default=2, ge=0, description="Max indentation difference for continuation fragments")
    dedup_key_length: int = Field(default=100, ge=1, description="Prefix length used as the deduplication key")

    # Tool records
    known_tools: list[str] = Field(default_factory=lambda: list(KNOWN_TOOLS), description="Tool name allow-list")
    excluded_name_prefixes: list[str] = Field(
        default_factory=lambda: ["SIG", "SYSRES", "ERROR", "HTTP", "CONST"],
        description="Capitalized values starting with these prefixes are never tool names",
    )
    description_window_before: int = Field(default=1000, description="Characters searched before a tool name occurrence")
    description_window_after: int = Field(default=2000, description="Characters searched after a tool name occurrence")
    description_min_span: int = Field(default=100, description="Minimum length of a proximity description")
    description_max_span: int = Field(default=500, description="Maximum length of a proximity description")
    enrichment_length_ratio: float = Field(
        default=2.0,
        description="A document this many times longer than the current description replaces it",
    )
    enrichment_confidence_threshold: float = Field(
        default=0.8,
        description="Records below this confidence are always replaced by a matching document",
    )
    short_description_length: int = Field(default=200, description="Characters kept in short descriptions")

    # Supplemental extractors
    config_max_length: int = Field(default=200, description="Literals longer than this are never configuration values")
    strings_limit: int = Field(default=1000, description="Maximum number of interesting strings reported")

    # Regeneration
    beautify_indent_size: int = Field(default=2, description="Indent size for the regenerated program text")

    # Output Settings
    output_dir: Optional[Path] = Field(default=None, description="Output directory for extraction results")

    model_config = {
        "env_prefix": "DECYPHER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("excluded_name_prefixes", mode="after")
    @classmethod
    def normalize_prefixes(cls, v: list[str]) -> list[str]:
        """Excluded prefixes name constant-style values, which are upper case."""
        return [prefix.upper() for prefix in v]

    @field_validator("description_max_span", mode="after")
    @classmethod
    def validate_span(cls, v: int, info) -> int:
        """Keep the proximity span bounds ordered."""
        min_span = info.data.get("description_min_span", 0)
        if v < min_span:
            return min_span
        return v
