"""Core extraction functionality."""

from decypher.core.environment import SymbolValue, ValueEnvironment, ValueKind
from decypher.core.extractor import ExtractionResult, Extractor
from decypher.core.fragments import ExtractedDocument, FragmentAssembler
from decypher.core.parser import parse_javascript
from decypher.core.schemas import SchemaRecovery, SchemaTree
from decypher.core.tools import ToolRecord, ToolRecordBuilder

__all__ = [
    "ExtractedDocument",
    "ExtractionResult",
    "Extractor",
    "FragmentAssembler",
    "SchemaRecovery",
    "SchemaTree",
    "SymbolValue",
    "ToolRecord",
    "ToolRecordBuilder",
    "ValueEnvironment",
    "ValueKind",
    "parse_javascript",
]
