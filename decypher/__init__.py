"""Decypher - semantic extraction from minified JavaScript bundles."""

__version__ = "0.1.0"
__author__ = "decypher"

from decypher.config import Config
from decypher.core.environment import ValueEnvironment
from decypher.core.extractor import Extractor, extract_source
from decypher.core.parser import parse_javascript

__all__ = [
    "__version__",
    "Config",
    "Extractor",
    "ValueEnvironment",
    "extract_source",
    "parse_javascript",
]
