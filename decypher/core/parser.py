"""JavaScript AST parsing using @babel/parser (via Node.js) or esprima.

Babel understands current syntax (optional chaining, nullish coalescing,
object spread); esprima stops at ES2017 and is the fallback when Node.js or
the Babel package is missing. Both results are plain ESTree dictionaries.
"""

import json
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import esprima
from rich.console import Console

from decypher.debug import debug_log

console = Console()

_PARSE_OPTIONS = {"range": True, "loc": True, "tolerant": True}

# Path to the Node.js parser script
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_JS_PARSER_PATH = _PROJECT_ROOT / "scripts" / "parse_estree.mjs"

# Cached result of the Node.js/Babel availability check
_babel_ready: Optional[bool] = None

_OPENERS = {"(", "[", "{"}
_CLOSERS = {")", "]", "}"}
_STATEMENT_KEYWORDS = {"var", "const", "function", "class", "if", "for", "try", "switch", "return", "throw"}

_SURROGATE = re.compile("[\ud800-\udfff]")


def fix_surrogates(text: str) -> str:
    """Join UTF-16 surrogate pairs; unpaired halves become U+FFFD."""
    if not _SURROGATE.search(text):
        return text
    return text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")


@dataclass
class Position:
    """Position in source code (1-based row, 0-based column)."""
    row: int
    column: int


@dataclass
class Range:
    """Range in source code."""
    start: Position
    end: Position


@dataclass
class ParseResult:
    """Result of parsing JavaScript code."""
    source_code: str
    lines: list[str]
    program: dict
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def node_range(node: Optional[dict]) -> Optional[Range]:
    """Return the source span of a node, if the parser recorded one."""
    if not isinstance(node, dict):
        return None
    loc = node.get("loc")
    if not isinstance(loc, dict):
        return None

    start = loc.get("start") or {}
    end = loc.get("end") or {}
    return Range(
        start=Position(row=start.get("line", 0), column=start.get("column", 0)),
        end=Position(row=end.get("line", 0), column=end.get("column", 0)),
    )


def _to_plain(root: Any) -> Any:
    """Convert esprima node objects into dicts and lists.

    Works with an explicit stack so long operator chains cannot exhaust the
    interpreter's recursion limit. Strings have their surrogate pairs joined.
    """
    holder: dict = {}
    stack: list[tuple[Any, Any, Any]] = [(root, holder, "root")]

    while stack:
        value, parent, key = stack.pop()
        if isinstance(value, str):
            parent[key] = fix_surrogates(value)
        elif value is None or isinstance(value, (bool, int, float)):
            parent[key] = value
        elif isinstance(value, (list, tuple)):
            items: list = [None] * len(value)
            parent[key] = items
            stack.extend((item, items, index) for index, item in enumerate(value))
        elif isinstance(value, dict) or hasattr(value, "__dict__"):
            source = value if isinstance(value, dict) else {
                name: item for name, item in vars(value).items() if not name.startswith("_")
            }
            # Pre-fill to keep key order
            node = dict.fromkeys(source)
            parent[key] = node
            stack.extend((item, node, name) for name, item in source.items())
        else:
            # Compiled regexes and other opaque values
            parent[key] = None

    return holder["root"]


def _empty_program() -> dict:
    return {"type": "Program", "body": [], "sourceType": "script"}


def _parse_by_statement(source_code: str) -> tuple[dict, list[str]]:
    """Parse top-level statements one at a time, skipping those that fail.

    Used when the whole program is rejected, so syntax esprima does not know
    (``a?.b``, ``a ?? b``) only costs the statements that contain it.
    """
    try:
        tokens = esprima.tokenize(source_code, {"range": True})
    except Exception as e:
        return _empty_program(), [str(e)]

    chunks = []
    depth = 0
    start = 0
    boundary = None
    for token in tokens:
        # A block closed at the top level ends a statement when a new one starts
        if boundary is not None:
            if token.type == "Keyword" and token.value in _STATEMENT_KEYWORDS:
                chunks.append((start, boundary))
                start = boundary
            boundary = None

        if token.type != "Punctuator":
            continue
        if token.value in _OPENERS:
            depth += 1
        elif token.value in _CLOSERS:
            depth -= 1
            if depth == 0 and token.value == "}":
                boundary = token.range[1]
        elif token.value == ";" and depth == 0:
            chunks.append((start, token.range[1]))
            start = token.range[1]
    if source_code[start:].strip():
        chunks.append((start, len(source_code)))

    program = _empty_program()
    errors = []
    for chunk_start, chunk_end in chunks:
        # Pad so loc values match the full source
        line_start = source_code.rfind("\n", 0, chunk_start) + 1
        padding = "\n" * source_code.count("\n", 0, chunk_start) + " " * (chunk_start - line_start)
        try:
            tree = esprima.parseScript(padding + source_code[chunk_start:chunk_end], _PARSE_OPTIONS)
        except Exception as e:
            errors.append(str(e))
            continue
        program["body"].extend(_to_plain(tree).get("body") or [])

    return program, errors


def check_node_available() -> bool:
    """Check if Node.js is available."""
    return shutil.which("node") is not None


def ensure_babel_installed() -> bool:
    """Ensure @babel/parser is installed next to the parser script.

    Returns:
        True if the package is available
    """
    if (_PROJECT_ROOT / "node_modules" / "@babel" / "parser").exists():
        return True
    if shutil.which("npm") is None:
        return False

    console.print("[yellow]Installing @babel/parser...[/yellow]")
    try:
        result = subprocess.run(
            ["npm", "install"],
            cwd=_PROJECT_ROOT,
            capture_output=True,
            text=True,
            timeout=300,
        )
    except Exception as e:
        console.print(f"[yellow]npm install failed: {e}[/yellow]")
        return False
    if result.returncode != 0:
        console.print(f"[yellow]npm install failed: {result.stderr.strip()[:200]}[/yellow]")
        return False
    return True


def babel_available() -> bool:
    """Whether the Babel parser can be used; checked once per process."""
    global _babel_ready
    if _babel_ready is None:
        _babel_ready = (
            check_node_available()
            and _JS_PARSER_PATH.exists()
            and ensure_babel_installed()
        )
        debug_log("info", "Babel parser availability checked", {"available": _babel_ready})
    return _babel_ready


def _parse_with_babel(source_code: str) -> Optional[dict]:
    """Parse with @babel/parser in a Node.js subprocess.

    Returns:
        The ESTree program, or None when Babel failed and esprima should be used
    """
    with tempfile.NamedTemporaryFile(mode="w", suffix=".js", delete=False, encoding="utf-8") as f:
        f.write(source_code)
        temp_path = Path(f.name)

    try:
        result = subprocess.run(
            ["node", str(_JS_PARSER_PATH), str(temp_path)],
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=60,
        )
        if result.returncode != 0:
            debug_log("warning", "Babel parse failed, falling back to esprima", {"stderr": result.stderr[:500]})
            return None
        program = json.loads(result.stdout)
        if not isinstance(program, dict) or program.get("type") != "Program":
            return None
        return program
    except subprocess.TimeoutExpired:
        console.print("[yellow]Babel parse timed out, falling back to esprima[/yellow]")
        return None
    except Exception as e:
        # Includes JSON nested too deeply for the json module
        debug_log("warning", "Babel output unusable, falling back to esprima", {"error": str(e)})
        return None
    finally:
        temp_path.unlink(missing_ok=True)


def parse_javascript(source_code: str, use_babel: bool = True) -> ParseResult:
    """Parse JavaScript code into an ESTree dictionary.

    Args:
        source_code: The JavaScript source code to parse
        use_babel: Try @babel/parser first when Node.js is available

    Returns:
        ParseResult holding the program; on a syntax error it holds the
        top-level statements that still parse and the error text is recorded
    """
    lines = source_code.split("\n")

    if use_babel and babel_available():
        program = _parse_with_babel(source_code)
        if program is not None:
            return ParseResult(
                source_code=source_code,
                lines=lines,
                program=_to_plain(program),
            )

    try:
        tree = esprima.parseScript(source_code, _PARSE_OPTIONS)
    except Exception as e:
        console.print(f"[yellow]JavaScript parse error: {e}[/yellow]")
        program, statement_errors = _parse_by_statement(source_code)
        debug_log("warning", "Parse failed, continuing with the statements that parse", {
            "error": str(e),
            "recovered_statements": len(program["body"]),
        })
        return ParseResult(
            source_code=source_code,
            lines=lines,
            program=program,
            errors=[str(e)] + statement_errors,
        )

    tolerated = [str(error) for error in (getattr(tree, "errors", None) or [])]
    try:
        program = _to_plain(tree)
    except Exception as e:
        debug_log("warning", "AST conversion failed, continuing with an empty program", {"error": str(e)})
        return ParseResult(
            source_code=source_code,
            lines=lines,
            program=_empty_program(),
            errors=tolerated + [str(e)],
        )
    program.pop("errors", None)
    if tolerated:
        debug_log("info", f"Parser tolerated {len(tolerated)} errors", {"errors": tolerated[:20]})

    return ParseResult(
        source_code=source_code,
        lines=lines,
        program=program,
        errors=tolerated,
    )


def parse_file(file_path: Path, use_babel: bool = True) -> ParseResult:
    """Parse a JavaScript file.

    Args:
        file_path: Path to the JavaScript file
        use_babel: Try @babel/parser first when Node.js is available

    Returns:
        ParseResult containing the program
    """
    source_code = file_path.read_text(encoding="utf-8")
    return parse_javascript(source_code, use_babel)
