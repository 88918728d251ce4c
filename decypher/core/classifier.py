"""Heuristic text classification: prose vs. code vs. keyword lists, and tool identity rules.

Everything here is a pure function of its input text.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

TextPredicate = Callable[[str], bool]

HEAD_LENGTH = 100

CODE_MARKERS = [
    "function(",
    "async function",
    "() =>",
    "} catch {",
    "throw Error(",
    "return !",
    "let ",
    "const ",
    "var ",
    "if (!",
    "stdio:",
    ".forEach(",
    ".map(",
    "\t}",
    "});",
    "module.exports",
    "SNAPSHOT_FILE=",
    "#!/bin/",
]

DESCRIPTION_CODE_MARKERS = [
    "function(",
    "async function",
    "() =>",
    "} catch {",
    "throw Error(",
    "stdio:",
    ".forEach(",
    "\t}",
    "});",
]

CODE_STARTS = (",", "}", ")", ";", "let ", "const ", "var ", "function ", "async ", "return ")

PROMPT_MARKERS = [
    "You are Claude",
    "You are powered by",
    "answer the user",
    "tool_use",
    "function_calls",
    "system prompt",
    "IMPORTANT:",
    "Usage notes:",
    "Usage:",
    "## ",
    "When NOT to use",
    "When to use",
    "Example:",
    "This tool",
    "Use this",
    "Available",
    "allows you to",
    "enables",
    "Supports",
    "Note:",
    "WARNING:",
    "Caution:",
    "Description:",
    "<example>",
    "```",
    "Parameters:",
    "Returns:",
    "Throws:",
    "\n\n",
]

TOOL_DESCRIPTION_MARKERS = [
    "Completely replaces",
    "Retrieves output from",
    "Kills a running",
    "Language Server Protocol",
    "Execute a skill",
    "Execute a slash command",
    "skills_instructions",
    "available_skills",
]

# Tool descriptions open with what the tool does
TOOL_ACTION_VERBS = (
    "Execute", "Reads", "Writes", "Performs", "Fetches", "Retrieves",
    "Kills", "Launch", "Interact with", "Completely replaces", "Allows",
)

_IDENTIFIER_WORD = re.compile(r"^\w+$")


class DocumentCategory(str, Enum):
    """What kind of documentation a text is."""
    SYSTEM = "System"
    TOOL = "Tool"
    EXAMPLE = "Example"
    ERROR = "Error"
    INSTRUCTION = "Instruction"
    OTHER = "Other"


def is_code_fragment(text: str) -> bool:
    """Check if text is program source rather than documentation."""
    marker_count = sum(1 for marker in CODE_MARKERS if marker in text)
    if marker_count >= 3:
        return True

    stripped = text.strip()

    # GitHub workflow YAML
    if stripped.startswith("name:") and "on:" in text and "jobs:" in text:
        return True

    # Shell scripts
    if "#!/bin/" in text or ("SNAPSHOT_FILE" in text and "echo" in text):
        return True

    if "{" in text and "}" in text and ";" in text:
        threshold = len(text) // 50
        braces = text.count("{") + text.count("}")
        semicolons = text.count(";")
        if braces > threshold or semicolons > threshold:
            return True

    return stripped.startswith(CODE_STARTS)


def is_keyword_list(text: str) -> bool:
    """Check if text is a whitespace-separated list of identifiers.

    Examples: "setup loop analogWrite", "abs acos acosh activate ..."
    """
    if ". " in text or ".\n" in text:
        return False

    words = text.split()[:20]
    if len(words) < 10:
        return False

    identifiers = sum(1 for word in words if len(word) > 2 and _IDENTIFIER_WORD.match(word))
    return identifiers / len(words) > 0.8


def has_prompt_markers(text: str) -> bool:
    return any(marker in text for marker in PROMPT_MARKERS)


def looks_like_tool_description(text: str) -> bool:
    """Check for tool description phrasing that carries no generic prompt marker."""
    return any(marker in text for marker in TOOL_DESCRIPTION_MARKERS)


def is_likely_prompt(text: str, min_length: int = 80) -> bool:
    """Check if text reads like natural-language documentation.

    Args:
        text: Candidate text
        min_length: Shorter texts are rejected outright

    Returns:
        True when the text is long enough, is neither code nor a keyword list,
        and carries at least one prose marker
    """
    if len(text) < min_length:
        return False
    if is_code_fragment(text) or is_keyword_list(text):
        return False
    return has_prompt_markers(text) or looks_like_tool_description(text)


def categorize(text: str) -> DocumentCategory:
    """Assign a category; the first matching rule wins."""
    if "You are Claude" in text or "answer the user" in text:
        return DocumentCategory.SYSTEM
    if "tool" in text or "function" in text or text.lstrip().startswith(TOOL_ACTION_VERBS):
        return DocumentCategory.TOOL
    if "Example:" in text or "<example>" in text:
        return DocumentCategory.EXAMPLE
    if "Error:" in text or "error" in text:
        return DocumentCategory.ERROR
    if "IMPORTANT:" in text or "Usage" in text:
        return DocumentCategory.INSTRUCTION
    return DocumentCategory.OTHER


def is_valid_tool_description(text: str) -> bool:
    """Check that a candidate description is prose rather than code."""
    marker_count = sum(1 for marker in DESCRIPTION_CODE_MARKERS if marker in text)
    if marker_count >= 2:
        return False

    if text.strip().startswith((",", "}", ")")):
        return False

    has_sentences = ". " in text or ".\n" in text
    has_prose_words = "the " in text or "to " in text or "this " in text
    return has_sentences or has_prose_words


# ----------------------------------------------------------------------
# Tool identity rules
# ----------------------------------------------------------------------

def starts_with(prefix: str) -> TextPredicate:
    return lambda text: text.startswith(prefix)


def head_contains(needle: str, length: int = HEAD_LENGTH) -> TextPredicate:
    return lambda text: needle in text[:length]


def head_contains_all(*needles: str, length: int = HEAD_LENGTH) -> TextPredicate:
    return lambda text: all(needle in text[:length] for needle in needles)


def head_excludes(needle: str, length: int = HEAD_LENGTH) -> TextPredicate:
    return lambda text: needle not in text[:length]


def any_of(*predicates: TextPredicate) -> TextPredicate:
    return lambda text: any(predicate(text) for predicate in predicates)


def all_of(*predicates: TextPredicate) -> TextPredicate:
    return lambda text: all(predicate(text) for predicate in predicates)


def name_equals(name: str) -> TextPredicate:
    return lambda candidate: candidate == name


@dataclass(frozen=True)
class ToolRule:
    """How to recognize one tool: by its declared name and by its documentation."""
    identity: str
    name_predicate: TextPredicate
    content_predicate: TextPredicate


def _rule(identity: str, content_predicate: TextPredicate) -> ToolRule:
    return ToolRule(identity, name_equals(identity), content_predicate)


# Priority order matters: the first rule whose content predicate accepts a
# document claims it
DEFAULT_TOOL_RULES: tuple[ToolRule, ...] = (
    _rule("Bash", any_of(
        starts_with("Executes a given bash command"),
        head_contains("Executes a given bash command"),
        head_contains_all("Execute", "bash command"),
    )),
    _rule("Read", starts_with("Reads a file from the local filesystem")),
    _rule("Write", starts_with("Writes a file to the local filesystem")),
    _rule("Edit", any_of(
        starts_with("Performs exact string replacements"),
        head_contains("exact string replacements in files"),
    )),
    _rule("Grep", all_of(
        head_contains("powerful search tool"),
        head_contains("ripgrep"),
        head_excludes("glob patterns like"),
    )),
    _rule("Glob", any_of(
        head_contains("Fast file pattern matching"),
        head_contains_all("glob patterns", "**/*.js"),
    )),
    _rule("Task", any_of(
        head_contains("launches specialized agents"),
        head_contains("Launch a new agent"),
    )),
    _rule("TodoWrite", starts_with("Use this tool to create and manage a structured task list")),
    _rule("NotebookEdit", head_contains_all("Jupyter notebook", "cell")),
    _rule("WebFetch", head_contains("Fetches content from a specified URL")),
    _rule("WebSearch", head_contains("search the web")),
    _rule("Skill", head_contains("Execute a skill within the main conversation")),
    _rule("SlashCommand", head_contains("Execute a slash command")),
    _rule("AskUserQuestion", starts_with("Use this tool when you need to ask the user")),
    _rule("ExitPlanMode", head_contains_all("plan mode", "ready to code")),
    _rule("BashOutput", head_contains("Retrieves output from a running")),
    _rule("KillShell", head_contains("Kills a running background bash")),
    _rule("LSP", starts_with("Interact with Language Server Protocol")),
)


def _mentions_early(text: str, tool_id: str) -> bool:
    return tool_id in text[:200] and len(text) > 200


def rule_for_name(name: str, rules: Sequence[ToolRule] = DEFAULT_TOOL_RULES) -> Optional[ToolRule]:
    """Find the rule whose name predicate accepts a declared tool name."""
    for rule in rules:
        if rule.name_predicate(name):
            return rule
    return None


def is_tool_prompt_for(text: str, tool_id: str, rules: Sequence[ToolRule] = DEFAULT_TOOL_RULES) -> bool:
    """Check if text documents the given tool.

    Identities without a rule fall back to the tool id being mentioned in the
    first 200 characters of a longer text.
    """
    for rule in rules:
        if rule.identity == tool_id:
            return rule.content_predicate(text)
    return _mentions_early(text, tool_id)


def associate_tool(text: str, rules: Sequence[ToolRule] = DEFAULT_TOOL_RULES) -> Optional[str]:
    """Return the identity of the first rule that claims text."""
    for rule in rules:
        if rule.content_predicate(text):
            return rule.identity
    return None
