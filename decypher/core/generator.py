"""Regeneration of readable program text using js-beautify."""

from pathlib import Path

import jsbeautifier
from rich.console import Console

from decypher.debug import debug_log

console = Console()


def regenerate_code(source_code: str, indent_size: int = 2) -> str:
    """Re-serialize minified code one declaration per line.

    Args:
        source_code: JavaScript source code
        indent_size: Indentation width of the output

    Returns:
        Beautified code, or the input unchanged when beautification fails
    """
    if not source_code.strip():
        return source_code

    options = jsbeautifier.default_options()
    options.indent_size = indent_size
    options.preserve_newlines = False
    options.end_with_newline = True

    try:
        beautified = jsbeautifier.beautify(source_code, options)
    except Exception as e:
        console.print(f"[yellow]js-beautify failed, using original code: {e}[/yellow]")
        debug_log("warning", "Beautification failed", {"error": str(e)})
        return source_code

    debug_log("debug", "Regenerated code", {
        "input_chars": len(source_code),
        "output_chars": len(beautified),
    })
    return beautified


def save_output(
    text: str,
    output_path: Path,
    create_dirs: bool = True,
) -> Path:
    """Save text to file.

    Args:
        text: Text to save
        output_path: Path to save to
        create_dirs: Whether to create parent directories

    Returns:
        The written path
    """
    if create_dirs:
        output_path.parent.mkdir(parents=True, exist_ok=True)

    output_path.write_text(text, encoding="utf-8")
    debug_log("debug", f"Saved {output_path}", {"chars": len(text)})
    return output_path
