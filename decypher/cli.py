"""CLI interface for decypher."""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from decypher import __version__
from decypher import debug as debug_state
from decypher.config import Config
from decypher.core.extractor import ExtractionResult, Extractor
from decypher.debug import close_debug_logger, debug_log, setup_debug_logger
from decypher.output import OutputWriter

console = Console()


def process_file(input_path: Path, config: Config, output_dir: Optional[Path] = None) -> dict:
    """Extract one file and write its results.

    Args:
        input_path: JavaScript file to extract
        config: Configuration
        output_dir: Directory receiving the extracted/ folder; nothing is
            written when None

    Returns:
        Statistics for the summary table
    """
    debug_log("info", f"Processing file: {input_path}")

    result = Extractor.from_file(input_path, config).run()
    if output_dir is not None:
        OutputWriter(output_dir).write(result)

    summary = result.summary()
    return {
        "file": str(input_path),
        "documents": summary.documents,
        "tools": summary.tools,
        "configs": summary.configs,
        "strings": summary.strings,
    }


def process_directory(dir_path: Path, config: Config, output_dir: Optional[Path] = None) -> list[dict]:
    """Extract every JavaScript file below a directory.

    Each file gets its own output folder mirroring its relative path.
    """
    js_files = sorted(
        path for path in dir_path.rglob("*.js")
        if "node_modules" not in path.parts
    )
    console.print(f"[blue]Found {len(js_files)} JavaScript files in {dir_path}[/blue]")

    debug_log("info", f"Processing directory: {dir_path}", {
        "js_files_count": len(js_files),
        "js_files": [str(f) for f in js_files[:10]],
    })

    results = []
    pbar = tqdm(total=len(js_files), desc="Extracting", unit="file", ncols=100)
    for js_file in js_files:
        rel_path = js_file.relative_to(dir_path)
        file_output = output_dir / rel_path.with_suffix("") if output_dir else None

        try:
            results.append(process_file(js_file, config, file_output))
        except Exception as e:
            console.print(f"[red]Error processing {js_file}: {e}[/red]")
            debug_log("error", f"Failed to process {js_file}", {"error": str(e)})
            results.append({"file": str(js_file), "error": str(e)})

        pbar.update(1)
    pbar.close()

    return results


def _print_summary(results: list[dict]) -> None:
    table = Table(title="Extraction Summary")
    table.add_column("File")
    table.add_column("Documents")
    table.add_column("Tools")
    table.add_column("Configs")
    table.add_column("Strings")
    table.add_column("Status")

    for r in results:
        status = "✓" if "error" not in r else "✗"
        table.add_row(
            r.get("file", "unknown"),
            str(r.get("documents", 0)),
            str(r.get("tools", 0)),
            str(r.get("configs", 0)),
            str(r.get("strings", 0)),
            status,
        )

    console.print(table)


def _print_tools(result: ExtractionResult) -> None:
    table = Table(title="Recovered Tools")
    table.add_column("Name")
    table.add_column("Description")
    table.add_column("Schema")
    table.add_column("Confidence")

    for tool in result.tools:
        description = (tool.short_description or "").replace("\n", " ")
        if len(description) > 60:
            description = description[:57] + "..."
        table.add_row(
            tool.name,
            description,
            "yes" if tool.input_schema is not None else "-",
            f"{tool.confidence:.2f}",
        )

    console.print(table)


@click.group()
@click.version_option(version=__version__)
def main():
    """Decypher - semantic extraction from minified JavaScript."""
    pass


@main.command()
@click.argument("input_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", "output_path", type=click.Path(path_type=Path), help="Output directory")
@click.option("--debug", is_flag=True, help="Enable debug logging to file")
@click.option("--debug-file", type=click.Path(path_type=Path), help="Debug log file path (default: decypher_debug_TIMESTAMP.log)")
def extract(
    input_path: Path,
    output_path: Optional[Path],
    debug: bool,
    debug_file: Optional[Path],
):
    """Extract prompts, tools and configuration from JavaScript.

    INPUT_PATH can be a JavaScript file or directory containing JS files.
    Results are written as JSON below OUTPUT/extracted/.
    """
    if debug:
        setup_debug_logger(debug_file)
        console.print(f"[yellow]Debug logging enabled: {debug_state.debug_log_file}[/yellow]")
        debug_log("info", "Debug logging started", {
            "input_path": str(input_path),
            "output_path": str(output_path) if output_path else None,
        })

    config = Config()
    output_dir = output_path or config.output_dir or Path(".")

    try:
        if input_path.is_file():
            console.print(f"[blue]Extracting {input_path}[/blue]")
            results = [process_file(input_path, config, output_dir)]
        else:
            results = process_directory(input_path, config, output_dir)

        _print_summary(results)
        debug_log("info", "Processing complete", {"results": results})
    finally:
        if debug:
            console.print(f"\n[yellow]Debug log saved to: {debug_state.debug_log_file}[/yellow]")
            close_debug_logger()

    if any("error" in r for r in results):
        raise SystemExit(1)


@main.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def analyze(input_path: Path):
    """Analyze a JavaScript file and show what its bindings resolve to."""
    result = Extractor.from_file(input_path, Config()).run()
    counts = result.environment.summary()

    console.print(f"[blue]File:[/blue] {input_path}")
    console.print(f"[blue]Bindings:[/blue] {len(result.environment)}")
    for kind, count in counts.items():
        console.print(f"  - {kind}: {count}")

    if result.parse_errors:
        console.print(f"[yellow]Parser reported {len(result.parse_errors)} errors[/yellow]")

    console.print(f"[blue]Documents:[/blue] {len(result.documents)}")
    _print_tools(result)


if __name__ == "__main__":
    main()
