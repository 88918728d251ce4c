"""JSON output for extraction results."""

import json
from pathlib import Path
from typing import Any

from rich.console import Console

from decypher.core.extractor import ExtractionResult
from decypher.core.generator import save_output

console = Console()

OUTPUT_FILES = {
    "documents": "system-prompts.json",
    "tools": "tool-definitions.json",
    "configs": "configurations.json",
    "strings": "strings.json",
    "summary": "summary.json",
}


class OutputWriter:
    """Writes one extraction result as a set of JSON files under extracted/."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self.extracted_dir = output_dir / "extracted"

    def _write_json(self, filename: str, data: Any) -> Path:
        return save_output(json.dumps(data, ensure_ascii=False, indent=2), self.extracted_dir / filename)

    def write(self, result: ExtractionResult) -> list[Path]:
        """Write all files and return their paths."""
        written = [
            self._write_json(OUTPUT_FILES["documents"], [doc.to_dict() for doc in result.documents]),
            self._write_json(OUTPUT_FILES["tools"], [tool.to_dict() for tool in result.tools]),
            self._write_json(OUTPUT_FILES["configs"], [value.to_dict() for value in result.configs]),
            self._write_json(OUTPUT_FILES["strings"], [value.to_dict() for value in result.strings]),
            self._write_json(OUTPUT_FILES["summary"], result.summary().to_dict()),
        ]

        console.print(f"[green]Saved {len(written)} files to: {self.extracted_dir}[/green]")
        return written
