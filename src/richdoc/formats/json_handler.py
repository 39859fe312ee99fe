"""JSON file handler for the plain record format."""

import json
from pathlib import Path

from richdoc.errors import InvalidDocument
from richdoc.formats.base import FormatHandler
from richdoc.formatting.ir import Root
from richdoc.formatting.records import from_records, to_records


class JSONHandler(FormatHandler):
    """Handler for .json files holding a list of block records."""

    @property
    def supported_extensions(self) -> tuple[str, ...]:
        return (".json",)

    def read(self, path: Path) -> Root:
        try:
            records = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise InvalidDocument(f"{path.name} is not valid JSON: {e}") from e
        return from_records(records)

    def write(self, root: Root, path: Path) -> None:
        """Write the records, markers included, so the file reloads as-is."""
        content = json.dumps(to_records(root), indent=self.settings.json_indent, ensure_ascii=False)
        path.write_text(content + "\n", encoding="utf-8")
