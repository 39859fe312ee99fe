"""Markdown file handler."""

from pathlib import Path

from richdoc.formats.base import FormatHandler
from richdoc.formatting.ir import Root
from richdoc.formatting.parser import MarkdownParser


class MarkdownHandler(FormatHandler):
    """Handler for markdown (.md) files.

    Uses the markdown subset of ``MarkdownParser``; zero-width markers are
    dropped on write and restored by normalization on the next load.
    """

    @property
    def supported_extensions(self) -> tuple[str, ...]:
        return (".md", ".markdown")

    @property
    def parser(self) -> MarkdownParser:
        return MarkdownParser(zero_width_char=self.settings.zero_width_char)

    def read(self, path: Path) -> Root:
        return self.parser.parse(path.read_text(encoding="utf-8"))

    def write(self, root: Root, path: Path) -> None:
        path.write_text(self.parser.to_markdown(root) + "\n", encoding="utf-8")
