"""Plain text file handler."""

import re
from pathlib import Path

from richdoc.formats.base import FormatHandler
from richdoc.formatting.ir import Element, ElementType, Root, Text


class TXTHandler(FormatHandler):
    """Handler for plain text (.txt) files.

    Reading makes one paragraph per blank-line separated chunk. Writing
    keeps only the text: marks, block types and void elements are lost.
    """

    @property
    def supported_extensions(self) -> tuple[str, ...]:
        return (".txt",)

    def read(self, path: Path) -> Root:
        """Read plain text from file."""
        content = path.read_text(encoding="utf-8")
        root = Root()
        for chunk in re.split(r"\n\s*\n", content.strip()):
            lines = [line.strip() for line in chunk.splitlines() if line.strip()]
            if not lines:
                continue
            root.children.append(
                Element(type=ElementType.PARAGRAPH, children=[Text(text=" ".join(lines))])
            )
        return root

    def write(self, root: Root, path: Path) -> None:
        """Write one chunk per block; list items go on their own lines."""
        chunks: list[str] = []
        for block in root.children:
            if isinstance(block, Element) and block.has_block_content:
                lines = [self.strip_markers(child.plain_text) for child in block.children
                         if isinstance(child, Element)]
                chunks.append("\n".join(lines))
            elif isinstance(block, Element):
                chunks.append(self.strip_markers(block.plain_text))
            else:
                chunks.append(self.strip_markers(block.text))

        # Join blocks with double newlines (paragraphs)
        path.write_text("\n\n".join(chunks) + "\n", encoding="utf-8")
