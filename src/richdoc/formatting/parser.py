"""Markdown reader and writer for document trees.

Supports the subset the editor can represent:

- ``# `` and ``## `` headings, ``> `` quotes
- ``- `` bulleted and ``1. `` numbered list items
- ``**bold**``, ``*italic*``, ``***both***``, `` `code` ``, ``<u>underline</u>``
- ``[text](url)`` links and ``{void}`` for an inline void element
"""

import re
from typing import Optional, Union

from richdoc.formatting.ir import Element, ElementType, Mark, Root, Text

InlineNode = Union[Element, Text]

VOID_TOKEN = "{void}"


class MarkdownParser:
    """Parse markdown into a document tree, and render a tree back."""

    HEADING_PATTERN = re.compile(r"^(#{1,2})\s+(.*)$")
    QUOTE_PATTERN = re.compile(r"^>\s?(.*)$")
    BULLET_PATTERN = re.compile(r"^[-*+]\s+(.*)$")
    NUMBER_PATTERN = re.compile(r"^\d+[.)]\s+(.*)$")
    LINK_PATTERN = re.compile(r"\[([^\]]*)\]\(([^)\s]*)\)")

    def __init__(self, zero_width_char: str = "\ufeff") -> None:
        self.zero_width_char = zero_width_char

    # =========================================================================
    # Reading
    # =========================================================================

    def parse(self, markdown_text: str) -> Root:
        """Convert markdown text to a document tree.

        Every non-blank line becomes one block; consecutive list lines of
        the same kind share one list container. The result is not
        normalized.
        """
        root = Root()
        current_list: Optional[Element] = None

        for raw_line in markdown_text.splitlines():
            line = raw_line.strip()
            if not line:
                continue

            block, list_type = self._parse_block(line)
            if list_type is None:
                current_list = None
                root.children.append(block)
                continue

            if current_list is None or current_list.type != list_type:
                current_list = Element(type=list_type)
                root.children.append(current_list)
            current_list.children.append(block)

        return root

    def _parse_block(self, line: str) -> tuple[Element, Optional[str]]:
        """Parse one line into a block and the list type it belongs to, if any."""
        match = self.HEADING_PATTERN.match(line)
        if match:
            block_type = ElementType.HEADING_ONE if len(match.group(1)) == 1 else ElementType.HEADING_TWO
            return Element(type=block_type, children=self.parse_inline(match.group(2))), None

        match = self.QUOTE_PATTERN.match(line)
        if match:
            return Element(type=ElementType.BLOCK_QUOTE, children=self.parse_inline(match.group(1))), None

        for pattern, list_type in (
            (self.BULLET_PATTERN, ElementType.BULLETED_LIST.value),
            (self.NUMBER_PATTERN, ElementType.NUMBERED_LIST.value),
        ):
            match = pattern.match(line)
            if match:
                item = Element(type=ElementType.LIST_ITEM, children=self.parse_inline(match.group(1)))
                return item, list_type

        return Element(type=ElementType.PARAGRAPH, children=self.parse_inline(line)), None

    def parse_inline(self, text: str) -> list[InlineNode]:
        """Parse inline markup into text leaves and inline elements."""
        return self._tokenize(text, {})

    def _tokenize(self, text: str, marks: dict[str, bool]) -> list[InlineNode]:
        """Tokenize ``text`` with ``marks`` already in effect.

        Delimited spans are tokenized recursively with their mark added.
        """
        nodes: list[InlineNode] = []
        plain: list[str] = []
        pos = 0

        def flush() -> None:
            if plain:
                nodes.append(Text(text="".join(plain), marks=dict(marks)))
                plain.clear()

        while pos < len(text):
            if text.startswith(VOID_TOKEN, pos):
                flush()
                nodes.append(Element(type=ElementType.INLINE_VOID, children=[Text()]))
                pos += len(VOID_TOKEN)
                continue

            if text[pos] == "`":
                end = text.find("`", pos + 1)
                if end != -1:
                    flush()
                    nodes.append(Text(text=text[pos + 1 : end], marks={**marks, Mark.CODE.value: True}))
                    pos = end + 1
                    continue

            if text.startswith("<u>", pos):
                end = text.find("</u>", pos + 3)
                if end != -1:
                    flush()
                    nodes.extend(self._tokenize(text[pos + 3 : end], {**marks, Mark.UNDERLINE.value: True}))
                    pos = end + 4
                    continue

            if text[pos] == "[":
                link = self.LINK_PATTERN.match(text, pos)
                if link:
                    flush()
                    children = self._tokenize(link.group(1), marks) or [Text()]
                    nodes.append(Element(type=ElementType.LINK, children=children, data={"url": link.group(2)}))
                    pos = link.end()
                    continue

            span = self._emphasis_span(text, pos)
            if span is not None:
                width, end, added = span
                flush()
                inner = dict(marks)
                for name in added:
                    inner[name] = True
                nodes.extend(self._tokenize(text[pos + width : end], inner))
                pos = end + width
                continue

            plain.append(text[pos])
            pos += 1

        flush()
        return nodes

    @staticmethod
    def _emphasis_span(text: str, pos: int) -> Optional[tuple[int, int, tuple[str, ...]]]:
        """Find an emphasis span opening at ``pos``.

        Returns:
            (delimiter width, index of the closing delimiter, marks added),
            or None when there is no closed span here
        """
        for delimiter, added in (
            ("***", (Mark.BOLD.value, Mark.ITALIC.value)),
            ("**", (Mark.BOLD.value,)),
            ("*", (Mark.ITALIC.value,)),
        ):
            if not text.startswith(delimiter, pos):
                continue
            end = text.find(delimiter, pos + len(delimiter))
            # a single * must not close on half of a **
            while delimiter == "*" and end != -1 and text.startswith("**", end):
                end = text.find("*", end + 2)
            if end > pos + len(delimiter):
                return len(delimiter), end, added
        return None

    # =========================================================================
    # Writing
    # =========================================================================

    def to_markdown(self, root: Root) -> str:
        """Render a tree as markdown. Zero-width markers are dropped."""
        chunks: list[str] = []
        for block in root.children:
            if isinstance(block, Text):
                chunks.append(self.render_inline([block]))
                continue
            chunks.append(self._render_block(block))
        return "\n\n".join(chunks)

    def _render_block(self, block: Element, prefix: str = "") -> str:
        if block.is_list:
            lines = []
            for number, item in enumerate(block.children, start=1):
                marker = f"{number}. " if block.type == ElementType.NUMBERED_LIST.value else "- "
                body = self._render_content(item) if isinstance(item, Element) else self.render_inline([item])
                lines.append(prefix + marker + body)
            return "\n".join(lines)

        if block.type == ElementType.BLOCK_QUOTE.value and block.has_block_content:
            return "\n".join(self._render_block(child, prefix + "> ") for child in block.children)

        lead = {
            ElementType.HEADING_ONE.value: "# ",
            ElementType.HEADING_TWO.value: "## ",
            ElementType.BLOCK_QUOTE.value: "> ",
            ElementType.LIST_ITEM.value: "- ",
        }.get(block.type, "")
        return prefix + lead + self._render_content(block)

    def _render_content(self, element: Element) -> str:
        if element.has_block_content:
            return " ".join(self._render_content(child) for child in element.children
                            if isinstance(child, Element))
        return self.render_inline(element.children)

    def render_inline(self, children: list[InlineNode]) -> str:
        """Render text leaves and inline elements as inline markdown."""
        parts: list[str] = []
        for child in children:
            if isinstance(child, Text):
                parts.append(self._render_text(child))
            elif child.is_void:
                parts.append(VOID_TOKEN)
            elif child.type == ElementType.LINK.value:
                url = child.data.get("url", "")
                parts.append(f"[{self.render_inline(child.children)}]({url})")
            else:
                parts.append(self.render_inline(child.children))
        return "".join(parts)

    def _render_text(self, leaf: Text) -> str:
        text = leaf.text.replace(self.zero_width_char, "")
        if not text:
            return ""
        if leaf.code:
            text = f"`{text}`"
        if leaf.bold and leaf.italic:
            text = f"***{text}***"
        elif leaf.bold:
            text = f"**{text}**"
        elif leaf.italic:
            text = f"*{text}*"
        if leaf.underline:
            text = f"<u>{text}</u>"
        return text
