"""Intermediate Representation for rich-text documents.

This module defines the node tree the editor works on. A document is a
``Root`` holding block ``Element``s; elements hold further elements or
``Text`` leaves, and leaves carry independent boolean marks.

Nodes do not know their own position. Positions are index paths computed
on demand (see ``richdoc.core.path``), because any structural edit can
shift sibling indices.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class Mark(str, Enum):
    """Boolean text-formatting attributes (independent toggles)."""

    BOLD = "bold"
    ITALIC = "italic"
    UNDERLINE = "underline"
    CODE = "code"


class ElementType(str, Enum):
    """Known element type tags."""

    PARAGRAPH = "paragraph"
    HEADING_ONE = "heading-one"
    HEADING_TWO = "heading-two"
    BLOCK_QUOTE = "block-quote"
    BULLETED_LIST = "bulleted-list"
    NUMBERED_LIST = "numbered-list"
    LIST_ITEM = "list-item"
    INLINE_VOID = "inline-void"
    LINK = "link"


VOID_TYPES = frozenset({ElementType.INLINE_VOID.value})
INLINE_TYPES = frozenset({ElementType.INLINE_VOID.value, ElementType.LINK.value})
LIST_TYPES = (ElementType.NUMBERED_LIST.value, ElementType.BULLETED_LIST.value)

# Tags written by older documents
LEGACY_TYPES = {"inlineVoid": ElementType.INLINE_VOID.value}


def type_name(value: Union[str, ElementType]) -> str:
    """Return the plain string tag for an element type."""
    if isinstance(value, ElementType):
        return value.value
    return LEGACY_TYPES.get(value, value)


def mark_name(value: Union[str, Mark]) -> str:
    """Return the plain string name for a mark."""
    return value.value if isinstance(value, Mark) else value


@dataclass
class Text:
    """A leaf holding a string and its marks.

    Attributes:
        text: The text content
        marks: Mark name -> bool (only ``True`` entries are meaningful)
    """

    text: str = ""
    marks: dict[str, bool] = field(default_factory=dict)

    @property
    def bold(self) -> bool:
        return self.has_mark(Mark.BOLD)

    @property
    def italic(self) -> bool:
        return self.has_mark(Mark.ITALIC)

    @property
    def underline(self) -> bool:
        return self.has_mark(Mark.UNDERLINE)

    @property
    def code(self) -> bool:
        return self.has_mark(Mark.CODE)

    def has_mark(self, name: Union[str, Mark]) -> bool:
        """Check whether a mark is set to ``True``."""
        return self.marks.get(mark_name(name)) is True

    @property
    def active_marks(self) -> dict[str, bool]:
        """Marks that are switched on."""
        return {name: True for name, value in self.marks.items() if value is True}

    def is_marker(self, zero_width_char: str) -> bool:
        """Check if this leaf is a caret-landing marker."""
        return self.text == zero_width_char

    def __str__(self) -> str:
        return self.text


@dataclass
class Element:
    """A block or inline element.

    Attributes:
        type: Type tag (see ``ElementType``); unknown tags behave as blocks
        children: Child elements or text leaves
        data: Extra properties carried through serialization
    """

    type: str
    children: list[Union[Element, Text]] = field(default_factory=list)
    data: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.type = type_name(self.type)

    @property
    def is_void(self) -> bool:
        """Children are not user-editable; the node renders as a unit."""
        return self.type in VOID_TYPES

    @property
    def is_inline(self) -> bool:
        """The node flows within a line."""
        return self.type in INLINE_TYPES

    @property
    def is_block(self) -> bool:
        return not self.is_inline

    @property
    def is_list(self) -> bool:
        return self.type in LIST_TYPES

    @property
    def has_inline_content(self) -> bool:
        """True when every child is a leaf or an inline element."""
        return all(is_inline_node(child) for child in self.children)

    @property
    def has_block_content(self) -> bool:
        return bool(self.children) and all(
            isinstance(child, Element) and child.is_block for child in self.children
        )

    @property
    def plain_text(self) -> str:
        return "".join(child.plain_text if isinstance(child, Element) else child.text
                       for child in self.children)

    def properties(self) -> dict:
        """Settable properties (everything except children)."""
        return {"type": self.type, **self.data}

    def empty_copy(self) -> Element:
        """A childless element with the same properties."""
        return Element(type=self.type, data=copy.deepcopy(self.data))


@dataclass
class Root:
    """The document: an ordered sequence of top-level blocks."""

    children: list[Union[Element, Text]] = field(default_factory=list)

    def nodes(self) -> Iterator[tuple[Node, tuple[int, ...]]]:
        """Traverse depth-first in document order, yielding ``(node, path)``.

        The root itself comes first, with the empty path.
        """
        yield from _walk(self, ())

    def texts(self) -> Iterator[tuple[Text, tuple[int, ...]]]:
        """Yield every text leaf with its path."""
        for node, path in self.nodes():
            if isinstance(node, Text):
                yield node, path

    def get(self, path: tuple[int, ...]) -> Node:
        """Resolve a path (see ``richdoc.core.path.get_node``)."""
        from richdoc.core.path import get_node

        return get_node(self, path)

    @property
    def plain_text(self) -> str:
        """All text content, one block per line pair."""
        return "\n\n".join(
            child.plain_text if isinstance(child, Element) else child.text
            for child in self.children
        )


Node = Union[Root, Element, Text]


def _walk(node: Node, path: tuple[int, ...]) -> Iterator[tuple[Node, tuple[int, ...]]]:
    yield node, path
    if isinstance(node, Text):
        return
    for index, child in enumerate(node.children):
        yield from _walk(child, path + (index,))


def is_inline_node(node: Node) -> bool:
    """Text leaves and inline elements flow within a line."""
    return isinstance(node, Text) or (isinstance(node, Element) and node.is_inline)


def is_void_inline(node: Node) -> bool:
    return isinstance(node, Element) and node.is_void and node.is_inline


def is_block_element(node: Node) -> bool:
    return isinstance(node, Element) and node.is_block
