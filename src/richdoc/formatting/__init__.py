"""Document node tree and its serialized forms."""

from richdoc.formatting.ir import (
    Mark,
    ElementType,
    Text,
    Element,
    Root,
    Node,
)
from richdoc.formatting.records import from_records, to_records
from richdoc.formatting.parser import MarkdownParser

__all__ = [
    "Mark",
    "ElementType",
    "Text",
    "Element",
    "Root",
    "Node",
    "from_records",
    "to_records",
    "MarkdownParser",
]
