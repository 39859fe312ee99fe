"""Plain nested-record serialization.

The persisted/initial-value format is a list of block records. Element
records carry ``type`` and ``children`` (plus any extra properties); leaf
records carry ``text`` and their mark booleans::

    [{"type": "paragraph", "children": [{"text": "Hi ", "bold": True}]}]
"""

from typing import Any, Union

from richdoc.errors import InvalidDocument
from richdoc.formatting.ir import Element, Root, Text


def to_records(root: Root) -> list[dict]:
    """Convert a document tree to plain records."""
    return [_node_to_record(child) for child in root.children]


def _node_to_record(node: Union[Element, Text]) -> dict:
    if isinstance(node, Text):
        return {"text": node.text, **node.marks}
    record: dict[str, Any] = {"type": node.type}
    record.update(node.data)
    record["children"] = [_node_to_record(child) for child in node.children]
    return record


def from_records(records: Any) -> Root:
    """Build a document tree from plain records.

    Raises:
        InvalidDocument: If the records do not describe a document
    """
    if not isinstance(records, list):
        raise InvalidDocument(
            f"Document must be a list of block records, got {type(records).__name__}"
        )
    return Root(children=[_record_to_node(record, (index,)) for index, record in enumerate(records)])


def _record_to_node(record: Any, path: tuple[int, ...]) -> Union[Element, Text]:
    if not isinstance(record, dict):
        raise InvalidDocument(f"Record at {path} must be an object, got {type(record).__name__}")

    if "text" in record:
        text = record["text"]
        if not isinstance(text, str):
            raise InvalidDocument(f"Leaf at {path} has non-string text")
        marks: dict[str, bool] = {}
        for name, value in record.items():
            if name == "text":
                continue
            if not isinstance(value, bool):
                raise InvalidDocument(f"Mark {name!r} at {path} must be a boolean")
            marks[name] = value
        return Text(text=text, marks=marks)

    element_type = record.get("type")
    if not isinstance(element_type, str) or not element_type:
        raise InvalidDocument(f"Element at {path} needs a string 'type'")

    children = record.get("children", [])
    if not isinstance(children, list):
        raise InvalidDocument(f"Element at {path} has non-list children")

    data = {key: value for key, value in record.items() if key not in ("type", "children")}
    return Element(
        type=element_type,
        children=[_record_to_node(child, path + (index,)) for index, child in enumerate(children)],
        data=data,
    )
