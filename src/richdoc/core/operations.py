"""Low-level tree operations.

Every mutation of a document goes through one of these records. Applying
an operation mutates the tree in place; the ``transform_*`` functions
compute where a path, point or range that was valid before the operation
ends up afterwards, which is how the editor keeps its selection and refs
current without storing positions on nodes.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from richdoc.errors import InvalidPath, StructureViolation
from richdoc.core.path import (
    Path,
    Point,
    Range,
    ends_before,
    get_node,
    get_parent,
    is_ancestor,
    is_sibling,
    next_path,
    parent,
    previous,
)
from richdoc.formatting.ir import Element, Node, Root, Text, type_name

Affinity = Literal["forward", "backward"]


@dataclass(frozen=True)
class InsertNode:
    path: Path
    node: Node


@dataclass(frozen=True)
class RemoveNode:
    path: Path
    node: Node


@dataclass(frozen=True)
class SetNode:
    path: Path
    properties: dict
    new_properties: dict


@dataclass(frozen=True)
class SplitNode:
    """Split a node at ``position`` (text offset or child index).

    The right half becomes the next sibling and takes ``properties``.
    """

    path: Path
    position: int
    properties: dict = field(default_factory=dict)


@dataclass(frozen=True)
class MergeNode:
    """Merge the node at ``path`` into its previous sibling.

    ``position`` is the previous sibling's length (text length or child
    count) before the merge.
    """

    path: Path
    position: int
    properties: dict = field(default_factory=dict)


@dataclass(frozen=True)
class MoveNode:
    path: Path
    new_path: Path


@dataclass(frozen=True)
class InsertText:
    path: Path
    offset: int
    text: str


@dataclass(frozen=True)
class RemoveText:
    path: Path
    offset: int
    text: str


Operation = Union[InsertNode, RemoveNode, SetNode, SplitNode, MergeNode, MoveNode, InsertText, RemoveText]


# =============================================================================
# Applying
# =============================================================================

def apply_operation(root: Root, op: Operation) -> None:
    """Apply ``op`` to ``root`` in place.

    Raises:
        InvalidPath: If the operation's path does not resolve
        StructureViolation: If the operation cannot apply to the nodes found
    """
    if isinstance(op, InsertNode):
        container = get_node(root, parent(op.path))
        if isinstance(container, Text):
            raise InvalidPath(op.path, "cannot insert into a text leaf")
        index = op.path[-1]
        if index < 0 or index > len(container.children):
            raise InvalidPath(op.path, f"insert index {index} out of range")
        container.children.insert(index, copy.deepcopy(op.node))

    elif isinstance(op, RemoveNode):
        get_node(root, op.path, allow_root=False)
        get_parent(root, op.path).children.pop(op.path[-1])

    elif isinstance(op, SetNode):
        node = get_node(root, op.path, allow_root=False)
        if isinstance(node, Text):
            # leaf properties are its marks
            for key, value in op.new_properties.items():
                if key == "text":
                    raise StructureViolation(f"Cannot set text through properties at {op.path}")
                if value is None:
                    node.marks.pop(key, None)
                else:
                    node.marks[key] = value
            return
        for key, value in op.new_properties.items():
            if key == "type":
                node.type = type_name(value)
            elif value is None:
                node.data.pop(key, None)
            else:
                node.data[key] = value

    elif isinstance(op, SplitNode):
        node = get_node(root, op.path, allow_root=False)
        if isinstance(node, Text):
            right: Node = Text(text=node.text[op.position:], marks=dict(op.properties))
            node.text = node.text[: op.position]
        else:
            properties = dict(op.properties)
            right = Element(
                type=properties.pop("type", node.type),
                children=node.children[op.position:],
                data=properties,
            )
            node.children = node.children[: op.position]
        get_parent(root, op.path).children.insert(op.path[-1] + 1, right)

    elif isinstance(op, MergeNode):
        node = get_node(root, op.path, allow_root=False)
        prev_path = previous(op.path)
        if prev_path is None:
            raise InvalidPath(op.path, "nothing to merge into")
        prev = get_node(root, prev_path)
        if isinstance(node, Text) and isinstance(prev, Text):
            prev.text += node.text
        elif isinstance(node, Element) and isinstance(prev, Element):
            prev.children.extend(node.children)
        else:
            raise StructureViolation(f"Cannot merge {type(node).__name__} into {type(prev).__name__}")
        get_parent(root, op.path).children.pop(op.path[-1])

    elif isinstance(op, MoveNode):
        if op.path == op.new_path:
            return
        if is_ancestor(op.path, op.new_path):
            raise StructureViolation(f"Cannot move {op.path} inside itself")
        node = get_node(root, op.path, allow_root=False)
        get_parent(root, op.path).children.pop(op.path[-1])
        true_path = transform_path(op.path, op)
        if true_path is None:
            raise InvalidPath(op.new_path, "move target does not resolve")
        container = get_node(root, parent(true_path))
        if isinstance(container, Text):
            raise InvalidPath(op.new_path, "cannot move into a text leaf")
        container.children.insert(true_path[-1], node)

    elif isinstance(op, InsertText):
        node = _text_at(root, op.path, op.offset)
        node.text = node.text[: op.offset] + op.text + node.text[op.offset:]

    elif isinstance(op, RemoveText):
        node = _text_at(root, op.path, op.offset)
        node.text = node.text[: op.offset] + node.text[op.offset + len(op.text):]

    else:
        raise TypeError(f"Unknown operation: {op!r}")


def _text_at(root: Root, path: Path, offset: int) -> Text:
    node = get_node(root, path, allow_root=False)
    if not isinstance(node, Text):
        raise InvalidPath(path, "not a text leaf")
    if offset < 0 or offset > len(node.text):
        raise InvalidPath(path, f"offset {offset} out of range")
    return node


# =============================================================================
# Rebasing locations
# =============================================================================

def _shift(path: Path, depth: int, delta: int) -> Path:
    return path[:depth] + (path[depth] + delta,) + path[depth + 1:]


def transform_path(path: Path, op: Operation, affinity: Optional[Affinity] = "forward") -> Optional[Path]:
    """Where ``path`` points after ``op``; ``None`` if its node was removed."""
    if isinstance(op, (SetNode, InsertText, RemoveText)) or not path:
        return path

    at = op.path
    depth = len(at) - 1

    if isinstance(op, InsertNode):
        if at == path or ends_before(at, path) or is_ancestor(at, path):
            return _shift(path, depth, 1)
        return path

    if isinstance(op, RemoveNode):
        if at == path or is_ancestor(at, path):
            return None
        if ends_before(at, path):
            return _shift(path, depth, -1)
        return path

    if isinstance(op, MergeNode):
        if at == path or ends_before(at, path):
            return _shift(path, depth, -1)
        if is_ancestor(at, path):
            moved = _shift(path, depth, -1)
            return _shift(moved, len(at), op.position)
        return path

    if isinstance(op, SplitNode):
        if at == path:
            if affinity == "forward":
                return _shift(path, depth, 1)
            if affinity == "backward":
                return path
            return None
        if ends_before(at, path):
            return _shift(path, depth, 1)
        if is_ancestor(at, path) and path[len(at)] >= op.position:
            moved = _shift(path, depth, 1)
            return _shift(moved, len(at), -op.position)
        return path

    if isinstance(op, MoveNode):
        new_path = op.new_path
        if at == new_path:
            return path
        if is_ancestor(at, path) or at == path:
            target = new_path
            if ends_before(at, new_path) and len(at) < len(new_path):
                target = _shift(target, depth, -1)
            return target + path[len(at):]
        if is_sibling(at, new_path) and (is_ancestor(new_path, path) or new_path == path):
            if ends_before(at, path):
                return _shift(path, depth, -1)
            return _shift(path, depth, 1)
        if ends_before(new_path, path) or new_path == path or is_ancestor(new_path, path):
            if ends_before(at, path):
                path = _shift(path, depth, -1)
            return _shift(path, len(new_path) - 1, 1)
        if ends_before(at, path):
            if new_path == path:
                path = _shift(path, len(new_path) - 1, 1)
            return _shift(path, depth, -1)
        return path

    raise TypeError(f"Unknown operation: {op!r}")


def transform_point(point: Point, op: Operation, affinity: Affinity = "forward") -> Optional[Point]:
    """Where ``point`` lands after ``op``; ``None`` if its leaf was removed."""
    offset = point.offset

    if isinstance(op, InsertText):
        if op.path == point.path and (
            op.offset < offset or (op.offset == offset and affinity == "forward")
        ):
            offset += len(op.text)
        return Point(point.path, offset)

    if isinstance(op, RemoveText):
        if op.path == point.path and op.offset <= offset:
            offset -= min(offset - op.offset, len(op.text))
        return Point(point.path, offset)

    if isinstance(op, MergeNode) and op.path == point.path:
        return Point(_shift(point.path, len(point.path) - 1, -1), offset + op.position)

    if isinstance(op, SplitNode) and op.path == point.path:
        if op.position < offset or (op.position == offset and affinity == "forward"):
            return Point(next_path(point.path), offset - op.position)
        return point

    new_path = transform_path(point.path, op, affinity)
    if new_path is None:
        return None
    return Point(new_path, offset)


def transform_range(at: Range, op: Operation) -> Optional[Range]:
    """Rebase a range, keeping its edges inside what it covered."""
    if at.is_collapsed or not at.is_backward:
        anchor_affinity: Affinity = "forward"
        focus_affinity: Affinity = "forward" if at.is_collapsed else "backward"
    else:
        anchor_affinity = "backward"
        focus_affinity = "forward"

    anchor = transform_point(at.anchor, op, anchor_affinity)
    focus = transform_point(at.focus, op, focus_affinity)
    if anchor is None or focus is None:
        return None
    return Range(anchor, focus)
