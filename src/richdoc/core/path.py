"""Structural addressing into the document tree.

A path is a tuple of child indices walked from the root; the empty tuple is
the root itself. Paths are views over tree position and go stale after any
edit elsewhere in the tree, so they are recomputed rather than cached (use
the editor's refs to follow a location across edits).
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Optional, Union

from richdoc.errors import InvalidPath, NoParent
from richdoc.formatting.ir import Element, Node, Root, Text

Path = tuple[int, ...]


# =============================================================================
# Pure path arithmetic
# =============================================================================

def parent(path: Path) -> Path:
    """Path of the enclosing element (or root)."""
    if not path:
        raise NoParent(path)
    return path[:-1]


def previous(path: Path) -> Optional[Path]:
    """Path of the previous sibling index, or ``None`` for a first child."""
    if not path:
        raise NoParent(path)
    if path[-1] == 0:
        return None
    return path[:-1] + (path[-1] - 1,)


def next_path(path: Path) -> Path:
    """Path of the next sibling index (which may not exist yet)."""
    if not path:
        raise NoParent(path)
    return path[:-1] + (path[-1] + 1,)


def ancestors(path: Path) -> Iterator[Path]:
    """Proper ancestors, root first."""
    for depth in range(len(path)):
        yield path[:depth]


def is_ancestor(path: Path, other: Path) -> bool:
    """True if ``path`` is a proper ancestor of ``other``."""
    return len(path) < len(other) and other[: len(path)] == path


def is_sibling(path: Path, other: Path) -> bool:
    return bool(path) and len(path) == len(other) and path[:-1] == other[:-1] and path != other


def ends_before(path: Path, other: Path) -> bool:
    """True if ``path`` ends before ``other`` at the level of ``path``.

    ``(0, 1)`` ends before ``(0, 2, 5)``: the last index of ``path`` is lower
    than ``other``'s index at the same depth under the same parent.
    """
    if not path:
        return False
    depth = len(path) - 1
    if len(other) <= depth:
        return False
    return path[:depth] == other[:depth] and path[depth] < other[depth]


def compare(path: Path, other: Path) -> int:
    """Document-order comparison; ancestors compare equal to descendants."""
    for a, b in zip(path, other):
        if a < b:
            return -1
        if a > b:
            return 1
    return 0


def is_before(path: Path, other: Path) -> bool:
    return compare(path, other) == -1


def is_after(path: Path, other: Path) -> bool:
    return compare(path, other) == 1


def common(path: Path, other: Path) -> Path:
    """Longest shared prefix."""
    shared: list[int] = []
    for a, b in zip(path, other):
        if a != b:
            break
        shared.append(a)
    return tuple(shared)


def in_span(path: Path, start: Path, end: Path) -> bool:
    """True if the node at ``path`` intersects the span ``start``..``end``.

    Ancestors of either edge count as intersecting.
    """
    return compare(path, start) >= 0 and compare(path, end) <= 0


# =============================================================================
# Tree-aware queries
# =============================================================================

def get_node(root: Root, path: Path, allow_root: bool = True) -> Node:
    """Resolve ``path`` to a node.

    Raises:
        InvalidPath: If any index is out of range, or the path is empty
            and a non-root node is required
    """
    if not path:
        if allow_root:
            return root
        raise InvalidPath(path, "empty path where a node is required")

    node: Node = root
    for depth, index in enumerate(path):
        if isinstance(node, Text):
            raise InvalidPath(path, f"text leaf at {path[:depth]} has no children")
        if index < 0 or index >= len(node.children):
            raise InvalidPath(path, f"index {index} out of range at depth {depth}")
        node = node.children[index]
    return node


def get_parent(root: Root, path: Path) -> Union[Root, Element]:
    """The node enclosing ``path``."""
    node = get_node(root, parent(path))
    if isinstance(node, Text):
        raise InvalidPath(path, "parent is a text leaf")
    return node


def previous_sibling(root: Root, path: Path) -> Optional[Path]:
    """Path of the previous sibling, or ``None``."""
    get_node(root, path, allow_root=False)
    return previous(path)


def next_sibling(root: Root, path: Path) -> Optional[Path]:
    """Path of the next sibling, or ``None``."""
    if is_last_child(root, path):
        return None
    return next_path(path)


def is_first_child(root: Root, path: Path) -> bool:
    get_node(root, path, allow_root=False)
    return path[-1] == 0


def is_last_child(root: Root, path: Path) -> bool:
    get_node(root, path, allow_root=False)
    return path[-1] == len(get_parent(root, path).children) - 1


def first_text(root: Root, path: Path) -> tuple[Text, Path]:
    """First text leaf inside (or at) ``path``."""
    for node, child_path in _entries_under(root, path):
        if isinstance(node, Text):
            return node, child_path
    raise InvalidPath(path, "no text leaf inside")


def last_text(root: Root, path: Path) -> tuple[Text, Path]:
    """Last text leaf inside (or at) ``path``."""
    found: Optional[tuple[Text, Path]] = None
    for node, child_path in _entries_under(root, path):
        if isinstance(node, Text):
            found = (node, child_path)
    if found is None:
        raise InvalidPath(path, "no text leaf inside")
    return found


def _entries_under(root: Root, path: Path) -> Iterator[tuple[Node, Path]]:
    get_node(root, path)
    for node, child_path in root.nodes():
        if child_path[: len(path)] == path:
            yield node, child_path


# =============================================================================
# Points and ranges
# =============================================================================

@dataclass(frozen=True)
class Point:
    """A caret position: a text leaf path plus a character offset."""

    path: Path
    offset: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", tuple(self.path))

    def compare(self, other: Point) -> int:
        result = compare(self.path, other.path)
        if result != 0:
            return result
        if self.offset < other.offset:
            return -1
        if self.offset > other.offset:
            return 1
        return 0

    def is_before(self, other: Point) -> bool:
        return self.compare(other) < 0

    def is_after(self, other: Point) -> bool:
        return self.compare(other) > 0


@dataclass(frozen=True)
class Range:
    """An anchor/focus pair; the anchor may come after the focus."""

    anchor: Point
    focus: Point

    @classmethod
    def collapsed(cls, point: Point) -> Range:
        return cls(anchor=point, focus=point)

    @property
    def is_backward(self) -> bool:
        return self.anchor.is_after(self.focus)

    @property
    def is_collapsed(self) -> bool:
        return self.anchor == self.focus

    @property
    def is_expanded(self) -> bool:
        return not self.is_collapsed

    @property
    def start(self) -> Point:
        return self.focus if self.is_backward else self.anchor

    @property
    def end(self) -> Point:
        return self.anchor if self.is_backward else self.focus

    def edges(self) -> tuple[Point, Point]:
        return self.start, self.end


def start_point(root: Root, path: Path) -> Point:
    _, text_path = first_text(root, path)
    return Point(text_path, 0)


def end_point(root: Root, path: Path) -> Point:
    text, text_path = last_text(root, path)
    return Point(text_path, len(text.text))


def node_range(root: Root, path: Path) -> Range:
    """Range spanning everything inside the node at ``path``."""
    return Range(start_point(root, path), end_point(root, path))


def validate_point(root: Root, point: Point) -> Text:
    """Check that a point addresses a text leaf within bounds."""
    node = get_node(root, point.path, allow_root=False)
    if not isinstance(node, Text):
        raise InvalidPath(point.path, "point does not address a text leaf")
    if point.offset < 0 or point.offset > len(node.text):
        raise InvalidPath(point.path, f"offset {point.offset} out of range")
    return node


def validate_range(root: Root, at: Range) -> None:
    validate_point(root, at.anchor)
    validate_point(root, at.focus)
