"""Transform engine: the primitive structural edits.

Each public method is atomic. It validates its request, applies a series of
low-level operations through the editor, and finishes with a normalization
pass; any failure rolls the document back to its last normalized state.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Optional, Union

from richdoc.errors import InvalidPath, StructureViolation
from richdoc.core.operations import (
    InsertNode,
    InsertText,
    MergeNode,
    MoveNode,
    RemoveNode,
    RemoveText,
    SetNode,
    SplitNode,
)
from richdoc.core.path import (
    Path,
    Point,
    Range,
    common,
    get_node,
    is_after,
    is_ancestor,
    is_before,
    next_path,
    parent,
    validate_point,
    validate_range,
)
from richdoc.formatting.ir import (
    Element,
    Node,
    Root,
    Text,
    is_block_element,
    is_inline_node,
    mark_name,
    type_name,
)

if TYPE_CHECKING:
    from richdoc.core.editor import Editor, Location, Mode

Match = Callable[[Node], bool]


def _as_location(at):
    """Paths may be passed as lists; locations are compared as tuples."""
    return tuple(at) if isinstance(at, list) else at


class TransformEngine:
    """Primitive tree-mutating operations bound to an editor."""

    def __init__(self, editor: Editor) -> None:
        self.editor = editor

    @property
    def root(self) -> Root:
        return self.editor.root

    # =========================================================================
    # Nodes
    # =========================================================================

    def insert_nodes(
        self,
        nodes: Union[Element, Text, list[Union[Element, Text]]],
        at: Optional[Location] = None,
        select: bool = False,
    ) -> None:
        """Splice nodes into the tree.

        Args:
            nodes: One node or a list of sibling nodes (copied on insert)
            at: Path of the first inserted node, a point (text is split
                there), a range (deleted first), or ``None`` for the
                selection, falling back to the end of the document
            select: Place the caret right after the inserted nodes

        Raises:
            StructureViolation: If the target does not accept the nodes'
                block/inline category
            InvalidPath: If the location does not resolve
        """
        if not isinstance(nodes, list):
            nodes = [nodes]
        for node in nodes:
            if not isinstance(node, (Element, Text)):
                raise StructureViolation(f"Cannot insert {type(node).__name__}")
        if not nodes:
            return

        with self.editor.transaction("insert_nodes"):
            if at is None:
                at = self.editor.selection
            if isinstance(at, Range):
                if at.is_expanded:
                    self.delete_range(at)
                    at = self.editor.selection.anchor if self.editor.selection else at.start
                else:
                    at = at.anchor
            if at is None:
                at = (len(self.root.children),)

            if isinstance(at, Point):
                leaf = validate_point(self.root, at)
                self._check_editable(at.path)
                container_path = parent(at.path)
            else:
                at = tuple(at)
                if not at:
                    raise InvalidPath(at, "cannot insert at the root path")
                container_path = parent(at)

            container = get_node(self.root, container_path)
            for node in nodes:
                self._check_accepts(container, node, container_path)

            if isinstance(at, Point):
                if at.offset == 0:
                    path = at.path
                elif at.offset == len(leaf.text):
                    path = next_path(at.path)
                else:
                    self.editor.apply(SplitNode(at.path, at.offset, dict(leaf.marks)))
                    path = next_path(at.path)
            else:
                path = at
                if path[-1] > len(container.children):
                    raise InvalidPath(path, f"insert index {path[-1]} out of range")

            for offset, node in enumerate(nodes):
                self.editor.apply(InsertNode(path[:-1] + (path[-1] + offset,), node))
            if select:
                with self.editor.path_ref(path[:-1] + (path[-1] + len(nodes) - 1,)) as last:
                    self.editor.normalize()
                    self._select_after(last.current)

    def _select_after(self, path: Optional[Path]) -> None:
        if path is None:
            return
        for text, text_path in self.root.texts():
            if is_after(text_path, path):
                self.editor.selection = Range.collapsed(Point(text_path, 0))
                return
        node = get_node(self.root, path)
        if isinstance(node, Text):
            self.editor.selection = Range.collapsed(Point(path, len(node.text)))

    def remove_nodes(
        self,
        at: Optional[Location] = None,
        match: Optional[Match] = None,
    ) -> None:
        """Delete nodes and their subtrees.

        With a path and no ``match`` the node at that path is removed;
        otherwise the highest matching nodes in scope (default: lowest
        blocks) are.
        """
        at = _as_location(at)
        if isinstance(at, tuple) and not at:
            raise StructureViolation("Cannot remove the document root")

        with self.editor.transaction("remove_nodes"):
            if isinstance(at, tuple) and match is None:
                node = get_node(self.root, at, allow_root=False)
                self.editor.apply(RemoveNode(at, copy.deepcopy(node)))
                return

            if match is None:
                entries = self.editor.nodes(at=at, match=is_block_element, mode="lowest")
            else:
                entries = self.editor.nodes(at=at, match=match, mode="highest")
            if any(not path for _, path in entries):
                raise StructureViolation("Cannot remove the document root")
            for node, path in reversed(entries):
                self.editor.apply(RemoveNode(path, copy.deepcopy(node)))

    def set_node_properties(
        self,
        patch: dict,
        match: Optional[Match] = None,
        at: Optional[Location] = None,
        mode: Mode = "lowest",
    ) -> None:
        """Shallow-merge ``patch`` onto matching elements in scope.

        A ``None`` value removes an extra property. Default match: block
        elements (lowest in scope), or the node at ``at`` when it is a path.

        Raises:
            StructureViolation: If the patch touches ``children``/``text``,
                or would move a node between the inline and block categories
        """
        at = _as_location(at)
        if "children" in patch or "text" in patch:
            raise StructureViolation("Patches cannot replace children or text")
        if "type" in patch:
            patch = {**patch, "type": type_name(patch["type"])}

        match = self._default_match(at, match, is_block_element)
        entries = self.editor.nodes(
            at=at, match=lambda n: isinstance(n, Element) and match(n), mode=mode,
        )

        for node, path in entries:
            if "type" in patch and Element(type=patch["type"]).is_inline != node.is_inline:
                raise StructureViolation(
                    f"Changing {node.type} at {path} to {patch['type']} "
                    f"would move it between inline and block"
                )

        with self.editor.transaction("set_node_properties"):
            for node, path in entries:
                current = node.properties()
                old = {key: current.get(key) for key in patch}
                new = {key: value for key, value in patch.items() if current.get(key) != value}
                if new:
                    self.editor.apply(SetNode(path, old, new))

    def move_nodes(self, at: Path, to: Path) -> None:
        """Move the node at ``at`` so that it ends up at ``to``."""
        at, to = tuple(at), tuple(to)
        if not at:
            raise StructureViolation("Cannot move the document root")
        if not to:
            raise InvalidPath(to, "cannot move to the root path")
        if at == to:
            return
        if is_ancestor(at, to):
            raise StructureViolation(f"Cannot move {at} inside itself")

        node = get_node(self.root, at, allow_root=False)
        container = get_node(self.root, parent(to))
        self._check_accepts(container, node, parent(to))
        limit = len(container.children) - (1 if parent(at) == parent(to) else 0)
        if to[-1] > limit:
            raise InvalidPath(to, f"move index {to[-1]} out of range")

        with self.editor.transaction("move_nodes"):
            self.editor.apply(MoveNode(at, to))

    # =========================================================================
    # Wrapping
    # =========================================================================

    def wrap_nodes(
        self,
        wrapper: Element,
        match: Optional[Match] = None,
        at: Optional[Location] = None,
        split: bool = False,
    ) -> None:
        """Give the matched nodes in scope a new parent built from ``wrapper``.

        Block wrappers wrap the span of their common ancestor's children
        covering the lowest matching blocks. Inline wrappers wrap the text
        and inline nodes of each block in scope; with ``split`` the text at
        the range edges is split first so only the covered substring is
        wrapped.

        Raises:
            StructureViolation: For a void wrapper, or when the match is the
                document root
        """
        if not isinstance(wrapper, Element):
            raise StructureViolation("Wrapper must be an element")
        if wrapper.is_void:
            raise StructureViolation(f"Void element {wrapper.type} cannot wrap content")
        at = _as_location(at)
        if isinstance(at, tuple) and not at:
            raise StructureViolation("Cannot wrap the document root")

        if at is None:
            at = self.editor.selection
        if at is None:
            return

        with self.editor.transaction("wrap_nodes"):
            if wrapper.is_inline:
                self._wrap_inline(wrapper, match, at, split)
            else:
                self._wrap_block(wrapper, match, at)

    def _wrap_block(self, wrapper: Element, match: Optional[Match], at: Location) -> None:
        match = self._default_match(at, match, is_block_element)
        entries = self.editor.nodes(at=at, match=match, mode="lowest")
        if not entries:
            return
        first, last = entries[0][1], entries[-1][1]
        if not first or not last:
            raise StructureViolation("Cannot wrap the document root")

        common_path = parent(first) if first == last else common(first, last)
        container = get_node(self.root, common_path)
        if isinstance(container, Element) and container.is_inline:
            raise StructureViolation(f"Cannot put block {wrapper.type} inside inline {container.type}")

        depth = len(common_path)
        start, end = first[depth], last[depth]
        wrapper_path = common_path + (start,)
        self.editor.apply(InsertNode(wrapper_path, wrapper.empty_copy()))
        for offset in range(end - start + 1):
            self.editor.apply(MoveNode(common_path + (start + 1,), wrapper_path + (offset,)))

    def _wrap_inline(self, wrapper: Element, match: Optional[Match], at: Location, split: bool) -> None:
        with self._location_ref(at) as ref:
            if split and isinstance(at, Range) and at.is_expanded:
                self.split_edges(at)
            at = ref.current
            if at is None:
                return
            blocks = self.editor.nodes(
                at=at,
                match=lambda n: isinstance(n, Element) and n.is_block and not n.is_void,
                mode="lowest",
            )
            covered = {path for _, path in self.covered_texts(at)} if isinstance(at, Range) else None

            for _, block_path in reversed(blocks):
                inner = [
                    path for node, path in self.editor.nodes(
                        at=at, match=match or is_inline_node, mode="highest",
                    )
                    if path and parent(path) == block_path
                    and (covered is None or isinstance(node, Element) or path in covered)
                ]
                if not inner:
                    continue
                start, end = inner[0][-1], inner[-1][-1]
                wrapper_path = block_path + (start,)
                self.editor.apply(InsertNode(wrapper_path, wrapper.empty_copy()))
                for offset in range(end - start + 1):
                    self.editor.apply(MoveNode(block_path + (start + 1,), wrapper_path + (offset,)))

    def unwrap_nodes(
        self,
        match: Optional[Match] = None,
        at: Optional[Location] = None,
        split: bool = False,
    ) -> None:
        """Lift the children of each lowest matching element into its parent.

        With ``split`` and a range, only the children intersecting the range
        are lifted; the matching element is split around them so that
        siblings outside the range stay where they are.

        Raises:
            StructureViolation: When asked to unwrap the document root
        """
        at = _as_location(at)
        if isinstance(at, tuple) and not at:
            raise StructureViolation("Cannot unwrap the document root")
        if at is None:
            at = self.editor.selection
        if at is None:
            return

        match = self._default_match(at, match, lambda n: False)
        entries = self.editor.nodes(
            at=at, match=lambda n: isinstance(n, Element) and match(n), mode="lowest",
        )
        if not entries:
            return

        with self.editor.transaction("unwrap_nodes"):
            refs = [self.editor.path_ref(path) for _, path in entries]
            with self._location_ref(at) as scope:
                try:
                    if split and isinstance(at, Range) and at.is_expanded and any(
                        node.is_inline for node, _ in entries
                    ):
                        self.split_edges(at)
                    for ref in reversed(refs):
                        path = ref.current
                        if path is None:
                            continue
                        node = get_node(self.root, path)
                        span = scope.current if split and isinstance(scope.current, Range) else None
                        self._lift_children(path, node, span)
                finally:
                    for ref in refs:
                        ref.unref()

    def _lift_children(self, path: Path, node: Element, span: Optional[Range]) -> None:
        count = len(node.children)
        if count == 0:
            self.editor.apply(RemoveNode(path, node.empty_copy()))
            return

        low, high = 0, count - 1
        if span is not None:
            start, end = span.edges()
            if is_ancestor(path, start.path):
                low = start.path[len(path)]
            if is_ancestor(path, end.path):
                high = end.path[len(path)]

        properties = node.properties()
        if high < count - 1:
            self.editor.apply(SplitNode(path, high + 1, properties))
        if low > 0:
            self.editor.apply(SplitNode(path, low, properties))
            path = next_path(path)

        for offset in range(high - low + 1):
            self.editor.apply(MoveNode(path + (0,), parent(path) + (path[-1] + 1 + offset,)))
        self.editor.apply(RemoveNode(path, node.empty_copy()))

    # =========================================================================
    # Marks
    # =========================================================================

    def add_mark(self, name: str) -> None:
        """Set a mark on every leaf covered by the selection.

        On a caret the mark is recorded for the next inserted text.
        """
        self._set_mark(mark_name(name), True)

    def remove_mark(self, name: str) -> None:
        """Clear a mark on every leaf covered by the selection."""
        self._set_mark(mark_name(name), None)

    def _set_mark(self, name: str, value: Optional[bool]) -> None:
        selection = self.editor.selection
        if selection is None:
            return

        with self.editor.transaction("add_mark" if value else "remove_mark"):
            if selection.is_collapsed:
                marks = self.editor.active_marks()
                if value:
                    marks[name] = True
                else:
                    marks.pop(name, None)
                self.editor.marks = marks
                return

            self.split_edges(selection)
            for text, path in list(self.covered_texts(self.editor.selection)):
                if text.marks.get(name) is value or (value is None and name not in text.marks):
                    continue
                self.editor.apply(SetNode(path, {name: text.marks.get(name)}, {name: value}))

    def split_edges(self, at: Range) -> None:
        """Split the leaves at both edges of a range so it covers whole leaves."""
        validate_range(self.root, at)
        start, end = at.edges()
        self._split_text(end)
        self._split_text(start)

    def _split_text(self, point: Point) -> None:
        leaf = validate_point(self.root, point)
        if 0 < point.offset < len(leaf.text):
            self.editor.apply(SplitNode(point.path, point.offset, dict(leaf.marks)))

    def covered_texts(self, at: Range) -> Iterator[tuple[Text, Path]]:
        """Leaves with at least one character inside ``at`` (voids skipped)."""
        start, end = at.edges()
        for node, path in self.editor.nodes(at=at, match=lambda n: isinstance(n, Text)):
            low = start.offset if path == start.path else 0
            high = end.offset if path == end.path else len(node.text)
            if high > low:
                yield node, path

    # =========================================================================
    # Text
    # =========================================================================

    def insert_text(self, text: str, at: Optional[Union[Point, Range]] = None) -> None:
        """Insert a string at a point (default: the selection).

        An expanded range is deleted first. Pending marks from a caret mark
        toggle give the text a leaf of its own.
        """
        with self.editor.transaction("insert_text"):
            at_selection = at is None
            if at is None:
                at = self.editor.selection
            if at is None:
                raise StructureViolation("No location to insert text at")
            if isinstance(at, Range):
                if at.is_expanded:
                    self.delete_range(at)
                    at = self.editor.selection.anchor if at_selection and self.editor.selection else at.start
                else:
                    at = at.anchor

            leaf = validate_point(self.root, at)
            self._check_editable(at.path)
            pending = self.editor.marks if at_selection else None
            if not text:
                return

            if pending is not None and pending != leaf.active_marks:
                if at.offset == 0:
                    path = at.path
                elif at.offset == len(leaf.text):
                    path = next_path(at.path)
                else:
                    self.editor.apply(SplitNode(at.path, at.offset, dict(leaf.marks)))
                    path = next_path(at.path)
                self.editor.apply(InsertNode(path, Text(text=text, marks=dict(pending))))
                self.editor.selection = Range.collapsed(Point(path, len(text)))
            else:
                self.editor.apply(InsertText(at.path, at.offset, text))
            if at_selection:
                self.editor.marks = None

    def delete_range(self, at: Optional[Range] = None) -> None:
        """Delete the content of a range (default: the selection).

        Across blocks, the end block is merged into the start block and
        ancestors left empty are removed. The selection collapses to the
        start of the deleted range.
        """
        if at is None:
            at = self.editor.selection
        if at is None or at.is_collapsed:
            return
        validate_range(self.root, at)

        with self.editor.transaction("delete_range"):
            start, end = at.edges()
            start_text = validate_point(self.root, start)
            end_text = validate_point(self.root, end)

            if start.path == end.path:
                removed = start_text.text[start.offset:end.offset]
                self.editor.apply(RemoveText(start.path, start.offset, removed))
                self.editor.selection = Range.collapsed(start)
                return

            start_block = self._lowest_block(start.path)
            with self.editor.point_ref(start) as start_ref, \
                    self.editor.path_ref(start_block) as start_block_ref, \
                    self.editor.path_ref(self._lowest_block(end.path)) as end_block_ref:
                if end.offset:
                    self.editor.apply(RemoveText(end.path, 0, end_text.text[: end.offset]))
                if start.offset < len(start_text.text):
                    self.editor.apply(RemoveText(start.path, start.offset, start_text.text[start.offset:]))

                between: list[tuple[Node, Path]] = []
                for node, path in self.root.nodes():
                    if not (is_after(path, start.path) and is_before(path, end.path)):
                        continue
                    if any(is_ancestor(other, path) for _, other in between):
                        continue
                    between.append((node, path))
                for node, path in reversed(between):
                    self.editor.apply(RemoveNode(path, copy.deepcopy(node)))

                self._merge_blocks(start_block_ref.current, end_block_ref.current)
                if start_ref.current is not None:
                    self.editor.selection = Range.collapsed(start_ref.current)

    def _merge_blocks(self, start_block: Optional[Path], end_block: Optional[Path]) -> None:
        if start_block is None or end_block is None or start_block == end_block:
            return
        if is_ancestor(start_block, end_block) or is_ancestor(end_block, start_block):
            return

        target = next_path(start_block)
        with self.editor.path_ref(parent(end_block)) as old_parent:
            if end_block != target:
                self.editor.apply(MoveNode(end_block, target))
            block = get_node(self.root, target)
            into = get_node(self.root, start_block)
            if not isinstance(block, Element) or not isinstance(into, Element):
                raise StructureViolation(f"Cannot merge text leaves at {start_block} and {target} as blocks")
            self.editor.apply(MergeNode(target, len(into.children), block.properties()))

            path = old_parent.current
            while path:
                node = get_node(self.root, path)
                if not isinstance(node, Element) or node.children:
                    break
                self.editor.apply(RemoveNode(path, node.empty_copy()))
                path = parent(path)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _default_match(self, at: Optional[Location], match: Optional[Match], fallback: Match) -> Match:
        if match is not None:
            return match
        if isinstance(at, tuple):
            target = get_node(self.root, at)
            return lambda n: n is target
        return fallback

    def _location_ref(self, at: Location):
        if isinstance(at, Range):
            return self.editor.range_ref(at)
        if isinstance(at, Point):
            return self.editor.point_ref(at)
        return self.editor.path_ref(tuple(at))

    def _lowest_block(self, path: Path) -> Path:
        for depth in range(len(path) - 1, 0, -1):
            node = get_node(self.root, path[:depth])
            if isinstance(node, Element) and node.is_block:
                return path[:depth]
        raise InvalidPath(path, "no enclosing block")

    def _check_editable(self, path: Path) -> None:
        for depth in range(1, len(path)):
            node = get_node(self.root, path[:depth])
            if isinstance(node, Element) and node.is_void:
                raise StructureViolation(f"Content of void {node.type} at {path[:depth]} is not editable")

    @staticmethod
    def _check_accepts(container: Node, node: Union[Element, Text], path: Path) -> None:
        """Reject nodes whose block/inline category the container does not take."""
        if isinstance(container, Text):
            raise InvalidPath(path, "a text leaf has no children")
        if isinstance(container, Root):
            if not is_block_element(node):
                raise StructureViolation("The document root only accepts block elements")
            return
        if container.is_inline or container.is_void:
            if not is_inline_node(node):
                raise StructureViolation(
                    f"Inline {container.type} at {path} cannot contain a block element"
                )
            return
        if not container.children:
            return
        if container.has_block_content != is_block_element(node):
            expected = "block elements" if container.has_block_content else "text and inline elements"
            raise StructureViolation(f"{container.type} at {path} only accepts {expected}")
