"""Normalization engine.

Restores the structural invariants of a document after a mutation:

1. Every non-void element has at least one child.
2. Block elements never sit inside inline or void elements.
3. Adjacent text leaves under one parent are never both empty.
4. An inline void that is a first child, or follows another inline void,
   has a zero-width marker leaf right before it.
5. An inline void that is a last child has a zero-width marker leaf right
   after it.
6. List containers hold only list items.
7. A non-void inline element has a text leaf on each side, so an inline
   void is never directly next to one.

The pass works through a worklist of paths. Every repair is expressed as
low-level operations; pending paths are rebased after each one, and the
region around the repair is queued again so that nodes shifted by an
insertion get re-checked. Running the pass on a normalized tree applies
nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Optional

from richdoc.config import Settings, get_settings
from richdoc.errors import InvalidPath, NormalizationIncomplete
from richdoc.core.operations import (
    InsertNode,
    InsertText,
    MergeNode,
    MoveNode,
    Operation,
    RemoveNode,
    RemoveText,
    SetNode,
    SplitNode,
    apply_operation,
    transform_path,
)
from richdoc.core.path import Path, ancestors, get_node, get_parent, next_path, parent
from richdoc.formatting.ir import (
    Element,
    ElementType,
    Node,
    Root,
    Text,
    is_block_element,
    is_inline_node,
    is_void_inline,
)

logger = logging.getLogger(__name__)

ApplyFn = Callable[[Operation], None]


@dataclass
class NormalizationResult:
    """Outcome of one normalization pass.

    Attributes:
        iterations: Number of worklist entries checked
        operations: Repairs applied, in order
        diagnostics: Regions left unrepaired
    """

    iterations: int = 0
    operations: list[Operation] = field(default_factory=list)
    diagnostics: list[NormalizationIncomplete] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.operations)

    @property
    def complete(self) -> bool:
        return not self.diagnostics


class _Pass:
    """Mutable state of a single run: the tree, the worklist and the result."""

    def __init__(self, root: Root, apply: ApplyFn, seed: Iterable[Path]) -> None:
        self.root = root
        self._apply = apply
        self.pending: list[Path] = []
        self.result = NormalizationResult()
        self._reported: set[tuple[Path, str]] = set()
        self.enqueue(seed)

    def enqueue(self, paths: Iterable[Path]) -> None:
        queued = set(self.pending)
        for path in paths:
            if path not in queued:
                self.pending.append(path)
                queued.add(path)

    def pop(self) -> Path:
        return self.pending.pop(0)

    def emit(self, op: Operation) -> None:
        """Apply a repair and keep the worklist pointing at the same nodes."""
        self._apply(op)
        self.result.operations.append(op)
        rebased = (transform_path(path, op) for path in self.pending)
        self.pending = [path for path in rebased if path is not None]
        self.enqueue(self._affected(op))

    def report(self, path: Path, reason: str) -> None:
        if (path, reason) in self._reported:
            return
        self._reported.add((path, reason))
        diagnostic = NormalizationIncomplete(path=path, reason=reason)
        self.result.diagnostics.append(diagnostic)
        logger.warning("Normalization incomplete at %s", diagnostic)

    def _affected(self, op: Operation) -> list[Path]:
        """Paths whose checks can change outcome after ``op``."""
        if isinstance(op, (InsertText, RemoveText)):
            return list(ancestors(op.path))

        touched: list[Path] = []
        sites = [(parent(op.path), op.path[-1])]
        if isinstance(op, MoveNode):
            target = transform_path(op.path, op)
            source = transform_path(parent(op.path), op)
            if target is None or source is None:
                raise InvalidPath(op.path, "moved node did not survive the move")
            sites = [(source, op.path[-1]), (parent(target), target[-1])]

        for container, index in sites:
            touched.extend(ancestors(container + (0,)))
            for neighbour in (index - 1, index, index + 1, index + 2):
                if neighbour >= 0:
                    touched.append(container + (neighbour,))

        if isinstance(op, InsertNode):
            touched.extend(op.path + sub for _, sub in _walk_relative(op.node))
        elif isinstance(op, (SetNode, SplitNode)):
            touched.append(op.path)
        return [path for path in touched if _resolves(self.root, path)]


def _walk_relative(node: Node) -> Iterable[tuple[Node, Path]]:
    yield node, ()
    if isinstance(node, Text):
        return
    for index, child in enumerate(node.children):
        for sub_node, sub in _walk_relative(child):
            yield sub_node, (index,) + sub


def _resolves(root: Root, path: Path) -> bool:
    try:
        get_node(root, path)
    except InvalidPath:
        return False
    return True


class Normalizer:
    """Invariant-restoring pass over a document tree.

    Usable on its own with any tree, and run by the editor after every
    transform.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        self.zero_width_char = settings.zero_width_char
        self.default_block_type = settings.default_block_type
        self.iteration_factor = settings.normalize_iteration_factor

    def marker(self) -> Text:
        """A fresh caret-landing leaf."""
        return Text(text=self.zero_width_char)

    def normalize(
        self,
        root: Root,
        apply: Optional[ApplyFn] = None,
        paths: Optional[Iterable[Path]] = None,
    ) -> NormalizationResult:
        """Repair ``root`` until no rule fires.

        Args:
            root: The tree to repair (mutated in place)
            apply: Applies an operation to ``root``; defaults to
                ``apply_operation``. The editor passes its own so that the
                selection and refs follow the repairs.
            paths: Entries to seed the worklist with; defaults to every
                node in the tree

        Returns:
            NormalizationResult describing what was done. Never raises for
            tree shapes it cannot repair; those become diagnostics.
        """
        if apply is None:
            def apply(op: Operation) -> None:
                apply_operation(root, op)

        seed = list(paths) if paths is not None else [path for _, path in root.nodes()]
        run = _Pass(root, apply, seed)
        limit = max(len(seed), 1) * self.iteration_factor

        while run.pending:
            if run.result.iterations >= limit:
                run.report((), f"no fixed point after {limit} checks")
                break
            path = run.pop()
            run.result.iterations += 1
            try:
                node = get_node(root, path)
            except InvalidPath:
                continue
            self._normalize_entry(run, node, path)

        if run.result.changed:
            logger.debug(
                "Normalized with %d repair(s) in %d check(s)",
                len(run.result.operations),
                run.result.iterations,
            )
        return run.result

    def _normalize_entry(self, run: _Pass, node: Node, path: Path) -> bool:
        """Check one entry; apply at most one rule. Returns True on repair."""
        if isinstance(node, Text):
            return False

        if isinstance(node, Root):
            if path:
                run.report(path, "document root nested inside the tree")
                return False
            return self._wrap_stray_inlines(run, node)

        if isinstance(node, Element):
            if not node.children and not node.is_void:
                logger.debug("Filling empty %s at %s", node.type, path)
                run.emit(InsertNode(path + (0,), Text()))
                return True
            if is_void_inline(node) and self._space_void(run, node, path):
                return True
            if node.is_inline and not node.is_void and self._space_inline(run, node, path):
                return True
            if node.is_list and self._coerce_list_children(run, node, path):
                return True
            if node.is_inline and self._lift_block_children(run, node, path):
                return True
            if self._merge_empty_texts(run, node, path):
                return True
            if not node.is_inline and self._mixes_content(node):
                run.report(path, f"{node.type} mixes block and inline children")
            return False

        run.report(path, f"unknown node kind {type(node).__name__}")
        return False

    # =========================================================================
    # Rules
    # =========================================================================

    def _space_void(self, run: _Pass, node: Element, path: Path) -> bool:
        """Give an inline void caret-landing leaves on the sides that need them."""
        container = get_parent(run.root, path)
        if isinstance(container, Root):
            # stray inline at the top level; the root rule wraps it first
            return False

        index = path[-1]
        is_first = index == 0
        is_last = index == len(container.children) - 1
        follows_void = not is_first and is_void_inline(container.children[index - 1])

        changed = False
        if is_last:
            logger.debug("Marker after trailing void at %s", path)
            run.emit(InsertNode(next_path(path), self.marker()))
            changed = True
        if is_first or follows_void:
            logger.debug("Marker before void at %s", path)
            run.emit(InsertNode(path, self.marker()))
            changed = True
        return changed

    def _space_inline(self, run: _Pass, node: Element, path: Path) -> bool:
        """Keep a text leaf on both sides of a non-void inline element."""
        container = get_parent(run.root, path)
        if isinstance(container, Root):
            return False

        index = path[-1]
        siblings = container.children
        if index == len(siblings) - 1 or not isinstance(siblings[index + 1], Text):
            logger.debug("Leaf after inline %s at %s", node.type, path)
            run.emit(InsertNode(next_path(path), Text()))
            return True
        if index == 0 or not isinstance(siblings[index - 1], Text):
            logger.debug("Leaf before inline %s at %s", node.type, path)
            run.emit(InsertNode(path, Text()))
            return True
        return False

    def _coerce_list_children(self, run: _Pass, node: Element, path: Path) -> bool:
        """Turn stray list children into list items without dropping content."""
        for index, child in enumerate(node.children):
            child_path = path + (index,)
            if isinstance(child, Element) and child.type == ElementType.LIST_ITEM.value:
                continue
            if is_block_element(child) and not child.is_list and child.has_inline_content:
                logger.debug("Retyping %s at %s as list-item", child.type, child_path)
                run.emit(SetNode(
                    child_path,
                    {"type": child.type},
                    {"type": ElementType.LIST_ITEM.value},
                ))
            else:
                logger.debug("Wrapping stray list child at %s", child_path)
                run.emit(InsertNode(child_path, Element(type=ElementType.LIST_ITEM)))
                run.emit(MoveNode(path + (index + 1,), child_path + (0,)))
            return True
        return False

    def _wrap_stray_inlines(self, run: _Pass, root: Root) -> bool:
        """Wrap runs of top-level text/inline nodes in a default block."""
        for index, child in enumerate(root.children):
            if not is_inline_node(child):
                continue
            end = index
            while end + 1 < len(root.children) and is_inline_node(root.children[end + 1]):
                end += 1
            logger.debug("Wrapping top-level inline run %d..%d", index, end)
            run.emit(InsertNode((index,), Element(type=self.default_block_type)))
            for offset in range(end - index + 1):
                run.emit(MoveNode((index + 1,), (index, offset)))
            return True
        return False

    def _lift_block_children(self, run: _Pass, node: Element, path: Path) -> bool:
        """Unwrap block children of an inline element in place."""
        for index, child in enumerate(node.children):
            if not is_block_element(child):
                continue
            child_path = path + (index,)
            logger.debug("Lifting block %s out of inline %s", child.type, path)
            for offset in range(len(child.children)):
                run.emit(MoveNode(child_path + (0,), path + (index + 1 + offset,)))
            run.emit(RemoveNode(child_path, Element(type=child.type, data=dict(child.data))))
            return True
        return False

    def _merge_empty_texts(self, run: _Pass, node: Element, path: Path) -> bool:
        """Collapse adjacent empty leaves into one."""
        children = node.children
        for index in range(len(children) - 1):
            left, right = children[index], children[index + 1]
            if isinstance(left, Text) and isinstance(right, Text) and not left.text and not right.text:
                logger.debug("Merging empty leaves at %s", path + (index + 1,))
                run.emit(MergeNode(path + (index + 1,), 0, dict(right.marks)))
                return True
        return False

    @staticmethod
    def _mixes_content(node: Element) -> bool:
        has_blocks = any(is_block_element(child) for child in node.children)
        has_inlines = any(is_inline_node(child) for child in node.children)
        return has_blocks and has_inlines
