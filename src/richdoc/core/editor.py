"""Editing session: the document, its selection and the transaction boundary."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Optional, Union

from richdoc.config import Settings, get_settings
from richdoc.errors import NormalizationIncomplete
from richdoc.core.normalizer import NormalizationResult, Normalizer
from richdoc.core.operations import (
    Affinity,
    Operation,
    RemoveNode,
    apply_operation,
    transform_path,
    transform_range,
)
from richdoc.core.path import (
    Path,
    Point,
    Range,
    compare,
    get_node,
    in_span,
    is_ancestor,
    validate_point,
    validate_range,
)
from richdoc.core.refs import LocationRef, PathRef, PointRef, RangeRef
from richdoc.core.transforms import TransformEngine
from richdoc.formatting.ir import Element, Node, Root, Text
from richdoc.formatting.records import from_records, to_records

if TYPE_CHECKING:
    from richdoc.core.commands import Command

logger = logging.getLogger(__name__)

Location = Union[Path, Point, Range]
Match = Callable[[Node], bool]
Mode = Literal["all", "highest", "lowest"]


@dataclass(frozen=True)
class Snapshot:
    """A detached copy of the document and selection at one moment."""

    root: Root
    selection: Optional[Range]

    def to_records(self) -> list[dict]:
        return to_records(self.root)


@dataclass(frozen=True)
class Commit:
    """One committed edit, as seen by a history collaborator.

    Attributes:
        name: Transform or command that produced it
        before: State before the edit
        after: Normalized state after the edit
        operations: Every operation applied, repairs included
    """

    name: str
    before: Snapshot
    after: Snapshot
    operations: tuple[Operation, ...]


HistoryObserver = Callable[[Commit], None]


class Editor:
    """Single-mutator editing session over one document.

    Every transform runs inside ``transaction()``: it is applied as a
    sequence of operations, followed by a normalization pass, and either
    committed as a whole or rolled back to the last normalized state.
    """

    def __init__(
        self,
        document: Optional[Root] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """Initialize the editor.

        Args:
            document: Initial tree; defaults to a single empty paragraph
            settings: Configuration; defaults to the global settings
        """
        self.settings = settings or get_settings()
        if document is None:
            document = Root(children=[Element(type=self.settings.default_block_type)])
        self.root = document
        self.selection: Optional[Range] = None
        # Marks for the next inserted text, set by a mark toggle on a caret
        self.marks: Optional[dict[str, bool]] = None
        self.diagnostics: list[NormalizationIncomplete] = []

        self.normalizer = Normalizer(self.settings)
        self.transforms = TransformEngine(self)

        self._refs: set[LocationRef] = set()
        self._observers: list[HistoryObserver] = []
        self._operations: list[Operation] = []
        self._depth = 0
        self._dirty = True

    @classmethod
    def from_records(
        cls,
        records: list[dict],
        settings: Optional[Settings] = None,
        normalize: bool = True,
    ) -> Editor:
        """Create an editor from the plain record format."""
        editor = cls(from_records(records), settings=settings)
        if normalize:
            editor.normalize(force=True)
        return editor

    def to_records(self) -> list[dict]:
        return to_records(self.root)

    # =========================================================================
    # Operations and normalization
    # =========================================================================

    def apply(self, op: Operation) -> None:
        """Apply one operation and rebase the selection and refs."""
        fallback = self._removal_fallback(op)
        apply_operation(self.root, op)
        self._operations.append(op)
        self._dirty = True

        if self.selection is not None:
            rebased = transform_range(self.selection, op)
            if rebased is None and fallback is not None:
                rebased = Range.collapsed(fallback)
            self.selection = rebased

        for ref in list(self._refs):
            ref.transform(op)

    def _removal_fallback(self, op: Operation) -> Optional[Point]:
        """Where the caret goes if ``op`` removes the selected leaf."""
        if not isinstance(op, RemoveNode) or self.selection is None:
            return None
        edges = (self.selection.anchor.path, self.selection.focus.path)
        if not any(path == op.path or is_ancestor(op.path, path) for path in edges):
            return None

        before: Optional[tuple[Text, Path]] = None
        after: Optional[tuple[Text, Path]] = None
        for text, path in self.root.texts():
            if compare(path, op.path) < 0:
                before = (text, path)
            elif compare(path, op.path) > 0 and after is None:
                after = (text, path)

        if before is not None:
            text, path = before
            new_path = transform_path(path, op)
            return Point(new_path, len(text.text)) if new_path is not None else None
        if after is not None:
            new_path = transform_path(after[1], op)
            return Point(new_path, 0) if new_path is not None else None
        return None

    def normalize(self, force: bool = False) -> NormalizationResult:
        """Run the normalization pass over the whole tree.

        Args:
            force: Run even if nothing changed since the last pass (use on
                a freshly loaded document)
        """
        if not force and not self._dirty:
            return NormalizationResult()
        result = self.normalizer.normalize(self.root, apply=self.apply)
        self._dirty = False
        self.diagnostics = list(result.diagnostics)
        return result

    @contextmanager
    def transaction(self, name: str) -> Iterator[Editor]:
        """Run a transform atomically.

        The outermost transaction snapshots the state, and on any error
        restores it and re-raises. Every level ends with a normalization
        pass; the outermost one then notifies history observers.
        """
        outermost = self._depth == 0
        if outermost:
            before = self.snapshot()
            saved_marks = copy.deepcopy(self.marks)
            saved_diagnostics = list(self.diagnostics)
            self._operations = []

        self._depth += 1
        try:
            yield self
            self.normalize()
        except Exception:
            if outermost:
                logger.debug("Rolling back %s", name)
                # restore in place; callers may hold the document
                self.root.children = before.root.children
                self.selection = before.selection
                self.marks = saved_marks
                self.diagnostics = saved_diagnostics
                self._operations = []
                self._dirty = False
            raise
        finally:
            self._depth -= 1

        if outermost and self._operations:
            commit = Commit(
                name=name,
                before=before,
                after=self.snapshot(),
                operations=tuple(self._operations),
            )
            self._operations = []
            logger.debug("Committed %s (%d operations)", name, len(commit.operations))
            for observer in list(self._observers):
                observer(commit)

    def snapshot(self) -> Snapshot:
        return Snapshot(root=copy.deepcopy(self.root), selection=self.selection)

    def subscribe(self, observer: HistoryObserver) -> Callable[[], None]:
        """Register a history observer; returns a function that removes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # =========================================================================
    # Selection and refs
    # =========================================================================

    def select(self, target: Union[Range, Point]) -> None:
        """Set the selection (a point selects a caret position)."""
        if isinstance(target, Point):
            target = Range.collapsed(target)
        validate_range(self.root, target)
        self.selection = target
        self.marks = None

    def deselect(self) -> None:
        self.selection = None
        self.marks = None

    def path_ref(self, path: Path, affinity: Affinity = "forward") -> PathRef:
        return PathRef(self, path, affinity)

    def point_ref(self, point: Point, affinity: Affinity = "forward") -> PointRef:
        return PointRef(self, point, affinity)

    def range_ref(self, at: Range) -> RangeRef:
        return RangeRef(self, at)

    # =========================================================================
    # Queries
    # =========================================================================

    def nodes(
        self,
        at: Optional[Location] = None,
        match: Optional[Match] = None,
        mode: Mode = "all",
        voids: bool = False,
    ) -> list[tuple[Node, Path]]:
        """Entries intersecting a location, in document order.

        Args:
            at: Path, point or range; defaults to the selection (no
                selection yields nothing)
            match: Predicate on nodes; defaults to everything
            mode: ``all`` matches; ``highest`` drops matches nested in
                another match; ``lowest`` drops matches that contain one
            voids: Descend into void elements
        """
        if at is None:
            at = self.selection
        if at is None:
            return []
        if isinstance(at, Range):
            start, end = at.start.path, at.end.path
        elif isinstance(at, Point):
            start = end = at.path
        else:
            start = end = tuple(at)
            get_node(self.root, start)

        found: list[tuple[Node, Path]] = []
        void_paths: list[Path] = []
        for node, path in self.root.nodes():
            if not in_span(path, start, end):
                continue
            if not voids and any(is_ancestor(void, path) for void in void_paths):
                continue
            if isinstance(node, Element) and node.is_void:
                void_paths.append(path)
            if match is None or match(node):
                found.append((node, path))

        if mode == "highest":
            kept: list[tuple[Node, Path]] = []
            for node, path in found:
                if not any(is_ancestor(other, path) for _, other in kept):
                    kept.append((node, path))
            return kept
        if mode == "lowest":
            return [
                (node, path) for node, path in found
                if not any(is_ancestor(path, other) for _, other in found)
            ]
        return found

    def active_marks(self) -> dict[str, bool]:
        """Marks that typed text would get at the current selection."""
        if self.marks is not None:
            return dict(self.marks)
        if self.selection is None:
            return {}
        if self.selection.is_expanded:
            for text, _ in self.transforms.covered_texts(self.selection):
                return text.active_marks
            return {}
        leaf = validate_point(self.root, self.selection.anchor)
        return leaf.active_marks

    # =========================================================================
    # External interface
    # =========================================================================

    def apply_command(self, command: Command) -> Snapshot:
        """Run a high-level command and return the resulting state."""
        from richdoc.core.commands import run_command

        with self.transaction(type(command).__name__):
            run_command(self, command)
        return self.snapshot()

    def query_is_mark_active(self, name: str) -> bool:
        from richdoc.core.commands import is_mark_active

        return is_mark_active(self, name)

    def query_is_block_active(self, block_type: str) -> bool:
        from richdoc.core.commands import is_block_active

        return is_block_active(self, block_type)
