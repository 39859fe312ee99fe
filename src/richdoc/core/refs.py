"""Location refs that follow their target across edits."""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, Optional, TypeVar

from richdoc.core.operations import (
    Affinity,
    Operation,
    transform_path,
    transform_point,
    transform_range,
)
from richdoc.core.path import Path, Point, Range

if TYPE_CHECKING:
    from richdoc.core.editor import Editor

T = TypeVar("T")


class LocationRef(Generic[T]):
    """A location registered with an editor and rebased after every operation.

    ``current`` becomes ``None`` once the location no longer exists (its
    node was removed). Use as a context manager, or call ``unref()`` when
    done, so the editor stops tracking it.
    """

    def __init__(self, editor: Editor, location: T, affinity: Affinity = "forward") -> None:
        self._editor = editor
        self.current: Optional[T] = location
        self.affinity = affinity
        editor._refs.add(self)

    def transform(self, op: Operation) -> None:
        if self.current is not None:
            self.current = self._rebase(self.current, op)

    def _rebase(self, location: T, op: Operation) -> Optional[T]:
        raise NotImplementedError

    def unref(self) -> Optional[T]:
        """Stop tracking and return the final location."""
        self._editor._refs.discard(self)
        return self.current

    def __enter__(self) -> LocationRef[T]:
        return self

    def __exit__(self, *exc_info) -> None:
        self.unref()


class PathRef(LocationRef[Path]):
    def _rebase(self, location: Path, op: Operation) -> Optional[Path]:
        return transform_path(location, op, self.affinity)


class PointRef(LocationRef[Point]):
    def _rebase(self, location: Point, op: Operation) -> Optional[Point]:
        return transform_point(location, op, self.affinity)


class RangeRef(LocationRef[Range]):
    def _rebase(self, location: Range, op: Operation) -> Optional[Range]:
        return transform_range(location, op)
