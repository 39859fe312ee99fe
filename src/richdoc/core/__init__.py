"""Editing core: addressing, operations, normalization and transforms."""

from richdoc.core.path import Path, Point, Range
from richdoc.core.normalizer import NormalizationResult, Normalizer
from richdoc.core.editor import Commit, Editor, Snapshot
from richdoc.core.commands import (
    Command,
    DeleteRange,
    InsertText,
    InsertVoidInline,
    ToggleBlock,
    ToggleMark,
)

__all__ = [
    "Path",
    "Point",
    "Range",
    "NormalizationResult",
    "Normalizer",
    "Commit",
    "Editor",
    "Snapshot",
    "Command",
    "DeleteRange",
    "InsertText",
    "InsertVoidInline",
    "ToggleBlock",
    "ToggleMark",
]
