"""Error taxonomy for document editing."""

from dataclasses import dataclass


class DocumentError(Exception):
    """Base class for document model errors."""

    pass


class InvalidPath(DocumentError):
    """An address does not resolve to a node (or point) in the tree."""

    def __init__(self, path, reason: str = "does not resolve") -> None:
        self.path = tuple(path) if path is not None else None
        self.reason = reason
        super().__init__(f"Invalid path {self.path}: {reason}")


class NoParent(InvalidPath):
    """Addressing past the root."""

    def __init__(self, path=()) -> None:
        super().__init__(path, "the root has no parent")


class StructureViolation(DocumentError):
    """A transform would break a structural invariant normalization cannot repair.

    Raised before any mutation; the tree is left unchanged.
    """

    pass


class InvalidDocument(DocumentError):
    """Serialized input does not describe a document."""

    pass


@dataclass(frozen=True)
class NormalizationIncomplete:
    """Diagnostic for a region normalization could not repair.

    Not raised: the normalizer collects these and leaves the region as it is.

    Attributes:
        path: Path of the offending node at detection time
        reason: Human-readable description
    """

    path: tuple[int, ...]
    reason: str

    def __str__(self) -> str:
        return f"{self.path}: {self.reason}"
