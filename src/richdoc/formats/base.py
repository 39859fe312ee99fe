"""Abstract base class for document file handlers."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from richdoc.config import Settings, get_settings
from richdoc.formatting.ir import Root


class FormatHandler(ABC):
    """Abstract base class for document file handlers.

    Each handler reads a file into a document tree and writes a tree back.
    Trees returned by ``read`` are not normalized; load them through an
    ``Editor`` to establish the invariants.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    @property
    @abstractmethod
    def supported_extensions(self) -> tuple[str, ...]:
        """Return tuple of supported file extensions (e.g., ('.json',))."""
        ...

    @abstractmethod
    def read(self, path: Path) -> Root:
        """Read a document tree from a file.

        Args:
            path: Path to the input document

        Returns:
            The document tree

        Raises:
            InvalidDocument: If the file does not describe a document
        """
        ...

    @abstractmethod
    def write(self, root: Root, path: Path) -> None:
        """Write a document tree to a file.

        Args:
            root: The document to write
            path: Path to write the output document
        """
        ...

    def strip_markers(self, text: str) -> str:
        """Remove zero-width caret markers from text content."""
        return text.replace(self.settings.zero_width_char, "")
