"""Document file handlers for richdoc."""

from richdoc.formats.base import FormatHandler
from richdoc.formats.json_handler import JSONHandler
from richdoc.formats.markdown_handler import MarkdownHandler
from richdoc.formats.txt_handler import TXTHandler

__all__ = [
    "FormatHandler",
    "JSONHandler",
    "MarkdownHandler",
    "TXTHandler",
]

# Map file extensions to handlers
HANDLER_MAP: dict[str, type[FormatHandler]] = {
    ".json": JSONHandler,
    ".md": MarkdownHandler,
    ".markdown": MarkdownHandler,
    ".txt": TXTHandler,
}

SUPPORTED_EXTENSIONS = tuple(HANDLER_MAP.keys())


def get_handler(extension: str) -> type[FormatHandler]:
    """Get the appropriate handler class for a file extension."""
    ext = extension.lower()
    if ext not in HANDLER_MAP:
        raise ValueError(
            f"Unsupported file format: {ext}. "
            f"Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    return HANDLER_MAP[ext]
