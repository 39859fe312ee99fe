"""richdoc - rich-text document model with a normalizing transform engine."""

__version__ = "0.1.0"
