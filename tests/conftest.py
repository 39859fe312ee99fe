"""Pytest fixtures for richdoc tests."""

import copy

import pytest

from richdoc.config import Settings
from richdoc.core.editor import Editor
from richdoc.formatting.ir import Element, Root, Text

MARKER = "\ufeff"


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of the environment."""
    return Settings(
        zero_width_char=MARKER,
        default_block_type="paragraph",
        normalize_iteration_factor=42,
        log_level="WARNING",
        json_indent=2,
    )


@pytest.fixture
def initial_records() -> list[dict]:
    """Two paragraphs that each end in an inline void."""
    paragraph = {
        "type": "paragraph",
        "children": [
            {"text": "Some text "},
            {"type": "inlineVoid", "children": [{"text": ""}]},
            {"text": " more text "},
            {"type": "inlineVoid", "children": [{"text": ""}]},
        ],
    }
    return [paragraph, copy.deepcopy(paragraph)]


@pytest.fixture
def editor(initial_records: list[dict], settings: Settings) -> Editor:
    """Editor over the normalized two-paragraph document."""
    return Editor.from_records(initial_records, settings=settings)


@pytest.fixture
def paragraph_editor(settings: Settings) -> Editor:
    """Editor over plain paragraphs without voids."""
    root = Root(children=[
        Element(type="paragraph", children=[Text(text="Some more text here")]),
        Element(type="paragraph", children=[Text(text="Second line")]),
        Element(type="paragraph", children=[Text(text="Third line")]),
    ])
    editor = Editor(root, settings=settings)
    editor.normalize(force=True)
    return editor

