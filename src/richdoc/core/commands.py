"""High-level editing commands and formatting state queries.

Commands are what a presentation layer sends in response to a hotkey or a
toolbar button. Each one runs through the transform engine inside a single
editor transaction, so it commits (and normalizes) as one edit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from richdoc.core.path import Point, Range
from richdoc.formatting.ir import LIST_TYPES, Element, ElementType, Mark, Text, mark_name, type_name

if TYPE_CHECKING:
    from richdoc.core.editor import Editor


@dataclass(frozen=True)
class InsertVoidInline:
    """Insert an inline void element at the selection."""


@dataclass(frozen=True)
class ToggleMark:
    name: Union[str, Mark]


@dataclass(frozen=True)
class ToggleBlock:
    type: Union[str, ElementType]


@dataclass(frozen=True)
class InsertText:
    text: str
    at: Optional[Union[Point, Range]] = None


@dataclass(frozen=True)
class DeleteRange:
    selection: Optional[Range] = None


Command = Union[InsertVoidInline, ToggleMark, ToggleBlock, InsertText, DeleteRange]


# =============================================================================
# Queries
# =============================================================================

def is_mark_active(editor: Editor, name: Union[str, Mark]) -> bool:
    """True if text typed at the selection would carry the mark."""
    return editor.active_marks().get(mark_name(name)) is True


def is_block_active(editor: Editor, block_type: Union[str, ElementType]) -> bool:
    """True if any element in the selection scope has the given type."""
    block_type = type_name(block_type)
    return bool(editor.nodes(match=lambda n: isinstance(n, Element) and n.type == block_type))


# =============================================================================
# Toggles
# =============================================================================

def toggle_mark(editor: Editor, name: Union[str, Mark]) -> None:
    if is_mark_active(editor, name):
        editor.transforms.remove_mark(mark_name(name))
    else:
        editor.transforms.add_mark(mark_name(name))


def toggle_block(editor: Editor, block_type: Union[str, ElementType]) -> None:
    """Switch the selected blocks to ``block_type``, or back to the default block.

    Lists the selection intersects are unwrapped first (only the selected
    items), so switching list kinds never nests one list in another.
    """
    block_type = type_name(block_type)
    active = is_block_active(editor, block_type)
    is_list = block_type in LIST_TYPES

    with editor.transaction("toggle_block"):
        editor.transforms.unwrap_nodes(
            match=lambda n: isinstance(n, Element) and n.is_list,
            split=True,
        )

        if active:
            new_type = editor.settings.default_block_type
        elif is_list:
            new_type = ElementType.LIST_ITEM.value
        else:
            new_type = block_type
        editor.transforms.set_node_properties({"type": new_type})

        if not active and is_list:
            editor.transforms.wrap_nodes(
                Element(type=block_type),
                match=lambda n: isinstance(n, Element) and n.type == ElementType.LIST_ITEM.value,
            )


def insert_void_inline(editor: Editor) -> None:
    editor.transforms.insert_nodes(
        Element(type=ElementType.INLINE_VOID, children=[Text()]),
        select=True,
    )


def run_command(editor: Editor, command: Command) -> None:
    """Dispatch a command to the transform engine."""
    if isinstance(command, InsertVoidInline):
        insert_void_inline(editor)
    elif isinstance(command, ToggleMark):
        toggle_mark(editor, command.name)
    elif isinstance(command, ToggleBlock):
        toggle_block(editor, command.type)
    elif isinstance(command, InsertText):
        editor.transforms.insert_text(command.text, at=command.at)
    elif isinstance(command, DeleteRange):
        editor.transforms.delete_range(command.selection)
    else:
        raise TypeError(f"Unknown command: {command!r}")
