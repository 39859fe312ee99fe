"""Tests for the transform engine."""

import pytest

from richdoc.core.editor import Editor
from richdoc.core.path import Point, Range
from richdoc.errors import InvalidPath, StructureViolation
from richdoc.formatting.ir import Element, Root, Text
from richdoc.formatting.records import to_records


def texts(editor: Editor, path=(0,)) -> list[str]:
    return [child.text if isinstance(child, Text) else child.type for child in editor.root.get(path).children]


def select(editor: Editor, anchor, focus=None) -> None:
    anchor = Point(*anchor)
    editor.select(Range(anchor, Point(*focus) if focus else anchor))


class TestInsertNodes:
    """Tests for insert_nodes."""

    def test_insert_block_at_path(self, paragraph_editor: Editor):
        """Test inserting a block between two blocks."""
        paragraph_editor.transforms.insert_nodes(
            Element(type="heading-one", children=[Text(text="Title")]), at=(1,),
        )

        assert [block.type for block in paragraph_editor.root.children] == [
            "paragraph", "heading-one", "paragraph", "paragraph",
        ]

    def test_insert_inline_at_point_splits_text(self, paragraph_editor: Editor):
        """Test that inserting at a mid-leaf point splits the leaf."""
        paragraph_editor.transforms.insert_nodes(
            Element(type="inline-void", children=[Text()]), at=Point((0, 0), 4),
        )

        assert texts(paragraph_editor) == ["Some", "inline-void", " more text here"]

    def test_insert_void_at_end_gets_marker(self, paragraph_editor: Editor):
        """Test that normalization runs after the insert."""
        leaf = paragraph_editor.root.get((1, 0))
        paragraph_editor.transforms.insert_nodes(
            Element(type="inline-void", children=[Text()]), at=Point((1, 0), len(leaf.text)),
        )

        assert texts(paragraph_editor, (1,)) == ["Second line", "inline-void", "\ufeff"]

    def test_insert_with_select_moves_caret_after(self, paragraph_editor: Editor):
        """Test that select=True puts the caret after the inserted node."""
        select(paragraph_editor, ((0, 0), 4))

        paragraph_editor.transforms.insert_nodes(Element(type="inline-void", children=[Text()]), select=True)

        assert paragraph_editor.selection == Range.collapsed(Point((0, 2), 0))

    def test_insert_without_selection_appends(self, paragraph_editor: Editor):
        """Test that blocks go to the end of the document by default."""
        paragraph_editor.transforms.insert_nodes(Element(type="paragraph", children=[Text(text="end")]))

        assert paragraph_editor.root.children[-1].children[0].text == "end"

    def test_block_into_paragraph_rejected(self, paragraph_editor: Editor):
        """Test that a paragraph with text does not accept a block."""
        before = paragraph_editor.to_records()

        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.insert_nodes(Element(type="paragraph"), at=(0, 1))

        assert paragraph_editor.to_records() == before

    def test_inline_into_root_rejected(self, paragraph_editor: Editor):
        """Test that the root only accepts blocks."""
        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.insert_nodes(Text(text="loose"), at=(0,))

    def test_insert_inside_void_rejected(self, editor: Editor):
        """Test that void content is not editable."""
        with pytest.raises(StructureViolation):
            editor.transforms.insert_nodes(Text(text="x"), at=Point((0, 1, 0), 0))

    def test_insert_out_of_range(self, paragraph_editor: Editor):
        """Test that a path past the end fails."""
        with pytest.raises(InvalidPath):
            paragraph_editor.transforms.insert_nodes(Element(type="paragraph"), at=(9,))


class TestRemoveNodes:
    """Tests for remove_nodes."""

    def test_remove_at_path(self, paragraph_editor: Editor):
        """Test removing one block."""
        paragraph_editor.transforms.remove_nodes(at=(1,))

        assert paragraph_editor.root.plain_text == "Some more text here\n\nThird line"

    def test_remove_matching_in_selection(self, editor: Editor):
        """Test removing the voids of the first paragraph."""
        select(editor, ((0, 0), 0), ((0, 2), 3))

        editor.transforms.remove_nodes(match=lambda n: isinstance(n, Element) and n.is_void)

        assert texts(editor) == ["Some text ", " more text ", "inline-void", "\ufeff"]

    def test_remove_root_rejected(self, editor: Editor):
        """Test that the root cannot be removed."""
        with pytest.raises(StructureViolation):
            editor.transforms.remove_nodes(at=())

    def test_list_paths_accepted(self, paragraph_editor: Editor):
        """Test that a path given as a list behaves like the tuple."""
        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.remove_nodes(at=[])
        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.wrap_nodes(Element(type="block-quote"), at=[])

        paragraph_editor.transforms.remove_nodes(at=[1])

        assert paragraph_editor.root.plain_text == "Some more text here\n\nThird line"

    def test_removing_last_block_renormalizes(self, paragraph_editor: Editor):
        """Test removing the only leaf of a block leaves an empty leaf."""
        paragraph_editor.transforms.remove_nodes(at=(0, 0))

        assert paragraph_editor.root.children[0].children == [Text()]


class TestSetNodeProperties:
    """Tests for set_node_properties."""

    def test_retype_selected_blocks(self, paragraph_editor: Editor):
        """Test changing the type of every selected block."""
        select(paragraph_editor, ((0, 0), 2), ((1, 0), 2))

        paragraph_editor.transforms.set_node_properties({"type": "heading-two"})

        assert [block.type for block in paragraph_editor.root.children] == [
            "heading-two", "heading-two", "paragraph",
        ]

    def test_extra_properties(self, paragraph_editor: Editor):
        """Test setting and clearing a data property at a path."""
        paragraph_editor.transforms.set_node_properties({"align": "center"}, at=(2,))
        assert paragraph_editor.root.children[2].data == {"align": "center"}

        paragraph_editor.transforms.set_node_properties({"align": None}, at=(2,))
        assert paragraph_editor.root.children[2].data == {}

    def test_children_patch_rejected(self, paragraph_editor: Editor):
        """Test that children cannot be patched."""
        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.set_node_properties({"children": []}, at=(0,))

    def test_category_change_rejected(self, paragraph_editor: Editor):
        """Test that a block cannot become inline."""
        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.set_node_properties({"type": "link"}, at=(0,))

        assert paragraph_editor.root.children[0].type == "paragraph"


class TestWrapAndUnwrap:
    """Tests for wrap_nodes and unwrap_nodes."""

    def test_wrap_selected_blocks(self, paragraph_editor: Editor):
        """Test wrapping two blocks in a quote."""
        select(paragraph_editor, ((0, 0), 0), ((1, 0), 3))

        paragraph_editor.transforms.wrap_nodes(Element(type="block-quote"))

        root = paragraph_editor.root
        assert [block.type for block in root.children] == ["block-quote", "paragraph"]
        assert [child.type for child in root.children[0].children] == ["paragraph", "paragraph"]
        assert paragraph_editor.selection.anchor.path == (0, 0, 0)

    def test_unwrap_restores(self, paragraph_editor: Editor):
        """Test that unwrapping a wrapper lifts its children back."""
        select(paragraph_editor, ((0, 0), 0), ((1, 0), 3))
        paragraph_editor.transforms.wrap_nodes(Element(type="block-quote"))

        paragraph_editor.transforms.unwrap_nodes(match=lambda n: isinstance(n, Element) and n.type == "block-quote")

        assert [block.type for block in paragraph_editor.root.children] == ["paragraph"] * 3
        assert paragraph_editor.root.plain_text == "Some more text here\n\nSecond line\n\nThird line"

    def test_unwrap_with_split_lifts_only_selected_item(self, settings):
        """Test that split unwrapping leaves unselected siblings in place."""
        editor = Editor.from_records([
            {"type": "bulleted-list", "children": [
                {"type": "list-item", "children": [{"text": "one"}]},
                {"type": "list-item", "children": [{"text": "two"}]},
                {"type": "list-item", "children": [{"text": "three"}]},
            ]},
        ], settings=settings)
        select(editor, ((0, 1, 0), 1))

        editor.transforms.unwrap_nodes(match=lambda n: isinstance(n, Element) and n.is_list, split=True)

        assert [block.type for block in editor.root.children] == ["bulleted-list", "list-item", "bulleted-list"]
        assert editor.root.children[1].children[0].text == "two"
        assert editor.selection == Range.collapsed(Point((1, 0), 1))

    def test_inline_wrap_with_split(self, paragraph_editor: Editor):
        """Test wrapping only the selected substring in a link."""
        select(paragraph_editor, ((0, 0), 5), ((0, 0), 9))

        paragraph_editor.transforms.wrap_nodes(Element(type="link", data={"url": "u"}), split=True)

        block = paragraph_editor.root.children[0]
        assert texts(paragraph_editor) == ["Some ", "link", " text here"]
        assert block.children[1].children[0].text == "more"
        assert block.children[1].data == {"url": "u"}

    def test_inline_unwrap_with_split(self, paragraph_editor: Editor):
        """Test unwrapping part of a link."""
        select(paragraph_editor, ((0, 0), 0), ((0, 0), 19))
        paragraph_editor.transforms.wrap_nodes(Element(type="link"), split=True)
        assert texts(paragraph_editor) == ["", "link", ""]
        select(paragraph_editor, ((0, 1, 0), 5), ((0, 1, 0), 9))

        paragraph_editor.transforms.unwrap_nodes(match=lambda n: isinstance(n, Element) and n.type == "link", split=True)

        assert texts(paragraph_editor) == ["", "link", "more", "link", ""]
        assert paragraph_editor.root.children[0].children[1].children[0].text == "Some "

    def test_wrap_root_rejected(self, paragraph_editor: Editor):
        """Test that the root cannot be wrapped."""
        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.wrap_nodes(Element(type="block-quote"), at=())

    def test_void_wrapper_rejected(self, paragraph_editor: Editor):
        """Test that void elements cannot wrap content."""
        select(paragraph_editor, ((0, 0), 0))

        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.wrap_nodes(Element(type="inline-void"))

    def test_unwrap_root_rejected(self, paragraph_editor: Editor):
        """Test that the root cannot be unwrapped."""
        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.unwrap_nodes(match=lambda n: True, at=())


class TestMoveNodes:
    """Tests for move_nodes."""

    def test_move_block(self, paragraph_editor: Editor):
        """Test moving the first block to the end."""
        paragraph_editor.transforms.move_nodes((0,), (2,))

        assert paragraph_editor.root.plain_text == "Second line\n\nThird line\n\nSome more text here"

    def test_move_into_itself_rejected(self, paragraph_editor: Editor):
        """Test that a node cannot move into its own subtree."""
        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.move_nodes((0,), (0, 0))


class TestMarks:
    """Tests for add_mark and remove_mark."""

    def test_partial_selection_splits_leaf(self, editor: Editor):
        """Test that only the selected substring gets the mark."""
        select(editor, ((0, 2), 1), ((0, 2), 5))

        editor.transforms.add_mark("bold")

        block = editor.root.children[0]
        assert [(c.text, c.bold) for c in block.children if isinstance(c, Text)][1:4] == [
            (" ", False), ("more", True), (" text ", False),
        ]
        assert editor.selection.start == Point((0, 3), 0)
        assert editor.selection.end == Point((0, 3), 4)

    def test_mark_across_blocks_skips_voids(self, editor: Editor):
        """Test a mark across two paragraphs leaves void content alone."""
        select(editor, ((0, 0), 0), ((1, 2), 11))

        editor.transforms.add_mark("italic")

        for text, path in editor.root.texts():
            inside_void = isinstance(editor.root.get(path[:-1]), Element) and editor.root.get(path[:-1]).is_void
            if inside_void:
                assert not text.italic

    def test_remove_mark(self, editor: Editor):
        """Test clearing a mark restores unmarked leaves."""
        select(editor, ((0, 0), 0), ((0, 0), 10))
        editor.transforms.add_mark("code")

        editor.transforms.remove_mark("code")

        assert editor.root.children[0].children[0].marks == {}

    def test_collapsed_selection_sets_pending_marks(self, paragraph_editor: Editor):
        """Test that a caret mark applies to the next typed text."""
        select(paragraph_editor, ((0, 0), 4))

        paragraph_editor.transforms.add_mark("bold")
        paragraph_editor.transforms.insert_text("!")

        assert texts(paragraph_editor) == ["Some", "!", " more text here"]
        assert paragraph_editor.root.get((0, 1)).bold
        assert paragraph_editor.marks is None


class TestTextEditing:
    """Tests for insert_text and delete_range."""

    def test_insert_text_at_caret(self, paragraph_editor: Editor):
        """Test typing at the caret moves it forward."""
        select(paragraph_editor, ((1, 0), 6))

        paragraph_editor.transforms.insert_text(" new")

        assert paragraph_editor.root.get((1, 0)).text == "Second new line"
        assert paragraph_editor.selection == Range.collapsed(Point((1, 0), 10))

    def test_insert_text_replaces_expanded_selection(self, paragraph_editor: Editor):
        """Test that typing over a selection deletes it first."""
        select(paragraph_editor, ((1, 0), 0), ((1, 0), 6))

        paragraph_editor.transforms.insert_text("First")

        assert paragraph_editor.root.get((1, 0)).text == "First line"

    def test_insert_text_without_location(self, paragraph_editor: Editor):
        """Test that there is nowhere to type without a selection."""
        with pytest.raises(StructureViolation):
            paragraph_editor.transforms.insert_text("x")

    def test_delete_within_leaf(self, paragraph_editor: Editor):
        """Test deleting part of one leaf."""
        paragraph_editor.transforms.delete_range(Range(Point((0, 0), 4), Point((0, 0), 9)))

        assert paragraph_editor.root.get((0, 0)).text == "Some text here"

    def test_delete_across_blocks_merges(self, paragraph_editor: Editor):
        """Test that deleting across blocks joins them."""
        select(paragraph_editor, ((0, 0), 4), ((2, 0), 5))

        paragraph_editor.transforms.delete_range()

        root = paragraph_editor.root
        assert len(root.children) == 1
        assert root.plain_text == "Some line"
        assert paragraph_editor.selection == Range.collapsed(Point((0, 0), 4))

    def test_delete_into_list_removes_empty_list(self, settings):
        """Test that a list emptied by a merge is removed."""
        editor = Editor.from_records([
            {"type": "paragraph", "children": [{"text": "Intro"}]},
            {"type": "bulleted-list", "children": [
                {"type": "list-item", "children": [{"text": "item"}]},
            ]},
        ], settings=settings)

        editor.transforms.delete_range(Range(Point((0, 0), 5), Point((1, 0, 0), 0)))

        assert [block.type for block in editor.root.children] == ["paragraph"]
        assert editor.root.plain_text == "Introitem"


class TestAtomicity:
    """Tests for all-or-nothing transforms."""

    def test_failure_midway_rolls_back(self, paragraph_editor: Editor):
        """Test that a failing nested transform restores the tree and selection."""
        select(paragraph_editor, ((0, 0), 2))
        before = paragraph_editor.to_records()

        with pytest.raises(InvalidPath):
            with paragraph_editor.transaction("combined"):
                paragraph_editor.transforms.insert_text("abc")
                paragraph_editor.transforms.remove_nodes(at=(7,))

        assert paragraph_editor.to_records() == before
        assert paragraph_editor.selection == Range.collapsed(Point((0, 0), 2))

    def test_rollback_keeps_caller_document(self, settings):
        """Test that a failed transform restores the document object the caller passed in."""
        root = Root(children=[Element(type="paragraph", children=[Text(text="hello world")])])
        editor = Editor(root, settings=settings)
        editor.normalize(force=True)
        select(editor, ((0, 0), 2), ((0, 0), 8))

        with pytest.raises(StructureViolation):
            editor.transforms.insert_nodes(Element(type="paragraph", children=[Text(text="x")]))

        assert editor.root is root
        assert to_records(root) == [{"type": "paragraph", "children": [{"text": "hello world"}]}]
        assert editor.selection == Range(Point((0, 0), 2), Point((0, 0), 8))

    def test_rollback_restores_diagnostics(self, settings):
        """Test that diagnostics come back with the tree they describe."""
        editor = Editor.from_records([
            {"type": "block-quote", "children": [
                {"text": "loose"},
                {"type": "paragraph", "children": [{"text": "p"}]},
            ]},
        ], settings=settings)
        assert len(editor.diagnostics) == 1

        with pytest.raises(RuntimeError):
            with editor.transaction("replace"):
                editor.transforms.remove_nodes(at=(0,))
                assert editor.diagnostics == []
                raise RuntimeError("abandoned")

        assert len(editor.diagnostics) == 1
        assert editor.root.children[0].type == "block-quote"
