"""Tests for the CLI interface."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from richdoc.cli import app, build_tree
from richdoc.formatting.ir import Element, Root, Text

runner = CliRunner()

MARKER = "\ufeff"


@pytest.fixture
def records_file(tmp_path: Path, initial_records: list[dict]) -> Path:
    """A JSON document whose voids have no markers yet."""
    path = tmp_path / "doc.json"
    path.write_text(json.dumps(initial_records), encoding="utf-8")
    return path


class TestCLI:
    """Tests for CLI options and errors."""

    def test_version_flag(self):
        """Test --version flag."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "richdoc v" in result.stdout

    def test_help_flag(self):
        """Test --help flag."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "normalize" in result.stdout
        assert "convert" in result.stdout

    def test_missing_file_error(self, tmp_path: Path):
        """Test error when file doesn't exist."""
        result = runner.invoke(app, ["show", str(tmp_path / "nonexistent.json")])

        assert result.exit_code == 1
        assert "File not found" in result.stdout

    def test_unsupported_format_error(self, tmp_path: Path):
        """Test error for unsupported file formats."""
        unsupported = tmp_path / "file.xyz"
        unsupported.write_text("content")

        result = runner.invoke(app, ["show", str(unsupported)])

        assert result.exit_code == 1
        assert "unsupported format" in result.stdout

    def test_invalid_document_error(self, tmp_path: Path):
        """Test that a broken document is reported, not raised."""
        broken = tmp_path / "broken.json"
        broken.write_text("[{", encoding="utf-8")

        result = runner.invoke(app, ["normalize", str(broken)])

        assert result.exit_code == 1
        assert "Error processing broken.json" in result.stdout


class TestCommands:
    """Tests for the show, normalize and convert commands."""

    def test_show_prints_tree(self, records_file: Path):
        """Test that show prints the normalized tree."""
        result = runner.invoke(app, ["show", str(records_file)])

        assert result.exit_code == 0
        assert "paragraph" in result.stdout
        assert "inline-void" in result.stdout
        assert "<marker>" in result.stdout

    def test_normalize_in_place(self, records_file: Path):
        """Test that normalize rewrites the file with markers."""
        result = runner.invoke(app, ["normalize", str(records_file)])

        assert result.exit_code == 0
        assert "Success" in result.stdout
        records = json.loads(records_file.read_text(encoding="utf-8"))
        assert records[0]["children"][-1] == {"text": MARKER}

    def test_normalize_to_output(self, records_file: Path, tmp_path: Path):
        """Test writing the normalized document elsewhere."""
        output = tmp_path / "fixed.json"

        result = runner.invoke(app, ["normalize", str(records_file), "-o", str(output)])

        assert result.exit_code == 0
        assert output.exists()
        assert json.loads(records_file.read_text(encoding="utf-8"))[0]["children"][-1]["type"] == "inlineVoid"

    def test_convert_markdown_to_json(self, tmp_path: Path):
        """Test converting between formats by extension."""
        source = tmp_path / "notes.md"
        source.write_text("# Title\n\nHi {void}\n", encoding="utf-8")
        destination = tmp_path / "notes.json"

        result = runner.invoke(app, ["convert", str(source), str(destination)])

        assert result.exit_code == 0
        records = json.loads(destination.read_text(encoding="utf-8"))
        assert [record["type"] for record in records] == ["heading-one", "paragraph"]
        assert records[1]["children"] == [
            {"text": "Hi "},
            {"type": "inline-void", "children": [{"text": ""}]},
            {"text": MARKER},
        ]

    def test_convert_to_unsupported_format(self, records_file: Path, tmp_path: Path):
        """Test that an unknown destination extension fails."""
        result = runner.invoke(app, ["convert", str(records_file), str(tmp_path / "out.pdf")])

        assert result.exit_code == 1
        assert not (tmp_path / "out.pdf").exists()


class TestBuildTree:
    """Tests for the rich tree rendering."""

    def test_labels(self):
        """Test element flags, data and marker labels."""
        root = Root(children=[
            Element(type="paragraph", children=[
                Element(type="link", children=[Text(text="site", marks={"bold": True})], data={"url": "u"}),
                Text(text=MARKER),
            ]),
        ])

        tree = build_tree(root, MARKER)

        paragraph = tree.children[0]
        assert str(paragraph.label) == "[bold]paragraph[/bold]"
        link, marker = paragraph.children
        assert "(inline)" in str(link.label)
        assert "'url': 'u'" in str(link.label)
        assert str(link.children[0].label) == "'site' [cyan]bold[/cyan]"
        assert str(marker.label) == "[dim]<marker>[/dim]"
