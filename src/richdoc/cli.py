"""Command-line interface for richdoc."""

import logging
from pathlib import Path
from typing import Optional, Union

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.tree import Tree

from richdoc import __version__
from richdoc.config import Settings, get_settings
from richdoc.core.editor import Editor
from richdoc.errors import DocumentError
from richdoc.formats import SUPPORTED_EXTENSIONS, get_handler
from richdoc.formatting.ir import Element, Root, Text

app = typer.Typer(
    name="richdoc",
    help="Load, normalize, inspect and convert rich-text documents.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"richdoc v{__version__}")
        raise typer.Exit()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def load_document(path: Path, settings: Settings) -> Editor:
    """Read a file and normalize it into an editor session.

    Raises:
        typer.Exit: If the file is missing or its format is unsupported
        DocumentError: If the file does not describe a document
    """
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)

    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        console.print(
            f"[red]Error:[/red] {path.name} has an unsupported format: {ext or 'none'}\n"
            f"Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
        raise typer.Exit(1)

    handler = get_handler(ext)(settings)
    editor = Editor(handler.read(path), settings=settings)
    result = editor.normalize(force=True)
    logging.getLogger(__name__).debug(
        "Loaded %s: %d repair(s) in %d check(s)", path, len(result.operations), result.iterations,
    )
    return editor


def save_document(editor: Editor, path: Path, settings: Settings) -> None:
    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        console.print(
            f"[red]Error:[/red] Cannot write {path.name}: unsupported format {ext or 'none'}\n"
            f"Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
        raise typer.Exit(1)
    get_handler(ext)(settings).write(editor.root, path)


def report_diagnostics(editor: Editor) -> None:
    for diagnostic in editor.diagnostics:
        console.print(f"[yellow]Warning:[/yellow] unrepaired region {escape(str(diagnostic))}")


def build_tree(root: Root, zero_width_char: str) -> Tree:
    """Render a document as a rich tree, one branch per node."""
    tree = Tree("[bold]document[/bold]")

    def add(branch: Tree, node: Union[Element, Text]) -> None:
        if isinstance(node, Text):
            if node.is_marker(zero_width_char):
                branch.add("[dim]<marker>[/dim]")
                return
            marks = ", ".join(sorted(node.active_marks))
            label = repr(node.text)
            branch.add(escape(label) + (f" [cyan]{marks}[/cyan]" if marks else ""))
            return

        flags = []
        if node.is_inline:
            flags.append("inline")
        if node.is_void:
            flags.append("void")
        label = f"[bold]{escape(node.type)}[/bold]"
        if flags:
            label += f" [magenta]({', '.join(flags)})[/magenta]"
        if node.data:
            label += " " + escape(str(node.data))
        child_branch = branch.add(label)
        for child in node.children:
            add(child_branch, child)

    for child in root.children:
        add(tree, child)
    return tree


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """
    Work with rich-text documents (.json records, .md, .txt).

    Examples:

        richdoc show notes.json

        richdoc normalize notes.json -o fixed.json

        richdoc convert notes.md notes.json
    """
    settings = get_settings()
    setup_logging("DEBUG" if verbose else settings.log_level)


@app.command()
def normalize(
    path: Path = typer.Argument(..., help="Document to normalize"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output path (default: rewrite the input)",
    ),
) -> None:
    """Normalize a document and write it back."""
    settings = get_settings()
    try:
        editor = load_document(path, settings)
        report_diagnostics(editor)
        target = output or path
        save_document(editor, target, settings)
    except DocumentError as e:
        console.print(f"[red]Error processing {path.name}:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    console.print(f"[green]Success:[/green] {target}")


@app.command()
def show(
    path: Path = typer.Argument(..., help="Document to display"),
) -> None:
    """Print the normalized node tree of a document."""
    settings = get_settings()
    try:
        editor = load_document(path, settings)
    except DocumentError as e:
        console.print(f"[red]Error processing {path.name}:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    console.print(build_tree(editor.root, settings.zero_width_char))
    report_diagnostics(editor)


@app.command()
def convert(
    source: Path = typer.Argument(..., help="Document to read"),
    destination: Path = typer.Argument(..., help="File to write; format from its extension"),
) -> None:
    """Convert a document between the supported formats."""
    settings = get_settings()
    try:
        editor = load_document(source, settings)
        report_diagnostics(editor)
        save_document(editor, destination, settings)
    except DocumentError as e:
        console.print(f"[red]Error processing {source.name}:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    console.print(f"[green]Success:[/green] {destination}")


if __name__ == "__main__":
    app()
