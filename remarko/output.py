"""Console output formatting for the CLI."""

import json
import sys
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from .models import Directory
from .utils import format_size, format_timestamp


class OutputFormatter:
    """Writes user-facing messages, trees and JSON.

    Informational output is suppressed in quiet mode; warnings and errors
    always go to stderr.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def print(self, message: str = "") -> None:
        if not self.quiet:
            self.console.print(escape(message))

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(escape(message), style="cyan")

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"✓ {escape(message)}", style="green")

    def warning(self, message: str) -> None:
        self.err_console.print(f"Warning: {escape(message)}", style="yellow")

    def error(self, message: str) -> None:
        self.err_console.print(f"Error: {escape(message)}", style="bold red")

    def heading(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"\n{escape(message)}\n", style="bold yellow")

    def output_json(self, data: Any) -> None:
        """Print data as indented JSON (ignores quiet mode)."""
        sys.stdout.write(json.dumps(data, indent=2, ensure_ascii=False) + "\n")

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)

    def print_tree(self, directory: Directory, show_dates: bool = True) -> None:
        """Render a directory tree."""
        if self.quiet:
            return
        self.console.print(build_rich_tree(directory, show_dates=show_dates))


def build_rich_tree(directory: Directory, show_dates: bool = True) -> Tree:
    """Convert a Directory into a rich Tree for display."""
    tree = Tree(f"[bold blue]{escape(directory.visible_name)}/[/bold blue]")
    _add_children(tree, directory, show_dates)
    return tree


def _add_children(tree: Tree, directory: Directory, show_dates: bool) -> None:
    for subdirectory in directory.directories:
        name = escape(subdirectory.visible_name)
        branch = tree.add(f"[bold blue]{name}/[/bold blue]")
        _add_children(branch, subdirectory, show_dates)
    for file in directory.files:
        label = escape(file.visible_name)
        if show_dates:
            modified = format_timestamp(file.metadata.last_modified_at)
            label = f"{label} [dim]{modified}[/dim]"
        tree.add(label)


def directory_to_dict(directory: Directory) -> dict:
    """Convert a Directory to a JSON-serializable dictionary."""
    return {
        "name": directory.visible_name,
        "hash": directory.hash,
        "files": [
            {
                "name": file.visible_name,
                "hash": file.hash,
                "last_modified": file.metadata.last_modified,
            }
            for file in directory.files
        ],
        "directories": [directory_to_dict(d) for d in directory.directories],
    }
