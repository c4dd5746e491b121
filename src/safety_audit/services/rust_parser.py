"""Parser interface + tree-sitter implementation for Rust source units.

Parsers must satisfy the following invariants:
1. A unit is only returned for a tree free of ERROR and MISSING nodes; anything
   else raises :class:`RustParseError` naming the file.
2. Unreadable, oversized, or non-UTF-8 files are declined at the parser boundary.
3. Parser instances are never shared between threads; callers that scan in
   parallel build one parser per task through a factory.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Protocol

import tree_sitter_rust
from tree_sitter import Language, Node, Parser, Tree

from .scan_limits import DEFAULT_MAX_FILE_BYTES

RUST_LANGUAGE = Language(tree_sitter_rust.language())
"""Compiled tree-sitter grammar for Rust."""


class RustParseError(ValueError):
    """Raised when a source file cannot be turned into a clean syntax tree."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"{path}: {detail}")
        self.path = path
        self.detail = detail


@dataclass(frozen=True)
class SourceUnit:
    """The parsed tree of one source file plus what is needed to locate nodes."""

    display_path: str
    source: bytes
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def location(self, node: Node) -> str:
        """Format the node's span as ``path:line:col: end_line:end_col``.

        Lines and columns are 1-based; columns count bytes.
        """

        start_row, start_col = node.start_point
        end_row, end_col = node.end_point
        return (
            f"{self.display_path}:{start_row + 1}:{start_col + 1}: "
            f"{end_row + 1}:{end_col + 1}"
        )

    def text(self, node: Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8")


class RustParser(Protocol):
    """Parser contract that scan drivers rely on."""

    def parse(self, path: Path, display_path: str) -> SourceUnit: ...


ParserFactory = Callable[[], RustParser]


def _iter_nodes(root: Node) -> Iterator[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _first_error(root: Node) -> Node | None:
    for node in _iter_nodes(root):
        if node.is_error or node.is_missing:
            return node
    return None


class TreeSitterRustParser(RustParser):
    """Parser backed by the tree-sitter Rust grammar."""

    def __init__(self, max_file_bytes: int = DEFAULT_MAX_FILE_BYTES) -> None:
        self.max_file_bytes = max_file_bytes
        self._parser = Parser(RUST_LANGUAGE)

    def parse(self, path: Path, display_path: str) -> SourceUnit:
        try:
            size = path.stat().st_size
        except OSError as exc:
            raise RustParseError(display_path, f"unreadable file ({exc})") from exc
        if size > self.max_file_bytes:
            raise RustParseError(
                display_path,
                f"file exceeds the maximum size of {self.max_file_bytes} bytes",
            )
        try:
            source = path.read_bytes()
        except OSError as exc:
            raise RustParseError(display_path, f"unreadable file ({exc})") from exc
        return self.parse_bytes(source, display_path)

    def parse_bytes(self, source: bytes, display_path: str) -> SourceUnit:
        """Parse in-memory source text; used directly by callers without a file."""

        try:
            source.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RustParseError(display_path, "file is not valid UTF-8") from exc

        tree = self._parser.parse(source)
        root = tree.root_node
        if root.has_error:
            error_node = _first_error(root)
            if error_node is None:
                raise RustParseError(display_path, "syntax error")
            row, col = error_node.start_point
            raise RustParseError(
                display_path, f"syntax error at line {row + 1}, column {col + 1}"
            )
        return SourceUnit(display_path=display_path, source=source, tree=tree)


def get_configured_parser(max_file_bytes: int = DEFAULT_MAX_FILE_BYTES) -> RustParser:
    """Return a fresh parser; each call yields an independent instance."""

    return TreeSitterRustParser(max_file_bytes=max_file_bytes)
