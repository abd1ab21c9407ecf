"""
ProcTrace Tree-sitter Parser.

Parses C# source files with Tree-sitter and copies the result into an
arena-indexed SyntaxTree.
Requires Python 3.11+.
"""

import codecs
import time
from pathlib import Path

import tree_sitter_c_sharp as tscsharp
from tree_sitter import Language, Parser, Tree

from syntax.models import SyntaxNode, SyntaxTree, kind_of
from utils.logger import LoggerMixin


class CSharpParser(LoggerMixin):
    """
    C# parser using Tree-sitter.

    Tree-sitter is error tolerant: files with syntax errors still produce a
    tree (flagged with ``has_error``) that the extractor can scan.
    """

    CSHARP_LANG = Language(tscsharp.language())

    def __init__(self, encoding: str = "utf-8") -> None:
        """Initialize the Tree-sitter parser with the C# language."""
        self._parser = Parser(self.CSHARP_LANG)
        self._encoding = encoding

    def parse_file(self, file_path: Path) -> SyntaxTree:
        """
        Parse a C# file.

        Args:
            file_path: Path to the source file

        Returns:
            SyntaxTree for the file

        Raises:
            OSError: the file cannot be read
        """
        start_time = time.perf_counter()
        content = self._to_utf8(file_path.read_bytes(), file_path)
        tree = self.parse_content(content, file_path)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.log.debug(
            "parsed_file",
            path=str(file_path),
            elapsed_ms=round(elapsed_ms, 2),
            nodes=len(tree),
        )
        if tree.has_error:
            self.log.warning("syntax_errors_in_file", path=str(file_path))
        return tree

    def parse_content(self, content: bytes | str, file_path: Path | None = None) -> SyntaxTree:
        """
        Parse C# content held in memory.

        Args:
            content: Source code as UTF-8 bytes or str
            file_path: Optional path recorded on the tree

        Returns:
            SyntaxTree for the content
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        ts_tree = self._parser.parse(content)
        nodes = self._build_arena(ts_tree)
        return SyntaxTree(
            path=file_path or Path("<memory>"),
            source=content,
            nodes=nodes,
            has_error=ts_tree.root_node.has_error,
        )

    def _to_utf8(self, raw: bytes, file_path: Path) -> bytes:
        """
        Normalize file bytes to UTF-8 without a byte order mark.

        Bytes invalid in the source encoding are replaced with U+FFFD and
        logged; the rest of the file is kept.
        """
        encoding = self._encoding
        if raw.startswith(codecs.BOM_UTF8):
            raw = raw[len(codecs.BOM_UTF8) :]
            encoding = "utf-8"
        elif raw.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
            encoding = "utf-16"

        try:
            text = raw.decode(encoding)
        except UnicodeDecodeError as e:
            self.log.warning(
                "undecodable_bytes_replaced",
                path=str(file_path),
                encoding=encoding,
                position=e.start,
            )
            text = raw.decode(encoding, errors="replace")

        return text.encode("utf-8")

    def _build_arena(self, ts_tree: Tree) -> list[SyntaxNode]:
        """Copy a Tree-sitter tree into a flat, pre-ordered node list."""
        nodes: list[SyntaxNode] = []
        parents: list[int] = []
        cursor = ts_tree.walk()

        while True:
            ts_node = cursor.node
            index = len(nodes)
            parent = parents[-1] if parents else None
            nodes.append(
                SyntaxNode(
                    index=index,
                    kind=kind_of(ts_node.type, ts_node.is_named),
                    type=ts_node.type,
                    start_byte=ts_node.start_byte,
                    end_byte=ts_node.end_byte,
                    is_named=ts_node.is_named,
                    parent=parent,
                    field_name=cursor.field_name,
                )
            )
            if parent is not None:
                nodes[parent].children.append(index)

            if cursor.goto_first_child():
                parents.append(index)
                continue
            while not cursor.goto_next_sibling():
                if not cursor.goto_parent():
                    return nodes
                parents.pop()
