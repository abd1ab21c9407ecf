"""
ProcTrace Syntax Tree Models.

Arena-indexed syntax tree built from a Tree-sitter parse. Nodes refer to
each other by index, and every walk over the arena is iterative.
Requires Python 3.11+.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator


class NodeKind(str, Enum):
    """Closed set of node kinds the extraction engine dispatches on."""

    COMPILATION_UNIT = "compilation_unit"
    NAMESPACE = "namespace"
    USING = "using"
    TYPE_DECLARATION = "type_declaration"
    BASE_LIST = "base_list"
    FIELD = "field"
    METHOD = "method"
    PARAMETER = "parameter"
    BLOCK = "block"
    VARIABLE_DECLARATION = "variable_declaration"
    DECLARATOR = "declarator"
    INVOCATION = "invocation"
    MEMBER_ACCESS = "member_access"
    OBJECT_CREATION = "object_creation"
    INITIALIZER = "initializer"
    ASSIGNMENT = "assignment"
    ARGUMENT_LIST = "argument_list"
    ARGUMENT = "argument"
    LITERAL = "literal"
    IDENTIFIER = "identifier"
    THIS = "this"
    IMPLICIT_TYPE = "implicit_type"
    OTHER = "other"


# Tree-sitter C# grammar type -> NodeKind
GRAMMAR_KINDS: dict[str, NodeKind] = {
    "compilation_unit": NodeKind.COMPILATION_UNIT,
    "namespace_declaration": NodeKind.NAMESPACE,
    "file_scoped_namespace_declaration": NodeKind.NAMESPACE,
    "using_directive": NodeKind.USING,
    "class_declaration": NodeKind.TYPE_DECLARATION,
    "struct_declaration": NodeKind.TYPE_DECLARATION,
    "interface_declaration": NodeKind.TYPE_DECLARATION,
    "record_declaration": NodeKind.TYPE_DECLARATION,
    "record_struct_declaration": NodeKind.TYPE_DECLARATION,
    "base_list": NodeKind.BASE_LIST,
    "field_declaration": NodeKind.FIELD,
    "method_declaration": NodeKind.METHOD,
    "parameter": NodeKind.PARAMETER,
    "block": NodeKind.BLOCK,
    "variable_declaration": NodeKind.VARIABLE_DECLARATION,
    "variable_declarator": NodeKind.DECLARATOR,
    "invocation_expression": NodeKind.INVOCATION,
    "member_access_expression": NodeKind.MEMBER_ACCESS,
    "object_creation_expression": NodeKind.OBJECT_CREATION,
    "initializer_expression": NodeKind.INITIALIZER,
    "assignment_expression": NodeKind.ASSIGNMENT,
    "argument_list": NodeKind.ARGUMENT_LIST,
    "argument": NodeKind.ARGUMENT,
    "literal": NodeKind.LITERAL,
    "string_literal": NodeKind.LITERAL,
    "verbatim_string_literal": NodeKind.LITERAL,
    "raw_string_literal": NodeKind.LITERAL,
    "character_literal": NodeKind.LITERAL,
    "integer_literal": NodeKind.LITERAL,
    "real_literal": NodeKind.LITERAL,
    "boolean_literal": NodeKind.LITERAL,
    "null_literal": NodeKind.LITERAL,
    "identifier": NodeKind.IDENTIFIER,
    "this_expression": NodeKind.THIS,
    "this": NodeKind.THIS,
    "implicit_type": NodeKind.IMPLICIT_TYPE,
}


def kind_of(grammar_type: str, is_named: bool) -> NodeKind:
    """Map a grammar node type onto its NodeKind."""
    if not is_named:
        # Anonymous tokens share names with named nodes ("this", "base")
        return NodeKind.OTHER
    return GRAMMAR_KINDS.get(grammar_type, NodeKind.OTHER)


@dataclass(slots=True)
class SyntaxNode:
    """One node of the arena; relatives are referenced by index."""

    index: int
    kind: NodeKind
    type: str  # raw grammar type, e.g. "invocation_expression"
    start_byte: int
    end_byte: int
    is_named: bool = True
    parent: int | None = None
    field_name: str | None = None  # field under the parent, e.g. "arguments"
    children: list[int] = field(default_factory=list)


class SyntaxTree:
    """
    A parsed source file.

    Owns the source bytes and the node arena; node 0 is the root.
    """

    def __init__(
        self,
        path: Path,
        source: bytes,
        nodes: list[SyntaxNode],
        has_error: bool = False,
    ) -> None:
        self.path = path
        self.source = source
        self.nodes = nodes
        self.has_error = has_error

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def root(self) -> SyntaxNode:
        return self.nodes[0]

    def text(self, node: SyntaxNode) -> str:
        """Source text covered by a node."""
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def line_number(self, node: SyntaxNode) -> int:
        """1-based line of a node: line breaks before its start, plus one."""
        return self.source.count(b"\n", 0, node.start_byte) + 1

    def parent(self, node: SyntaxNode) -> SyntaxNode | None:
        return self.nodes[node.parent] if node.parent is not None else None

    def children(self, node: SyntaxNode) -> list[SyntaxNode]:
        return [self.nodes[i] for i in node.children]

    def named_children(self, node: SyntaxNode) -> list[SyntaxNode]:
        return [self.nodes[i] for i in node.children if self.nodes[i].is_named]

    def child_by_field(self, node: SyntaxNode, name: str) -> SyntaxNode | None:
        """First child stored under the given grammar field."""
        for i in node.children:
            if self.nodes[i].field_name == name:
                return self.nodes[i]
        return None

    def first_child_of_kind(self, node: SyntaxNode, *kinds: NodeKind) -> SyntaxNode | None:
        for i in node.children:
            if self.nodes[i].kind in kinds:
                return self.nodes[i]
        return None

    def ancestors(self, node: SyntaxNode, include_self: bool = False) -> Iterator[SyntaxNode]:
        """Walk parent links up to the root."""
        current = node if include_self else self.parent(node)
        while current is not None:
            yield current
            current = self.parent(current)

    def enclosing(self, node: SyntaxNode, *kinds: NodeKind) -> SyntaxNode | None:
        """Nearest strict ancestor of one of the given kinds."""
        for ancestor in self.ancestors(node):
            if ancestor.kind in kinds:
                return ancestor
        return None

    def descendants(self, node: SyntaxNode, include_self: bool = False) -> Iterator[SyntaxNode]:
        """Pre-order (document order) walk of a subtree."""
        stack = [node.index] if include_self else list(reversed(node.children))
        while stack:
            current = self.nodes[stack.pop()]
            yield current
            stack.extend(reversed(current.children))

    def iter_kind(self, kind: NodeKind, within: SyntaxNode | None = None) -> Iterator[SyntaxNode]:
        """All nodes of a kind, in document order, optionally inside a subtree."""
        scope = within if within is not None else self.root
        for node in self.descendants(scope, include_self=True):
            if node.kind is kind:
                yield node
