"""
ProcTrace Call-Site Scanner.

Finds invocations and object creations matching the argument map in one
syntax tree and turns the mapped arguments into extraction records.
Requires Python 3.11+.
"""

from collections.abc import Iterable
from typing import Any

from extraction.argument_map import ArgumentMap
from extraction.models import ArgumentMapEntry, ExtractionRecord
from extraction.resolver import IdentifierResolver
from syntax import queries
from syntax.models import NodeKind, SyntaxNode, SyntaxTree
from utils.logger import LoggerMixin


class DeclaredTypes:
    """
    File-wide table of variable and parameter names to declared type text.

    Not scope aware: a lookup prefers the nearest declaration preceding the
    use, otherwise the first declaration in the file.
    """

    def __init__(self, tree: SyntaxTree) -> None:
        self._declarations: dict[str, list[tuple[int, str]]] = {}
        for node in tree.descendants(tree.root):
            if node.kind is NodeKind.DECLARATOR:
                name = queries.declarator_name(tree, node)
                type_text = queries.declared_type(tree, node)
            elif node.kind is NodeKind.PARAMETER:
                name = queries.parameter_name(tree, node)
                type_text = queries.parameter_type(tree, node)
            else:
                continue
            if name:
                self._declarations.setdefault(name, []).append((node.start_byte, type_text))

    def lookup(self, name: str, position: int) -> str:
        candidates = self._declarations.get(name.removeprefix("this."))
        if not candidates:
            return ""
        preceding = [type_text for start, type_text in candidates if start < position]
        return preceding[-1] if preceding else candidates[0][1]


class CallSiteScanner(LoggerMixin):
    """
    Matches call sites against an ArgumentMap.

    Invocations match on their callee text (``SqlHelper.ExecuteReader``) or
    on ``DeclaredType.Method`` for the receiver; object creations match on
    the created type name and also yield ``<initializer_property> = ...``
    assignments of an object initializer.
    """

    def __init__(
        self,
        resolver: IdentifierResolver | None = None,
        initializer_property: str = "CommandText",
        skip_receivers: Iterable[str] = ("CommandType",),
        logger: Any | None = None,
    ) -> None:
        self.use_logger(logger)
        self._resolver = resolver or IdentifierResolver(logger=logger)
        self._initializer_property = initializer_property
        self._skip_receivers = frozenset(skip_receivers)

    def scan(self, tree: SyntaxTree, argument_map: ArgumentMap) -> list[ExtractionRecord]:
        """
        Scan one file.

        Args:
            tree: Parsed file
            argument_map: Rules to match call sites against

        Returns:
            Records in document order, pending records included
        """
        if not len(argument_map):
            return []

        declared_types = DeclaredTypes(tree)
        records: list[ExtractionRecord] = []
        for node in tree.descendants(tree.root):
            if node.kind is NodeKind.INVOCATION:
                records.extend(self._scan_invocation(tree, node, argument_map, declared_types))
            elif node.kind is NodeKind.OBJECT_CREATION:
                records.extend(self._scan_object_creation(tree, node, argument_map))
        return records

    def invocation_keys(
        self, tree: SyntaxTree, invocation: SyntaxNode, declared_types: DeclaredTypes
    ) -> list[str]:
        """Argument map keys an invocation can match, most specific text first."""
        callee = tree.child_by_field(invocation, "function")
        if callee is None:
            return []
        keys = [tree.text(callee)]

        if callee.kind is NodeKind.MEMBER_ACCESS:
            receiver = tree.child_by_field(callee, "expression")
            method = self._simple_name(tree, tree.child_by_field(callee, "name"))
            if receiver is None or not method:
                return keys
            if receiver.kind is NodeKind.THIS or tree.text(receiver) in ("this", "base"):
                type_names = queries.enclosing_type_names(tree, invocation)
            else:
                type_names = [declared_types.lookup(tree.text(receiver), invocation.start_byte)]
        elif callee.kind is NodeKind.IDENTIFIER or callee.type == "generic_name":
            method = self._simple_name(tree, callee)
            type_names = queries.enclosing_type_names(tree, invocation)
        else:
            return keys

        for type_name in type_names:
            key = f"{type_name}.{method}"
            if type_name and key not in keys:
                keys.append(key)
        return keys

    def _simple_name(self, tree: SyntaxTree, name: SyntaxNode | None) -> str:
        """Method name without type arguments: ``Query<T>`` -> ``Query``."""
        if name is None:
            return ""
        if name.type == "generic_name":
            identifier = tree.first_child_of_kind(name, NodeKind.IDENTIFIER)
            return tree.text(identifier) if identifier is not None else ""
        return tree.text(name)

    def _matching_entries(
        self,
        tree: SyntaxTree,
        node: SyntaxNode,
        keys: list[str],
        argument_map: ArgumentMap,
    ) -> list[ArgumentMapEntry]:
        """Entries for any key, namespace guards applied, one per (index, namespace)."""
        matched: list[ArgumentMapEntry] = []
        seen: set[tuple[int, str | None]] = set()
        for key in keys:
            for entry in argument_map.lookup(key):
                if (entry.arg_index, entry.namespace) in seen:
                    continue
                if entry.namespace and not queries.namespace_referenced(tree, entry.namespace, node):
                    self.log.debug(
                        "namespace_guard_skipped",
                        key=key,
                        namespace=entry.namespace,
                        path=str(tree.path),
                    )
                    continue
                seen.add((entry.arg_index, entry.namespace))
                matched.append(entry)
        return matched

    def _scan_invocation(
        self,
        tree: SyntaxTree,
        invocation: SyntaxNode,
        argument_map: ArgumentMap,
        declared_types: DeclaredTypes,
    ) -> list[ExtractionRecord]:
        keys = self.invocation_keys(tree, invocation, declared_types)
        entries = self._matching_entries(tree, invocation, keys, argument_map)
        if not entries:
            return []

        arguments = queries.argument_expressions(tree, tree.child_by_field(invocation, "arguments"))
        line_number = tree.line_number(invocation)
        records: list[ExtractionRecord] = []
        for entry in entries:
            if entry.arg_index < len(arguments):
                records.extend(
                    self._records_for(tree, arguments[entry.arg_index], line_number, invocation)
                )
        return records

    def _scan_object_creation(
        self, tree: SyntaxTree, creation: SyntaxNode, argument_map: ArgumentMap
    ) -> list[ExtractionRecord]:
        type_node = tree.child_by_field(creation, "type")
        if type_node is None:
            return []
        type_text = tree.text(type_node)
        keys = [type_text]
        if "." in type_text:
            keys.append(type_text.rpartition(".")[2])
        entries = self._matching_entries(tree, creation, keys, argument_map)
        if not entries:
            return []

        records: list[ExtractionRecord] = []
        argument_list = tree.child_by_field(creation, "arguments")
        arguments = queries.argument_expressions(tree, argument_list)
        for entry in entries:
            if entry.arg_index < len(arguments):
                argument = arguments[entry.arg_index]
                start = argument_list if argument_list is not None else creation
                records.extend(
                    self._records_for(
                        tree, argument, tree.line_number(tree.parent(argument)), start, raw_text=True
                    )
                )

        initializer = tree.child_by_field(creation, "initializer") or tree.first_child_of_kind(
            creation, NodeKind.INITIALIZER
        )
        if initializer is not None:
            for assignment in tree.named_children(initializer):
                if not queries.is_simple_assignment(tree, assignment):
                    continue
                left = tree.child_by_field(assignment, "left")
                right = tree.child_by_field(assignment, "right")
                if left is None or right is None:
                    continue
                if tree.text(left) == self._initializer_property:
                    records.extend(
                        self._records_for(
                            tree, right, tree.line_number(assignment), creation, raw_text=True
                        )
                    )
        return records

    def _records_for(
        self,
        tree: SyntaxTree,
        expression: SyntaxNode,
        line_number: int,
        start: SyntaxNode,
        raw_text: bool = False,
    ) -> list[ExtractionRecord]:
        """
        Records for one candidate argument expression.

        With ``raw_text`` an expression that is neither a literal nor a name
        (a concatenation, an interpolated string) is reported as its source
        text with ``is_variable`` set; otherwise it is ignored.
        """
        if expression.kind is NodeKind.LITERAL:
            value = queries.literal_value(tree, expression)
            if not value:
                return []
            return [ExtractionRecord(tree.path, line_number, value)]

        if expression.kind is NodeKind.MEMBER_ACCESS:
            receiver = tree.child_by_field(expression, "expression")
            if receiver is not None and tree.text(receiver) in self._skip_receivers:
                return []
        elif expression.kind is not NodeKind.IDENTIFIER:
            if not raw_text:
                return []
            return [ExtractionRecord(tree.path, line_number, tree.text(expression), is_variable=True)]

        name = tree.text(expression)
        resolution = self._resolver.resolve(tree, name, start)
        if not resolution.is_resolved and not resolution.unresolved:
            self.log.info(
                "identifier_unresolved",
                name=name,
                path=str(tree.path),
                line=line_number,
            )
            return [ExtractionRecord(tree.path, line_number, name, is_variable=True)]

        records: list[ExtractionRecord] = []
        if resolution.values:
            records.append(ExtractionRecord(tree.path, line_number, resolution.text))
        for reference in resolution.pending:
            records.append(
                ExtractionRecord(tree.path, line_number, reference.encode(), pending=reference)
            )
        for inner in resolution.unresolved:
            self.log.info(
                "identifier_unresolved",
                name=inner,
                alias=name,
                path=str(tree.path),
                line=line_number,
            )
            records.append(ExtractionRecord(tree.path, line_number, inner, is_variable=True))
        return records
