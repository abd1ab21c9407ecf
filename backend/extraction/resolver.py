"""
ProcTrace Identifier Resolver.

Traces an identifier used at a call site back to the literal(s) assigned to
it by walking outward through block, type and method scopes.
Requires Python 3.11+.
"""

from typing import Any

from extraction.models import PendingMethodReference, Resolution
from syntax import queries
from syntax.models import NodeKind, SyntaxNode, SyntaxTree
from utils.logger import LoggerMixin


class IdentifierResolver(LoggerMixin):
    """
    Best-effort, flow-insensitive identifier resolution.

    At each enclosing scope, starting from the call site:

    - block: every declarator and simple assignment of the name anywhere in
      the block contributes its value; all distinct values are merged
      (a variable may hold any of them depending on control flow);
    - type: a literal-initialized field of that name;
    - method: a parameter of that name ends local resolution with a
      pending method reference, to be continued at the method's call sites.

    The tree is only read, so one resolver can serve any number of files.
    """

    def __init__(self, logger: Any | None = None) -> None:
        self.use_logger(logger)

    def resolve(self, tree: SyntaxTree, name: str, start: SyntaxNode) -> Resolution:
        """
        Resolve ``name`` as seen from ``start``.

        Args:
            tree: Tree containing ``start``
            name: Identifier or member-access text, e.g. ``sql`` or ``this.Sql``
            start: Node to start the scope walk at (inclusive)

        Returns:
            Resolution; unresolved when neither values nor references were found
        """
        return self._resolve(tree, name, start, frozenset())

    def _resolve(
        self,
        tree: SyntaxTree,
        name: str,
        start: SyntaxNode,
        in_progress: frozenset[str],
    ) -> Resolution:
        in_progress = in_progress | {name}
        carried = Resolution()

        for scope in tree.ancestors(start, include_self=True):
            if scope.kind is NodeKind.BLOCK:
                found = self._search_block(tree, name, scope, in_progress)
                if found.is_resolved:
                    return found
                carried.merge(found)

            elif scope.kind is NodeKind.TYPE_DECLARATION:
                value = self._type_field_value(tree, name, scope)
                if value:
                    return Resolution(values=[value])

            elif scope.kind is NodeKind.FIELD:
                value = self._field_value(tree, name, scope)
                if value:
                    return Resolution(values=[value])

            elif scope.kind is NodeKind.METHOD:
                reference = self._parameter_reference(tree, name, scope)
                if reference is not None:
                    return Resolution(pending=[reference])

        return carried

    def _search_block(
        self,
        tree: SyntaxTree,
        name: str,
        block: SyntaxNode,
        in_progress: frozenset[str],
    ) -> Resolution:
        found = Resolution()
        for node in tree.descendants(block):
            if node.kind is NodeKind.DECLARATOR:
                if queries.declarator_name(tree, node) == name:
                    value = queries.declarator_value(tree, node)
                    self._collect(tree, value, block, found, in_progress)
            elif queries.is_simple_assignment(tree, node):
                left = tree.child_by_field(node, "left")
                if left is not None and tree.text(left) == name:
                    right = tree.child_by_field(node, "right")
                    self._collect(tree, right, block, found, in_progress)
        return found

    def _collect(
        self,
        tree: SyntaxTree,
        value: SyntaxNode | None,
        block: SyntaxNode,
        found: Resolution,
        in_progress: frozenset[str],
    ) -> None:
        """
        Add what a right-hand side contributes: a literal, or whatever its
        identifier resolves to. An identifier traced to nothing is kept as an
        unresolved name.
        """
        if value is None:
            return
        if value.kind is NodeKind.LITERAL:
            literal = queries.literal_value(tree, value)
            if literal:
                found.add_value(literal)
        elif value.kind in (NodeKind.IDENTIFIER, NodeKind.MEMBER_ACCESS):
            other = tree.text(value)
            if other in in_progress:
                return
            inner = self._resolve(tree, other, block, in_progress)
            found.merge(inner)
            if not inner.is_resolved and not inner.unresolved:
                found.add_unresolved(other)

    def _type_field_value(self, tree: SyntaxTree, name: str, type_declaration: SyntaxNode) -> str | None:
        body = tree.child_by_field(type_declaration, "body") or type_declaration
        for member in tree.children(body):
            if member.kind is NodeKind.FIELD:
                value = self._field_value(tree, name, member)
                if value is not None:
                    return value
        return None

    def _field_value(self, tree: SyntaxTree, name: str, field: SyntaxNode) -> str | None:
        field_name = name.removeprefix("this.")
        for declarator in queries.declarators(tree, field):
            if queries.declarator_name(tree, declarator) != field_name:
                continue
            value = queries.declarator_value(tree, declarator)
            if value is not None and value.kind is NodeKind.LITERAL:
                return queries.literal_value(tree, value)
        return None

    def _parameter_reference(
        self, tree: SyntaxTree, name: str, method: SyntaxNode
    ) -> PendingMethodReference | None:
        for index, parameter in enumerate(queries.parameters(tree, method)):
            if queries.parameter_name(tree, parameter) != name:
                continue
            reference = PendingMethodReference(
                class_names=tuple(queries.enclosing_type_names(tree, method)),
                method_name=queries.method_name(tree, method),
                parameter_index=index,
                namespace=queries.enclosing_namespace(tree, method),
            )
            self.log.debug("parameter_reference", name=name, reference=reference.encode())
            return reference
        return None
