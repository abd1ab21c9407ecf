"""
ProcTrace C# Structure Queries.

Small read-only helpers answering C#-specific questions about a SyntaxTree:
declarator names and initializers, type and namespace names, imports,
call arguments and literal values.
Requires Python 3.11+.
"""

import re

from syntax.models import NodeKind, SyntaxNode, SyntaxTree

NAME_TYPES = ("identifier", "qualified_name", "alias_qualified_name", "generic_name")

_SIMPLE_ESCAPES = {
    "'": "'",
    '"': '"',
    "\\": "\\",
    "0": "\0",
    "a": "\a",
    "b": "\b",
    "e": "\x1b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}
_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|U[0-9a-fA-F]{8}|x[0-9a-fA-F]{1,4}|.)", re.DOTALL)


def _unescape(body: str) -> str:
    def replace(match: re.Match[str]) -> str:
        escape = match.group(1)
        if escape[0] in "uUx" and len(escape) > 1:
            return chr(int(escape[1:], 16))
        return _SIMPLE_ESCAPES.get(escape, escape)

    return _ESCAPE_RE.sub(replace, body)


def literal_value(tree: SyntaxTree, node: SyntaxNode) -> str:
    """
    Value text of a literal, as the compiler sees it.

    String and character literals lose their quotes and have escapes
    decoded; numeric, boolean and null literals keep their source text.
    """
    if node.type == "literal":
        inner = tree.named_children(node)
        return literal_value(tree, inner[0]) if inner else tree.text(node)

    text = tree.text(node)
    if node.type == "string_literal":
        if text.endswith("u8"):
            text = text[:-2]
        return _unescape(text[1:-1])
    if node.type == "verbatim_string_literal":
        return text[text.index('"') + 1 : -1].replace('""', '"')
    if node.type == "raw_string_literal":
        quotes = len(text) - len(text.lstrip('"'))
        body = text[quotes:-quotes]
        return body.strip() if "\n" in body else body
    if node.type == "character_literal":
        return _unescape(text[1:-1])
    return text


def declarator_name(tree: SyntaxTree, declarator: SyntaxNode) -> str | None:
    name = tree.child_by_field(declarator, "name") or tree.first_child_of_kind(
        declarator, NodeKind.IDENTIFIER
    )
    return tree.text(name) if name is not None else None


def declarator_value(tree: SyntaxTree, declarator: SyntaxNode) -> SyntaxNode | None:
    """Initializer expression of ``name = value``, or None."""
    seen_equals = False
    for child in tree.children(declarator):
        if child.type == "equals_value_clause":
            inner = tree.named_children(child)
            return inner[0] if inner else None
        if child.type == "=":
            seen_equals = True
        elif seen_equals and child.is_named:
            return child
    return None


def declared_type(tree: SyntaxTree, declarator: SyntaxNode) -> str:
    """
    Declared type text of a variable declarator.

    ``var x = new T(...)`` reports ``T``; any other ``var`` stays ``var``.
    """
    declaration = tree.parent(declarator)
    if declaration is None or declaration.kind is not NodeKind.VARIABLE_DECLARATION:
        return ""
    type_node = tree.child_by_field(declaration, "type")
    if type_node is None:
        return ""
    if type_node.kind is NodeKind.IMPLICIT_TYPE or tree.text(type_node) == "var":
        value = declarator_value(tree, declarator)
        if value is not None and value.kind is NodeKind.OBJECT_CREATION:
            created = tree.child_by_field(value, "type")
            if created is not None:
                return tree.text(created)
    return tree.text(type_node)


def declarators(tree: SyntaxTree, declaration: SyntaxNode) -> list[SyntaxNode]:
    """Declarators of a field or local declaration."""
    if declaration.kind is NodeKind.FIELD:
        inner = tree.first_child_of_kind(declaration, NodeKind.VARIABLE_DECLARATION)
        if inner is None:
            return []
        declaration = inner
    return [c for c in tree.children(declaration) if c.kind is NodeKind.DECLARATOR]


def parameters(tree: SyntaxTree, method: SyntaxNode) -> list[SyntaxNode]:
    """Formal parameters of a method, in declaration order."""
    parameter_list = tree.child_by_field(method, "parameters")
    if parameter_list is None:
        parameter_list = next(
            (c for c in tree.children(method) if c.type == "parameter_list"), None
        )
    if parameter_list is None:
        return []
    return [c for c in tree.children(parameter_list) if c.kind is NodeKind.PARAMETER]


def parameter_name(tree: SyntaxTree, parameter: SyntaxNode) -> str | None:
    name = tree.child_by_field(parameter, "name")
    if name is None:
        identifiers = [c for c in tree.children(parameter) if c.kind is NodeKind.IDENTIFIER]
        name = identifiers[-1] if identifiers else None
    return tree.text(name) if name is not None else None


def parameter_type(tree: SyntaxTree, parameter: SyntaxNode) -> str:
    type_node = tree.child_by_field(parameter, "type")
    return tree.text(type_node) if type_node is not None else ""


def method_name(tree: SyntaxTree, method: SyntaxNode) -> str:
    name = tree.child_by_field(method, "name")
    return tree.text(name) if name is not None else ""


def type_name(tree: SyntaxTree, type_declaration: SyntaxNode) -> str:
    name = tree.child_by_field(type_declaration, "name")
    return tree.text(name) if name is not None else ""


def base_type_names(tree: SyntaxTree, type_declaration: SyntaxNode) -> list[str]:
    """Declared base class and interface names, e.g. ``["Repo", "IRepo"]``."""
    base_list = tree.first_child_of_kind(type_declaration, NodeKind.BASE_LIST)
    if base_list is None:
        return []
    names: list[str] = []
    for child in tree.named_children(base_list):
        if child.type == "comment":
            continue
        if child.type == "primary_constructor_base_type":
            inner = tree.child_by_field(child, "type") or tree.named_children(child)[0]
            names.append(tree.text(inner))
        else:
            names.append(tree.text(child))
    return names


def enclosing_type_names(tree: SyntaxTree, node: SyntaxNode) -> list[str]:
    """Nearest enclosing type name followed by its bases; empty outside types."""
    type_declaration = tree.enclosing(node, NodeKind.TYPE_DECLARATION)
    if type_declaration is None:
        return []
    return [type_name(tree, type_declaration), *base_type_names(tree, type_declaration)]


def qualified_variable_name(tree: SyntaxTree, name: str, node: SyntaxNode) -> str:
    """
    Prefix a variable name with the chain of enclosing type names.

    The walk stops at a namespace declaration, so the result is
    namespace independent: ``Outer.Inner.name``.
    """
    parts = [name]
    for ancestor in tree.ancestors(node):
        if ancestor.kind is NodeKind.NAMESPACE:
            break
        if ancestor.kind is NodeKind.TYPE_DECLARATION:
            parts.append(type_name(tree, ancestor))
    return ".".join(reversed(parts))


def namespace_name(tree: SyntaxTree, namespace: SyntaxNode) -> str:
    name = tree.child_by_field(namespace, "name")
    if name is None:
        name = next((c for c in tree.named_children(namespace) if c.type in NAME_TYPES), None)
    return tree.text(name) if name is not None else ""


def _file_scoped_namespace(tree: SyntaxTree) -> SyntaxNode | None:
    return next(
        (c for c in tree.children(tree.root) if c.type == "file_scoped_namespace_declaration"),
        None,
    )


def enclosing_namespace(tree: SyntaxTree, node: SyntaxNode) -> str | None:
    """Name of the namespace a node is declared in, if any."""
    namespace = tree.enclosing(node, NodeKind.NAMESPACE)
    if namespace is None:
        namespace = _file_scoped_namespace(tree)
    return namespace_name(tree, namespace) if namespace is not None else None


def using_name(tree: SyntaxTree, using: SyntaxNode) -> str | None:
    """Imported namespace of a using directive; aliases yield None."""
    if any(c.type == "=" for c in tree.children(using)):
        return None
    name = next((c for c in tree.named_children(using) if c.type in NAME_TYPES), None)
    return tree.text(name) if name is not None else None


def _usings(tree: SyntaxTree, container: SyntaxNode) -> list[str]:
    names = []
    for child in tree.children(container):
        if child.kind is NodeKind.USING:
            name = using_name(tree, child)
            if name:
                names.append(name)
    return names


def namespace_referenced(tree: SyntaxTree, namespace: str, node: SyntaxNode) -> bool:
    """
    True when ``namespace`` is imported by, or encloses, the given node.

    Checks file-level usings, usings inside enclosing namespace bodies, and
    the names of enclosing (block or file-scoped) namespace declarations.
    """
    for ancestor in tree.ancestors(node, include_self=True):
        if ancestor.kind is NodeKind.COMPILATION_UNIT:
            if namespace in _usings(tree, ancestor):
                return True
            file_scoped = _file_scoped_namespace(tree)
            if file_scoped is not None and namespace_name(tree, file_scoped) == namespace:
                return True
        elif ancestor.kind is NodeKind.NAMESPACE:
            if namespace_name(tree, ancestor) == namespace:
                return True
            body = tree.child_by_field(ancestor, "body") or ancestor
            if namespace in _usings(tree, body):
                return True
    return False


def argument_expressions(tree: SyntaxTree, argument_list: SyntaxNode | None) -> list[SyntaxNode]:
    """Expression of each argument, positionally; named/ref prefixes dropped."""
    if argument_list is None:
        return []
    expressions = []
    for argument in tree.children(argument_list):
        if argument.kind is not NodeKind.ARGUMENT:
            continue
        named = [c for c in tree.named_children(argument) if c.type != "comment"]
        if named:
            expressions.append(named[-1])
    return expressions


def assignment_operator(tree: SyntaxTree, assignment: SyntaxNode) -> str:
    operator = tree.child_by_field(assignment, "operator")
    if operator is None:
        operator = next(
            (
                c
                for c in tree.children(assignment)
                if c.type == "assignment_operator" or (not c.is_named and c.type.endswith("="))
            ),
            None,
        )
    return tree.text(operator) if operator is not None else "="


def is_simple_assignment(tree: SyntaxTree, node: SyntaxNode) -> bool:
    return node.kind is NodeKind.ASSIGNMENT and assignment_operator(tree, node) == "="
