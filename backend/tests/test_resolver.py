"""
Tests for the Identifier Resolver.

Requires Python 3.11+.
"""

import pytest

from extraction.models import PendingMethodReference
from extraction.resolver import IdentifierResolver
from syntax.csharp_parser import CSharpParser
from syntax.models import NodeKind, SyntaxTree


def _call_site(tree: SyntaxTree, callee: str):
    for invocation in tree.iter_kind(NodeKind.INVOCATION):
        function = tree.child_by_field(invocation, "function")
        if function is not None and tree.text(function) == callee:
            return invocation
    raise AssertionError(f"no call to {callee}")


class TestIdentifierResolver:
    """Test cases for IdentifierResolver."""

    @pytest.fixture
    def resolver(self) -> IdentifierResolver:
        """Create a resolver instance."""
        return IdentifierResolver()

    def test_local_literal(self, resolver: IdentifierResolver, sample_tree: SyntaxTree):
        """Test a local initialized with a literal."""
        site = next(sample_tree.iter_kind(NodeKind.INVOCATION))

        resolution = resolver.resolve(sample_tree, "proc", site)

        assert resolution.values == ["usp_GetOrders"]
        assert not resolution.pending

    def test_branch_merge(self, resolver: IdentifierResolver, sample_tree: SyntaxTree):
        """Test that assignments on different branches are all kept."""
        site = next(sample_tree.iter_kind(NodeKind.INVOCATION))

        resolution = resolver.resolve(sample_tree, "sql", site)

        assert resolution.text == "usp_GetArchivedOrders|usp_GetOpenOrders"

    def test_field_literal(self, resolver: IdentifierResolver, sample_tree: SyntaxTree):
        """Test a constant field of the enclosing class."""
        site = next(sample_tree.iter_kind(NodeKind.INVOCATION))

        assert resolver.resolve(sample_tree, "ListProc", site).values == ["[dbo].[usp_ListOrders]"]
        assert resolver.resolve(sample_tree, "this.ListProc", site).values == [
            "[dbo].[usp_ListOrders]"
        ]

    def test_identifier_chain(self, resolver: IdentifierResolver, csharp_parser: CSharpParser):
        """Test a variable assigned from another variable."""
        tree = csharp_parser.parse_content(
            """class A {
    void M() {
        string name = "usp_Chain";
        string proc = name;
        Db.Run(proc);
    }
}"""
        )

        resolution = resolver.resolve(tree, "proc", _call_site(tree, "Db.Run"))

        assert resolution.values == ["usp_Chain"]

    def test_self_reference_terminates(self, resolver: IdentifierResolver, csharp_parser: CSharpParser):
        """Test that cyclic assignments do not recurse forever."""
        tree = csharp_parser.parse_content(
            """class A {
    void M() {
        string a = b;
        string b = a;
        Db.Run(a);
    }
}"""
        )

        resolution = resolver.resolve(tree, "a", _call_site(tree, "Db.Run"))

        assert not resolution.is_resolved

    def test_parameter_becomes_pending(self, resolver: IdentifierResolver, csharp_parser: CSharpParser):
        """Test that a parameter yields a pending method reference."""
        tree = csharp_parser.parse_content(
            """namespace Acme.Data {
    class Repo : IRepo {
        public void Run(SqlConnection conn, string proc) {
            SqlHelper.ExecuteReader(conn, proc);
        }
    }
}"""
        )

        resolution = resolver.resolve(tree, "proc", _call_site(tree, "SqlHelper.ExecuteReader"))

        assert resolution.pending == [
            PendingMethodReference(("Repo", "IRepo"), "Run", 1, "Acme.Data")
        ]
        assert not resolution.values

    def test_local_shadows_parameter(self, resolver: IdentifierResolver, csharp_parser: CSharpParser):
        """Test that an assignment in the body wins over the parameter."""
        tree = csharp_parser.parse_content(
            """class Repo {
    public void Run(string proc) {
        proc = "usp_Override";
        Db.Run(proc);
    }
}"""
        )

        resolution = resolver.resolve(tree, "proc", _call_site(tree, "Db.Run"))

        assert resolution.values == ["usp_Override"]
        assert not resolution.pending

    def test_unresolved(self, resolver: IdentifierResolver, sample_tree: SyntaxTree):
        """Test an identifier declared nowhere."""
        site = next(sample_tree.iter_kind(NodeKind.INVOCATION))

        assert not resolver.resolve(sample_tree, "Procs.Missing", site).is_resolved

    def test_copied_unresolved_name(self, resolver: IdentifierResolver, csharp_parser: CSharpParser):
        """Test that a local copied from an unknown member keeps that member's name."""
        tree = csharp_parser.parse_content(
            """class A {
    void M() {
        string proc = Procedures.Archive;
        Db.Run(proc);
    }
}"""
        )

        resolution = resolver.resolve(tree, "proc", _call_site(tree, "Db.Run"))

        assert not resolution.is_resolved
        assert resolution.unresolved == ["Procedures.Archive"]

    def test_mixed_values_and_unresolved(
        self, resolver: IdentifierResolver, csharp_parser: CSharpParser
    ):
        """Test that known branch values are kept next to an untraceable one."""
        tree = csharp_parser.parse_content(
            """class A {
    void M(bool archived) {
        string proc = "usp_Open";
        if (archived)
            proc = Procedures.Archive;
        Db.Run(proc);
    }
}"""
        )

        resolution = resolver.resolve(tree, "proc", _call_site(tree, "Db.Run"))

        assert resolution.values == ["usp_Open"]
        assert resolution.unresolved == ["Procedures.Archive"]
