"""
Tests for the Call-Site Scanner.

Requires Python 3.11+.
"""

from pathlib import Path

import pytest

from extraction.argument_map import ArgumentMap
from extraction.scanner import CallSiteScanner, DeclaredTypes
from syntax.csharp_parser import CSharpParser
from syntax.models import NodeKind, SyntaxTree


def _rows(records):
    return [(r.line_number, r.command_text, r.is_variable) for r in records]


class TestCallSiteScanner:
    """Test cases for CallSiteScanner."""

    @pytest.fixture
    def scanner(self) -> CallSiteScanner:
        """Create a scanner instance."""
        return CallSiteScanner()

    def test_sample_call_sites(self, scanner: CallSiteScanner, sample_tree: SyntaxTree, build_map):
        """Test literals, branch merges, constructors and initializers."""
        argument_map = build_map("SqlHelper.ExecuteReader,1", "SqlCommand,0")

        records = scanner.scan(sample_tree, argument_map)

        assert _rows(records) == [
            (13, "usp_GetOrders", False),
            (20, "usp_GetArchivedOrders|usp_GetOpenOrders", False),
            (23, "usp_CountOrders", False),
            (24, 'SELECT * FROM "Orders"', False),
        ]
        assert all(r.file_path == Path("OrderRepository.cs") for r in records)

    def test_command_type_argument_skipped(
        self, scanner: CallSiteScanner, sample_tree: SyntaxTree, build_map
    ):
        """Test that CommandType.* at a mapped index is never reported."""
        records = scanner.scan(sample_tree, build_map("SqlHelper.ExecuteReader,1"))

        assert not any("CommandType" in r.command_text for r in records)

    def test_field_argument(self, scanner: CallSiteScanner, sample_tree: SyntaxTree, build_map):
        """Test an argument resolved through a class constant."""
        records = scanner.scan(sample_tree, build_map("SqlHelper.ExecuteReader,2"))

        assert _rows(records) == [(22, "[dbo].[usp_ListOrders]", False)]

    def test_empty_map(self, scanner: CallSiteScanner, sample_tree: SyntaxTree):
        """Test that an empty map finds nothing."""
        assert scanner.scan(sample_tree, ArgumentMap()) == []

    def test_declared_type_key(self, scanner: CallSiteScanner, csharp_parser: CSharpParser, build_map):
        """Test matching a call on a variable through its declared type."""
        tree = csharp_parser.parse_content('var f = new Foo();\nf.Bar("sp_Example");\n')

        records = scanner.scan(tree, build_map("Foo.Bar,0"))

        assert _rows(records) == [(2, "sp_Example", False)]

    def test_this_call_uses_enclosing_type(
        self, scanner: CallSiteScanner, csharp_parser: CSharpParser, build_map
    ):
        """Test that this.Method() and Method() match Type.Method rules."""
        tree = csharp_parser.parse_content(
            """class Repo {
    void A() { this.Run("usp_A"); }
    void B() { Run("usp_B"); }
}"""
        )

        records = scanner.scan(tree, build_map("Repo.Run,0"))

        assert _rows(records) == [(2, "usp_A", False), (3, "usp_B", False)]

    def test_unresolved_identifier(
        self, csharp_parser: CSharpParser, build_map, recording_logger
    ):
        """Test that an unresolvable argument is reported as a variable."""
        scanner = CallSiteScanner(logger=recording_logger)
        tree = csharp_parser.parse_content(
            'class A {\n    void M() {\n        Db.Run(Procs.Missing);\n    }\n}', Path("A.cs")
        )

        records = scanner.scan(tree, build_map("Db.Run,0"))

        assert _rows(records) == [(3, "Procs.Missing", True)]
        (event,) = recording_logger.named("identifier_unresolved")
        assert event == {"name": "Procs.Missing", "path": "A.cs", "line": 3}

    def test_parameter_yields_pending_record(
        self, scanner: CallSiteScanner, csharp_parser: CSharpParser, build_map
    ):
        """Test that a parameter argument produces a pending record."""
        tree = csharp_parser.parse_content(
            "class Repo {\n    void Run(string proc) { Db.Exec(proc); }\n}"
        )

        (record,) = scanner.scan(tree, build_map("Db.Exec,0"))

        assert record.is_pending
        assert record.command_text == "methodCalls:Repo.Run:0"
        assert record.pending.parameter_index == 0

    def test_namespace_guard(self, scanner: CallSiteScanner, csharp_parser: CSharpParser, build_map):
        """Test that a namespace-qualified rule needs the namespace in scope."""
        argument_map = build_map("Database.ExecuteProc,0,Acme.Data")
        source = """using {namespace};
class A {{
    void M() {{
        Database db = new Database();
        db.ExecuteProc("usp_Run");
    }}
}}"""

        matching = csharp_parser.parse_content(source.format(namespace="Acme.Data"))
        other = csharp_parser.parse_content(source.format(namespace="Other.Data"))

        assert _rows(scanner.scan(matching, argument_map)) == [(5, "usp_Run", False)]
        assert scanner.scan(other, argument_map) == []

    def test_namespace_guard_picks_imported_rule(
        self, scanner: CallSiteScanner, csharp_parser: CSharpParser, build_map
    ):
        """Test that of two rules for one method only the imported namespace applies."""
        argument_map = build_map(
            "Database.ExecuteProc,0,Acme.Data", "Database.ExecuteProc,1,Other.Data"
        )
        tree = csharp_parser.parse_content(
            """using Acme.Data;
class A {
    void M() {
        Database db = new Database();
        db.ExecuteProc("usp_A", "usp_B");
    }
}"""
        )

        assert _rows(scanner.scan(tree, argument_map)) == [(5, "usp_A", False)]

    def test_constructor_expression_text(
        self, scanner: CallSiteScanner, csharp_parser: CSharpParser, build_map
    ):
        """Test that built-up command text is reported as written."""
        tree = csharp_parser.parse_content(
            """class A {
    void M(SqlConnection conn, string where) {
        var a = new SqlCommand("SELECT * FROM Orders WHERE " + where, conn);
        var b = new SqlCommand
        {
            CommandText = $"EXEC usp_{where}"
        };
    }
}"""
        )

        records = scanner.scan(tree, build_map("SqlCommand,0"))

        assert _rows(records) == [
            (3, '"SELECT * FROM Orders WHERE " + where', True),
            (6, '$"EXEC usp_{where}"', True),
        ]

    def test_invocation_expression_ignored(
        self, scanner: CallSiteScanner, csharp_parser: CSharpParser, build_map
    ):
        """Test that an invocation argument that is not a name or literal is skipped."""
        tree = csharp_parser.parse_content(
            'class A { void M(string s) { Db.Run("usp_" + s); } }'
        )

        assert scanner.scan(tree, build_map("Db.Run,0")) == []

    def test_copied_name_reported(
        self, csharp_parser: CSharpParser, build_map, recording_logger
    ):
        """Test that a local copied from an unknown constant reports the constant."""
        scanner = CallSiteScanner(logger=recording_logger)
        tree = csharp_parser.parse_content(
            """class A {
    void M(SqlConnection conn) {
        string proc = Procedures.Archive;
        SqlHelper.ExecuteReader(conn, proc);
    }
}""",
            Path("A.cs"),
        )

        records = scanner.scan(tree, build_map("SqlHelper.ExecuteReader,1"))

        assert _rows(records) == [(4, "Procedures.Archive", True)]
        (event,) = recording_logger.named("identifier_unresolved")
        assert event == {"name": "Procedures.Archive", "alias": "proc", "path": "A.cs", "line": 4}

    def test_duplicate_rules_single_record(
        self, scanner: CallSiteScanner, csharp_parser: CSharpParser, build_map
    ):
        """Test that a call matching through two keys is reported once."""
        tree = csharp_parser.parse_content(
            'class A {\n    void M() {\n        Db db = new Db();\n        db.Run("usp_X");\n    }\n}'
        )

        records = scanner.scan(tree, build_map("db.Run,0", "Db.Run,0"))

        assert _rows(records) == [(4, "usp_X", False)]


class TestDeclaredTypes:
    """Test cases for the declared-type table."""

    def test_nearest_preceding_declaration(self, csharp_parser: CSharpParser):
        """Test that the closest earlier declaration wins."""
        tree = csharp_parser.parse_content(
            "class A {\n    void M() { Db x = null; }\n    void N() { Other x = null; x.Run(); }\n}"
        )
        invocation = next(tree.iter_kind(NodeKind.INVOCATION))

        declared_types = DeclaredTypes(tree)

        assert declared_types.lookup("x", invocation.start_byte) == "Other"
        assert declared_types.lookup("this.x", 0) == "Db"
        assert declared_types.lookup("missing", 0) == ""
