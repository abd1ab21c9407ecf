"""
ProcTrace Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

from pathlib import Path
from typing import Any, Callable

import pytest

from extraction.argument_map import ArgumentMap, ArgumentMapBuilder
from syntax.csharp_parser import CSharpParser


class RecordingLogger:
    """Logger stand-in that keeps (level, event, fields) tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, level: str) -> Callable[..., None]:
        def log(event: str, **fields: Any) -> None:
            self.events.append((level, event, fields))

        return log

    def __getattr__(self, level: str) -> Callable[..., None]:
        return self._record(level)

    def named(self, event: str) -> list[dict[str, Any]]:
        return [fields for _, name, fields in self.events if name == event]


@pytest.fixture
def recording_logger() -> RecordingLogger:
    """Logger that records events for assertions."""
    return RecordingLogger()


@pytest.fixture(scope="session")
def csharp_parser() -> CSharpParser:
    """Shared C# parser."""
    return CSharpParser()


@pytest.fixture
def build_map() -> Callable[..., ArgumentMap]:
    """Build an argument map from rule lines."""

    def build(*lines: str) -> ArgumentMap:
        return ArgumentMapBuilder().parse(lines)

    return build


@pytest.fixture
def write_corpus(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Write {relative path: C# source} into a temporary code root."""

    def write(files: dict[str, str]) -> Path:
        root = tmp_path / "src"
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return write


@pytest.fixture
def sample_csharp_code() -> str:
    """Sample data-access class covering the common call-site shapes."""
    return '''using System.Data;
using System.Data.SqlClient;

namespace Acme.Data
{
    public class OrderRepository : RepositoryBase, IOrderRepository
    {
        private const string ListProc = "[dbo].[usp_ListOrders]";

        public void Load(SqlConnection conn, bool archived)
        {
            string proc = "usp_GetOrders";
            SqlHelper.ExecuteReader(conn, proc);

            string sql;
            if (archived)
                sql = "usp_GetArchivedOrders";
            else
                sql = "usp_GetOpenOrders";
            SqlHelper.ExecuteReader(conn, sql);

            SqlHelper.ExecuteReader(conn, CommandType.StoredProcedure, ListProc);
            var cmd = new SqlCommand("usp_CountOrders", conn);
            var other = new SqlCommand { CommandText = @"SELECT * FROM ""Orders""" };
        }
    }
}
'''


@pytest.fixture
def sample_tree(csharp_parser: CSharpParser, sample_csharp_code: str):
    """Parsed sample data-access class."""
    return csharp_parser.parse_content(sample_csharp_code, Path("OrderRepository.cs"))
