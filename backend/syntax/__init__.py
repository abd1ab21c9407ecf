"""
ProcTrace Syntax Package.

Tree-sitter based C# parsing into an arena-indexed syntax tree.
Requires Python 3.11+.
"""

from syntax.models import NodeKind, SyntaxNode, SyntaxTree
from syntax.csharp_parser import CSharpParser

__all__ = [
    "NodeKind",
    "SyntaxNode",
    "SyntaxTree",
    "CSharpParser",
]
