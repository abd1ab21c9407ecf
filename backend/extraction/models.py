"""
ProcTrace Extraction Data Models.

Argument map entries, pending method references, extraction records and
resolution results.
Requires Python 3.11+.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

# Marks a pending method reference in its text form (config lines, logs)
PENDING_PREFIX = "methodCalls:"

# Joins alternative values of a variable, and fan-out qualifiers
ALTERNATIVE_SEPARATOR = "|"


class EntryOrigin(str, Enum):
    """Where an argument map entry came from."""

    CONFIG = "config"
    PENDING = "pending"  # synthesized from a pending method reference


@dataclass(frozen=True, slots=True)
class ArgumentMapEntry:
    """One rule: the argument at ``arg_index`` of calls keyed by ``key`` carries command text."""

    key: str  # "SqlHelper.ExecuteReader", "Repo.Run" or a bare "SqlCommand"
    method_name: str
    arg_index: int
    namespace: str | None = None
    origin: EntryOrigin = EntryOrigin.CONFIG

    @property
    def is_pending(self) -> bool:
        return self.origin is EntryOrigin.PENDING


@dataclass(frozen=True, slots=True)
class PendingMethodReference:
    """
    A traced value that is a method parameter.

    Resolution has to continue at the call sites of ``method_name`` on any
    of ``class_names`` (the declaring type first, then its bases and
    interfaces), at argument ``parameter_index``.
    """

    class_names: tuple[str, ...]
    method_name: str
    parameter_index: int
    namespace: str | None = None

    def encode(self) -> str:
        """Text form, e.g. ``methodCalls:Repo|IRepo.Run:0:Acme.Data``."""
        text = (
            f"{PENDING_PREFIX}{ALTERNATIVE_SEPARATOR.join(self.class_names)}"
            f".{self.method_name}:{self.parameter_index}"
        )
        return f"{text}:{self.namespace}" if self.namespace else text

    def __str__(self) -> str:
        return self.encode()


@dataclass(frozen=True, slots=True)
class ExtractionRecord:
    """
    A command text found at a call site.

    ``command_text`` is a literal (possibly several alternatives joined by
    ``|``), or the raw expression text when ``is_variable`` is set. Pending
    records carry the reference in ``pending`` and never reach the output.
    """

    file_path: Path
    line_number: int
    command_text: str
    is_variable: bool = False
    error_msg: str = ""
    pending: PendingMethodReference | None = None

    @property
    def is_pending(self) -> bool:
        return self.pending is not None

    @property
    def is_error(self) -> bool:
        return bool(self.error_msg)

    def resolved(self, value: str) -> "ExtractionRecord":
        """Copy of an unresolved record carrying a value found elsewhere."""
        return replace(self, command_text=value, is_variable=False)


@dataclass(slots=True)
class Resolution:
    """
    Outcome of tracing an identifier: literal alternatives and/or pending references.

    ``unresolved`` holds the innermost names the identifier was copied from
    that could not be traced further; they do not count as resolved.
    """

    values: list[str] = field(default_factory=list)
    pending: list[PendingMethodReference] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    @property
    def is_resolved(self) -> bool:
        return bool(self.values or self.pending)

    @property
    def text(self) -> str:
        return ALTERNATIVE_SEPARATOR.join(self.values)

    def add_value(self, value: str) -> None:
        if value not in self.values:
            self.values.append(value)

    def add_pending(self, reference: PendingMethodReference) -> None:
        if reference not in self.pending:
            self.pending.append(reference)

    def add_unresolved(self, name: str) -> None:
        if name not in self.unresolved:
            self.unresolved.append(name)

    def merge(self, other: "Resolution") -> None:
        for value in other.values:
            self.add_value(value)
        for reference in other.pending:
            self.add_pending(reference)
        for name in other.unresolved:
            self.add_unresolved(name)


@dataclass(frozen=True, slots=True)
class OutputRow:
    """One row of the results table."""

    file_path: Path
    line_number: int
    command_text: str
    is_variable: bool
    error_msg: str = ""

    @property
    def as_row(self) -> list[str]:
        """Cells in column order: File, LineNumber, CommandText, IsVariable, ErrorMsg."""
        return [
            str(self.file_path),
            str(self.line_number),
            self.command_text,
            str(self.is_variable),
            self.error_msg,
        ]
