"""
ProcTrace Argument Map.

Multimap from a call key to the argument positions that carry command
text, and the builder that reads it from ``argMap.txt`` style rules:

    // comment
    SqlCommand,0
    SqlHelper.ExecuteReader,1
    Database|IDatabase.Execute,0,Acme.Data

Requires Python 3.11+.
"""

from pathlib import Path
from typing import Any, Iterable, Iterator

from extraction.errors import ConfigError
from extraction.models import (
    ALTERNATIVE_SEPARATOR,
    PENDING_PREFIX,
    ArgumentMapEntry,
    EntryOrigin,
    PendingMethodReference,
)
from utils.logger import LoggerMixin


class ArgumentMap:
    """
    Multi-valued mapping of call keys to entries.

    Entry order under a key is irrelevant; an identical entry is stored once.
    Looking up an unknown key yields an empty tuple.
    """

    def __init__(self, entries: Iterable[ArgumentMapEntry] = ()) -> None:
        self._entries: dict[str, list[ArgumentMapEntry]] = {}
        for entry in entries:
            self.add(entry)

    def add(self, entry: ArgumentMapEntry) -> None:
        bucket = self._entries.setdefault(entry.key, [])
        if entry not in bucket:
            bucket.append(entry)

    def lookup(self, key: str) -> tuple[ArgumentMapEntry, ...]:
        return tuple(self._entries.get(key, ()))

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._entries.values())

    def __iter__(self) -> Iterator[ArgumentMapEntry]:
        return self.entries()

    def keys(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> Iterator[ArgumentMapEntry]:
        for bucket in self._entries.values():
            yield from bucket

    def merge(self, other: "ArgumentMap") -> "ArgumentMap":
        """New map holding the entries of both maps."""
        return ArgumentMap([*self.entries(), *other.entries()])

    @property
    def has_pending_entries(self) -> bool:
        return any(entry.is_pending for entry in self.entries())

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "ArgumentMap":
        """Map from rule lines; malformed lines are logged and skipped."""
        return ArgumentMapBuilder().parse(lines)

    @classmethod
    def from_file(cls, path: Path, encoding: str = "utf-8") -> tuple["ArgumentMap", list[ConfigError]]:
        """
        Map from a rules file, with the rejected lines.

        Raises:
            OSError: the file cannot be read
        """
        builder = ArgumentMapBuilder()
        argument_map = builder.load(path, encoding)
        return argument_map, builder.errors

    @classmethod
    def from_pending(cls, references: Iterable[PendingMethodReference]) -> "ArgumentMap":
        return ArgumentMapBuilder().from_pending(references)


def parse_rule(line: str, line_number: int) -> list[ArgumentMapEntry]:
    """
    Parse one ``Qualifier.Method,ArgIndex[,Namespace]`` rule.

    A ``|``-joined qualifier fans out into one entry per type. A qualifier
    carrying the pending-reference prefix yields pending-origin entries.

    Raises:
        ConfigError: the line is malformed
    """
    parts = [part.strip() for part in line.strip().split(",")]
    if len(parts) not in (2, 3):
        raise ConfigError(line_number, line, f"expected 2 or 3 fields, found {len(parts)}")

    method_expr, index_text = parts[0], parts[1]
    namespace = parts[2] if len(parts) == 3 and parts[2] else None

    try:
        arg_index = int(index_text)
    except ValueError:
        raise ConfigError(line_number, line, f"argument index {index_text!r} is not an integer") from None
    if arg_index < 0:
        raise ConfigError(line_number, line, "argument index must not be negative")

    qualifier, _, method_name = method_expr.rpartition(".")
    if not method_name:
        raise ConfigError(line_number, line, "missing method name")

    origin = EntryOrigin.CONFIG
    if qualifier.startswith(PENDING_PREFIX):
        origin = EntryOrigin.PENDING
        qualifier = qualifier[len(PENDING_PREFIX) :]

    if not qualifier:
        return [ArgumentMapEntry(method_name, method_name, arg_index, namespace, origin)]

    keys = [q.strip() for q in qualifier.split(ALTERNATIVE_SEPARATOR) if q.strip()]
    if not keys:
        raise ConfigError(line_number, line, "empty type qualifier")
    return [
        ArgumentMapEntry(f"{key}.{method_name}", method_name, arg_index, namespace, origin)
        for key in keys
    ]


class ArgumentMapBuilder(LoggerMixin):
    """
    Builds argument maps from rule lines, rule files and pending references.

    Rejected lines are collected in ``errors`` and logged; loading carries
    on with the remaining lines.
    """

    def __init__(self, logger: Any | None = None) -> None:
        self.use_logger(logger)
        self.errors: list[ConfigError] = []

    def parse(self, lines: Iterable[str]) -> ArgumentMap:
        """Build a map from rule lines; blank lines and ``//`` comments are skipped."""
        argument_map = ArgumentMap()
        for line_number, line in enumerate(lines, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("//"):
                continue
            try:
                entries = parse_rule(stripped, line_number)
            except ConfigError as e:
                self.errors.append(e)
                self.log.warning(
                    "config_line_rejected",
                    line_number=e.line_number,
                    reason=e.reason,
                    line=stripped,
                )
                continue
            for entry in entries:
                argument_map.add(entry)

        self.log.debug("argument_map_built", entries=len(argument_map), rejected=len(self.errors))
        return argument_map

    def load(self, path: Path, encoding: str = "utf-8") -> ArgumentMap:
        """
        Build a map from a rules file.

        Raises:
            OSError: the file cannot be read
        """
        text = path.read_text(encoding=encoding)
        self.log.info("loading_argument_map", path=str(path))
        return self.parse(text.splitlines())

    def from_pending(self, references: Iterable[PendingMethodReference]) -> ArgumentMap:
        """
        Build the pass-2 map: one pending-origin entry per class name of
        each reference, keyed ``Class.Method``.
        """
        argument_map = ArgumentMap()
        for reference in references:
            for class_name in reference.class_names:
                if not class_name:
                    continue
                argument_map.add(
                    ArgumentMapEntry(
                        key=f"{class_name}.{reference.method_name}",
                        method_name=reference.method_name,
                        arg_index=reference.parameter_index,
                        namespace=reference.namespace,
                        origin=EntryOrigin.PENDING,
                    )
                )
        return argument_map
