"""
ProcTrace Pass Orchestrator.

Three-pass driver:
- Pass 1 (Call sites): scan the target files with the user argument map
- Pass 2 (Referenced methods): turn parameters traced in pass 1 into new
  argument map entries and scan the whole corpus for their call sites
- Pass 3 (Declarations): look up still-unresolved names in a project-wide
  table of literal-initialized variables

Requires Python 3.11+.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from extraction.argument_map import ArgumentMap, ArgumentMapBuilder
from extraction.errors import SourceReadError
from extraction.models import ExtractionRecord, PendingMethodReference
from extraction.scanner import CallSiteScanner
from syntax import queries
from syntax.csharp_parser import CSharpParser
from syntax.models import NodeKind, SyntaxTree
from utils.logger import LoggerMixin


@dataclass
class PassStats:
    """Counters for one pass."""

    number: int
    files_scanned: int = 0
    files_failed: int = 0
    records_found: int = 0


@dataclass
class ExtractionResult:
    """Everything a run produced, before aggregation."""

    records: list[ExtractionRecord] = field(default_factory=list)
    pending_map: ArgumentMap = field(default_factory=ArgumentMap)
    passes: list[PassStats] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def output_records(self) -> list[ExtractionRecord]:
        """Records that can reach the output (pending references dropped)."""
        return [r for r in self.records if not r.is_pending]

    @property
    def unresolved_count(self) -> int:
        return sum(1 for r in self.output_records if r.is_variable)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.records if r.is_error)


class PassOrchestrator(LoggerMixin):
    """
    Runs the extraction passes over a corpus.

    Files are processed one at a time; the record list and the derived
    argument map are only changed between files, never during a scan.
    """

    def __init__(
        self,
        parser: CSharpParser | None = None,
        scanner: CallSiteScanner | None = None,
        map_builder: ArgumentMapBuilder | None = None,
        max_propagation_rounds: int = 1,
        logger: Any | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            parser: C# parser (default: UTF-8 CSharpParser)
            scanner: Call-site scanner (default settings when omitted)
            map_builder: Builder for the derived pass-2 maps
            max_propagation_rounds: How many times pass 2 may run for
                references first found by an earlier pass 2
            logger: Event sink replacing the class logger
        """
        self.use_logger(logger)
        self._parser = parser or CSharpParser()
        self._scanner = scanner or CallSiteScanner(logger=logger)
        self._map_builder = map_builder or ArgumentMapBuilder(logger=logger)
        self._max_rounds = max(1, max_propagation_rounds)

    def run(
        self,
        argument_map: ArgumentMap,
        target_files: list[Path],
        corpus_files: list[Path] | None = None,
    ) -> ExtractionResult:
        """
        Execute all passes.

        Args:
            argument_map: User rules for pass 1
            target_files: Files scanned in pass 1
            corpus_files: Files scanned in passes 2 and 3 (default: target files)

        Returns:
            ExtractionResult with every record, pending ones included
        """
        start_time = time.perf_counter()
        corpus = corpus_files if corpus_files is not None else target_files
        result = ExtractionResult()

        self.log.info("pass_started", number=1, files=len(target_files))
        records, stats = self.method_calls_pass(1, target_files, argument_map)
        result.records.extend(records)
        result.passes.append(stats)

        self._propagate(result, records, corpus)

        self.log.info("pass_started", number=3, files=len(corpus))
        result.records, stats = self.declarations_pass(3, result.records, corpus)
        result.passes.append(stats)

        result.elapsed_seconds = time.perf_counter() - start_time
        self.log.info(
            "analysis_complete",
            records=len(result.output_records),
            unresolved=result.unresolved_count,
            errors=result.error_count,
            elapsed_seconds=round(result.elapsed_seconds, 3),
        )
        return result

    def _propagate(
        self,
        result: ExtractionResult,
        frontier: list[ExtractionRecord],
        corpus: list[Path],
    ) -> None:
        """Pass 2, repeated for references discovered by the previous round."""
        seen: set[PendingMethodReference] = set()
        for round_number in range(1, self._max_rounds + 1):
            references = self.pending_references(frontier, exclude=seen)
            if not references:
                if round_number == 1:
                    self.log.info("no_referenced_methods")
                return
            seen.update(references)

            round_map = self._map_builder.from_pending(references)
            result.pending_map = result.pending_map.merge(round_map)
            self.log.info(
                "pass_started",
                number=2,
                round=round_number,
                files=len(corpus),
                referenced_methods=[r.encode() for r in references],
            )
            frontier, stats = self.method_calls_pass(2, corpus, round_map)
            result.records.extend(frontier)
            result.passes.append(stats)

    @staticmethod
    def pending_references(
        records: list[ExtractionRecord],
        exclude: set[PendingMethodReference] | None = None,
    ) -> list[PendingMethodReference]:
        """Distinct pending references carried by records, in first-seen order."""
        excluded = exclude or set()
        references: list[PendingMethodReference] = []
        for record in records:
            if record.pending is not None and record.pending not in excluded:
                if record.pending not in references:
                    references.append(record.pending)
        return references

    def method_calls_pass(
        self, number: int, files: list[Path], argument_map: ArgumentMap
    ) -> tuple[list[ExtractionRecord], PassStats]:
        """Scan files for call sites matching the map."""
        stats = PassStats(number=number)
        records: list[ExtractionRecord] = []
        for path in files:
            self.log.info("scanning_file", number=number, path=str(path))
            try:
                tree = self._parse(path)
                file_records = self._scanner.scan(tree, argument_map)
            except SourceReadError as e:
                self.log.warning("file_read_failed", path=str(path), error=e.reason)
                stats.files_failed += 1
                records.append(ExtractionRecord(path, 0, "", error_msg=str(e)))
                continue
            except Exception as e:
                self.log.exception("scan_failed", path=str(path), error=str(e))
                stats.files_failed += 1
                records.append(ExtractionRecord(path, 0, "", error_msg=f"{path}: {e}"))
                continue
            stats.files_scanned += 1
            records.extend(file_records)

        stats.records_found = len(records)
        return records, stats

    def declarations_pass(
        self, number: int, records: list[ExtractionRecord], files: list[Path]
    ) -> tuple[list[ExtractionRecord], PassStats]:
        """
        Resolve unresolved records against literal declarations anywhere in
        the corpus, keyed by type-qualified variable name.
        """
        stats = PassStats(number=number)
        records = list(records)
        remaining = [
            i for i, record in enumerate(records) if record.is_variable and not record.is_pending
        ]
        if not remaining:
            self.log.info("no_variables_to_lookup")
            return records, stats

        for path in files:
            if not remaining:
                break
            self.log.info("scanning_file", number=number, path=str(path))
            try:
                tree = self._parse(path)
            except SourceReadError as e:
                self.log.warning("file_read_failed", path=str(path), error=e.reason)
                stats.files_failed += 1
                continue
            stats.files_scanned += 1

            literals = self.qualified_literals(tree)
            still_unresolved = []
            for i in remaining:
                value = literals.get(records[i].command_text)
                if value is None:
                    still_unresolved.append(i)
                    continue
                records[i] = records[i].resolved(value)
                stats.records_found += 1
            remaining = still_unresolved

        return records, stats

    @staticmethod
    def qualified_literals(tree: SyntaxTree) -> dict[str, str]:
        """
        ``Type.Nested.name -> literal`` for literal-initialized declarators
        in one file; the first definition of a name wins.
        """
        literals: dict[str, str] = {}
        for declarator in tree.iter_kind(NodeKind.DECLARATOR):
            value = queries.declarator_value(tree, declarator)
            if value is None or value.kind is not NodeKind.LITERAL:
                continue
            name = queries.declarator_name(tree, declarator)
            literal = queries.literal_value(tree, value)
            if name and literal:
                literals.setdefault(queries.qualified_variable_name(tree, name, declarator), literal)
        return literals

    def _parse(self, path: Path) -> SyntaxTree:
        try:
            return self._parser.parse_file(path)
        except OSError as e:
            raise SourceReadError(path, str(e)) from e
