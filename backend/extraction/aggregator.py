"""
ProcTrace Result Aggregator.

Turns extraction records into output rows and writes the CSV results table.
Requires Python 3.11+.
"""

import csv
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from extraction.models import ALTERNATIVE_SEPARATOR, PENDING_PREFIX, ExtractionRecord, OutputRow
from utils.logger import LoggerMixin

CSV_HEADER = ["File", "LineNumber", "CommandText", "IsVariable", "ErrorMsg"]


class ResultAggregator(LoggerMixin):
    """
    Flattens records into rows.

    Pending records are dropped, duplicate records collapse to their first
    occurrence, and ``|``-joined alternatives are exploded into one row each.
    """

    def __init__(
        self,
        strip_tokens: Iterable[str] = ("[", "]", "dbo."),
        logger: Any | None = None,
    ) -> None:
        self.use_logger(logger)
        self._strip_tokens = tuple(strip_tokens)

    def clean(self, text: str) -> str:
        """Remove SQL decorations such as ``[dbo].[Proc]`` brackets and the schema."""
        for token in self._strip_tokens:
            text = text.replace(token, "")
        return text

    def aggregate(self, records: Iterable[ExtractionRecord]) -> list[OutputRow]:
        """
        Build output rows.

        Args:
            records: Records in pass and document order

        Returns:
            Distinct rows, first occurrence order preserved
        """
        rows: list[OutputRow] = []
        seen_records: set[ExtractionRecord] = set()
        seen_rows: set[OutputRow] = set()
        dropped = 0

        for record in records:
            if record.is_pending:
                dropped += 1
                continue
            if record in seen_records:
                continue
            seen_records.add(record)

            for row in self._rows_for(record):
                if row not in seen_rows:
                    seen_rows.add(row)
                    rows.append(row)

        self.log.debug("records_aggregated", rows=len(rows), pending_dropped=dropped)
        return rows

    def _rows_for(self, record: ExtractionRecord) -> list[OutputRow]:
        if record.is_error:
            return [
                OutputRow(record.file_path, record.line_number, "", record.is_variable, record.error_msg)
            ]

        # raw expression text may contain | of its own (a || b)
        if record.is_variable:
            alternatives = [record.command_text]
        else:
            alternatives = record.command_text.split(ALTERNATIVE_SEPARATOR)

        rows = []
        for alternative in alternatives:
            if alternative.startswith(PENDING_PREFIX):
                continue
            text = self.clean(alternative)
            if not text:
                continue
            rows.append(
                OutputRow(record.file_path, record.line_number, text, record.is_variable, record.error_msg)
            )
        return rows


def write_csv(rows: Iterable[OutputRow], path: Path) -> int:
    """
    Write rows to ``path`` with a header line.

    Returns:
        Number of data rows written

    Raises:
        OSError: the file cannot be written
    """
    count = 0
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for row in rows:
            writer.writerow(row.as_row)
            count += 1
    return count
