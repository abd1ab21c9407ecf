"""
ProcTrace Extraction Package.

Argument map loading, call-site scanning, identifier resolution, the
multi-pass driver and result aggregation.
"""

from extraction.aggregator import ResultAggregator, write_csv
from extraction.argument_map import ArgumentMap, ArgumentMapBuilder, parse_rule
from extraction.corpus import discover_files
from extraction.errors import ConfigError, ProcTraceError, SourceReadError
from extraction.models import (
    ArgumentMapEntry,
    EntryOrigin,
    ExtractionRecord,
    OutputRow,
    PendingMethodReference,
    Resolution,
)
from extraction.orchestrator import ExtractionResult, PassOrchestrator, PassStats
from extraction.resolver import IdentifierResolver
from extraction.scanner import CallSiteScanner

__all__ = [
    "ArgumentMap",
    "ArgumentMapBuilder",
    "ArgumentMapEntry",
    "CallSiteScanner",
    "ConfigError",
    "EntryOrigin",
    "ExtractionRecord",
    "ExtractionResult",
    "IdentifierResolver",
    "OutputRow",
    "PassOrchestrator",
    "PassStats",
    "PendingMethodReference",
    "ProcTraceError",
    "Resolution",
    "ResultAggregator",
    "SourceReadError",
    "discover_files",
    "parse_rule",
    "write_csv",
]
