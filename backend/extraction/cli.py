"""
ProcTrace Command Line Interface.

Extracts stored-procedure names and SQL command texts from a C# code base
into a CSV file.
Requires Python 3.11+.

Usage:
    proctrace /path/to/solution [file-glob] [--arg-map argMap.txt] [--output out.csv]
"""

import argparse
import sys
from pathlib import Path

from extraction.aggregator import ResultAggregator, write_csv
from extraction.argument_map import ArgumentMapBuilder
from extraction.corpus import discover_files
from extraction.orchestrator import PassOrchestrator
from extraction.resolver import IdentifierResolver
from extraction.scanner import CallSiteScanner
from syntax.csharp_parser import CSharpParser
from utils.config import get_settings
from utils.logger import configure_logging, get_logger


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    arg_parser = argparse.ArgumentParser(
        prog="proctrace",
        description="Find SQL command texts passed to data-access calls in a C# code base",
    )
    arg_parser.add_argument(
        "paths",
        nargs="*",
        metavar="code-root-path [file-glob]",
        help="Root directory of the code base, optionally followed by a glob for pass-1 files",
    )
    arg_parser.add_argument(
        "--arg-map",
        type=Path,
        default=None,
        help="Argument map rules file (default: EXTRACTOR_ARG_MAP_FILE or argMap.txt)",
    )
    arg_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="CSV output file (default: storedprocs.csv next to the argument map)",
    )
    arg_parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Log level overriding LOG_LEVEL",
    )
    return arg_parser


def _output_path(requested: Path | None, arg_map_path: Path, default: Path) -> Path:
    if requested is not None:
        return requested
    if default.is_absolute():
        return default
    return arg_map_path.parent / default


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point.

    Returns:
        Process exit status
    """
    arg_parser = build_arg_parser()
    args = arg_parser.parse_args(argv)

    if not args.paths or len(args.paths) > 2:
        arg_parser.print_usage()
        return 0

    settings = get_settings().extractor
    code_path = Path(args.paths[0])
    pattern = args.paths[1] if len(args.paths) == 2 else settings.default_glob

    print(f"Code path = {code_path}")
    if not code_path.is_dir():
        print(f"Directory {code_path} does not exist. Please retry.")
        return 0

    configure_logging(args.log_level)
    logger = get_logger("proctrace.cli")

    arg_map_path = args.arg_map or settings.arg_map_file
    map_builder = ArgumentMapBuilder()
    try:
        argument_map = map_builder.load(arg_map_path, encoding=settings.source_encoding)
    except OSError as e:
        logger.error("argument_map_unreadable", path=str(arg_map_path), error=str(e))
        print(f"Error: cannot read argument map {arg_map_path}: {e}")
        return 1
    if map_builder.errors:
        print(f"Skipped {len(map_builder.errors)} malformed argument map line(s)")

    target_files = discover_files(code_path, pattern, settings.ignore_dirs)
    corpus_files = discover_files(code_path, settings.corpus_glob, settings.ignore_dirs)
    logger.info(
        "corpus_discovered",
        root=str(code_path),
        target_files=len(target_files),
        corpus_files=len(corpus_files),
    )

    scanner = CallSiteScanner(
        resolver=IdentifierResolver(),
        initializer_property=settings.initializer_property,
        skip_receivers=settings.skip_receivers,
    )
    orchestrator = PassOrchestrator(
        parser=CSharpParser(encoding=settings.source_encoding),
        scanner=scanner,
        map_builder=ArgumentMapBuilder(),
        max_propagation_rounds=settings.max_propagation_rounds,
    )
    result = orchestrator.run(argument_map, target_files, corpus_files)

    rows = ResultAggregator(strip_tokens=settings.strip_tokens).aggregate(result.records)
    output_path = _output_path(args.output, arg_map_path, settings.output_file)
    try:
        written = write_csv(rows, output_path)
    except OSError as e:
        logger.error("output_unwritable", path=str(output_path), error=str(e))
        print(f"Error: cannot write {output_path}: {e}")
        return 1

    print(f"Files scanned: {len(target_files)} (corpus: {len(corpus_files)})")
    print(f"Rows written: {written} to {output_path}")
    if result.unresolved_count:
        print(f"Unresolved variables: {result.unresolved_count}")
    if result.error_count:
        print(f"Files with errors: {result.error_count}")
    print(f"Analysis complete. Elapsed time = {result.elapsed_seconds:.2f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
