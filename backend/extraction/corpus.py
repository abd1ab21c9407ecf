"""
ProcTrace Corpus Discovery.

Requires Python 3.11+.
"""

from collections.abc import Iterable
from pathlib import Path


def discover_files(
    root: Path,
    pattern: str = "*.cs",
    ignore_dirs: Iterable[str] = ("obj", "bin"),
) -> list[Path]:
    """
    Recursively find source files under ``root``.

    Files inside a directory whose name is in ``ignore_dirs`` (build output
    such as ``obj`` and ``bin``) are skipped. The result is sorted so that
    every pass visits files in the same order.
    """
    ignored = set(ignore_dirs)
    files = []
    for path in root.rglob(pattern):
        if not path.is_file():
            continue
        if any(part in ignored for part in path.relative_to(root).parts[:-1]):
            continue
        files.append(path)
    return sorted(files)
