#!/usr/bin/env python3
"""
ProcTrace Extraction Script.

Runs the three-pass command-text extraction over a C# code base without
installing the package.
Requires Python 3.11+.

Usage:
    python scripts/extract_commands.py /path/to/solution [file-glob] --arg-map argMap.txt
"""

import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from extraction.cli import main


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nCancelled by user")
        sys.exit(1)
