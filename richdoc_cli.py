#!/usr/bin/env python3
"""
richdoc - rich-text document model command line

Simple usage:
    python richdoc_cli.py show notes.json          # Print the normalized tree
    python richdoc_cli.py normalize notes.json     # Normalize in place
    python richdoc_cli.py convert notes.md out.json
"""

import sys
from pathlib import Path

# Add src to path for development
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from richdoc.cli import app

if __name__ == "__main__":
    app()
