#!/usr/bin/env python3
"""Bank Statement Import Reconciler.

This is the main entry point script for the import reconciler.
It wraps the package CLI for convenient execution.

Usage:
    python reconcile_import.py --statement statement.csv --account acc_123

For full documentation and options:
    python reconcile_import.py --help
"""

import sys
from pathlib import Path

# Add src to path for development installs
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from import_reconciler.cli import main

if __name__ == "__main__":
    sys.exit(main())
