#!/usr/bin/env python3
"""
PDF Highlights - Command Line Interface
Run from a source checkout without installing the package
"""

import sys
from pathlib import Path

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from pdf_highlights.main import main

if __name__ == "__main__":
    sys.exit(main())
