#!/usr/bin/env python3
"""
GFS Layer Update

Run from a checkout without installing:

    python scripts/run_gfs_update.py data/raw/gfs data/layers now-12 T-24 0 3
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from pipeline.run import main

if __name__ == "__main__":
    sys.exit(main())
