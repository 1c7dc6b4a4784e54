#!/usr/bin/env python3
"""
Industrial Safety Auditor - Entry Point

Run this file directly or use: python -m auditor.main

Usage:
    python industrial_auditor.py --help
    python industrial_auditor.py --source webcam
    python industrial_auditor.py --source video --video-path videos/yard.mp4 --export-csv
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from auditor.main import main

if __name__ == "__main__":
    sys.exit(main())
