#!/usr/bin/env python3
"""``echos`` sonar volume reconstruction runner.

Usage:
    python scripts/run_reconstruction.py scripts/user_config.py frames.npz track.csv
    python scripts/run_reconstruction.py scripts/user_config.py frames.npz track.csv --view-mode instrument
    python scripts/run_reconstruction.py scripts/user_config.py frames.npz track.csv --no-plot -v

Note: User config in scripts/user_config.py, expert defaults in echos.schemas.param
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from echos.cli.run_reconstruction import main


if __name__ == "__main__":
    sys.exit(main())
