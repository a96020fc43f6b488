"""Companion reference stream server for the sim_* demos.

Answers each request (the end-effector position, 3 float64) with the velocity
of a linear dynamical system converging to the demo's attractor.

Usage:
    python examples/ds_server.py 1
    python examples/ds_server.py 2 --gain 2.0 --max-speed 0.3
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ds_torque_control.demos import serve_main


if __name__ == '__main__':
    sys.exit(serve_main())
