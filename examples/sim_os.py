"""Operational-space damping controller following a demonstrated trajectory.

The arm first converges to the start of trajectory_1 with its local dynamics,
then follows the dynamical system served on tcp://localhost:5511.

Usage:
    python examples/ds_server.py 1          # in another terminal
    python examples/sim_os.py 1 --visualize
    python examples/sim_os.py 2 --no-realtime --duration 10 --plot
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ds_torque_control.demos import main_os


if __name__ == '__main__':
    sys.exit(main_os())
