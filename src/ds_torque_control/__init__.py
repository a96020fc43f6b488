"""
Torque control of a redundant arm driven by dynamical systems.

Subpackages:
- core: contracts, feedback laws, dynamical systems, QP, controllers, control loop
- robots: MuJoCo model and simulation backends
- stream: ZeroMQ transport for externally computed task-space commands
- visualization: optional MuJoCo viewer and trajectory plots
"""

__version__ = "0.1.0"
